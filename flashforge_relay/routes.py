"""HTTP handlers exposing telemetry reads and control actions."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from aiohttp import web

from .commands import PrinterCommandError, PrinterController
from .core.models import Step
from .core.utils import InvalidAddressError, validate_address
from .health import HealthReporter
from .telemetry.assembler import SnapshotAssembler
from .telemetry.hub import SubscriptionHub

LOGGER = logging.getLogger(__name__)

CATEGORY_PATHS: Dict[str, Step] = {
    "info": Step.INFO,
    "head-location": Step.HEAD_POSITION,
    "temp": Step.TEMPERATURE,
    "progress": Step.PROGRESS,
    "status": Step.STATUS,
}


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


def _address(request: web.Request) -> str:
    try:
        return validate_address(request.match_info["ip"])
    except InvalidAddressError as exc:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": str(exc)}), content_type="application/json"
        ) from exc


class PrinterRoutes:
    """Thin request handlers over the assembler, hub and controller."""

    def __init__(
        self,
        *,
        assembler: SnapshotAssembler,
        hub: SubscriptionHub,
        controller: PrinterController,
        health: HealthReporter,
    ) -> None:
        self._assembler = assembler
        self._hub = hub
        self._controller = controller
        self._health = health

    def register(self, app: web.Application) -> None:
        app.router.add_get("/healthz", self.health)
        for path, step in CATEGORY_PATHS.items():
            app.router.add_get(f"/{{ip}}/{path}", self._category_handler(step))
        app.router.add_get("/{ip}/snapshot", self.snapshot)
        app.router.add_get("/{ip}/history", self.history)
        app.router.add_post("/{ip}/led", self.led)
        for action in ("pause", "resume", "cancel", "home"):
            app.router.add_post(f"/{{ip}}/{action}", self._action_handler(action))

    def _category_handler(self, step: Step):
        async def handler(request: web.Request) -> web.Response:
            address = _address(request)
            outcome = await self._assembler.query(address, step)
            if outcome.error is not None:
                LOGGER.debug(
                    "Read of %s from %s failed: %s", step.value, address, outcome.error.error
                )
                return _error(502, outcome.error.error)
            return web.json_response(outcome.section.as_dict())

        return handler

    def _action_handler(self, action: str):
        async def handler(request: web.Request) -> web.Response:
            address = _address(request)
            try:
                outcome = await self._controller.execute_action(address, action)
            except PrinterCommandError as exc:
                return _error(502, str(exc))
            return web.json_response(outcome.as_dict())

        return handler

    async def snapshot(self, request: web.Request) -> web.Response:
        address = _address(request)
        snapshot = await self._hub.request_once(address)
        return web.json_response(snapshot.as_dict())

    async def history(self, request: web.Request) -> web.Response:
        address = _address(request)
        snapshots = [item.as_dict() for item in self._hub.history(address)]
        return web.json_response({"ip": address, "snapshots": snapshots})

    async def led(self, request: web.Request) -> web.Response:
        address = _address(request)
        body: Dict[str, Any] = {}
        if request.can_read_body:
            try:
                parsed = await request.json()
            except ValueError:
                return _error(400, "Request body must be JSON")
            if isinstance(parsed, dict):
                body = parsed

        try:
            outcome = await self._controller.set_led(
                address,
                state=body.get("state"),
                red=body.get("r"),
                green=body.get("g"),
                blue=body.get("b"),
            )
        except PrinterCommandError as exc:
            return _error(502, str(exc))
        return web.json_response(outcome.as_dict())

    async def health(self, request: web.Request) -> web.Response:
        await self._health.retain(self._hub.addresses())
        snapshot = await self._health.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)
