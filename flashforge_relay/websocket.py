"""WebSocket push channel for live printer snapshots.

Clients exchange JSON text frames::

    -> {"type": "subscribe", "ip": "192.168.0.50", "intervalMs": 2000}
    <- {"type": "subscribed", "ip": "192.168.0.50", "intervalMs": 2000}
    <- {"type": "snapshot", "ip": "192.168.0.50", "data": {...}}
    -> {"type": "unsubscribe", "ip": "192.168.0.50"}
    <- {"type": "unsubscribed", "ip": "192.168.0.50"}
    -> {"type": "snapshot", "ip": "192.168.0.50"}

Connecting to ``/ws?ip=...&interval=...`` subscribes straight away and sends
one snapshot immediately.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Mapping, Optional, Set

from aiohttp import WSMsgType, web

from .core.utils import InvalidAddressError, validate_address
from .telemetry.hub import SubscriptionHub

LOGGER = logging.getLogger(__name__)

INVALID_MESSAGE = "Invalid message format"


class WebSocketSubscriber:
    """Hub subscriber backed by one aiohttp websocket connection."""

    __slots__ = ("_ws", "__weakref__")

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send_message(self, message: Mapping[str, Any]) -> None:
        if self._ws.closed:
            raise ConnectionResetError("WebSocket is closed")
        await self._ws.send_json(dict(message))


class WebSocketGateway:
    """Translates push-protocol frames into subscription hub operations."""

    def __init__(self, hub: SubscriptionHub, *, heartbeat: Optional[float] = 30.0) -> None:
        self._hub = hub
        self._heartbeat = heartbeat

    async def handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=self._heartbeat)
        await ws.prepare(request)

        subscriber = WebSocketSubscriber(ws)
        pending: Set[asyncio.Task[None]] = set()
        LOGGER.info("WebSocket client connected from %s", request.remote)

        try:
            await self._presubscribe(request, subscriber, pending)

            async for message in ws:
                if message.type == WSMsgType.TEXT:
                    await self._dispatch(subscriber, message.data, pending)
                elif message.type == WSMsgType.ERROR:
                    LOGGER.debug("WebSocket error: %s", ws.exception())
                    break
        finally:
            self._hub.disconnect(subscriber)
            for task in pending:
                task.cancel()
            LOGGER.info("WebSocket client disconnected from %s", request.remote)

        return ws

    async def _presubscribe(
        self,
        request: web.Request,
        subscriber: WebSocketSubscriber,
        pending: Set[asyncio.Task[None]],
    ) -> None:
        raw_ip = request.query.get("ip")
        if not raw_ip:
            return

        try:
            address = validate_address(raw_ip)
        except InvalidAddressError as exc:
            await _reply(subscriber, {"type": "error", "ip": raw_ip, "error": str(exc)})
            return

        interval: Optional[int] = None
        raw_interval = request.query.get("interval")
        if raw_interval:
            with contextlib.suppress(ValueError):
                interval = int(raw_interval)

        self._hub.subscribe(address, interval, subscriber)
        self._spawn_snapshot(subscriber, address, pending)

    async def _dispatch(
        self,
        subscriber: WebSocketSubscriber,
        data: str,
        pending: Set[asyncio.Task[None]],
    ) -> None:
        try:
            payload = json.loads(data)
        except ValueError:
            await _reply(subscriber, {"type": "error", "error": INVALID_MESSAGE})
            return

        if not isinstance(payload, dict):
            await _reply(subscriber, {"type": "error", "error": INVALID_MESSAGE})
            return

        message_type = payload.get("type")
        raw_ip = payload.get("ip")
        if message_type not in ("subscribe", "unsubscribe", "snapshot") or not raw_ip:
            await _reply(subscriber, {"type": "error", "error": INVALID_MESSAGE})
            return

        try:
            address = validate_address(raw_ip)
        except InvalidAddressError as exc:
            await _reply(subscriber, {"type": "error", "ip": raw_ip, "error": str(exc)})
            return

        if message_type == "subscribe":
            interval = self._hub.subscribe(address, payload.get("intervalMs"), subscriber)
            await _reply(
                subscriber, {"type": "subscribed", "ip": address, "intervalMs": interval}
            )
        elif message_type == "unsubscribe":
            self._hub.unsubscribe(address, subscriber)
            await _reply(subscriber, {"type": "unsubscribed", "ip": address})
        else:
            self._spawn_snapshot(subscriber, address, pending)

    def _spawn_snapshot(
        self,
        subscriber: WebSocketSubscriber,
        address: str,
        pending: Set[asyncio.Task[None]],
    ) -> None:
        task = asyncio.create_task(self._send_snapshot(subscriber, address))
        pending.add(task)
        task.add_done_callback(pending.discard)

    async def _send_snapshot(self, subscriber: WebSocketSubscriber, address: str) -> None:
        try:
            snapshot = await self._hub.request_once(address)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.exception("One-off snapshot for %s failed", address)
            await _reply(
                subscriber,
                {"type": "error", "ip": address, "error": str(exc) or exc.__class__.__name__},
            )
            return

        await _reply(
            subscriber, {"type": "snapshot", "ip": address, "data": snapshot.as_dict()}
        )


async def _reply(subscriber: WebSocketSubscriber, message: Mapping[str, Any]) -> None:
    try:
        await subscriber.send_message(message)
    except ConnectionError as exc:
        LOGGER.debug("Could not reply to websocket client: %s", exc)
