"""Main application entry-point for flashforge-relay."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from aiohttp import web

from .adapters import TransactionClient
from .commands import PrinterController
from .config import RelayConfig, load_config
from .core import TransactionExecutor
from .health import HealthReporter
from .logging import configure_logging
from .routes import PrinterRoutes
from .telemetry import SnapshotAssembler, SubscriptionHub
from .websocket import WebSocketGateway

LOGGER = logging.getLogger(__name__)


class RelayApp:
    """Wires the transaction client, assembler, hub and HTTP surface together.

    The transaction client can be injected for testing or to reach printers
    through something other than a direct TCP connection.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        *,
        client: Optional[TransactionExecutor] = None,
    ) -> None:
        self._config = config or load_config()
        printer = self._config.printer
        polling = self._config.polling

        self._client: TransactionExecutor = client or TransactionClient(
            port=printer.port,
            timeout=printer.timeout_seconds,
            read_size=printer.read_size,
        )
        self._health = HealthReporter()
        self._assembler = SnapshotAssembler(self._client)
        self._hub = SubscriptionHub(
            self._assembler,
            default_interval_ms=polling.default_interval_ms,
            min_interval_ms=polling.min_interval_ms,
            history_size=polling.history_size,
            send_timeout=polling.send_timeout_seconds,
            on_snapshot=self._health.record_snapshot,
        )
        self._controller = PrinterController(self._client)
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def hub(self) -> SubscriptionHub:
        return self._hub

    @property
    def assembler(self) -> SnapshotAssembler:
        return self._assembler

    @property
    def controller(self) -> PrinterController:
        return self._controller

    def build_application(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/ws", WebSocketGateway(self._hub).handle)
        PrinterRoutes(
            assembler=self._assembler,
            hub=self._hub,
            controller=self._controller,
            health=self._health,
        ).register(app)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def start_server(self) -> None:
        server = self._config.server
        self._runner = web.AppRunner(self.build_application())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, server.host, server.port)
        await self._site.start()
        LOGGER.info("HTTP server listening on http://%s:%s", server.host, server.port)
        LOGGER.info("WebSocket endpoint available at ws://%s:%s/ws", server.host, server.port)

    async def stop_server(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None
        await self._hub.close()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def run(self) -> None:
        """Serve until :meth:`request_shutdown` is called or the task is cancelled."""

        self._shutdown_event = asyncio.Event()
        LOGGER.info("flashforge-relay starting with config: %s", self._config.path)
        await self.start_server()
        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("flashforge-relay received shutdown signal")
            raise
        finally:
            await self.stop_server()

    async def _on_shutdown(self, app: web.Application) -> None:
        await self._hub.close()

    @classmethod
    def start(cls, config: Optional[RelayConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("flashforge-relay received shutdown signal")
