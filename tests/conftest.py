import asyncio
import contextlib
from typing import Dict, Optional, Set, Tuple

import pytest
import pytest_asyncio

from flashforge_relay.adapters import (
    Command,
    FailureKind,
    TransactionResult,
    command_text,
)

SAMPLE_REPLIES: Dict[str, str] = {
    Command.CONTROL.value: "CMD M601 Received.\r\nControl Success.\r\nok\r\n",
    Command.INFO.value: (
        "CMD M115 Received.\r\n"
        "Machine Type: Flashforge Adventurer 4\r\n"
        "Machine Name: Workshop\r\n"
        "Firmware: v2.2.3\r\n"
        "SN: SNADVA4123456\r\n"
        "X: 220 Y: 200 Z: 250\r\n"
        "Tool Count: 1\r\n"
        "Mac Address:88:A9:A7:90:12:34\r\n"
        "ok\r\n"
    ),
    Command.HEAD_POSITION.value: "CMD M114 Received.\r\nX:10.5 Y:-3 Z:0.2 A:0 B:0\r\nok\r\n",
    Command.TEMPERATURE.value: "CMD M105 Received.\r\nT0:210/215 T1:0/0 B:60/60\r\nok\r\n",
    Command.PROGRESS.value: "CMD M27 Received.\r\nSD printing byte 50/200\r\nLayer: 3/12\r\nok\r\n",
    Command.STATUS.value: (
        "CMD M119 Received.\r\n"
        "Endstop: X-max:0 Y-max:0 Z-min:0\r\n"
        "MachineStatus: BUILDING_FROM_SD\r\n"
        "MoveMode: MOVING\r\n"
        "Status: S:1 L:0 J:0 F:0\r\n"
        "LED: 1\r\n"
        "CurrentFile: benchy.gx\r\n"
        "ok\r\n"
    ),
}


class FakeTransactionClient:
    """In-memory stand-in for TransactionClient."""

    def __init__(
        self,
        replies: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[str, Tuple[FailureKind, str]]] = None,
    ) -> None:
        self.replies = dict(SAMPLE_REPLIES if replies is None else replies)
        self.failures = dict(failures or {})
        self.calls: list[tuple[str, str]] = []

    def fail(self, command, reason: str = "Connection timeout", kind=FailureKind.TIMEOUT):
        self.failures[command_text(command)] = (kind, reason)

    def commands(self) -> list[str]:
        return [text for _, text in self.calls]

    async def execute(self, address, command, timeout=None) -> TransactionResult:
        text = command_text(command)
        self.calls.append((address, text))
        await asyncio.sleep(0)
        if text in self.failures:
            kind, reason = self.failures[text]
            return TransactionResult.failed(kind, reason)
        return TransactionResult.success(self.replies.get(text, "ok\r\n"))


class FakePrinter:
    """Line-oriented TCP server that answers like a FlashForge controller."""

    def __init__(self) -> None:
        self.replies: Dict[str, str] = dict(SAMPLE_REPLIES)
        self.silent: Set[str] = set()
        self.hangup: Set[str] = set()
        # command -> (first part, second part), sent with a pause in between
        self.fragmented: Dict[str, Tuple[str, str]] = {}
        self.closed_by_client: list[str] = []
        self.received: list[str] = []
        self.open_connections = 0
        self.port: int = 0

    async def handle(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self.open_connections += 1
        try:
            try:
                line = await reader.readuntil(b"\r\n")
            except (asyncio.IncompleteReadError, ConnectionError):
                return
            text = line.decode("ascii").rstrip("\r\n")
            self.received.append(text)

            if text in self.hangup:
                return
            if text in self.silent:
                # Hold the connection open until the client gives up.
                with contextlib.suppress(ConnectionError):
                    await reader.read()
                return

            if text in self.fragmented:
                await self._send_in_parts(text, reader, writer)
                return

            writer.write(self.replies.get(text, "ok\r\n").encode("ascii"))
            await writer.drain()
        finally:
            self.open_connections -= 1
            writer.close()

    async def _send_in_parts(
        self, text: str, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        first, second = self.fragmented[text]
        writer.write(first.encode("ascii"))
        await writer.drain()

        with contextlib.suppress(asyncio.TimeoutError, ConnectionError):
            if await asyncio.wait_for(reader.read(), timeout=0.3) == b"":
                self.closed_by_client.append(text)
                return

        with contextlib.suppress(ConnectionError):
            writer.write(second.encode("ascii"))
            await writer.drain()


@pytest_asyncio.fixture
async def fake_printer():
    printer = FakePrinter()
    server = await asyncio.start_server(printer.handle, "127.0.0.1", 0)
    printer.port = server.sockets[0].getsockname()[1]
    try:
        yield printer
    finally:
        server.close()


@pytest.fixture
def fake_client() -> FakeTransactionClient:
    return FakeTransactionClient()
