"""FlashForge control-port adapter.

Every exchange with the printer is a self-contained transaction: open a TCP
connection to the control port, write one command line, wait for the first
chunk of the reply, close. The controller answers each command in a single
short burst, so the first chunk is treated as the whole reply; a reply that
the network splits across several segments is truncated to its first part.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .. import constants

LOGGER = logging.getLogger(__name__)
TRACE = logging.getLogger(constants.TRANSACTION_LOGGER_NAME)

LINE_TERMINATOR = "\r\n"


class Command(str, Enum):
    """Fixed instruction lines understood by the controller."""

    CONTROL = "~M601 S1"
    """Take control of the printer; required before most other commands."""

    INFO = "~M115"
    HEAD_POSITION = "~M114"
    TEMPERATURE = "~M105"
    PROGRESS = "~M27"
    STATUS = "~M119"

    LED_ON = "~M146 r255 g255 b255"
    LED_OFF = "~M146 r0 g0 b0"

    PAUSE = "~M25"
    RESUME = "~M24"
    CANCEL = "~M26"
    HOME = "~G28"


def _clamp_channel(value: float) -> int:
    return min(255, max(0, round(value)))


def led_command(red: float, green: float, blue: float) -> str:
    """Build a custom LED colour command.

    Channels are rounded to the nearest integer and clamped to 0..255.
    """
    return (
        f"~M146 r{_clamp_channel(red)} g{_clamp_channel(green)} b{_clamp_channel(blue)}"
    )


def command_text(command: Union[Command, str]) -> str:
    if isinstance(command, Command):
        return command.value
    return str(command)


class FailureKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"


@dataclass(slots=True, frozen=True)
class TransactionResult:
    """Outcome of a single transaction: reply text or failure, never both."""

    response: Optional[str] = None
    failure: Optional[FailureKind] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, response: str) -> "TransactionResult":
        return cls(response=response)

    @classmethod
    def failed(cls, failure: FailureKind, reason: str) -> "TransactionResult":
        return cls(failure=failure, reason=reason)

    @property
    def ok(self) -> bool:
        return self.failure is None


class TransactionClient:
    """Runs one-shot request/response exchanges against a printer."""

    def __init__(
        self,
        *,
        port: int = constants.DEFAULT_PRINTER_PORT,
        timeout: float = constants.DEFAULT_TRANSACTION_TIMEOUT_SECONDS,
        read_size: int = constants.DEFAULT_READ_SIZE,
    ) -> None:
        self.port = port
        self.timeout = timeout
        self.read_size = read_size

    async def execute(
        self,
        address: str,
        command: Union[Command, str],
        timeout: Optional[float] = None,
    ) -> TransactionResult:
        """Send ``command`` to ``address`` and return the first reply chunk.

        Args:
            address: Printer host name or IP literal.
            command: A :class:`Command` or a raw command line without terminator.
            timeout: Seconds allowed for connect, send and first read combined
                     (defaults to the client's timeout).

        Returns:
            A successful result carrying the decoded reply, or a failed one
            carrying a :class:`FailureKind` and reason. Network conditions
            never raise.
        """

        limit = self.timeout if timeout is None else timeout
        text = command_text(command)
        payload = (text + LINE_TERMINATOR).encode("ascii")
        writer: Optional[asyncio.StreamWriter] = None
        completed = False

        try:
            async with asyncio.timeout(limit):
                reader, writer = await asyncio.open_connection(address, self.port)
                TRACE.debug("%s:%d send %s", address, self.port, text)
                writer.write(payload)
                await writer.drain()
                chunk = await reader.read(self.read_size)
            completed = True
        except asyncio.TimeoutError:
            LOGGER.debug(
                "Transaction %r to %s timed out after %.1fs", text, address, limit
            )
            return TransactionResult.failed(FailureKind.TIMEOUT, "Connection timeout")
        except OSError as exc:
            LOGGER.debug("Transaction %r to %s failed: %s", text, address, exc)
            return TransactionResult.failed(
                FailureKind.NETWORK, str(exc) or exc.__class__.__name__
            )
        finally:
            if writer is not None:
                if completed:
                    writer.close()
                else:
                    writer.transport.abort()
                with contextlib.suppress(Exception):
                    await writer.wait_closed()

        if not chunk:
            LOGGER.debug("Printer %s closed the connection without replying", address)
            return TransactionResult.failed(
                FailureKind.NETWORK, "Connection closed before reply"
            )

        reply = chunk.decode("utf-8", errors="replace")
        TRACE.debug("%s:%d recv %r", address, self.port, reply)
        return TransactionResult.success(reply)
