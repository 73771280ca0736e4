"""Printer control actions (LED, pause/resume/cancel, homing)."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from .adapters.flashforge import Command, FailureKind, led_command
from .core.protocols import TransactionExecutor

LOGGER = logging.getLogger(__name__)


class PrinterCommandError(RuntimeError):
    """Raised when a control action could not be delivered to the printer."""

    def __init__(
        self,
        message: str,
        *,
        action: Optional[str] = None,
        failure: Optional[FailureKind] = None,
    ) -> None:
        super().__init__(message)
        self.action = action
        self.failure = failure


PRINT_ACTIONS: Mapping[str, Command] = {
    "pause": Command.PAUSE,
    "resume": Command.RESUME,
    "cancel": Command.CANCEL,
    "home": Command.HOME,
}


@dataclass(slots=True, frozen=True)
class CommandOutcome:
    action: str
    response: str

    def as_dict(self) -> Dict[str, Any]:
        return {"success": True, "response": self.response}


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def resolve_led_command(
    state: Optional[str] = None,
    red: Any = None,
    green: Any = None,
    blue: Any = None,
) -> Union[Command, str]:
    """Pick the LED command for a request body.

    ``state == "off"`` switches the light off; three finite numeric channels
    select a custom colour (rounded, then clamped to 0..255); anything else,
    including NaN or infinite channels, switches to white.
    """

    if isinstance(state, str) and state.strip().lower() == "off":
        return Command.LED_OFF
    if _is_number(red) and _is_number(green) and _is_number(blue):
        return led_command(red, green, blue)
    return Command.LED_ON


class PrinterController:
    """Sends control actions, each preceded by a best-effort unlock."""

    def __init__(self, client: TransactionExecutor) -> None:
        self._client = client

    async def execute_action(self, address: str, action: str) -> CommandOutcome:
        """Run one of :data:`PRINT_ACTIONS` against ``address``.

        Raises:
            ValueError: If ``action`` is not a known print action.
            PrinterCommandError: If the printer could not be reached.
        """

        action_normalized = action.strip().lower()
        command = PRINT_ACTIONS.get(action_normalized)
        if command is None:
            raise ValueError(f"Unsupported print action: {action}")
        return await self._send(address, action_normalized, command)

    async def set_led(
        self,
        address: str,
        *,
        state: Optional[str] = None,
        red: Any = None,
        green: Any = None,
        blue: Any = None,
    ) -> CommandOutcome:
        command = resolve_led_command(state, red, green, blue)
        return await self._send(address, "led", command)

    async def _send(
        self, address: str, action: str, command: Union[Command, str]
    ) -> CommandOutcome:
        unlock = await self._client.execute(address, Command.CONTROL)
        if not unlock.ok:
            LOGGER.debug("Unlock before %s on %s failed: %s", action, address, unlock.reason)

        result = await self._client.execute(address, command)
        if not result.ok:
            LOGGER.warning(
                "Printer action %s on %s failed: %s", action, address, result.reason
            )
            raise PrinterCommandError(
                result.reason or "unknown error", action=action, failure=result.failure
            )

        LOGGER.info("Printer action %s delivered to %s", action, address)
        return CommandOutcome(action=action, response=(result.response or "").strip())
