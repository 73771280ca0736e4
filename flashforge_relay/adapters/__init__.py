"""Adapter modules for external integrations."""

from .flashforge import (
    Command,
    FailureKind,
    TransactionClient,
    TransactionResult,
    command_text,
    led_command,
)

__all__ = [
    "Command",
    "FailureKind",
    "TransactionClient",
    "TransactionResult",
    "command_text",
    "led_command",
]
