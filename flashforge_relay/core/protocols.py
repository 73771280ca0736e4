"""Protocol definitions for the relay's pluggable collaborators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol, Union

if TYPE_CHECKING:
    from ..adapters.flashforge import Command, TransactionResult


class Subscriber(Protocol):
    """One observer channel registered with the subscription hub.

    Implementations must be hashable; the hub stores them in sets and only
    ever references them, the transport layer owns their lifetime.
    """

    async def send_message(self, message: Mapping[str, Any]) -> None:
        """Deliver one JSON-shaped message.

        Raises:
            Exception: Any failure means the channel is unusable and the
                hub drops the subscriber.
        """
        ...


class TransactionExecutor(Protocol):
    """Contract for anything that can run one command against a printer."""

    async def execute(
        self,
        address: str,
        command: Union["Command", str],
        timeout: Optional[float] = None,
    ) -> "TransactionResult":
        """Run a single open-send-receive-close exchange."""
        ...
