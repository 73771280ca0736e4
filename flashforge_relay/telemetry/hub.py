"""Shared per-printer polling with multi-subscriber fan-out.

One :class:`SubscriptionEntry` exists per printer address while at least one
subscriber is registered for it. Each entry owns a ticker task that fires
every ``interval_ms`` and launches a snapshot assembly, unless the previous
assembly for the same address is still running (single-flight), in which
case the tick is skipped. The slot covers assembly only: delivery to
subscribers runs in its own task, and each send is bounded by
``send_timeout`` so a stalled observer is dropped instead of stalling the
printer's polling.

All registry mutation happens in plain synchronous methods on the event loop
thread. They contain no suspension points, so subscribe/unsubscribe calls and
tick callbacks can never interleave halfway through an update.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Deque,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
)

from .. import constants
from ..core.models import Snapshot
from ..core.protocols import Subscriber
from .assembler import SnapshotAssembler

LOGGER = logging.getLogger(__name__)

SnapshotCallback = Callable[[str, Snapshot], Awaitable[None]]


@dataclass(eq=False)
class SubscriptionEntry:
    """Hub bookkeeping for one polled printer."""

    address: str
    interval_ms: int
    subscribers: Set[Subscriber] = field(default_factory=set)
    history: Deque[Snapshot] = field(default_factory=deque)
    ticker: Optional[asyncio.Task[None]] = None
    skipped_ticks: int = 0


class SubscriptionHub:
    """Multiplexes observers over shared, interval-adjustable polling loops.

    Intervals only tighten: a subscriber asking for a shorter interval than
    the entry's current one restarts the ticker at the shorter period, and
    the entry keeps that period until it is torn down.
    """

    def __init__(
        self,
        assembler: SnapshotAssembler,
        *,
        default_interval_ms: int = constants.DEFAULT_POLL_INTERVAL_MS,
        min_interval_ms: int = constants.MIN_POLL_INTERVAL_MS,
        history_size: int = constants.DEFAULT_HISTORY_SIZE,
        send_timeout: float = constants.DEFAULT_SEND_TIMEOUT_SECONDS,
        on_snapshot: Optional[SnapshotCallback] = None,
    ) -> None:
        self._assembler = assembler
        self._min_interval_ms = max(1, int(min_interval_ms))
        self._default_interval_ms = max(self._min_interval_ms, int(default_interval_ms))
        self._history_size = max(1, int(history_size))
        self._send_timeout = send_timeout
        self._on_snapshot = on_snapshot
        self._entries: Dict[str, SubscriptionEntry] = {}
        self._inflight: Dict[str, asyncio.Task[None]] = {}
        self._deliveries: Set[asyncio.Task[None]] = set()
        self._sending: Set[Tuple[str, Subscriber]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def clamp_interval(self, interval_ms: Any) -> int:
        """Resolve a requested interval to the effective polling period."""

        if isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float)):
            return self._default_interval_ms
        if isinstance(interval_ms, float) and not math.isfinite(interval_ms):
            return self._default_interval_ms
        return max(self._min_interval_ms, int(interval_ms))

    def subscribe(
        self, address: str, interval_ms: Any, subscriber: Subscriber
    ) -> int:
        """Register ``subscriber`` for ``address``; return the entry's interval."""

        requested = self.clamp_interval(interval_ms)
        entry = self._entries.get(address)

        if entry is None:
            entry = SubscriptionEntry(
                address=address,
                interval_ms=requested,
                history=deque(maxlen=self._history_size),
            )
            entry.subscribers.add(subscriber)
            self._entries[address] = entry
            self._start_ticker(entry)
            LOGGER.info("Started polling %s every %d ms", address, requested)
            return entry.interval_ms

        entry.subscribers.add(subscriber)
        if requested < entry.interval_ms:
            LOGGER.info(
                "Tightening poll interval for %s from %d ms to %d ms",
                address,
                entry.interval_ms,
                requested,
            )
            self._cancel_ticker(entry)
            entry.interval_ms = requested
            self._start_ticker(entry)

        return entry.interval_ms

    def unsubscribe(self, address: str, subscriber: Subscriber) -> None:
        """Remove ``subscriber`` from ``address``; a no-op when not registered."""

        entry = self._entries.get(address)
        if entry is None:
            return
        entry.subscribers.discard(subscriber)
        self._cleanup(entry)

    def disconnect(self, subscriber: Subscriber) -> None:
        """Remove ``subscriber`` from every entry it is registered with."""

        for entry in list(self._entries.values()):
            if subscriber in entry.subscribers:
                entry.subscribers.discard(subscriber)
                self._cleanup(entry)

    async def request_once(self, address: str) -> Snapshot:
        """Assemble a snapshot now, independent of any polling entry."""

        return await self._assembler.assemble(address)

    def history(self, address: str) -> List[Snapshot]:
        entry = self._entries.get(address)
        if entry is None:
            return []
        return list(entry.history)

    def interval_for(self, address: str) -> Optional[int]:
        entry = self._entries.get(address)
        return entry.interval_ms if entry is not None else None

    def subscribers(self, address: str) -> Set[Subscriber]:
        entry = self._entries.get(address)
        return set(entry.subscribers) if entry is not None else set()

    def addresses(self) -> List[str]:
        return list(self._entries)

    def is_polling(self, address: str) -> bool:
        entry = self._entries.get(address)
        return entry is not None and entry.ticker is not None and not entry.ticker.done()

    def is_fetching(self, address: str) -> bool:
        task = self._inflight.get(address)
        return task is not None and not task.done()

    def entry(self, address: str) -> Optional[SubscriptionEntry]:
        return self._entries.get(address)

    async def close(self) -> None:
        """Stop every ticker and wait for outstanding polls and deliveries to unwind."""

        tasks: List[asyncio.Task[None]] = []
        for entry in self._entries.values():
            if entry.ticker is not None:
                tasks.append(entry.ticker)
            entry.ticker = None
        self._entries.clear()
        tasks.extend(self._inflight.values())
        self._inflight.clear()
        tasks.extend(self._deliveries)
        self._deliveries.clear()
        self._sending.clear()

        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _cleanup(self, entry: SubscriptionEntry) -> None:
        if entry.subscribers:
            return
        self._cancel_ticker(entry)
        if self._entries.get(entry.address) is entry:
            del self._entries[entry.address]
            LOGGER.info("Stopped polling %s; no subscribers remain", entry.address)

    def _start_ticker(self, entry: SubscriptionEntry) -> None:
        entry.ticker = asyncio.create_task(
            self._tick_loop(entry, entry.interval_ms / 1000.0),
            name=f"poll:{entry.address}",
        )

    @staticmethod
    def _cancel_ticker(entry: SubscriptionEntry) -> None:
        if entry.ticker is not None:
            entry.ticker.cancel()
            entry.ticker = None

    async def _tick_loop(self, entry: SubscriptionEntry, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            self._tick(entry)

    def _tick(self, entry: SubscriptionEntry) -> None:
        address = entry.address
        if self.is_fetching(address):
            entry.skipped_ticks += 1
            LOGGER.debug("Skipping poll of %s; previous snapshot still in flight", address)
            return

        recipients = list(entry.subscribers)
        task = asyncio.create_task(
            self._poll(entry, recipients), name=f"snapshot:{address}"
        )
        self._inflight[address] = task
        task.add_done_callback(functools.partial(self._poll_finished, address))

    def _poll_finished(self, address: str, task: asyncio.Task[None]) -> None:
        if self._inflight.get(address) is task:
            del self._inflight[address]

    async def _poll(
        self, entry: SubscriptionEntry, recipients: Iterable[Subscriber]
    ) -> None:
        address = entry.address
        try:
            snapshot = await self._assembler.assemble(address)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.exception("Polling %s failed", address)
            if self._entries.get(address) is entry:
                self._deliver(
                    entry,
                    recipients,
                    {"type": "error", "ip": address, "error": str(exc) or exc.__class__.__name__},
                )
            return

        if self._entries.get(address) is not entry:
            LOGGER.debug("Discarding snapshot for %s; entry was removed", address)
            return

        entry.history.append(snapshot)

        if self._on_snapshot is not None:
            try:
                await self._on_snapshot(address, snapshot)
            except asyncio.CancelledError:
                raise
            except Exception:
                LOGGER.exception("Snapshot callback failed for %s", address)

        self._deliver(
            entry,
            recipients,
            {"type": "snapshot", "ip": address, "data": snapshot.as_dict()},
        )

    def _deliver(
        self,
        entry: SubscriptionEntry,
        recipients: Iterable[Subscriber],
        message: Mapping[str, Any],
    ) -> None:
        """Hand ``message`` to a delivery task so the poll slot frees up now.

        Subscribers that left while the snapshot was being assembled are
        skipped, as are subscribers still busy with an earlier message from
        this entry; they miss this frame rather than queueing behind it.
        """

        targets: List[Subscriber] = []
        for subscriber in recipients:
            if subscriber not in entry.subscribers:
                continue
            if (entry.address, subscriber) in self._sending:
                LOGGER.debug(
                    "Subscriber of %s still busy with a previous message; skipping",
                    entry.address,
                )
                continue
            targets.append(subscriber)
        if not targets:
            return

        for subscriber in targets:
            self._sending.add((entry.address, subscriber))
        task = asyncio.create_task(
            self._broadcast(entry, targets, message), name=f"deliver:{entry.address}"
        )
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _send(self, subscriber: Subscriber, message: Mapping[str, Any]) -> None:
        await asyncio.wait_for(subscriber.send_message(message), self._send_timeout)

    async def _broadcast(
        self,
        entry: SubscriptionEntry,
        targets: List[Subscriber],
        message: Mapping[str, Any],
    ) -> None:
        try:
            results = await asyncio.gather(
                *(self._send(subscriber, message) for subscriber in targets),
                return_exceptions=True,
            )
        finally:
            for subscriber in targets:
                self._sending.discard((entry.address, subscriber))

        for subscriber, result in zip(targets, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.TimeoutError):
                    result = f"no progress within {self._send_timeout:.1f}s"
                LOGGER.debug(
                    "Dropping subscriber of %s after send failure: %s",
                    entry.address,
                    result,
                )
                entry.subscribers.discard(subscriber)

        self._cleanup(entry)
