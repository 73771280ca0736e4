"""Health reporting utilities for flashforge-relay."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from .core.models import Snapshot


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks the outcome of the latest poll for every watched printer."""

    def __init__(self) -> None:
        self._status: Dict[str, ComponentStatus] = {}
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._status[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    async def record_snapshot(self, address: str, snapshot: Snapshot) -> None:
        """Mark ``address`` degraded when any step of its snapshot failed."""

        if snapshot.errors:
            detail = "failed steps: " + ", ".join(
                step.value for step in snapshot.failed_steps
            )
            await self.update(address, False, detail)
        else:
            await self.update(address, True)

    async def retain(self, names: Iterable[str]) -> None:
        """Forget every component not listed in ``names``."""

        keep = set(names)
        async with self._lock:
            for name in [item for item in self._status if item not in keep]:
                del self._status[name]

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries = list(self._status.values())

        components = [status.as_dict() for status in entries]
        overall = "ok" if all(item["healthy"] for item in components) else "degraded"
        return {"status": overall, "components": components}
