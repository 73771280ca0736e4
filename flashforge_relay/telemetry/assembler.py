"""Snapshot assembly from an ordered sequence of printer transactions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..adapters.flashforge import Command
from ..core.models import (
    HeadPosition,
    MachineStatus,
    PrinterInfo,
    PrintProgress,
    Snapshot,
    Step,
    StepError,
    Temperatures,
)
from ..core.protocols import TransactionExecutor
from . import parser

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepSpec:
    """One telemetry category: the command to send and how to read the reply."""

    step: Step
    command: Command
    parse: Callable[[str], Any]
    default: Callable[[], Any]


CATEGORY_STEPS: Sequence[StepSpec] = (
    StepSpec(Step.INFO, Command.INFO, parser.parse_info, PrinterInfo),
    StepSpec(
        Step.HEAD_POSITION,
        Command.HEAD_POSITION,
        parser.parse_head_position,
        HeadPosition,
    ),
    StepSpec(
        Step.TEMPERATURE, Command.TEMPERATURE, parser.parse_temperatures, Temperatures
    ),
    StepSpec(Step.PROGRESS, Command.PROGRESS, parser.parse_progress, PrintProgress),
    StepSpec(Step.STATUS, Command.STATUS, parser.parse_status, MachineStatus),
)

_STEPS_BY_NAME: Dict[Step, StepSpec] = {spec.step: spec for spec in CATEGORY_STEPS}

_SNAPSHOT_FIELDS: Dict[Step, str] = {
    Step.INFO: "info",
    Step.HEAD_POSITION: "head_position",
    Step.TEMPERATURE: "temperatures",
    Step.PROGRESS: "progress",
    Step.STATUS: "status",
}


@dataclass(frozen=True)
class StepOutcome:
    """Parsed section for a single category, plus the failure if it had one."""

    step: Step
    section: Any
    error: Optional[StepError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SnapshotAssembler:
    """Builds complete telemetry snapshots one transaction at a time.

    Steps run strictly in order (unlock, info, head position, temperature,
    progress, status). Each one is isolated: a failure is recorded in the
    snapshot's error list and the category keeps its default shape, and the
    next step runs regardless. Nothing is retried and nothing is cached.
    """

    def __init__(
        self,
        client: TransactionExecutor,
        *,
        steps: Sequence[StepSpec] = CATEGORY_STEPS,
    ) -> None:
        self._client = client
        self._steps = tuple(steps)

    async def assemble(self, address: str) -> Snapshot:
        """Return a fully shaped snapshot for ``address``; never raises."""

        errors: List[StepError] = []

        unlock_error = await self._unlock(address)
        if unlock_error is not None:
            errors.append(unlock_error)

        sections: Dict[str, Any] = {}
        for spec in self._steps:
            outcome = await self._run_step(address, spec)
            sections[_SNAPSHOT_FIELDS[spec.step]] = outcome.section
            if outcome.error is not None:
                errors.append(outcome.error)

        if errors:
            LOGGER.debug(
                "Snapshot for %s completed with %d failed step(s): %s",
                address,
                len(errors),
                ", ".join(error.step.value for error in errors),
            )

        return Snapshot(
            **sections,
            errors=tuple(errors),
            timestamp=datetime.now(timezone.utc),
        )

    async def query(self, address: str, step: Step) -> StepOutcome:
        """Read a single category after a best-effort unlock."""

        spec = _STEPS_BY_NAME.get(step)
        if spec is None:
            raise ValueError(f"Step {step!r} does not produce a telemetry section")

        await self._unlock(address)
        return await self._run_step(address, spec)

    async def _execute(self, address: str, command: Command) -> tuple[Optional[str], Optional[str]]:
        """Return ``(response, None)`` or ``(None, reason)``."""
        try:
            result = await self._client.execute(address, command)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.exception("Transaction %s against %s raised", command.name, address)
            return None, str(exc) or exc.__class__.__name__

        if not result.ok:
            return None, result.reason or "unknown error"
        return result.response or "", None

    async def _unlock(self, address: str) -> Optional[StepError]:
        _, reason = await self._execute(address, Command.CONTROL)
        if reason is None:
            return None
        return StepError(Step.CONTROL, reason)

    async def _run_step(self, address: str, spec: StepSpec) -> StepOutcome:
        response, reason = await self._execute(address, spec.command)
        if response is None:
            return StepOutcome(
                spec.step, spec.default(), StepError(spec.step, reason or "unknown error")
            )

        try:
            section = spec.parse(response)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.exception("Failed to parse %s reply from %s", spec.step.value, address)
            return StepOutcome(spec.step, spec.default(), StepError(spec.step, str(exc)))

        return StepOutcome(spec.step, section)
