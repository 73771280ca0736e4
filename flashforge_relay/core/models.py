"""Domain models for printer telemetry snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Step(str, Enum):
    """Named stages of a snapshot assembly, in execution order."""

    CONTROL = "control"
    INFO = "info"
    HEAD_POSITION = "head_position"
    TEMPERATURE = "temperature"
    PROGRESS = "progress"
    STATUS = "status"


@dataclass(slots=True, frozen=True)
class StepError:
    step: Step
    error: str

    def as_dict(self) -> Dict[str, Any]:
        return {"step": self.step.value, "error": self.error}


@dataclass(slots=True, frozen=True)
class PrinterInfo:
    machine_type: Optional[str] = None
    machine_name: Optional[str] = None
    firmware: Optional[str] = None
    serial_number: Optional[str] = None
    tool_count: Optional[int] = None
    mac_address: Optional[str] = None
    build_volume_x: Optional[float] = None
    build_volume_y: Optional[float] = None
    build_volume_z: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "machineType": self.machine_type,
            "machineName": self.machine_name,
            "firmware": self.firmware,
            "serialNumber": self.serial_number,
            "toolCount": self.tool_count,
            "macAddress": self.mac_address,
            "buildVolume": {
                "x": self.build_volume_x,
                "y": self.build_volume_y,
                "z": self.build_volume_z,
            },
        }


@dataclass(slots=True, frozen=True)
class HeadPosition:
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(slots=True, frozen=True)
class TemperaturePair:
    current: Optional[float] = None
    target: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"current": self.current, "target": self.target}


@dataclass(slots=True, frozen=True)
class Temperatures:
    """Extruder and bed readings. ``tool1`` stays unknown on single-tool machines."""

    tool0: TemperaturePair = field(default_factory=TemperaturePair)
    tool1: TemperaturePair = field(default_factory=TemperaturePair)
    bed: TemperaturePair = field(default_factory=TemperaturePair)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "tool0": self.tool0.as_dict(),
            "tool1": self.tool1.as_dict(),
            "bed": self.bed.as_dict(),
        }


@dataclass(slots=True, frozen=True)
class PrintProgress:
    bytes_printed: int = 0
    bytes_total: int = 0
    percentage: int = 0
    layer_current: Optional[int] = None
    layer_total: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "bytesPrinted": self.bytes_printed,
            "bytesTotal": self.bytes_total,
            "percentage": self.percentage,
            "layerCurrent": self.layer_current,
            "layerTotal": self.layer_total,
        }


@dataclass(slots=True, frozen=True)
class MachineStatus:
    machine_status: Optional[str] = None
    move_mode: Optional[str] = None
    endstop: Optional[str] = None
    led: Optional[int] = None
    current_file: Optional[str] = None
    status_flags: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "machineStatus": self.machine_status,
            "moveMode": self.move_mode,
            "endstop": self.endstop,
            "led": self.led,
            "currentFile": self.current_file,
            "statusFlags": self.status_flags,
        }


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Aggregate telemetry for one device at one instant.

    Every section is always populated; values that could not be read are
    ``None`` and the failing steps are listed in ``errors`` in the order they
    ran.
    """

    info: PrinterInfo = field(default_factory=PrinterInfo)
    head_position: HeadPosition = field(default_factory=HeadPosition)
    temperatures: Temperatures = field(default_factory=Temperatures)
    progress: PrintProgress = field(default_factory=PrintProgress)
    status: MachineStatus = field(default_factory=MachineStatus)
    errors: Tuple[StepError, ...] = ()
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def failed_steps(self) -> Tuple[Step, ...]:
        return tuple(error.step for error in self.errors)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "info": self.info.as_dict(),
            "headPosition": self.head_position.as_dict(),
            "temperatures": self.temperatures.as_dict(),
            "progress": self.progress.as_dict(),
            "status": self.status.as_dict(),
            "errors": [error.as_dict() for error in self.errors],
            "timestamp": self.timestamp.isoformat(timespec="milliseconds"),
        }
