"""Core primitives for flashforge-relay."""

from .models import (
    HeadPosition,
    MachineStatus,
    PrinterInfo,
    PrintProgress,
    Snapshot,
    Step,
    StepError,
    TemperaturePair,
    Temperatures,
)
from .protocols import Subscriber, TransactionExecutor
from .utils import InvalidAddressError, validate_address

__all__ = [
    "HeadPosition",
    "InvalidAddressError",
    "MachineStatus",
    "PrinterInfo",
    "PrintProgress",
    "Snapshot",
    "Step",
    "StepError",
    "Subscriber",
    "TemperaturePair",
    "Temperatures",
    "TransactionExecutor",
    "validate_address",
]
