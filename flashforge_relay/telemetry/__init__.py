"""Telemetry parsing, snapshot assembly and subscription fan-out."""

from .assembler import CATEGORY_STEPS, SnapshotAssembler, StepOutcome, StepSpec
from .hub import SubscriptionEntry, SubscriptionHub
from .parser import (
    FieldRule,
    ResponseParser,
    completion_percentage,
    parse_head_position,
    parse_info,
    parse_progress,
    parse_status,
    parse_temperatures,
)

__all__ = [
    "CATEGORY_STEPS",
    "FieldRule",
    "ResponseParser",
    "SnapshotAssembler",
    "StepOutcome",
    "StepSpec",
    "SubscriptionEntry",
    "SubscriptionHub",
    "completion_percentage",
    "parse_head_position",
    "parse_info",
    "parse_progress",
    "parse_status",
    "parse_temperatures",
]
