"""Declarative extraction of typed fields from printer replies.

Replies are loosely formatted text blocks such as::

    CMD M105 Received.
    T0:210/210 T1:0/0 B:60/60
    ok

Each logical field is described once by a :class:`FieldRule` (compiled
pattern, capture group and transform). Category parsers combine the rule
tables into the snapshot section models.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from ..core.models import (
    HeadPosition,
    MachineStatus,
    PrinterInfo,
    PrintProgress,
    TemperaturePair,
    Temperatures,
)

_NUMBER = r"(-?\d+(?:\.\d+)?)"


def to_text(value: str) -> Optional[str]:
    value = value.strip()
    return value or None


def to_int(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except (TypeError, ValueError):
        return None


def to_float(value: str) -> Optional[float]:
    try:
        return float(value.strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class FieldRule:
    """How to find one field in a reply and convert it."""

    pattern: re.Pattern[str]
    transform: Callable[[str], Any] = to_text
    group: int = 1

    def apply(self, text: str) -> Any:
        match = self.pattern.search(text)
        if match is None:
            return None
        captured = match.group(self.group)
        if captured is None:
            return None
        return self.transform(captured)


def _line_field(label: str, transform: Callable[[str], Any] = to_text) -> FieldRule:
    # Anchored so that "Status:" never matches inside "MachineStatus:".
    return FieldRule(
        re.compile(rf"^[ \t]*{re.escape(label)}:[ \t]*([^\r\n]*)", re.MULTILINE),
        transform,
    )


def _axis(label: str) -> FieldRule:
    return FieldRule(re.compile(rf"\b{label}:\s*{_NUMBER}"), to_float)


def _temperature(label: str, group: int) -> FieldRule:
    return FieldRule(
        re.compile(rf"\b{label}:\s*{_NUMBER}\s*/\s*{_NUMBER}"), to_float, group
    )


_BUILD_VOLUME = re.compile(
    rf"^[ \t]*X:\s*{_NUMBER}\s+Y:\s*{_NUMBER}\s+Z:\s*{_NUMBER}", re.MULTILINE
)
_BYTE_PROGRESS = re.compile(r"SD printing byte\s+(\d+)\s*/\s*(\d+)")
_LAYER_PROGRESS = re.compile(r"Layer:\s*(\d+)\s*/\s*(\d+)")


INFO_RULES: Mapping[str, FieldRule] = {
    "machine_type": _line_field("Machine Type"),
    "machine_name": _line_field("Machine Name"),
    "firmware": _line_field("Firmware"),
    "serial_number": _line_field("SN"),
    "tool_count": _line_field("Tool Count", to_int),
    "mac_address": FieldRule(re.compile(r"Mac Address:\s*([0-9A-Fa-f:]+)")),
    "build_volume_x": FieldRule(_BUILD_VOLUME, to_float, 1),
    "build_volume_y": FieldRule(_BUILD_VOLUME, to_float, 2),
    "build_volume_z": FieldRule(_BUILD_VOLUME, to_float, 3),
}

POSITION_RULES: Mapping[str, FieldRule] = {
    "x": _axis("X"),
    "y": _axis("Y"),
    "z": _axis("Z"),
}

TEMPERATURE_RULES: Mapping[str, FieldRule] = {
    "tool0_current": _temperature("T0", 1),
    "tool0_target": _temperature("T0", 2),
    "tool1_current": _temperature("T1", 1),
    "tool1_target": _temperature("T1", 2),
    "bed_current": _temperature("B", 1),
    "bed_target": _temperature("B", 2),
}

PROGRESS_RULES: Mapping[str, FieldRule] = {
    "bytes_printed": FieldRule(_BYTE_PROGRESS, to_int, 1),
    "bytes_total": FieldRule(_BYTE_PROGRESS, to_int, 2),
    "layer_current": FieldRule(_LAYER_PROGRESS, to_int, 1),
    "layer_total": FieldRule(_LAYER_PROGRESS, to_int, 2),
}

STATUS_RULES: Mapping[str, FieldRule] = {
    "machine_status": _line_field("MachineStatus"),
    "move_mode": _line_field("MoveMode"),
    "endstop": _line_field("Endstop"),
    "led": _line_field("LED", to_int),
    "current_file": _line_field("CurrentFile"),
    "status_flags": _line_field("Status"),
}


class ResponseParser:
    """Applies a fixed table of field rules to reply text.

    Stateless once constructed; a single instance may be shared freely.
    """

    def __init__(self, rules: Mapping[str, FieldRule]) -> None:
        self._rules = dict(rules)

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self._rules)

    def extract(self, text: str, name: str) -> Any:
        """Return the value of field ``name`` in ``text`` or ``None`` when absent."""
        return self._rules[name].apply(text)

    def extract_all(self, text: str) -> Dict[str, Any]:
        return {name: rule.apply(text) for name, rule in self._rules.items()}


INFO_PARSER = ResponseParser(INFO_RULES)
POSITION_PARSER = ResponseParser(POSITION_RULES)
TEMPERATURE_PARSER = ResponseParser(TEMPERATURE_RULES)
PROGRESS_PARSER = ResponseParser(PROGRESS_RULES)
STATUS_PARSER = ResponseParser(STATUS_RULES)


def completion_percentage(
    bytes_printed: Optional[int],
    bytes_total: Optional[int],
    layer_current: Optional[int] = None,
    layer_total: Optional[int] = None,
) -> int:
    """Return the whole-number print completion.

    Byte progress wins whenever its total is non-zero; layer progress is the
    fallback; with neither the result is 0.

    Examples:
        >>> completion_percentage(50, 200)
        25
        >>> completion_percentage(0, 0, 3, 12)
        25
    """
    if bytes_total:
        return (bytes_printed or 0) * 100 // bytes_total
    if layer_total:
        return (layer_current or 0) * 100 // layer_total
    return 0


def parse_info(text: str) -> PrinterInfo:
    return PrinterInfo(**INFO_PARSER.extract_all(text))


def parse_head_position(text: str) -> HeadPosition:
    return HeadPosition(**POSITION_PARSER.extract_all(text))


def parse_temperatures(text: str) -> Temperatures:
    values = TEMPERATURE_PARSER.extract_all(text)
    return Temperatures(
        tool0=TemperaturePair(values["tool0_current"], values["tool0_target"]),
        tool1=TemperaturePair(values["tool1_current"], values["tool1_target"]),
        bed=TemperaturePair(values["bed_current"], values["bed_target"]),
    )


def parse_progress(text: str) -> PrintProgress:
    values = PROGRESS_PARSER.extract_all(text)
    printed = values["bytes_printed"] or 0
    total = values["bytes_total"] or 0
    return PrintProgress(
        bytes_printed=printed,
        bytes_total=total,
        percentage=completion_percentage(
            printed, total, values["layer_current"], values["layer_total"]
        ),
        layer_current=values["layer_current"],
        layer_total=values["layer_total"],
    )


def parse_status(text: str) -> MachineStatus:
    return MachineStatus(**STATUS_PARSER.extract_all(text))
