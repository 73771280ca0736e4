"""Core utility functions shared across modules."""

from __future__ import annotations

import ipaddress
import re

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


class InvalidAddressError(ValueError):
    """Raised when a printer address cannot be used as a TCP target."""


def validate_address(address: object) -> str:
    """Return a normalised printer address or raise ``InvalidAddressError``.

    Accepts IPv4/IPv6 literals and RFC 1123 host names. Surrounding whitespace
    is stripped.

    Examples:
        >>> validate_address(" 192.168.0.50 ")
        '192.168.0.50'
        >>> validate_address("printer.local")
        'printer.local'
    """
    if not isinstance(address, str):
        raise InvalidAddressError("Printer address must be a string")

    candidate = address.strip()
    if not candidate:
        raise InvalidAddressError("Printer address is required")

    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        pass

    if len(candidate) > 253:
        raise InvalidAddressError(f"Invalid printer address: {candidate!r}")

    labels = candidate.rstrip(".").split(".")
    if labels[-1].isdigit() or not all(_HOSTNAME_LABEL.match(label) for label in labels):
        raise InvalidAddressError(f"Invalid printer address: {candidate!r}")

    return candidate
