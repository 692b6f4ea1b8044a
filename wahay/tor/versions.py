"""Parsing and comparison of Tor version strings."""

from __future__ import annotations

import re

MIN_SUPPORTED_VERSION = "0.3.2"

_NUMBER = re.compile(r"[+-]?[0-9]+")
_INT16 = range(-(2**15), 2**15)


class VersionError(ValueError):
    """Raised when a version string cannot be understood."""


def _component(text: str) -> int | None:
    if not _NUMBER.fullmatch(text):
        return None
    value = int(text)
    return value if value in _INT16 else None


def parse_version(v: str) -> tuple[int, int, int]:
    """Return the major, minor and patch numbers of a dotted version string."""
    parts = v.split(".")
    if len(parts) < 3:
        raise VersionError("invalid version string")

    numbers = [_component(part) for part in parts[:3]]
    if any(number is None for number in numbers):
        raise VersionError("invalid version number")

    major, minor, patch = numbers
    return major, minor, patch


def compare_versions(v1: str, v2: str) -> int:
    """Return -1, 0 or 1 as v1 is older than, equal to or newer than v2."""
    try:
        left = parse_version(v1)
        right = parse_version(v2)
    except VersionError:
        raise VersionError("invalid version string") from None

    return (left > right) - (left < right)