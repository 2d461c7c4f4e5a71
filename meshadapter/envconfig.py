"""Typed access to configuration held in environment variables."""

from __future__ import annotations

import os
import re
from datetime import timedelta
from fractions import Fraction

__all__ = [
    "EnvConfigError",
    "get_env_string",
    "get_env_int",
    "get_env_float",
    "get_env_bool",
    "get_env_duration",
    "parse_duration",
]

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_UNIT_NANOS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,  # micro sign
    "\u03bcs": 1_000,  # Greek small letter mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT_RE = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")


class EnvConfigError(ValueError):
    """An environment variable holds a value that cannot be interpreted."""

    def __init__(self, key: str, value: str, expected: str) -> None:
        super().__init__(
            f"Environment variable {key} must be {expected}, found value {value!r}"
        )
        self.key = key
        self.value = value


def get_env_string(key: str, default: str) -> str:
    """Return the variable's value, or ``default`` when it is not set.

    A variable set to the empty string yields the empty string.
    """
    return os.environ.get(key, default)


def get_env_int(key: str, default: int) -> int:
    """Return the variable as an integer, or ``default`` when it is not set."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    if not _INT_RE.fullmatch(raw):
        raise EnvConfigError(key, raw, "an int")
    value = int(raw)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise EnvConfigError(key, raw, "an int")
    return value


def get_env_float(key: str, default: float) -> float:
    """Return the variable as a float, or ``default`` when it is not set."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    if not _FLOAT_RE.fullmatch(raw):
        raise EnvConfigError(key, raw, "a number")
    return float(raw)


def get_env_bool(key: str, default: bool) -> bool:
    """Return the variable as a boolean, or ``default`` when it is not set."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    if raw in _TRUE_WORDS:
        return True
    if raw in _FALSE_WORDS:
        return False
    raise EnvConfigError(key, raw, "boolean")


def get_env_duration(key: str, default: timedelta) -> timedelta:
    """Return the variable as a duration such as ``"1h30m"``, or ``default``."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return parse_duration(raw)
    except ValueError as err:
        raise EnvConfigError(key, raw, "a duration") from err


def parse_duration(text: str) -> timedelta:
    """Parse a signed sequence of decimal numbers with unit suffixes.

    Valid units are ``ns``, ``us`` (or ``µs``), ``ms``, ``s``, ``m`` and ``h``,
    for example ``"300ms"``, ``"-1.5h"`` or ``"2h45m"``.
    """
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise invalid

    total = Fraction(0)
    pos = 0
    while pos < len(rest):
        match = _COMPONENT_RE.match(rest, pos)
        whole, fraction, unit = match.group(1), match.group(2), match.group(3)
        if not whole and not fraction:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _UNIT_NANOS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        amount = Fraction(int(whole or "0"))
        if fraction:
            amount += Fraction(int(fraction), 10 ** len(fraction))
        total += amount * _UNIT_NANOS[unit]
        if total > _INT64_MAX:
            raise invalid
        pos = match.end()

    nanos = int(total)
    if negative:
        nanos = -nanos
    return timedelta(microseconds=round(Fraction(nanos, 1000)))