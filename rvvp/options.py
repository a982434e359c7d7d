"""Command line option values and number parsing."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

_ULONG_LIMIT = 1 << 64
_DEC = re.compile(r"[ \t\n\r\f\v]*([+-]?)([0-9]+)")
_HEX = re.compile(r"[ \t\n\r\f\v]*([+-]?)(?:0[xX])?([0-9a-fA-F]+)")


@dataclass
class OptionValue(Generic[T]):
    """A raw option string that may be turned into a typed value."""

    available: bool = False
    value: T | None = None
    option: str = ""

    def finalize(self, parser: Callable[[str], T]) -> bool:
        """Parse the option if one was given; return whether a value is set."""
        if self.option:
            self.value = parser(self.option)
            self.available = True
        return self.available


def parse_ulong_option(text: str) -> int:
    """Parse a decimal or ``0x``-prefixed hexadecimal unsigned number."""
    is_hex = len(text) >= 2 and text[0] == "0" and text[1] in "xX"
    pattern, base = (_HEX, 16) if is_hex else (_DEC, 10)
    match = pattern.match(text)
    error = ValueError(f"unable to parse option '{text}' into a number")
    if match is None:
        raise error
    sign, digits = match.groups()
    value = int(digits, base)
    if value >= _ULONG_LIMIT:
        raise error
    if sign == "-":
        value = (-value) % _ULONG_LIMIT
    return value