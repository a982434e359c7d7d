"""Enumeration maps built from a textual list of enumerators."""

from __future__ import annotations

import re
from collections.abc import Iterator

_INT_PREFIX = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")
_UINT64 = 1 << 64


def split_string(text: str, sep: str = ",") -> list[str]:
    """Split *text* on *sep*; a trailing empty field is not produced."""
    parts = text.split(sep)
    if parts[-1] == "":
        parts.pop()
    return parts


def _parse_auto_base(text: str, unsigned: bool) -> int:
    match = _INT_PREFIX.match(text)
    if match is None:
        raise ValueError(f"invalid enumerator value: {text!r}")
    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        value = int(digits[2:], 16)
    elif digits.startswith("0") and len(digits) > 1:
        value = int(digits[1:], 8)
    else:
        value = int(digits, 10)
    if sign == "-":
        value = -value
    if unsigned:
        value %= _UINT64
    return value


def generate_enum_map(spec: str, unsigned: bool = True) -> dict[int, str]:
    """Map enumerator values to names for a list such as ``"A, B=0x10, C"``."""
    cleaned = spec.replace(" ", "").replace("(", "")
    result: dict[int, str] = {}
    index = 0
    for token in split_string(cleaned):
        if "=" in token:
            name_value = split_string(token, "=")
            name = name_value[0]
            if len(name_value) < 2:
                raise ValueError(f"missing enumerator value in {token!r}")
            index = _parse_auto_base(name_value[1], unsigned)
        else:
            name = token
        result[index] = name
        index += 1
    return dict(sorted(result.items()))


class EnumMap:
    """Ordered value-to-name mapping of an enumeration."""

    def __init__(self, spec: str, unsigned: bool = True) -> None:
        self._names = generate_enum_map(spec, unsigned)
        self._keys = list(self._names)

    def name(self, value: int) -> str:
        """Name of *value*, or an empty string if it is not an enumerator."""
        return self._names.get(value, "")

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[int]:
        return iter(self._keys)

    def __contains__(self, value: object) -> bool:
        return value in self._names

    def successor(self, value: int) -> int:
        """The next enumerator value, wrapping to the first one."""
        if not self._keys:
            raise ValueError("enumeration is empty")
        if value not in self._names:
            return self._keys[0]
        pos = self._keys.index(value) + 1
        return self._keys[pos] if pos < len(self._keys) else self._keys[0]

    def is_valid(self, value: int) -> bool:
        return value in self._names