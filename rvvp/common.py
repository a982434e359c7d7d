"""Small helpers shared across the simulator."""

from __future__ import annotations

_DEFAULT_REASON = "runtime assertion failed"


def ensure(cond: bool, reason: str | None = None) -> None:
    """Raise RuntimeError with *reason* unless *cond* holds."""
    if not cond:
        raise RuntimeError(reason if reason is not None else _DEFAULT_REASON)


def rv64_align_address(addr: int) -> int:
    """Round *addr* down to an 8-byte boundary."""
    return addr - addr % 8


def rv32_align_address(addr: int) -> int:
    """Round *addr* down to a 4-byte boundary."""
    return addr - addr % 4