"""Trap causes and the exception used to signal a trap."""

from __future__ import annotations

from enum import IntEnum
from typing import NoReturn


class InterruptCode(IntEnum):
    """Interrupt cause codes (mcause with interrupt bit set)."""

    U_SOFTWARE_INTERRUPT = 0
    S_SOFTWARE_INTERRUPT = 1
    M_SOFTWARE_INTERRUPT = 3
    U_TIMER_INTERRUPT = 4
    S_TIMER_INTERRUPT = 5
    M_TIMER_INTERRUPT = 7
    U_EXTERNAL_INTERRUPT = 8
    S_EXTERNAL_INTERRUPT = 9
    M_EXTERNAL_INTERRUPT = 11


class ExceptionCode(IntEnum):
    """Synchronous exception cause codes (mcause)."""

    INSTR_ADDR_MISALIGNED = 0
    INSTR_ACCESS_FAULT = 1
    ILLEGAL_INSTR = 2
    BREAKPOINT = 3
    LOAD_ADDR_MISALIGNED = 4
    LOAD_ACCESS_FAULT = 5
    STORE_AMO_ADDR_MISALIGNED = 6
    STORE_AMO_ACCESS_FAULT = 7
    ECALL_U_MODE = 8
    ECALL_S_MODE = 9
    ECALL_M_MODE = 11
    INSTR_PAGE_FAULT = 12
    LOAD_PAGE_FAULT = 13
    STORE_AMO_PAGE_FAULT = 15


class SimulationTrap(Exception):
    """A trap raised during instruction execution."""

    def __init__(self, reason: ExceptionCode | InterruptCode, mtval: int) -> None:
        super().__init__(f"{reason.name} (mtval=0x{mtval:x})")
        self.reason = reason
        self.mtval = mtval


def raise_trap(exc: ExceptionCode | InterruptCode, mtval: int) -> NoReturn:
    """Raise a SimulationTrap for *exc* with trap value *mtval*."""
    raise SimulationTrap(exc, mtval)