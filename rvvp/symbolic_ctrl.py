"""Peripheral through which software talks to the symbolic execution engine.

Three 32-bit registers are provided: an address register (0x0) and a size
register (0x4) used to mark a memory range symbolic, written in that order,
and a control register (0x8). Setting bit 31 of the control register
signals an error, setting bit 30 ends execution of the current path; all
other bits are reserved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from rvvp.memory_map import AccessInfo, ArrayView, RegisterRange, Transaction, route

CTRL_ERROR = 1 << 31
CTRL_EXIT = 1 << 30

HOST_ERROR_MSG_TYPE = "/AGRA/riscv-vp/host-error"
HOST_ERROR_MSG = "SYS_host_error"

ErrorReporter = Callable[[str, str], None]


class SymbolicInterface(ABC):
    """Operations the instruction set simulator offers to the peripheral."""

    @abstractmethod
    def make_symbolic(self, addr: int, size: int) -> None:
        """Mark *size* bytes at *addr* as symbolic."""

    @abstractmethod
    def sys_exit(self) -> None:
        """Terminate execution of the current path."""


def _raise_host_error(msg_type: str, message: str) -> None:
    raise RuntimeError(f"{msg_type}: {message}")


class SymbolicCtrl:
    """The control peripheral; delays are in picoseconds."""

    access_delay = 10_000

    def __init__(self, symif: SymbolicInterface, on_error: ErrorReporter | None = None) -> None:
        self.symif = symif
        self.on_error = on_error if on_error is not None else _raise_host_error

        self.reg_addr = RegisterRange(0x0, 4)
        self.make_symbolic_addr = ArrayView(self.reg_addr, 4)
        self.reg_size = RegisterRange(0x4, 4)
        self.make_symbolic_size = ArrayView(self.reg_size, 4)
        self.reg_ctrl = RegisterRange(0x8, 4)
        self.symbolic_ctrl = ArrayView(self.reg_ctrl, 4)
        self.register_ranges = [self.reg_addr, self.reg_size, self.reg_ctrl]

        self.reg_size.post_write_callback = self._write_size
        self.reg_ctrl.post_write_callback = self._write_ctrl

    def _write_size(self, info: AccessInfo) -> None:
        self.symif.make_symbolic(self.make_symbolic_addr[0], self.make_symbolic_size[0])

    def _write_ctrl(self, info: AccessInfo) -> None:
        value = self.symbolic_ctrl[0]
        if value & CTRL_ERROR:
            self.on_error(HOST_ERROR_MSG_TYPE, HOST_ERROR_MSG)
            self.symif.sys_exit()
        if value & CTRL_EXIT:
            self.symif.sys_exit()
        self.symbolic_ctrl[0] = 0

    def transport(self, trans: Transaction, delay: int) -> int:
        """Carry out *trans*; return *delay* plus the access time."""
        delay += self.access_delay
        route("SymbolicCTRL", self.register_ranges, trans, delay)
        return delay