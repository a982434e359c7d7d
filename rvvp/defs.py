"""Core definitions and the interfaces between simulator components."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum, IntEnum


class Architecture(IntEnum):
    """Register width of a hart."""

    RV32 = 1
    RV64 = 2
    RV128 = 3


class CoreExecStatus(Enum):
    """Execution state of a hart."""

    RUNNABLE = "runnable"
    HIT_BREAKPOINT = "hit_breakpoint"
    TERMINATED = "terminated"


class SatpMode(IntEnum):
    """Address translation schemes selectable in the satp CSR."""

    BARE = 0
    SV32 = 1
    SV39 = 8
    SV48 = 9
    SV57 = 10
    SV64 = 11


class PrivilegeLevel(IntEnum):
    """RISC-V privilege levels."""

    USER = 0b00
    SUPERVISOR = 0b01
    HYPERVISOR = 0b10
    MACHINE = 0b11
    # Sentinel meaning "no privilege level".
    NONE = 0xFFFFFFFF


class MemoryAccessType(IntEnum):
    """Kind of memory access being translated or checked."""

    FETCH = 0
    LOAD = 1
    STORE = 2


class LoadTarget(ABC):
    """Something a program image can be loaded into."""

    @abstractmethod
    def load_data(self, src: bytes, dst_addr: int) -> None:
        """Copy *src* to *dst_addr*."""

    @abstractmethod
    def load_zero(self, dst_addr: int, n: int) -> None:
        """Fill *n* bytes at *dst_addr* with zeros."""


class ClintInterface(ABC):
    """Access to the machine timer of a core local interruptor."""

    @abstractmethod
    def update_and_get_mtime(self) -> int:
        """Bring mtime up to date and return it."""


class ClintInterruptTarget(ABC):
    """A hart that receives timer and software interrupts."""

    @abstractmethod
    def trigger_timer_interrupt(self, status: bool) -> None:
        """Raise or clear the timer interrupt."""

    @abstractmethod
    def trigger_software_interrupt(self, status: bool) -> None:
        """Raise or clear the software interrupt."""


class ExternalInterruptTarget(ABC):
    """A hart that receives external interrupts."""

    @abstractmethod
    def trigger_external_interrupt(self, level: PrivilegeLevel) -> None:
        """Raise the external interrupt for *level*."""

    @abstractmethod
    def clear_external_interrupt(self, level: PrivilegeLevel) -> None:
        """Clear the external interrupt for *level*."""


class InterruptGateway(ABC):
    """Entry point for interrupt sources into an interrupt controller."""

    @abstractmethod
    def gateway_trigger_interrupt(self, irq_id: int) -> None:
        """Signal interrupt *irq_id*."""


class MmuMemory(ABC):
    """Memory operations the MMU needs for page table walks."""

    @abstractmethod
    def v2p(self, vaddr: int, access_type: MemoryAccessType) -> int:
        """Translate a virtual address to a physical one."""

    @abstractmethod
    def mmu_load_pte64(self, addr: int) -> int:
        """Load a 64-bit page table entry."""

    @abstractmethod
    def mmu_load_pte32(self, addr: int) -> int:
        """Load a 32-bit page table entry."""

    @abstractmethod
    def mmu_store_pte32(self, addr: int, value: int) -> None:
        """Store a 32-bit page table entry."""


class BusLock(ABC):
    """Exclusive bus access for atomic operations."""

    @abstractmethod
    def lock(self, hart_id: int) -> None:
        """Take the bus lock for *hart_id*."""

    @abstractmethod
    def unlock(self, hart_id: int) -> None:
        """Release the bus lock held by *hart_id*."""

    @abstractmethod
    def is_locked(self, hart_id: int | None = None) -> bool:
        """Whether *hart_id* holds the lock, or any hart if *hart_id* is None."""

    @abstractmethod
    def wait_until_unlocked(self) -> None:
        """Block until the bus is no longer locked."""

    def wait_for_access_rights(self, hart_id: int) -> None:
        """Wait if the bus is locked by a hart other than *hart_id*."""
        if self.is_locked() and not self.is_locked(hart_id):
            self.wait_until_unlocked()


class DebugTarget(ABC):
    """A hart that can be controlled by a debugger."""

    @property
    @abstractmethod
    def status(self) -> CoreExecStatus:
        """Current execution status; implementations make it writable."""

    @property
    @abstractmethod
    def architecture(self) -> Architecture:
        """Register width of the hart."""

    @property
    @abstractmethod
    def hart_id(self) -> int:
        """Identifier of the hart."""

    @property
    @abstractmethod
    def program_counter(self) -> int:
        """Current program counter."""

    @property
    @abstractmethod
    def registers(self) -> list[int]:
        """Values of the general purpose registers."""

    @abstractmethod
    def enable_debug(self) -> None:
        """Put the hart into debug mode."""

    @abstractmethod
    def block_on_wfi(self, enabled: bool) -> None:
        """Choose whether WFI blocks the hart."""

    @abstractmethod
    def insert_breakpoint(self, addr: int) -> None:
        """Add a breakpoint at *addr*."""

    @abstractmethod
    def remove_breakpoint(self, addr: int) -> None:
        """Remove the breakpoint at *addr*."""

    @abstractmethod
    def read_register(self, index: int) -> int:
        """Value of register *index*."""

    @abstractmethod
    def run(self) -> None:
        """Run until a breakpoint or termination."""

    @abstractmethod
    def run_step(self) -> None:
        """Execute a single instruction."""