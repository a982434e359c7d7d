"""Virtual memory translation with page table walks and a small TLB."""

from __future__ import annotations

from dataclasses import dataclass

from rvvp.defs import MemoryAccessType, MmuMemory, PrivilegeLevel, SatpMode
from rvvp.trap import ExceptionCode, raise_trap

PTE_PPN_SHIFT = 10
PGSHIFT = 12
PGSIZE = 1 << PGSHIFT
PGMASK = PGSIZE - 1

PTE_V = 1
PTE_R = 1 << 1
PTE_W = 1 << 2
PTE_X = 1 << 3
PTE_U = 1 << 4
PTE_G = 1 << 5
PTE_A = 1 << 6
PTE_D = 1 << 7
PTE_RSW = 0b11 << 8

TLB_ENTRIES = 256

_VM_LAYOUTS = {
    SatpMode.SV32: (2, 10, 4),
    SatpMode.SV39: (3, 9, 8),
    SatpMode.SV48: (4, 9, 8),
    SatpMode.SV57: (5, 9, 8),
    SatpMode.SV64: (6, 9, 8),
}

_PAGE_FAULTS = {
    MemoryAccessType.FETCH: ExceptionCode.INSTR_PAGE_FAULT,
    MemoryAccessType.LOAD: ExceptionCode.LOAD_PAGE_FAULT,
    MemoryAccessType.STORE: ExceptionCode.STORE_AMO_PAGE_FAULT,
}


@dataclass(frozen=True)
class PageTableEntry:
    """A page table entry and its flag bits."""

    value: int

    @property
    def valid(self) -> bool:
        return bool(self.value & PTE_V)

    @property
    def readable(self) -> bool:
        return bool(self.value & PTE_R)

    @property
    def writable(self) -> bool:
        return bool(self.value & PTE_W)

    @property
    def executable(self) -> bool:
        return bool(self.value & PTE_X)

    @property
    def user(self) -> bool:
        return bool(self.value & PTE_U)

    @property
    def is_global(self) -> bool:
        return bool(self.value & PTE_G)

    @property
    def accessed(self) -> bool:
        return bool(self.value & PTE_A)

    @property
    def dirty(self) -> bool:
        return bool(self.value & PTE_D)

    @property
    def ppn(self) -> int:
        return self.value >> PTE_PPN_SHIFT

    def __int__(self) -> int:
        return self.value


@dataclass
class VmInfo:
    """Shape of the page tables for one translation scheme."""

    levels: int
    idxbits: int
    ptesize: int
    ptbase: int


@dataclass
class CoreState:
    """The parts of a hart's state that address translation depends on."""

    prv: int = PrivilegeLevel.MACHINE
    xlen: int = 32
    satp_mode: int = SatpMode.BARE
    satp_ppn: int = 0
    mprv: bool = False
    mpp: int = PrivilegeLevel.USER
    sum: bool = False
    mxr: bool = False


class Mmu:
    """Translates virtual to physical addresses for one hart."""

    # Three clock cycles of 10 ns, in picoseconds.
    access_delay = 30_000

    def __init__(self, core: CoreState, mem: MmuMemory | None = None) -> None:
        self.core = core
        self.mem = mem
        self.page_fault_on_ad = False
        self.elapsed = 0
        self._tlb: dict[tuple[int, int, int], tuple[int, int]] = {}

    def flush_tlb(self) -> None:
        self._tlb.clear()

    def translate(self, vaddr: int, access_type: MemoryAccessType) -> int:
        """Physical address for *vaddr*; raises SimulationTrap on a page fault."""
        core = self.core
        if core.satp_mode == SatpMode.BARE:
            return vaddr

        mode = core.prv
        if access_type != MemoryAccessType.FETCH and core.mprv:
            mode = core.mpp
        if mode == PrivilegeLevel.MACHINE:
            return vaddr

        self.elapsed += self.access_delay

        if mode not in (PrivilegeLevel.USER, PrivilegeLevel.SUPERVISOR):
            raise ValueError(f"cannot translate in privilege level {mode}")
        vpn = vaddr >> PGSHIFT
        key = (int(mode), int(access_type), vpn % TLB_ENTRIES)
        cached = self._tlb.get(key)
        if cached is not None and cached[0] == vpn:
            return cached[1] | (vaddr & PGMASK)

        paddr = self.walk(vaddr, access_type, mode)
        self._tlb[key] = (vpn, paddr & ~PGMASK)
        return paddr

    def decode_vm_info(self, prv: int) -> VmInfo:
        """Page table shape selected by the satp CSR."""
        if prv > PrivilegeLevel.SUPERVISOR:
            raise ValueError(f"no page tables for privilege level {prv}")
        ptbase = self.core.satp_ppn << PGSHIFT
        mode = self.core.satp_mode
        try:
            levels, idxbits, ptesize = _VM_LAYOUTS[SatpMode(mode)]
        except (ValueError, KeyError):
            raise RuntimeError(f"unknown Sv (satp) mode {mode}") from None
        return VmInfo(levels, idxbits, ptesize, ptbase)

    def check_vaddr_extension(self, vaddr: int, vm: VmInfo) -> bool:
        """Whether the bits above the translated range are a proper sign extension."""
        highbit = vm.idxbits * vm.levels + PGSHIFT - 1
        ext_mask = (1 << max(self.core.xlen - highbit, 0)) - 1
        bits = (vaddr >> highbit) & ext_mask
        return bits == 0 or bits == ext_mask

    @staticmethod
    def _leaf_allowed(
        pte: PageTableEntry, access_type: MemoryAccessType, s_mode: bool, sum_: bool, mxr: bool
    ) -> bool:
        if access_type == MemoryAccessType.FETCH and not pte.executable:
            return False
        if (
            access_type == MemoryAccessType.LOAD
            and not pte.readable
            and not (mxr and pte.executable)
        ):
            return False
        if access_type == MemoryAccessType.STORE and not (pte.readable and pte.writable):
            return False
        if pte.user:
            return not (s_mode and (access_type == MemoryAccessType.FETCH or not sum_))
        return s_mode

    def walk(self, vaddr: int, access_type: MemoryAccessType, mode: int) -> int:
        """Walk the page tables for *vaddr*; raises SimulationTrap on failure."""
        if access_type not in _PAGE_FAULTS:
            raise RuntimeError(f"[mmu] unknown access type {access_type}")
        core = self.core
        s_mode = mode == PrivilegeLevel.SUPERVISOR
        vm = self.decode_vm_info(mode)
        levels = vm.levels if self.check_vaddr_extension(vaddr, vm) else 0

        base = vm.ptbase
        for level in reversed(range(levels)):
            ptshift = level * vm.idxbits
            vpn_field = (vaddr >> (PGSHIFT + ptshift)) & ((1 << vm.idxbits) - 1)
            pte_paddr = base + vpn_field * vm.ptesize

            if self.mem is None:
                raise RuntimeError("no page table memory attached")
            if vm.ptesize == 4:
                pte = PageTableEntry(self.mem.mmu_load_pte32(pte_paddr))
            else:
                pte = PageTableEntry(self.mem.mmu_load_pte64(pte_paddr))
            ppn = pte.ppn

            if not pte.valid or (not pte.readable and pte.writable):
                break
            if not pte.readable and not pte.executable:
                base = ppn << PGSHIFT
                continue
            if not self._leaf_allowed(pte, access_type, s_mode, core.sum, core.mxr):
                break

            mask = (1 << ptshift) - 1
            if ppn & mask:
                break  # misaligned superpage

            ad = PTE_A | (PTE_D if access_type == MemoryAccessType.STORE else 0)
            if pte.value & ad != ad:
                if self.page_fault_on_ad:
                    break
                self.mem.mmu_store_pte32(pte_paddr, (pte.value | ad) & 0xFFFFFFFF)

            vpn = vaddr >> PGSHIFT
            pgoff = vaddr & PGMASK
            return (((ppn & ~mask) | (vpn & mask)) << PGSHIFT) | pgoff

        raise_trap(_PAGE_FAULTS[access_type], vaddr)