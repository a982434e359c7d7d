"""Reading ELF executables and loading their segments into memory."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Iterator, Union

from rvvp.defs import LoadTarget

_PT_LOAD = 1
_MAGIC = b"\x7fELF"
_CLASSES = {1: 32, 2: 64}
_BYTE_ORDERS = {1: "<", 2: ">"}


class ElfError(RuntimeError):
    """The image is malformed or lacks requested information."""


@dataclass(frozen=True)
class _Layout:
    ehdr: str
    phdr: str
    shdr: str
    sym: str


_LAYOUTS = {
    32: _Layout("HHIIIIIHHHHHH", "IIIIIIII", "IIIIIIIIII", "IIIBBH"),
    64: _Layout("HHIQQQIHHHHHH", "IIQQQQQQ", "IIQQQQIIQQ", "IBBHQQ"),
}


@dataclass(frozen=True)
class ProgramHeader:
    type: int
    flags: int
    offset: int
    vaddr: int
    paddr: int
    filesz: int
    memsz: int
    align: int


@dataclass(frozen=True)
class SectionHeader:
    name: str
    name_offset: int
    type: int
    flags: int
    addr: int
    offset: int
    size: int
    link: int
    info: int
    addralign: int
    entsize: int


@dataclass(frozen=True)
class Symbol:
    name: str
    value: int
    size: int
    info: int
    other: int
    shndx: int


class ElfLoader:
    """An ELF32 or ELF64 image held in memory."""

    def __init__(self, image: bytes) -> None:
        self.image = bytes(image)
        if len(self.image) < 16 or self.image[:4] != _MAGIC:
            raise ElfError("not an ELF image")
        bits = _CLASSES.get(self.image[4])
        order = _BYTE_ORDERS.get(self.image[5])
        if bits is None or order is None:
            raise ElfError("unsupported ELF class or byte order")
        self.bits = bits
        self._order = order
        self._layout = _LAYOUTS[bits]
        self._addr_mask = (1 << bits) - 1
        (
            _e_type,
            _machine,
            _version,
            self._entry,
            self._phoff,
            self._shoff,
            _flags,
            _ehsize,
            self._phentsize,
            self._phnum,
            self._shentsize,
            self._shnum,
            self._shstrndx,
        ) = self._unpack(self._layout.ehdr, 16)

    @classmethod
    def from_path(cls, path: Union[str, PathLike]) -> ElfLoader:
        return cls(Path(path).read_bytes())

    def _unpack(self, fmt: str, offset: int) -> tuple:
        try:
            return struct.unpack_from(self._order + fmt, self.image, offset)
        except struct.error as exc:
            raise ElfError("truncated ELF image") from exc

    def _slice(self, offset: int, length: int) -> bytes:
        if offset + length > len(self.image):
            raise ElfError("segment data beyond end of image")
        return self.image[offset : offset + length]

    def _cstring(self, offset: int) -> str:
        if offset >= len(self.image):
            raise ElfError("string offset beyond end of image")
        end = self.image.find(b"\0", offset)
        if end < 0:
            end = len(self.image)
        return self.image[offset:end].decode("utf-8", "replace")

    def _program_header(self, index: int) -> ProgramHeader:
        fields = self._unpack(self._layout.phdr, self._phoff + self._phentsize * index)
        if self.bits == 32:
            p_type, offset, vaddr, paddr, filesz, memsz, flags, align = fields
        else:
            p_type, flags, offset, vaddr, paddr, filesz, memsz, align = fields
        return ProgramHeader(p_type, flags, offset, vaddr, paddr, filesz, memsz, align)

    def _program_headers(self) -> Iterator[ProgramHeader]:
        return (self._program_header(i) for i in range(self._phnum))

    def load_sections(self) -> list[ProgramHeader]:
        """Loadable segments that occupy memory."""
        return [
            p
            for p in self._program_headers()
            if p.type == _PT_LOAD and not (p.filesz == 0 and p.memsz == 0)
        ]

    def load_executable_image(
        self, target: LoadTarget, size: int, offset: int, use_vaddr: bool = True
    ) -> None:
        """Copy the segments in [offset, offset + size) into *target*, zero-filling the rest."""
        for p in self.load_sections():
            addr = p.vaddr if use_vaddr else p.paddr
            if not offset <= addr < offset + size:
                continue
            if addr + p.memsz >= offset + size:
                raise ElfError("section does not fit in target memory")
            if p.memsz < p.filesz:
                raise ElfError("segment file size exceeds its memory size")
            idx = addr - offset
            target.load_data(self._slice(p.offset, p.filesz), idx)
            target.load_zero(idx + p.filesz, p.memsz - p.filesz)

    def memory_end(self) -> int:
        """End address of the last program header's memory image."""
        if self._phnum == 0:
            raise ElfError("image has no program headers")
        last = self._program_header(self._phnum - 1)
        return (last.vaddr + last.memsz) & self._addr_mask

    def heap_addr(self) -> int:
        """Address after the memory image where the heap starts."""
        end = self.memory_end()
        return (end + end % 8) & self._addr_mask

    def entrypoint(self) -> int:
        return self._entry

    def _raw_section(self, index: int) -> tuple:
        return self._unpack(self._layout.shdr, self._shoff + self._shentsize * index)

    def _section_strings(self) -> int:
        if self._shoff == 0:
            raise ElfError("string table section not available")
        return self._raw_section(self._shstrndx)[4]

    def sections(self) -> list[SectionHeader]:
        if self._shoff == 0:
            raise ElfError("unable to find section address, section table not available")
        strings = self._section_strings()
        result = []
        for i in range(self._shnum):
            name_off, *rest = self._raw_section(i)
            result.append(SectionHeader(self._cstring(strings + name_off), name_off, *rest))
        return result

    def section(self, name: str) -> SectionHeader:
        for sec in self.sections():
            if sec.name == name:
                return sec
        raise ElfError(
            f"unable to find section address, section seems not available: {name}"
        )

    def symbol(self, name: str) -> Symbol:
        symtab = self.section(".symtab")
        strings = self.section(".strtab").offset
        entsize = struct.calcsize(self._order + self._layout.sym)
        if symtab.size % entsize != 0:
            raise ElfError("malformed symbol table")
        for i in range(symtab.size // entsize):
            fields = self._unpack(self._layout.sym, symtab.offset + i * entsize)
            if self.bits == 32:
                st_name, value, size, info, other, shndx = fields
            else:
                st_name, info, other, shndx, value, size = fields
            if self._cstring(strings + st_name) == name:
                return Symbol(name, value, size, info, other, shndx)
        raise ElfError(f"unable to find symbol in the symbol table {name}")

    def begin_signature_address(self) -> int:
        return self.symbol("begin_signature").value

    def end_signature_address(self) -> int:
        return self.symbol("end_signature").value

    def to_host_address(self) -> int:
        return self.symbol("tohost").value