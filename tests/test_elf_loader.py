import struct

import pytest

from rvvp.defs import LoadTarget
from rvvp.elf_loader import ElfError, ElfLoader

PT_LOAD = 1
PT_NOTE = 4

_FORMATS = {
    32: ("<16sHHIIIIIHHHHHH", "<IIIIIIII", "<IIIIIIIIII", "<IIIBBH"),
    64: ("<16sHHIQQQIHHHHHH", "<IIQQQQQQ", "<IIQQQQIIQQ", "<IBBHQQ"),
}

PAYLOAD = b"\x11\x22\x33\x44"
SEGMENTS = [
    (PT_LOAD, 0x100, 0x2100, PAYLOAD, 8),
    (PT_NOTE, 0x300, 0x300, b"note", 4),
    (PT_LOAD, 0x400, 0x400, b"", 0),
    (PT_LOAD, 0x200, 0x2200, b"", 16),
]
SYMBOLS = {"main": 0x80, "begin_signature": 0x1000, "end_signature": 0x1040, "tohost": 0x2000}


def _phdr(bits, ptype, offset, vaddr, paddr, filesz, memsz):
    fmt = _FORMATS[bits][1]
    if bits == 32:
        return struct.pack(fmt, ptype, offset, vaddr, paddr, filesz, memsz, 0, 4)
    return struct.pack(fmt, ptype, 0, offset, vaddr, paddr, filesz, memsz, 4)


def _sym(bits, name_off, value):
    fmt = _FORMATS[bits][3]
    if bits == 32:
        return struct.pack(fmt, name_off, value, 0, 0, 0, 1)
    return struct.pack(fmt, name_off, 0, 0, 1, value, 0)


def build_elf(bits, segments, symbols=None, entry=0x80, with_sections=True):
    ehdr_fmt, phdr_fmt, shdr_fmt, _ = _FORMATS[bits]
    ehsize = struct.calcsize(ehdr_fmt)
    phentsize = struct.calcsize(phdr_fmt)
    shentsize = struct.calcsize(shdr_fmt)
    base = ehsize + phentsize * len(segments)
    body = bytearray()
    phdrs = []
    for ptype, vaddr, paddr, payload, memsz in segments:
        phdrs.append(_phdr(bits, ptype, base + len(body), vaddr, paddr, len(payload), memsz))
        body += payload

    shoff = shnum = shstrndx = 0
    shdrs = b""
    if with_sections:
        shstrtab = b"\0.shstrtab\0.symtab\0.strtab\0"
        strtab = bytearray(b"\0")
        symtab = bytearray(_sym(bits, 0, 0))
        for name, value in (symbols or {}).items():
            symtab += _sym(bits, len(strtab), value)
            strtab += name.encode() + b"\0"
        tables = []
        for data in (shstrtab, bytes(symtab), bytes(strtab)):
            tables.append((base + len(body), len(data)))
            body += data
        shoff = base + len(body)
        names = [shstrtab.index(n) for n in (b".shstrtab", b".symtab", b".strtab")]
        shdrs = struct.pack(shdr_fmt, *([0] * 10))
        for name_off, sh_type, (off, size) in zip(names, (3, 2, 3), tables):
            shdrs += struct.pack(shdr_fmt, name_off, sh_type, 0, 0, off, size, 0, 0, 1, 0)
        shnum, shstrndx = 4, 1

    ident = b"\x7fELF" + bytes([1 if bits == 32 else 2, 1, 1])
    ehdr = struct.pack(
        ehdr_fmt, ident, 2, 0xF3, 1, entry, ehsize, shoff, 0,
        ehsize, phentsize, len(segments), shentsize, shnum, shstrndx,
    )
    return ehdr + b"".join(phdrs) + bytes(body) + shdrs


class RecordingTarget(LoadTarget):
    def __init__(self, size):
        self.mem = bytearray(b"\xaa" * size)
        self.calls = []

    def load_data(self, src, dst_addr):
        self.mem[dst_addr : dst_addr + len(src)] = src
        self.calls.append(("data", dst_addr, bytes(src)))

    def load_zero(self, dst_addr, n):
        self.mem[dst_addr : dst_addr + n] = bytes(n)
        self.calls.append(("zero", dst_addr, n))


@pytest.fixture(params=[32, 64])
def loader(request):
    return ElfLoader(build_elf(request.param, SEGMENTS, SYMBOLS, entry=0x80))


def test_entrypoint(loader):
    assert loader.entrypoint() == 0x80


def test_load_sections_filters(loader):
    assert [p.vaddr for p in loader.load_sections()] == [0x100, 0x200]
    first = loader.load_sections()[0]
    assert first.filesz == len(PAYLOAD)
    assert first.memsz == 8


def test_load_executable_image_copies_and_zero_fills(loader):
    target = RecordingTarget(0x1000)
    loader.load_executable_image(target, 0x1000, 0)
    assert target.mem[0x100:0x104] == bytearray(PAYLOAD)
    assert target.mem[0x104:0x108] == bytearray(4)
    assert target.mem[0x108] == 0xAA
    assert target.mem[0x200:0x210] == bytearray(16)
    assert target.mem[0x300:0x304] == bytearray(b"\xaa" * 4)


def test_load_uses_physical_addresses(loader):
    target = RecordingTarget(0x1000)
    loader.load_executable_image(target, 0x1000, 0x2000, use_vaddr=False)
    assert target.mem[0x100:0x104] == bytearray(PAYLOAD)
    assert ("data", 0x100, PAYLOAD) in target.calls


def test_segments_outside_window_skipped(loader):
    target = RecordingTarget(0x100)
    loader.load_executable_image(target, 0x100, 0x1000)
    assert target.calls == []


def test_segment_too_large_for_target(loader):
    with pytest.raises(ElfError):
        loader.load_executable_image(RecordingTarget(0x104), 0x104, 0)


def test_memory_end_and_heap(loader):
    assert loader.memory_end() == 0x200 + 16
    heap = loader.heap_addr()
    assert heap >= loader.memory_end()
    assert heap % 8 == 0


def test_symbols(loader):
    assert loader.symbol("main").value == SYMBOLS["main"]
    assert loader.begin_signature_address() == SYMBOLS["begin_signature"]
    assert loader.end_signature_address() == SYMBOLS["end_signature"]
    assert loader.to_host_address() == SYMBOLS["tohost"]


def test_missing_symbol(loader):
    with pytest.raises(ElfError, match="unable to find symbol"):
        loader.symbol("absent")


def test_sections(loader):
    names = [s.name for s in loader.sections()]
    assert names == ["", ".shstrtab", ".symtab", ".strtab"]
    assert loader.section(".symtab").name == ".symtab"
    with pytest.raises(ElfError, match="section seems not available"):
        loader.section(".text")


def test_without_section_table():
    loader = ElfLoader(build_elf(32, SEGMENTS, with_sections=False))
    with pytest.raises(ElfError):
        loader.sections()
    with pytest.raises(ElfError):
        loader.symbol("main")
    assert loader.memory_end() == 0x200 + 16


def test_bad_magic():
    image = bytearray(build_elf(32, SEGMENTS, SYMBOLS))
    image[0] = 0
    with pytest.raises(ElfError):
        ElfLoader(bytes(image))


def test_truncated_header():
    with pytest.raises(ElfError):
        ElfLoader(build_elf(64, SEGMENTS, SYMBOLS)[:24])


def test_no_program_headers():
    loader = ElfLoader(build_elf(32, [], SYMBOLS))
    assert loader.load_sections() == []
    with pytest.raises(ElfError):
        loader.memory_end()


def test_from_path(tmp_path):
    path = tmp_path / "prog.elf"
    path.write_bytes(build_elf(64, SEGMENTS, SYMBOLS, entry=0x1234))
    loader = ElfLoader.from_path(path)
    assert loader.entrypoint() == 0x1234
    assert loader.bits == 64