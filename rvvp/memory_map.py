"""Memory-mapped register ranges and routing of bus transactions."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from rvvp.common import ensure


class Command(IntEnum):
    """Bus transaction command."""

    READ = 0
    WRITE = 1
    IGNORE = 2


class ResponseStatus(IntEnum):
    """Outcome of a bus transaction."""

    OK = 1
    INCOMPLETE = 0
    GENERIC_ERROR = -1
    ADDRESS_ERROR = -2
    COMMAND_ERROR = -3
    BURST_ERROR = -4
    BYTE_ENABLE_ERROR = -5


@dataclass
class Transaction:
    """A bus transaction; *data* holds the bytes written or the read buffer."""

    command: Command
    address: int
    data: bytearray = field(default_factory=bytearray)
    response_status: ResponseStatus = ResponseStatus.INCOMPLETE

    @property
    def data_length(self) -> int:
        return len(self.data)

    @property
    def is_read(self) -> bool:
        return self.command is Command.READ

    @property
    def is_write(self) -> bool:
        return self.command is Command.WRITE


@dataclass
class AccessInfo:
    """Details of a register access passed to callbacks; *addr* is local."""

    addr: int
    size: int
    trans: Transaction
    delay: Any


PreCallback = Callable[[AccessInfo], bool]
PostCallback = Callable[[AccessInfo], None]


class RegisterRange:
    """A contiguous block of byte-addressable registers."""

    def __init__(self, start: int, size: int) -> None:
        if size <= 0:
            raise ValueError("register range size must be positive")
        self.start = start
        self.end = start + size - 1
        self.mem = bytearray(size)
        self.readonly = False
        self.alignment = 1
        self.pre_write_callback: PreCallback | None = None
        self.post_write_callback: PostCallback | None = None
        self.pre_read_callback: PreCallback | None = None
        self.post_read_callback: PostCallback | None = None

    @classmethod
    def make_start_end(cls, start: int, end: int) -> RegisterRange:
        if end < start:
            raise ValueError("register range end lies before its start")
        return cls(start, end - start + 1)

    @classmethod
    def make_start_size(cls, start: int, size: int) -> RegisterRange:
        return cls(start, size)

    @classmethod
    def make_array(cls, start: int, num_elems: int, elem_size: int) -> RegisterRange:
        if num_elems <= 0 or elem_size <= 0:
            raise ValueError("register array needs a positive element count and size")
        return cls(start, elem_size * num_elems)

    def contains(self, addr: int) -> bool:
        return self.start <= addr <= self.end

    def to_local(self, addr: int) -> int:
        return addr - self.start

    def _local_span(self, addr: int, length: int) -> int:
        if not self.contains(addr):
            raise ValueError(f"address 0x{addr:x} outside register range")
        local = self.to_local(addr)
        if local + length > len(self.mem):
            raise ValueError("access exceeds register range")
        return local

    def write(self, addr: int, data: bytes, trans: Transaction, delay: Any) -> None:
        """Store *data* at *addr*, running the write callbacks around it."""
        local = self._local_span(addr, len(data))
        info = AccessInfo(local, len(data), trans, delay)
        if self.pre_write_callback is not None and not self.pre_write_callback(info):
            return
        self.mem[local : local + len(data)] = data
        if self.post_write_callback is not None:
            self.post_write_callback(info)

    def read(self, addr: int, length: int, trans: Transaction, delay: Any) -> bytes | None:
        """Return *length* bytes at *addr*, or None if a pre-read callback refused."""
        local = self._local_span(addr, length)
        info = AccessInfo(local, length, trans, delay)
        if self.pre_read_callback is not None and not self.pre_read_callback(info):
            return None
        result = bytes(self.mem[local : local + length])
        if self.post_read_callback is not None:
            self.post_read_callback(info)
        return result

    def match(self, trans: Transaction) -> bool:
        return self.contains(trans.address)

    def process(self, trans: Transaction, delay: Any) -> None:
        """Carry out *trans* on this range."""
        addr = trans.address
        length = trans.data_length
        ensure(addr % self.alignment == 0 and length % self.alignment == 0)

        if trans.command is Command.READ:
            result = self.read(addr, length, trans, delay)
            if result is not None:
                trans.data[:] = result
        elif trans.command is Command.WRITE:
            ensure(not self.readonly)
            self.write(addr, bytes(trans.data), trans, delay)
        else:
            raise RuntimeError("unsupported TLM command")


def _check_width(width: int) -> None:
    if width <= 0:
        raise ValueError("integer width must be positive")


class IntegerView:
    """An unsigned little-endian integer at the start of a register range."""

    def __init__(self, reg: RegisterRange, width: int = 4) -> None:
        _check_width(width)
        if len(reg.mem) < width:
            raise ValueError("register range smaller than integer view")
        self.reg = reg
        self.width = width

    def read(self) -> int:
        return int.from_bytes(self.reg.mem[: self.width], "little")

    def write(self, value: int) -> None:
        value &= (1 << (8 * self.width)) - 1
        self.reg.mem[: self.width] = value.to_bytes(self.width, "little")

    def __int__(self) -> int:
        return self.read()

    def __index__(self) -> int:
        return self.read()


class ArrayView:
    """A register range seen as an array of unsigned little-endian integers."""

    def __init__(self, reg: RegisterRange, elem_size: int = 4, row_size: int = 1) -> None:
        _check_width(elem_size)
        if len(reg.mem) % elem_size != 0:
            raise ValueError("register range size is not a multiple of the element size")
        self.reg = reg
        self.elem_size = elem_size
        self.row_size = row_size
        self.size = len(reg.mem) // elem_size

    def _offset(self, idx: int) -> int:
        if not 0 <= idx < self.size:
            raise IndexError("ArrayView index out-of-range")
        return idx * self.elem_size

    def at(self, idx: int) -> int:
        return self[idx]

    def cell(self, idx: int, row_idx: int) -> int:
        """Element at row *idx*, column *row_idx* of a two-dimensional view."""
        return self[idx * self.row_size + row_idx]

    def __getitem__(self, idx: int) -> int:
        off = self._offset(idx)
        return int.from_bytes(self.reg.mem[off : off + self.elem_size], "little")

    def __setitem__(self, idx: int, value: int) -> None:
        off = self._offset(idx)
        value &= (1 << (8 * self.elem_size)) - 1
        self.reg.mem[off : off + self.elem_size] = value.to_bytes(self.elem_size, "little")

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[int]:
        return (self[i] for i in range(self.size))


def route(name: str, ranges: Iterable[RegisterRange], trans: Transaction, delay: Any) -> None:
    """Hand *trans* to the first range containing its address."""
    for reg in ranges:
        if reg.match(trans):
            reg.process(trans, delay)
            return
    raise RuntimeError(f"{name} unable to route address {trans.address}")