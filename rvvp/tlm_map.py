"""Address and register mappings that route bus transactions inside a peripheral."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Union

from rvvp.memory_map import Command, Transaction

_REGISTER_BYTES = 4
_REGISTER_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class AccessMode:
    """Which bus commands a mapping or register accepts."""

    allow_read: bool = True
    allow_write: bool = True

    @classmethod
    def make_readonly(cls) -> AccessMode:
        return cls(allow_read=True, allow_write=False)

    @classmethod
    def make_writeonly(cls) -> AccessMode:
        return cls(allow_read=False, allow_write=True)

    def is_readonly(self) -> bool:
        return self.allow_read and not self.allow_write


READ_WRITE = AccessMode(True, True)
READ_ONLY = AccessMode.make_readonly()
WRITE_ONLY = AccessMode.make_writeonly()


def _check_mode(mode: AccessMode, command: Command) -> None:
    if command is Command.READ and not mode.allow_read:
        raise PermissionError("read access not permitted")
    if command is Command.WRITE and not mode.allow_write:
        raise PermissionError("write access not permitted")


def execute_memory_access(trans: Transaction, memory: bytearray) -> None:
    """Perform *trans* directly on *memory*, using its address as an offset."""
    addr = trans.address
    length = trans.data_length
    if trans.command not in (Command.READ, Command.WRITE):
        raise RuntimeError("unsupported TLM command detected")
    if addr < 0 or addr + length > len(memory):
        raise IndexError(f"memory access at 0x{addr:x} out of bounds")
    if trans.command is Command.WRITE:
        memory[addr : addr + length] = trans.data
    else:
        trans.data[:] = memory[addr : addr + length]


TransportHandler = Callable[[Transaction, Any], None]


class AddressMapping:
    """Forwards accesses in [start, end) to a handler with a local address."""

    def __init__(self, start: int, end: int, mode: AccessMode = READ_WRITE) -> None:
        self.start = start
        self.end = end
        self.mode = mode
        self.handler: TransportHandler | None = None

    def register_handler(self, fn: TransportHandler) -> AddressMapping:
        if self.handler is not None:
            raise RuntimeError("handler already registered")
        self.handler = fn
        return self

    def try_handle(self, trans: Transaction, delay: Any) -> bool:
        """Handle *trans* if its address lies in this mapping."""
        addr = trans.address
        if not self.start <= addr < self.end:
            return False
        if addr + trans.data_length > self.end:
            raise ValueError("memory out of bounds access")
        _check_mode(self.mode, trans.command)
        if self.handler is None:
            raise RuntimeError("no handler registered")
        trans.address = addr - self.start
        self.handler(trans, delay)
        return True


@dataclass
class Register:
    """A 32-bit memory-mapped register."""

    addr: int
    value: int = 0
    mode: AccessMode = READ_WRITE
    mask: int = _REGISTER_MASK

    def bus_write(self, new_value: int) -> None:
        if not self.mode.allow_write:
            raise PermissionError("register is not writable")
        self.value = new_value & self.mask

    def bus_read(self) -> int:
        if not self.mode.allow_read:
            raise PermissionError("register is not readable")
        return self.value


@dataclass
class RegisterAccess:
    """An access to a register; calling *perform* carries it out."""

    read: bool
    write: bool
    register: Register
    new_value: int
    perform: Callable[[], None]
    delay: Any
    addr: int
    trans: Transaction


RegisterHandler = Callable[[RegisterAccess], None]


class RegisterMapping:
    """A bank of 32-bit registers served through a single handler."""

    def __init__(self) -> None:
        self.registers: dict[int, Register] = {}
        self.handler: RegisterHandler | None = None

    def add_register(self, reg: Register) -> RegisterMapping:
        self.registers.setdefault(reg.addr, reg)
        return self

    def register_handler(self, fn: RegisterHandler) -> RegisterMapping:
        if self.handler is not None:
            raise RuntimeError("handler already registered")
        self.handler = fn
        return self

    def try_handle(self, trans: Transaction, delay: Any) -> bool:
        """Pass *trans* to the handler if it hits one of the registers."""
        addr = trans.address
        reg = self.registers.get(addr - addr % _REGISTER_BYTES)
        if reg is None:
            return False

        if trans.data_length + addr % _REGISTER_BYTES > _REGISTER_BYTES:
            raise ValueError("access beyond the register")
        command = trans.command
        if command not in (Command.READ, Command.WRITE):
            raise RuntimeError("unsupported TLM command detected")
        _check_mode(reg.mode, command)
        if self.handler is None:
            raise RuntimeError("no callback function provided")

        def perform() -> None:
            off = trans.address % _REGISTER_BYTES
            length = trans.data_length
            if command is Command.READ:
                raw = (reg.bus_read() & _REGISTER_MASK).to_bytes(_REGISTER_BYTES, "little")
                trans.data[:] = raw[off : off + length]
            else:
                raw = bytearray((reg.value & _REGISTER_MASK).to_bytes(_REGISTER_BYTES, "little"))
                raw[off : off + length] = trans.data
                reg.bus_write(int.from_bytes(raw, "little"))

        new_value = 0
        if command is Command.WRITE:
            new_value = int.from_bytes(bytes(trans.data[:_REGISTER_BYTES]), "little")

        self.handler(
            RegisterAccess(
                read=command is Command.READ,
                write=command is Command.WRITE,
                register=reg,
                new_value=new_value,
                perform=perform,
                delay=delay,
                addr=addr,
                trans=trans,
            )
        )
        return True


Mapping = Union[AddressMapping, RegisterMapping]


class LocalRouter:
    """Routes transactions to the first mapping that accepts them."""

    def __init__(self, name: str = "unamed") -> None:
        self.name = name
        self.maps: list[Mapping] = []

    def transport(self, trans: Transaction, delay: Any) -> None:
        for mapping in self.maps:
            if mapping.try_handle(trans, delay):
                return
        raise RuntimeError(
            "access of unmapped address (local TLM router): "
            f"name={self.name}, addr=0x{trans.address:X}"
        )

    def add_register_bank(self, regs: Iterable[Register]) -> RegisterMapping:
        mapping = RegisterMapping()
        for reg in regs:
            if reg.addr in mapping.registers:
                raise ValueError("register at this address already available")
            mapping.registers[reg.addr] = reg
        self.maps.append(mapping)
        return mapping

    def add_start_end_mapping(
        self, start: int, end: int, mode: AccessMode = READ_WRITE
    ) -> AddressMapping:
        mapping = AddressMapping(start, end, mode)
        self.maps.append(mapping)
        return mapping

    def add_start_size_mapping(
        self, start: int, size: int, mode: AccessMode = READ_WRITE
    ) -> AddressMapping:
        return self.add_start_end_mapping(start, start + size, mode)