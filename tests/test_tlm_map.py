import pytest

from rvvp.memory_map import Command, Transaction
from rvvp.tlm_map import (
    READ_ONLY,
    READ_WRITE,
    AccessMode,
    AddressMapping,
    LocalRouter,
    Register,
    RegisterMapping,
    execute_memory_access,
)


def _write(addr, payload):
    return Transaction(Command.WRITE, addr, bytearray(payload))


def _read(addr, length):
    return Transaction(Command.READ, addr, bytearray(length))


def test_access_mode_readonly_flags():
    assert AccessMode.make_readonly().is_readonly() is True
    assert AccessMode.make_writeonly().is_readonly() is False
    assert READ_WRITE.is_readonly() is False
    assert AccessMode.make_writeonly().allow_read is False


def test_execute_memory_access_round_trip():
    memory = bytearray(16)
    execute_memory_access(_write(4, b"\x01\x02\x03"), memory)
    trans = _read(4, 3)
    execute_memory_access(trans, memory)
    assert bytes(trans.data) == b"\x01\x02\x03"
    assert memory[:4] == bytearray(4)


def test_execute_memory_access_rejects_other_commands():
    with pytest.raises(RuntimeError, match="unsupported TLM command"):
        execute_memory_access(Transaction(Command.IGNORE, 0, bytearray(1)), bytearray(4))


def test_execute_memory_access_out_of_bounds():
    with pytest.raises(IndexError):
        execute_memory_access(_write(3, b"\x00\x00"), bytearray(4))


def test_address_mapping_outside_returns_false():
    mapping = AddressMapping(0x100, 0x200).register_handler(lambda t, d: None)
    trans = _read(0x200, 4)
    assert mapping.try_handle(trans, 0) is False
    assert trans.address == 0x200


def test_address_mapping_forwards_local_address():
    seen = []
    mapping = AddressMapping(0x100, 0x200)
    mapping.register_handler(lambda t, d: seen.append((t.address, d)))
    assert mapping.try_handle(_read(0x110, 4), "delay") is True
    assert seen == [(0x10, "delay")]


def test_address_mapping_bounds_and_mode():
    mapping = AddressMapping(0x0, 0x10, READ_ONLY).register_handler(lambda t, d: None)
    with pytest.raises(ValueError):
        mapping.try_handle(_read(0xE, 4), 0)
    with pytest.raises(PermissionError):
        mapping.try_handle(_write(0x0, b"\x00"), 0)


def test_register_handler_only_once():
    mapping = AddressMapping(0, 4).register_handler(lambda t, d: None)
    with pytest.raises(RuntimeError):
        mapping.register_handler(lambda t, d: None)
    bank = RegisterMapping().register_handler(lambda a: None)
    with pytest.raises(RuntimeError):
        bank.register_handler(lambda a: None)


def test_register_write_applies_mask_via_handler():
    ctrl = Register(addr=0x0, mask=0xFF)
    router = LocalRouter("bank")
    seen = []

    def handler(access):
        seen.append(access)
        access.perform()

    router.add_register_bank([ctrl]).register_handler(handler)
    router.transport(_write(0x0, (0x1234).to_bytes(4, "little")), 0)
    assert ctrl.value == 0x34
    assert seen[0].write and not seen[0].read
    assert seen[0].new_value == 0x1234
    assert seen[0].register is ctrl


def test_register_partial_access_round_trip():
    reg = Register(addr=0x4, value=0xAABBCCDD)
    router = LocalRouter()
    router.add_register_bank([reg]).register_handler(lambda access: access.perform())
    before = _read(0x4, 1)
    router.transport(before, 0)
    router.transport(_write(0x6, b"\x11"), 0)
    after = _read(0x6, 1)
    router.transport(after, 0)
    low = _read(0x4, 1)
    router.transport(low, 0)
    assert bytes(after.data) == b"\x11"
    assert bytes(low.data) == bytes(before.data)


def test_handler_may_skip_access():
    reg = Register(addr=0x0, value=7)
    router = LocalRouter()
    router.add_register_bank([reg]).register_handler(lambda access: None)
    router.transport(_write(0x0, b"\x09\x00\x00\x00"), 0)
    assert reg.value == 7


def test_register_access_beyond_register_rejected():
    router = LocalRouter()
    router.add_register_bank([Register(addr=0x0)]).register_handler(lambda a: a.perform())
    with pytest.raises(ValueError):
        router.transport(_read(0x2, 4), 0)


def test_register_mode_enforced():
    reg = Register(addr=0x0, mode=READ_ONLY)
    with pytest.raises(PermissionError):
        reg.bus_write(1)
    router = LocalRouter()
    router.add_register_bank([reg]).register_handler(lambda a: a.perform())
    with pytest.raises(PermissionError):
        router.transport(_write(0x0, b"\x01\x00\x00\x00"), 0)


def test_register_mapping_without_handler():
    bank = RegisterMapping().add_register(Register(addr=0x8))
    with pytest.raises(RuntimeError, match="no callback"):
        bank.try_handle(_read(0x8, 4), 0)


def test_add_register_keeps_first():
    first = Register(addr=0x0, value=1)
    bank = RegisterMapping().add_register(first).add_register(Register(addr=0x0, value=2))
    assert bank.registers[0x0] is first


def test_duplicate_register_in_bank():
    router = LocalRouter()
    with pytest.raises(ValueError):
        router.add_register_bank([Register(addr=0x0), Register(addr=0x0)])


def test_unmapped_address_raises():
    router = LocalRouter("periph")
    router.add_start_size_mapping(0x0, 0x10).register_handler(lambda t, d: None)
    with pytest.raises(RuntimeError, match="name=periph, addr=0x20"):
        router.transport(_read(0x20, 4), 0)


def test_start_size_mapping_end():
    router = LocalRouter()
    mapping = router.add_start_size_mapping(0x1000, 0x40, READ_ONLY)
    assert mapping.end == 0x1000 + 0x40
    assert mapping.mode is READ_ONLY
    assert router.maps == [mapping]


def test_router_uses_memory_mapping():
    memory = bytearray(32)
    router = LocalRouter()
    router.add_start_end_mapping(0x100, 0x120).register_handler(
        lambda t, d: execute_memory_access(t, memory)
    )
    router.transport(_write(0x104, b"\xde\xad"), 0)
    trans = _read(0x104, 2)
    router.transport(trans, 0)
    assert bytes(trans.data) == b"\xde\xad"
    assert memory[4:6] == bytearray(b"\xde\xad")