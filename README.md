# rvvp

Pure-Python building blocks for modelling a RISC-V virtual platform. The package
is a library: it has no command-line program and no third-party dependencies.

## Modules

- `rvvp.common`: `ensure(cond, reason=None)` raises `RuntimeError` when the
  condition is false. `rv32_align_address` and `rv64_align_address` round an
  address down to a 4- or 8-byte boundary.
- `rvvp.enums`: `EnumMap` builds a sorted value-to-name table from an
  enumerator list such as `"A, B=0x10, C"`. It offers `name`, `successor` (which
  wraps around to the first value), `is_valid`, `len()`, iteration and `in`. The
  helpers `split_string` and `generate_enum_map` are also exported.
- `rvvp.options`: `parse_ulong_option` parses decimal or `0x`-prefixed
  hexadecimal unsigned numbers and raises `ValueError` when it cannot.
  `OptionValue` holds a raw option string and turns it into a value through
  `finalize(parser)`.
- `rvvp.trap`: the `ExceptionCode` and `InterruptCode` enums, and the
  `SimulationTrap` exception, which `raise_trap(exc, mtval)` raises.
- `rvvp.defs`: the shared enums `Architecture`, `CoreExecStatus`, `SatpMode`,
  `PrivilegeLevel` and `MemoryAccessType`. It also holds the abstract interfaces
  `LoadTarget`, `ClintInterface`, `ClintInterruptTarget`,
  `ExternalInterruptTarget`, `InterruptGateway`, `MmuMemory`, `BusLock` and
  `DebugTarget`.
- `rvvp.memory_map`: the memory-mapped register file.
  - `Transaction` has a `Command`, an address, a data `bytearray` and a
    `ResponseStatus`.
  - `RegisterRange` is a byte-addressable register block with optional pre- and
    post-callbacks for reads and writes.
  - `IntegerView` and `ArrayView` read and write little-endian integers inside a
    range.
  - `route` passes a transaction to the first range that contains its address.
- `rvvp.tlm_map`: `LocalRouter` dispatches transactions to its mappings.
  - `AddressMapping` forwards accesses in `[start, end)` to a handler, with the
    address made relative to `start`.
  - `RegisterMapping` serves a bank of 32-bit `Register`s through one handler.
    The handler receives a `RegisterAccess` and calls its `perform()` to carry
    out the access.
  - `AccessMode` restricts which commands are accepted.
  - `execute_memory_access` applies a transaction directly to a `bytearray`.
- `rvvp.dmi`: `MemoryDMI` performs little-endian `load` and `store` of
  integers at global addresses backed by a `bytearray`.
- `rvvp.elf_loader`: `ElfLoader` reads 32- and 64-bit ELF images in either byte
  order.
  - It lists loadable segments, sections and symbols.
  - `load_executable_image` copies the segments that fall within a memory window
    into any `LoadTarget` and zero-fills `.bss`-style tails.
  - It reports the entry point, the heap address and the `begin_signature`,
    `end_signature` and `tohost` symbols.
  - Malformed images raise `ElfError`.
- `rvvp.mmu`: `Mmu` translates virtual addresses using the state in a
  `CoreState`. It walks Sv32, Sv39, Sv48, Sv57 and Sv64 page tables through an
  `MmuMemory`, and sets the A and D bits unless `page_fault_on_ad` is set. It
  caches translations in a TLB keyed by privilege mode and access type. A page
  fault raises `SimulationTrap`.
- `rvvp.clint`: `Clint` is the core-local interruptor.
  - Its `msip` (0x0), `mtimecmp` (0x4000) and `mtime` (0xBFF8) registers are
    reached through `transport`.
  - `evaluate()` raises or clears each hart's timer interrupt. It returns the
    delay, in picoseconds, after which it should be called again, or `None`.
- `rvvp.symbolic_ctrl`: `SymbolicCtrl` is a peripheral with three 32-bit
  registers.
  - Writing the address register (0x0) and then the size register (0x4) calls
    `make_symbolic` on a `SymbolicInterface`.
  - In the control register (0x8), bit 31 reports an error through `on_error`
    and then exits the path. Bit 30 only exits the path. By default `on_error`
    raises `RuntimeError`.

## Example

```python
from rvvp.clint import Clint
from rvvp.defs import ClintInterruptTarget
from rvvp.memory_map import Command, Transaction


class Hart(ClintInterruptTarget):
    def __init__(self):
        self.timer = False
        self.software = False

    def trigger_timer_interrupt(self, status):
        self.timer = status

    def trigger_software_interrupt(self, status):
        self.software = status


now_ps = 0
hart = Hart()
clint = Clint(1, clock=lambda: now_ps)
clint.target_harts[0] = hart

# Program mtimecmp of hart 0 to 5 microseconds.
write = Transaction(Command.WRITE, 0x4000, bytearray((5).to_bytes(8, "little")))
clint.transport(write, 0)

print(clint.evaluate())   # 5000000: check again after 5 us
now_ps = 5_000_000
clint.evaluate()
print(hart.timer)          # True
```

## What is not included

The package provides components, not a complete platform. It has none of the
following:

- an instruction decoder or executor;
- a system bus or a simulation kernel that schedules events;
- a symbolic solver;
- a debugger server;
- a command-line program.

Time is passed around as plain integers (picoseconds). Calling `Clint.evaluate`
again after the delay it returns is the caller's job.

## Running the tests

```
pip install -e .[test]
pytest
```