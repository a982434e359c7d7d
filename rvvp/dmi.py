"""Direct access to a block of simulated memory."""

from __future__ import annotations


class MemoryDMI:
    """A byte buffer mapped at a global address range [start, end)."""

    def __init__(self, mem: bytearray, start: int, size: int) -> None:
        if len(mem) < size:
            raise ValueError("backing memory smaller than the mapping")
        self.mem = mem
        self.start = start
        self.size = size

    @property
    def end(self) -> int:
        return self.start + self.size

    @classmethod
    def create_start_end_mapping(cls, mem: bytearray, start: int, end: int) -> MemoryDMI:
        if end <= start:
            raise ValueError("mapping end must lie after its start")
        return cls.create_start_size_mapping(mem, start, end - start)

    @classmethod
    def create_start_size_mapping(cls, mem: bytearray, start: int, size: int) -> MemoryDMI:
        if size <= 0:
            raise ValueError("mapping size must be positive")
        return cls(mem, start, size)

    def contains(self, addr: int) -> bool:
        return self.start <= addr < self.end

    def _offset(self, addr: int, size: int) -> int:
        if not self.contains(addr) or addr + size > self.end:
            raise IndexError(f"access of {size} bytes at 0x{addr:x} outside mapping")
        return addr - self.start

    def load(self, addr: int, size: int) -> int:
        """Read an unsigned little-endian integer of *size* bytes at global *addr*."""
        off = self._offset(addr, size)
        return int.from_bytes(self.mem[off : off + size], "little")

    def store(self, addr: int, value: int, size: int) -> None:
        """Write *value*, truncated to *size* bytes, little-endian at *addr*."""
        off = self._offset(addr, size)
        value &= (1 << (8 * size)) - 1
        self.mem[off : off + size] = value.to_bytes(size, "little")