"""Building blocks for a RISC-V virtual platform: register maps, routing, ELF loading, MMU, CLINT and a symbolic control peripheral."""

__version__ = "0.1.0"