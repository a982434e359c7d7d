[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rvvp"
version = "0.1.0"
description = "Building blocks for a RISC-V virtual platform: memory-mapped registers, address routing, ELF loading, Sv paging MMU, CLINT timer and a symbolic-execution control peripheral."
requires-python = ">=3.10"
dependencies = []
keywords = ["riscv", "virtual-platform", "emulator", "mmu", "elf", "clint", "tlm"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rvvp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
