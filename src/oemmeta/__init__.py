"""Recover OEM version metadata from ELF64 boot-image wrappers."""

__version__ = "0.1.0"
