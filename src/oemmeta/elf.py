"""Minimal ELF64 little-endian header and program-header reading.

Only the fields needed to locate segment bytes are decoded: the identity
bytes, the program-header table location/shape, and each entry's type,
file offset and file size.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import IO, cast

from .errors import (
    INVALID_PROGRAM_HEADER_TABLE,
    NOT_RECOGNIZED_CONTAINER,
    UNSUPPORTED_BYTE_ORDER,
    UNSUPPORTED_WORD_WIDTH,
    ContainerFormatError,
    ProgramHeaderTableError,
    TruncatedReadError,
)

ELF_MAGIC = b"\x7fELF"
ELF_HEADER_BYTES = 64
PHDR_PREFIX_BYTES = 56

_EI_CLASS = 4
_EI_DATA = 5
_ELFCLASS64 = 2
_ELFDATA2LSB = 1

_E_PHOFF = 0x20
_E_PHENTSIZE = 0x36
_E_PHNUM = 0x38

_P_TYPE = 0
_P_OFFSET = 8
_P_FILESZ = 32

PT_NULL = 0


def _u16le(buf: bytes, off: int) -> int:
    return int(cast(tuple[int], struct.unpack_from("<H", buf, off))[0])


def _u32le(buf: bytes, off: int) -> int:
    return int(cast(tuple[int], struct.unpack_from("<I", buf, off))[0])


def _u64le(buf: bytes, off: int) -> int:
    return int(cast(tuple[int], struct.unpack_from("<Q", buf, off))[0])


@dataclass(frozen=True)
class ContainerHeader:
    phoff: int
    phentsize: int
    phnum: int


@dataclass(frozen=True)
class ProgramHeaderEntry:
    index: int
    p_type: int
    offset: int
    filesz: int


def read_at(f: IO[bytes], offset: int, size: int, *, what: str) -> bytes:
    try:
        _ = f.seek(int(offset))
    except (OverflowError, ValueError):
        raise TruncatedReadError(what, offset=offset, wanted=size, got=0) from None
    data = f.read(int(size))
    if len(data) != int(size):
        raise TruncatedReadError(what, offset=offset, wanted=size, got=len(data))
    return data


def parse_container_header(buf: bytes) -> ContainerHeader:
    if len(buf) < ELF_HEADER_BYTES:
        raise TruncatedReadError(
            "ELF header", offset=0, wanted=ELF_HEADER_BYTES, got=len(buf)
        )

    if buf[:4] != ELF_MAGIC:
        raise ContainerFormatError(NOT_RECOGNIZED_CONTAINER, "Not an ELF file")
    if buf[_EI_CLASS] != _ELFCLASS64:
        raise ContainerFormatError(
            UNSUPPORTED_WORD_WIDTH,
            f"Not a 64-bit ELF file (EI_CLASS={buf[_EI_CLASS]})",
        )
    if buf[_EI_DATA] != _ELFDATA2LSB:
        raise ContainerFormatError(
            UNSUPPORTED_BYTE_ORDER,
            f"Not a little-endian ELF file (EI_DATA={buf[_EI_DATA]})",
        )

    hdr = ContainerHeader(
        phoff=_u64le(buf, _E_PHOFF),
        phentsize=_u16le(buf, _E_PHENTSIZE),
        phnum=_u16le(buf, _E_PHNUM),
    )
    if hdr.phentsize < PHDR_PREFIX_BYTES or hdr.phnum == 0:
        raise ProgramHeaderTableError(
            INVALID_PROGRAM_HEADER_TABLE,
            f"Invalid program header table (e_phentsize={hdr.phentsize} e_phnum={hdr.phnum})",
        )
    return hdr


def read_container_header(f: IO[bytes]) -> ContainerHeader:
    return parse_container_header(
        read_at(f, 0, ELF_HEADER_BYTES, what="ELF header")
    )


def read_program_headers(
    f: IO[bytes], hdr: ContainerHeader
) -> list[ProgramHeaderEntry]:
    entries: list[ProgramHeaderEntry] = []
    for i in range(hdr.phnum):
        raw = read_at(
            f,
            hdr.phoff + i * hdr.phentsize,
            PHDR_PREFIX_BYTES,
            what=f"program header {i}",
        )
        entries.append(
            ProgramHeaderEntry(
                index=i,
                p_type=_u32le(raw, _P_TYPE),
                offset=_u64le(raw, _P_OFFSET),
                filesz=_u64le(raw, _P_FILESZ),
            )
        )
    return entries
