from __future__ import annotations

import io
import struct

import pytest

from oemmeta.elf import (
    parse_container_header,
    read_container_header,
    read_program_headers,
)
from oemmeta.errors import (
    INVALID_PROGRAM_HEADER_TABLE,
    NOT_RECOGNIZED_CONTAINER,
    UNSUPPORTED_BYTE_ORDER,
    UNSUPPORTED_WORD_WIDTH,
    ContainerFormatError,
    ProgramHeaderTableError,
    TruncatedReadError,
)


def _ehdr(
    *,
    phoff: int = 64,
    phnum: int = 1,
    phentsize: int = 56,
    magic: bytes = b"\x7fELF",
    ei_class: int = 2,
    ei_data: int = 1,
) -> bytes:
    ident = magic + bytes([ei_class, ei_data, 1, 0]) + (b"\x00" * 8)
    return struct.pack(
        "<16sHHIQQQIHHHHHH",
        ident,
        2,
        0xB7,
        1,
        0,
        phoff,
        0,
        0,
        64,
        phentsize,
        phnum,
        0,
        0,
        0,
    )


def _phdr(p_type: int, offset: int, filesz: int) -> bytes:
    return struct.pack("<IIQQQQQQ", p_type, 4, offset, 0, 0, filesz, filesz, 0x1000)


def test_valid_header_yields_table_shape() -> None:
    hdr = parse_container_header(_ehdr(phoff=0x40, phnum=3, phentsize=56))
    assert (hdr.phoff, hdr.phnum, hdr.phentsize) == (0x40, 3, 56)


@pytest.mark.parametrize(
    ("magic", "ei_class", "ei_data", "token"),
    [
        (b"MZ\x90\x00", 2, 1, NOT_RECOGNIZED_CONTAINER),
        (b"\x7fELF", 1, 1, UNSUPPORTED_WORD_WIDTH),
        (b"\x7fELF", 2, 2, UNSUPPORTED_BYTE_ORDER),
    ],
)
def test_identity_checks_raise_distinct_tokens(
    magic: bytes, ei_class: int, ei_data: int, token: str
) -> None:
    hdr = _ehdr(magic=magic, ei_class=ei_class, ei_data=ei_data)
    with pytest.raises(ContainerFormatError) as exc:
        _ = parse_container_header(hdr)
    assert exc.value.token == token


def test_signature_checked_before_word_width_and_byte_order() -> None:
    with pytest.raises(ContainerFormatError) as exc:
        _ = parse_container_header(_ehdr(magic=b"\x7fELG", ei_class=1, ei_data=2))
    assert exc.value.token == NOT_RECOGNIZED_CONTAINER

    with pytest.raises(ContainerFormatError) as exc2:
        _ = parse_container_header(_ehdr(ei_class=1, ei_data=2))
    assert exc2.value.token == UNSUPPORTED_WORD_WIDTH


@pytest.mark.parametrize(("phentsize", "phnum"), [(55, 1), (32, 4), (56, 0)])
def test_unusable_program_header_table(phentsize: int, phnum: int) -> None:
    with pytest.raises(ProgramHeaderTableError) as exc:
        _ = parse_container_header(_ehdr(phentsize=phentsize, phnum=phnum))
    assert exc.value.token == INVALID_PROGRAM_HEADER_TABLE


def test_format_error_raised_before_program_headers_are_read() -> None:
    # table offset points far past EOF; a read attempt would be a short read
    f = io.BytesIO(_ehdr(phoff=0xFFFF_FFFF, ei_data=2))
    with pytest.raises(ContainerFormatError):
        _ = read_container_header(f)


def test_short_file_is_an_io_failure() -> None:
    with pytest.raises(TruncatedReadError):
        _ = read_container_header(io.BytesIO(b"\x7fELF\x02\x01"))


def test_program_headers_read_in_table_order() -> None:
    blob = _ehdr(phoff=64, phnum=3) + b"".join(
        [
            _phdr(1, 0x1000, 0x200),
            _phdr(0, 0x2000, 0x80),
            _phdr(6, 0x40, 0xA8),
        ]
    )
    f = io.BytesIO(blob)
    hdr = read_container_header(f)
    entries = read_program_headers(f, hdr)

    assert [e.index for e in entries] == [0, 1, 2]
    assert [e.p_type for e in entries] == [1, 0, 6]
    assert [e.offset for e in entries] == [0x1000, 0x2000, 0x40]
    assert [e.filesz for e in entries] == [0x200, 0x80, 0xA8]


def test_program_headers_honor_larger_entry_size() -> None:
    pad = b"\xee" * 8
    blob = _ehdr(phoff=64, phnum=2, phentsize=64) + b"".join(
        [_phdr(0, 0x300, 0x10) + pad, _phdr(1, 0x400, 0x20) + pad]
    )
    f = io.BytesIO(blob)
    entries = read_program_headers(f, read_container_header(f))

    assert [(e.p_type, e.offset, e.filesz) for e in entries] == [
        (0, 0x300, 0x10),
        (1, 0x400, 0x20),
    ]


def test_truncated_program_header_table_is_an_io_failure() -> None:
    blob = _ehdr(phoff=64, phnum=2) + _phdr(0, 0x100, 0x10)
    f = io.BytesIO(blob)
    hdr = read_container_header(f)
    with pytest.raises(TruncatedReadError) as exc:
        _ = read_program_headers(f, hdr)
    assert exc.value.offset == 64 + 56
    assert exc.value.got == 0
    assert isinstance(exc.value, OSError)


def test_table_offset_beyond_seekable_range_is_an_io_failure() -> None:
    f = io.BytesIO(_ehdr(phoff=2**64 - 8, phnum=1) + _phdr(0, 0x80, 0x20))
    hdr = read_container_header(f)
    with pytest.raises(TruncatedReadError) as exc:
        _ = read_program_headers(f, hdr)
    assert exc.value.offset == 2**64 - 8
    assert exc.value.got == 0
