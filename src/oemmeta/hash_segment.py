"""Heuristic HASH-segment header scan and OEM version extraction.

The HASH segment header has no magic number. It is recognized by five
consecutive little-endian u32 fields (version, common size, QTI size,
OEM size, hash-table size) whose values are plausible and whose declared
regions fit inside the segment. The OEM metadata (major, minor,
anti-rollback) follows the common and QTI regions.

Everything here operates on an in-memory ``bytes`` buffer; no file I/O.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from dataclasses import dataclass
from typing import cast

from .limits import HASH_HEADER_BYTES, OEM_FIELDS_BYTES, ScanLimits
from .schema import JsonValue

TraceSink = Callable[[str], None]


@dataclass(frozen=True)
class CandidateHeader:
    offset: int
    version: int
    common_size: int
    qti_size: int
    oem_size: int
    hash_table_size: int

    @property
    def oem_offset(self) -> int:
        return self.offset + HASH_HEADER_BYTES + self.common_size + self.qti_size


@dataclass(frozen=True)
class OemMetadata:
    major: int
    minor: int
    anti_rollback: int
    segment_index: int
    segment_offset: int
    header_offset: int
    oem_offset: int

    def to_json(self) -> dict[str, JsonValue]:
        return {
            "major": self.major,
            "minor": self.minor,
            "anti_rollback": self.anti_rollback,
            "segment_index": self.segment_index,
            "segment_offset": self.segment_offset,
            "header_offset": self.header_offset,
            "oem_offset": self.oem_offset,
        }


def _u32le_fields(buf: bytes, off: int, count: int) -> tuple[int, ...]:
    return cast(tuple[int, ...], struct.unpack_from(f"<{count}I", buf, off))


def read_hash_header(seg: bytes, off: int) -> CandidateHeader | None:
    if off < 0 or off + HASH_HEADER_BYTES > len(seg):
        return None
    version, common_size, qti_size, oem_size, hash_table_size = _u32le_fields(
        seg, off, 5
    )
    return CandidateHeader(
        offset=off,
        version=version,
        common_size=common_size,
        qti_size=qti_size,
        oem_size=oem_size,
        hash_table_size=hash_table_size,
    )


def is_plausible_header(
    hdr: CandidateHeader, seg_len: int, limits: ScanLimits
) -> bool:
    if not (limits.min_version <= hdr.version <= limits.max_version):
        return False
    if (
        hdr.common_size > limits.max_common_size
        or hdr.qti_size > limits.max_qti_size
        or hdr.oem_size > limits.max_oem_size
    ):
        return False
    if hdr.hash_table_size == 0 or hdr.hash_table_size > limits.max_hash_table_size:
        return False
    if (
        limits.hash_table_multiple
        and hdr.hash_table_size % int(limits.hash_table_multiple) != 0
    ):
        return False
    declared_end = (
        hdr.offset + HASH_HEADER_BYTES + hdr.common_size + hdr.qti_size + hdr.oem_size
    )
    return declared_end <= seg_len


def find_hash_header(
    seg: bytes,
    *,
    limits: ScanLimits | None = None,
    segment_offset: int = 0,
    trace: TraceSink | None = None,
) -> int | None:
    """Return the first aligned offset holding a plausible header, or None.

    Only the first ``scan_window_bytes`` of the segment are examined. The
    first match wins; later offsets are never considered.
    """

    lim = limits or ScanLimits()
    seg_len = len(seg)
    for off in range(0, min(lim.scan_window_bytes, seg_len), lim.scan_stride):
        hdr = read_hash_header(seg, off)
        if hdr is None:
            break
        if not is_plausible_header(hdr, seg_len, lim):
            continue

        if trace is not None:
            trace(
                f"Segment at file offset 0x{segment_offset:x}: possible header at "
                f"offset +0x{off:x} (file 0x{segment_offset + off:x}) "
                f"version={hdr.version} common={hdr.common_size} qti={hdr.qti_size} "
                f"oem={hdr.oem_size} hash_table={hdr.hash_table_size}"
            )
        return off
    return None


def extract_oem_metadata(
    seg: bytes,
    header_offset: int,
    *,
    limits: ScanLimits | None = None,
    segment_index: int = 0,
    segment_offset: int = 0,
    trace: TraceSink | None = None,
) -> OemMetadata | None:
    lim = limits or ScanLimits()
    hdr = read_hash_header(seg, header_offset)
    if hdr is None:
        return None

    oem_off = hdr.oem_offset
    if oem_off + OEM_FIELDS_BYTES > len(seg):
        if trace is not None:
            trace(
                f" -> OEM region at +0x{oem_off:x} runs past segment end "
                f"(segment size 0x{len(seg):x}); rejecting"
            )
        return None

    major, minor, arb = _u32le_fields(seg, oem_off, 3)

    if (
        major > lim.max_oem_version
        or minor > lim.max_oem_version
        or arb > lim.max_anti_rollback
    ):
        if trace is not None:
            trace(
                f" -> OEM values out of range at +0x{oem_off:x}: "
                f"major={major}, minor={minor}, arb={arb}; rejecting"
            )
        return None

    if trace is not None:
        trace(
            f" -> OEM at +0x{oem_off:x} (file 0x{segment_offset + oem_off:x}): "
            f"major={major}, minor={minor}, arb={arb}"
        )

    return OemMetadata(
        major=major,
        minor=minor,
        anti_rollback=arb,
        segment_index=segment_index,
        segment_offset=segment_offset,
        header_offset=header_offset,
        oem_offset=oem_off,
    )


def scan_segment(
    seg: bytes,
    *,
    limits: ScanLimits | None = None,
    segment_index: int = 0,
    segment_offset: int = 0,
    trace: TraceSink | None = None,
) -> OemMetadata | None:
    lim = limits or ScanLimits()
    header_off = find_hash_header(
        seg, limits=lim, segment_offset=segment_offset, trace=trace
    )
    if header_off is None:
        return None
    return extract_oem_metadata(
        seg,
        header_off,
        limits=lim,
        segment_index=segment_index,
        segment_offset=segment_offset,
        trace=trace,
    )
