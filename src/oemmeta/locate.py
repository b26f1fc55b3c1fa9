from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import IO

from .candidates import SegmentCandidate, SegmentWarning, classify_segments
from .elf import read_at, read_container_header, read_program_headers
from .errors import NO_VALID_HASH_SEGMENT, MetadataNotFoundError
from .hash_segment import OemMetadata, TraceSink, scan_segment
from .limits import ScanLimits

WarningSink = Callable[[SegmentWarning], None]


def _scan_group(
    f: IO[bytes],
    candidates: Sequence[SegmentCandidate],
    *,
    limits: ScanLimits,
    trace: TraceSink | None,
) -> OemMetadata | None:
    for cand in candidates:
        if trace is not None:
            trace(
                f"Scanning {cand.tier} segment {cand.index} at file offset "
                f"0x{cand.offset:x} (size 0x{cand.size:x})"
            )
        seg = read_at(f, cand.offset, cand.size, what=f"segment {cand.index}")
        info = scan_segment(
            seg,
            limits=limits,
            segment_index=cand.index,
            segment_offset=cand.offset,
            trace=trace,
        )
        if info is not None:
            if trace is not None:
                trace(
                    f">>> SELECTED segment {info.segment_index} "
                    f"(offset 0x{info.segment_offset:x}) with header at "
                    f"+0x{info.header_offset:x}"
                )
            return info
    return None


def read_oem_metadata(
    f: IO[bytes],
    file_size: int,
    *,
    limits: ScanLimits | None = None,
    trace: TraceSink | None = None,
    warn: WarningSink | None = None,
) -> OemMetadata:
    """Locate the OEM version triple in an open ELF64 image.

    PT_NULL segments are scanned before all others and the first accepted
    match is returned. Raises ContainerFormatError / ProgramHeaderTableError
    for unusable headers, MetadataNotFoundError once every candidate has been
    tried, and OSError (including TruncatedReadError) for I/O failures.
    """

    lim = limits or ScanLimits()
    hdr = read_container_header(f)
    entries = read_program_headers(f, hdr)

    plan = classify_segments(entries, file_size=file_size, limits=lim)
    if warn is not None:
        for w in plan.warnings:
            warn(w)

    for _tier, group in plan.groups():
        info = _scan_group(f, group, limits=lim, trace=trace)
        if info is not None:
            return info

    raise MetadataNotFoundError(
        NO_VALID_HASH_SEGMENT, "No valid HASH segment with OEM metadata found"
    )


def locate_oem_metadata(
    image_path: Path,
    *,
    limits: ScanLimits | None = None,
    trace: TraceSink | None = None,
    warn: WarningSink | None = None,
) -> OemMetadata:
    with image_path.open("rb") as f:
        file_size = os.fstat(f.fileno()).st_size
        return read_oem_metadata(
            f, file_size, limits=limits, trace=trace, warn=warn
        )
