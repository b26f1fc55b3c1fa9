from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .elf import PT_NULL, ProgramHeaderEntry
from .limits import ScanLimits
from .schema import JsonValue

SEGMENT_EXCEEDS_FILE = "SEGMENT_EXCEEDS_FILE"
SEGMENT_TOO_LARGE = "SEGMENT_TOO_LARGE"

CandidateTier = Literal["priority", "fallback"]


@dataclass(frozen=True)
class SegmentWarning:
    token: str
    index: int
    offset: int
    size: int
    message: str

    def to_json(self) -> dict[str, JsonValue]:
        return {
            "token": self.token,
            "index": self.index,
            "offset": self.offset,
            "size": self.size,
            "message": self.message,
        }


@dataclass(frozen=True)
class SegmentCandidate:
    index: int
    offset: int
    size: int
    tier: CandidateTier


@dataclass(frozen=True)
class CandidatePlan:
    priority: tuple[SegmentCandidate, ...] = ()
    fallback: tuple[SegmentCandidate, ...] = ()
    warnings: tuple[SegmentWarning, ...] = ()

    def groups(
        self,
    ) -> tuple[tuple[CandidateTier, tuple[SegmentCandidate, ...]], ...]:
        return (("priority", self.priority), ("fallback", self.fallback))


def classify_segments(
    entries: Sequence[ProgramHeaderEntry],
    *,
    file_size: int,
    limits: ScanLimits | None = None,
) -> CandidatePlan:
    """Split program headers into scan-ordered candidate groups.

    Empty segments are dropped silently. Segments reaching past EOF or larger
    than the per-segment cap are dropped with a warning. PT_NULL segments go
    first; every other type is kept, in table order, as a fallback.
    """

    lim = limits or ScanLimits()
    priority: list[SegmentCandidate] = []
    fallback: list[SegmentCandidate] = []
    warnings: list[SegmentWarning] = []

    for ent in entries:
        if ent.filesz == 0:
            continue
        if ent.offset + ent.filesz > int(file_size):
            warnings.append(
                SegmentWarning(
                    token=SEGMENT_EXCEEDS_FILE,
                    index=ent.index,
                    offset=ent.offset,
                    size=ent.filesz,
                    message=f"segment {ent.index} exceeds file size, skipping",
                )
            )
            continue
        if ent.filesz > int(lim.max_segment_bytes):
            warnings.append(
                SegmentWarning(
                    token=SEGMENT_TOO_LARGE,
                    index=ent.index,
                    offset=ent.offset,
                    size=ent.filesz,
                    message=f"segment {ent.index} too large ({ent.filesz} bytes), skipping",
                )
            )
            continue

        if ent.p_type == PT_NULL:
            priority.append(
                SegmentCandidate(
                    index=ent.index, offset=ent.offset, size=ent.filesz, tier="priority"
                )
            )
        else:
            fallback.append(
                SegmentCandidate(
                    index=ent.index, offset=ent.offset, size=ent.filesz, tier="fallback"
                )
            )

    return CandidatePlan(
        priority=tuple(priority), fallback=tuple(fallback), warnings=tuple(warnings)
    )
