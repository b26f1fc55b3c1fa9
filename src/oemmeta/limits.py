from __future__ import annotations

from dataclasses import dataclass, replace

HASH_HEADER_BYTES = 36
OEM_FIELDS_BYTES = 12


@dataclass(frozen=True)
class ScanLimits:
    scan_window_bytes: int = 0x1000
    scan_stride: int = 4
    min_version: int = 1
    max_version: int = 1000
    max_common_size: int = 0x1000
    max_qti_size: int = 0x1000
    max_oem_size: int = 0x4000
    max_hash_table_size: int = 0x10000
    hash_table_multiple: int | None = None
    max_segment_bytes: int = 20 * 1024 * 1024
    max_oem_version: int = 1000
    max_anti_rollback: int = 127

    def strict(self) -> ScanLimits:
        """Same bounds, plus the hash table must hold whole 32-byte digests."""
        return replace(self, hash_table_multiple=32)
