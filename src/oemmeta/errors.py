from __future__ import annotations

NOT_RECOGNIZED_CONTAINER = "NOT_RECOGNIZED_CONTAINER"
UNSUPPORTED_WORD_WIDTH = "UNSUPPORTED_WORD_WIDTH"
UNSUPPORTED_BYTE_ORDER = "UNSUPPORTED_BYTE_ORDER"
INVALID_PROGRAM_HEADER_TABLE = "INVALID_PROGRAM_HEADER_TABLE"
NO_VALID_HASH_SEGMENT = "NO_VALID_HASH_SEGMENT"


class OemMetadataError(ValueError):
    def __init__(self, token: str, message: str) -> None:
        super().__init__(message)
        self.token: str = token


class ContainerFormatError(OemMetadataError):
    """The 64-byte file header is not an ELF64 little-endian header."""


class ProgramHeaderTableError(OemMetadataError):
    """The program-header table shape is unusable."""


class MetadataNotFoundError(OemMetadataError):
    """Every candidate segment was scanned without an accepted match."""


class TruncatedReadError(OSError):
    def __init__(self, what: str, *, offset: int, wanted: int, got: int) -> None:
        super().__init__(
            f"short read of {what} at offset 0x{offset:x}: wanted={wanted} got={got}"
        )
        self.offset: int = offset
        self.wanted: int = wanted
        self.got: int = got
