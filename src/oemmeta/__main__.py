"""Module entrypoint.

Allows: python -m oemmeta
"""

from __future__ import annotations

import argparse
import json
import sys
import textwrap
from collections.abc import Sequence
from pathlib import Path
from typing import cast

from . import __version__
from .candidates import SegmentWarning
from .errors import OemMetadataError
from .hash_segment import OemMetadata
from .limits import ScanLimits
from .locate import locate_oem_metadata
from .schema import JsonValue


def _build_parser() -> argparse.ArgumentParser:
    epilog = textwrap.dedent(
        """\
        Exit codes:
          0   Success
          20  Fatal error
        """
    )

    parser = argparse.ArgumentParser(
        prog="oemmeta",
        description="Print OEM major/minor/anti-rollback versions from an ELF64 boot image (e.g. xbl_config.img).",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _ = parser.add_argument(
        "--version",
        action="version",
        version=f"oemmeta {__version__}",
        help="Print version and exit.",
    )
    _ = parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Print scan diagnostics to stderr.",
    )
    _ = parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as a JSON object.",
    )
    _ = parser.add_argument(
        "--strict-hash-table",
        action="store_true",
        help="Only accept headers whose hash-table size is a multiple of 32.",
    )
    _ = parser.add_argument(
        "image",
        metavar="IMAGE",
        help="Path to the ELF64 little-endian image.",
    )
    return parser


def _format_human(image: str, info: OemMetadata) -> str:
    return (
        f"OEM Metadata from {image}:\n"
        f"  Major Version         : {info.major}\n"
        f"  Minor Version         : {info.minor}\n"
        f"  Anti-Rollback Version : {info.anti_rollback}\n"
    )


def _format_json(image: str, info: OemMetadata) -> str:
    payload: dict[str, JsonValue] = {"image": image}
    payload.update(info.to_json())
    return json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=True) + "\n"


def _report_error(token: str, message: str, *, as_json: bool) -> None:
    if as_json:
        err = {"error_token": token, "message": message}
        print(json.dumps(err, sort_keys=True, ensure_ascii=True), file=sys.stderr)
    else:
        print(f"Error: {message}", file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv))
    except SystemExit as e:
        return int(e.code) if isinstance(e.code, int) else 20

    image_raw = cast(str, getattr(args, "image"))
    debug = bool(getattr(args, "debug", False))
    as_json = bool(getattr(args, "json", False))
    limits = ScanLimits()
    if bool(getattr(args, "strict_hash_table", False)):
        limits = limits.strict()

    def trace(line: str) -> None:
        print(f"[DEBUG] {line}", file=sys.stderr)

    def warn(w: SegmentWarning) -> None:
        if as_json:
            line = json.dumps(w.to_json(), sort_keys=True, ensure_ascii=True)
            print(line, file=sys.stderr)
        else:
            print(f"Warning: {w.message}", file=sys.stderr)

    try:
        info = locate_oem_metadata(
            Path(image_raw),
            limits=limits,
            trace=trace if debug else None,
            warn=warn,
        )
    except OemMetadataError as e:
        _report_error(e.token, str(e), as_json=as_json)
        return 20
    except FileNotFoundError:
        _report_error(
            "INPUT_NOT_FOUND", f"Input image not found: {image_raw}", as_json=as_json
        )
        return 20
    except OSError as e:
        _report_error("IO_ERROR", f"I/O error: {e}", as_json=as_json)
        return 20

    if as_json:
        print(_format_json(image_raw, info), end="")
    else:
        print(_format_human(image_raw, info), end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
