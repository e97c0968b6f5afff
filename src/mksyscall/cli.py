#!/usr/bin/env python3
"""
mksyscall: read //sys prototypes and write the Go system call shims.

A line beginning with //sys declares a call that may block; //sysnb (or
//sys-nonblocking) declares one that must never block and is dispatched
through the raw primitives. Prototypes read like Go func declarations with
every parameter named and typed:

    //sys	open(path string, mode int, perm uint32) (fd int, err error)
    //sysnb	getpid() (pid int)
    //sys	lseek(fd int, offset int64, whence int) (off int64, err error) = SYS_LSEEK
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from mksyscall.emit import EmitOptions, format_source, generate
from mksyscall.errors import GenerateError
from mksyscall.model import Function
from mksyscall.parser import parse_package_clause, scan_lines
from mksyscall.target import OSFamily, TargetProfile

_LOGGER: logging.Logger = logging.getLogger(__name__)

PROG = "mksyscall"
DEFAULT_PACKAGE = "unix"


def _write_text_unix(path: Path, text: str) -> None:
    path.write_bytes(text.encode("utf-8"))


def read_source(path: Path) -> Tuple[List[Function], Optional[str]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise GenerateError(f"{path.as_posix()}: {e.strerror or e}") from e
    except UnicodeDecodeError as e:
        raise GenerateError(f"{path.as_posix()}: not valid UTF-8 text ({e.reason} at byte {e.start})") from e

    package: Optional[str] = None
    for line in lines:
        package = parse_package_clause(line)
        if package is not None:
            break
    functions = list(scan_lines(lines, source=path.as_posix()))
    _LOGGER.debug("%s: %d prototypes", path.as_posix(), len(functions))
    return functions, package


def read_sources(paths: Sequence[Path]) -> Tuple[List[Function], Optional[str]]:
    functions: List[Function] = []
    package: Optional[str] = None
    for path in paths:
        found, pkg = read_source(path)
        functions.extend(found)
        if pkg is not None:
            package = pkg
    return functions, package


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Generate Go system call shims from //sys prototypes.",
    )
    width = parser.add_mutually_exclusive_group()
    width.add_argument("-b32", "--b32", dest="b32", action="store_true", help="32-bit big-endian.")
    width.add_argument("-l32", "--l32", dest="l32", action="store_true", help="32-bit little-endian.")

    family = parser.add_mutually_exclusive_group()
    for fam in (OSFamily.PLAN9, OSFamily.OPENBSD, OSFamily.NETBSD, OSFamily.DRAGONFLY):
        family.add_argument(
            f"-{fam.value}",
            f"--{fam.value}",
            dest="os_family",
            action="store_const",
            const=fam,
            help=f"Target the {fam.value} calling conventions.",
        )
    parser.set_defaults(os_family=OSFamily.GENERIC)

    parser.add_argument("-arm", "--arm", dest="arm", action="store_true", help="ARM 64-bit argument alignment.")
    parser.add_argument("-tags", "--tags", dest="tags", default="", help="Build tags, e.g. linux,386.")
    parser.add_argument(
        "-output",
        "--output",
        dest="output",
        default="",
        help="Output file name (standard output if omitted).",
    )
    parser.add_argument(
        "-trace", "--trace", dest="trace", action="store_true", help="Print every system call made."
    )
    parser.add_argument(
        "-package",
        "--package",
        dest="package",
        default="",
        help=f"Output package (defaults to the inputs' package clause, else {DEFAULT_PACKAGE}).",
    )
    parser.add_argument(
        "-gofmt", "--gofmt", dest="gofmt", action="store_true", help="Run the output through gofmt."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    parser.add_argument("files", nargs="*", help="Go source files holding //sys prototypes.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=f"{PROG}: %(levelname)s: %(message)s",
    )

    if not args.files:
        parser.error("no files to parse provided")

    profile = TargetProfile.from_flags(
        b32=args.b32, l32=args.l32, os_family=args.os_family, arm=args.arm
    )

    try:
        functions, detected = read_sources([Path(f) for f in args.files])
        if not functions:
            raise GenerateError("no //sys prototypes found in the input files")
        opts = EmitOptions(
            package=args.package or detected or DEFAULT_PACKAGE,
            command_line=" ".join([PROG, *argv]),
            tags=args.tags,
            trace=args.trace,
        )
        text = generate(functions, profile, opts)
        if args.gofmt:
            text = format_source(text)

        if args.output:
            out = Path(args.output)
            try:
                out.parent.mkdir(parents=True, exist_ok=True)
                _write_text_unix(out, text)
            except OSError as e:
                raise GenerateError(f"{out.as_posix()}: {e.strerror or e}") from e
        else:
            sys.stdout.write(text)
        return 0
    except GenerateError as e:
        print(f"{PROG}: ERROR: {e}", file=sys.stderr)
        return 2


def console_main() -> None:
    raise SystemExit(main(sys.argv[1:]))


if __name__ == "__main__":
    console_main()
