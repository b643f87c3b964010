"""
CLI entrypoint for dirdigest package.
"""
import argparse
import sys
from typing import List, NoReturn, Optional

from colorama import Fore, Style, init as colorama_init

from . import __version__
from .core import DEFAULT_MAX_SIZE_KB, DEFAULT_OUTPUT, build_digest
from .errors import DigestError


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {number}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dirdigest",
        description=(
            "Generate a directory content digest, "
            "intelligently excluding non-source files."
        ),
    )
    p.add_argument(
        "path",
        nargs="?",
        default=".",
        help="The root directory to process (default: current directory)",
    )
    p.add_argument(
        "-i",
        "--include",
        action="append",
        default=[],
        metavar="GLOB",
        help="Glob pattern for files to include. If used, only matching files are included.",
    )
    p.add_argument(
        "-e",
        "--exclude",
        action="append",
        default=[],
        metavar="GLOB",
        help="Additional glob pattern for files or directories to exclude.",
    )
    p.add_argument(
        "--max-size",
        type=_non_negative_int,
        default=DEFAULT_MAX_SIZE_KB,
        metavar="KB",
        help=f"Maximum file size in KB for content inclusion (default: {DEFAULT_MAX_SIZE_KB})",
    )
    p.add_argument(
        "-o",
        "--output",
        default=DEFAULT_OUTPUT,
        help=f"Output file name (default: {DEFAULT_OUTPUT})",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _fail(msg: str) -> NoReturn:
    print(Fore.RED + msg + Style.RESET_ALL, file=sys.stderr)
    sys.exit(1)


def main(argv: Optional[List[str]] = None) -> None:
    """Run discover → classify → render → write to produce the digest."""
    ns = _build_parser().parse_args(argv)
    colorama_init()
    try:
        build_digest(
            ns.path,
            output=ns.output,
            include=ns.include,
            exclude=ns.exclude,
            max_size_kb=ns.max_size,
        )
    except DigestError as e:
        _fail(f"Error: {e}")
    except KeyboardInterrupt:
        _fail("\nOperation cancelled by user.")


if __name__ == "__main__":
    main()
