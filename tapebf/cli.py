from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import BinaryIO, Optional

from .byteio import BytesSource, StreamReader, StreamWriter, from_text
from .executor import Executor, OutputError
from .translator import BracketMismatch, translate

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SOURCE_ERROR = 1
EXIT_BRACKET_MISMATCH = 2
EXIT_OUTPUT_ERROR = 3


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(
    argv: Optional[list[str]] = None,
    *,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
) -> int:
    parser = argparse.ArgumentParser(description="Run a tape-language program")
    program_group = parser.add_mutually_exclusive_group(required=True)
    program_group.add_argument("source", nargs="?", help="Path to the program file")
    program_group.add_argument(
        "-e",
        "--expr",
        metavar="CODE",
        help="Program text to run instead of a file; write --expr=CODE when CODE starts with '-'",
    )
    parser.add_argument(
        "--input",
        default=None,
        help="Input string supplied to the program (default: read from stdin)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log translation and execution details to stderr",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.expr is not None:
        source_text = args.expr
    else:
        try:
            source_text = _read_source(args.source)
        except (OSError, UnicodeDecodeError) as exc:
            print(str(exc), file=sys.stderr)
            return EXIT_SOURCE_ERROR

    try:
        program = translate(source_text)
    except BracketMismatch as exc:
        print(f"Translation error: {exc}", file=sys.stderr)
        return EXIT_BRACKET_MISMATCH

    if args.input is not None:
        try:
            reader = BytesSource(from_text(args.input))
        except ValueError as exc:
            print(f"Invalid input: {exc}", file=sys.stderr)
            return EXIT_SOURCE_ERROR
    else:
        reader = StreamReader(stdin if stdin is not None else sys.stdin.buffer)

    writer = StreamWriter(stdout if stdout is not None else sys.stdout.buffer)
    executor = Executor(reader, writer)
    try:
        steps = executor.run(program)
    except OutputError as exc:
        print(f"Output error: {exc}", file=sys.stderr)
        return EXIT_OUTPUT_ERROR
    logger.info("executed %d operations", steps)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
