"""Extract credential records from pasted text files (or stdin) and print them as JSON.

Usage:
    credvault-extract paste.txt other.txt --pretty
    cat paste.txt | credvault-extract --account-type Gmail
    credvault-extract paste.txt --detect
    credvault-extract --evaluate cases.json
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from credvault.analyzers import evaluate_cases, load_cases
from credvault.parsers import detect_grammar, extract

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "CREDVAULT_LOG_LEVEL"
STDIN_MARKER = "-"


def _configure_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, os.environ.get(LOG_LEVEL_ENV, "INFO").upper(), None)
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract credential records from pasted account text."
    )
    parser.add_argument(
        "files", nargs="*", default=[STDIN_MARKER],
        help="Text files to read; '-' or nothing reads stdin",
    )
    parser.add_argument(
        "--account-type", default="",
        help="Account type to stamp on every record instead of the guessed one",
    )
    parser.add_argument(
        "--detect", action="store_true",
        help="Only print the grammar each input would be parsed with",
    )
    parser.add_argument(
        "--evaluate", metavar="FIXTURE",
        help="Score extraction against a JSON file of labelled cases",
    )
    parser.add_argument(
        "--pretty", action="store_true",
        help="Indent JSON output",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help=f"Debug logging (otherwise ${LOG_LEVEL_ENV}, default INFO)",
    )
    return parser


def _read_input(name: str) -> str:
    if name == STDIN_MARKER:
        return sys.stdin.read()
    with open(name, encoding="utf-8") as f:
        return f.read()


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    indent = 2 if args.pretty else None

    if args.evaluate:
        try:
            cases = load_cases(args.evaluate)
        except (OSError, ValueError) as exc:
            print(f"ERROR: Cannot load evaluation fixture {args.evaluate}: {exc}", file=sys.stderr)
            return 1
        report = evaluate_cases(cases)
        print(json.dumps(report.to_dict(), indent=indent, ensure_ascii=False))
        return 0

    for name in args.files:
        try:
            text = _read_input(name)
        except (OSError, UnicodeDecodeError) as exc:
            print(f"ERROR: Cannot read {name}: {exc}", file=sys.stderr)
            return 1

        if args.detect:
            print(detect_grammar(text).name)
            continue

        records = extract(text, account_type=args.account_type)
        logger.info("%s: %d records", name, len(records))
        print(json.dumps([r.to_dict() for r in records], indent=indent, ensure_ascii=False))

    return 0


if __name__ == "__main__":
    sys.exit(main())
