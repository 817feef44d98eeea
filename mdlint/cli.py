from __future__ import annotations
import argparse
import logging
import shutil
import sys
from typing import List, Optional

from mdlint.pipeline import LintConfig, LintInputError, run_lint
from mdlint.report import FAIL_ON_CHOICES, render_json, render_text, write_json

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_FATAL = 2


def _terminal_width() -> Optional[int]:
    if not sys.stdout.isatty():
        return None
    return shutil.get_terminal_size().columns


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mdlint",
        description="Check a tree of Markdown study guides for broken links and malformed code fences",
    )
    ap.add_argument("root", help="Directory searched recursively for *.md files")
    ap.add_argument(
        "--format", default="text",
        choices=["text", "json"],
        help="Report format written to stdout (default: text)"
    )
    ap.add_argument(
        "--fail-on", default="error",
        choices=list(FAIL_ON_CHOICES),
        help="Lowest severity that makes the exit code 1 (default: error)"
    )
    ap.add_argument(
        "--ignore-unknown-tags",
        action="store_true",
        help="Do not warn about unrecognized code fence language tags"
    )
    ap.add_argument(
        "--exclude",
        action="append", default=[], metavar="GLOB",
        help="Skip Markdown files whose root-relative path matches GLOB (repeatable)"
    )
    ap.add_argument(
        "--output", metavar="PATH",
        help="Also write the JSON report to PATH"
    )
    ap.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress to stderr"
    )
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.WARNING, format="%(message)s", stream=sys.stderr)

    config = LintConfig(
        ignore_unknown_tags=args.ignore_unknown_tags,
        exclude=args.exclude,
    )
    try:
        report = run_lint(args.root, config)
    except LintInputError as e:
        logger.error(f"mdlint: {e}")
        return EXIT_FATAL

    if args.format == "json":
        sys.stdout.write(render_json(report))
    else:
        sys.stdout.write(render_text(report, width=_terminal_width()))

    if args.output:
        try:
            write_json(args.output, report)
        except OSError as e:
            logger.error(f"mdlint: cannot write {args.output}: {e.strerror or e}")
            return EXIT_FATAL
        logger.info(f"Report saved: {args.output}")

    return EXIT_FINDINGS if report.exceeds(args.fail_on) else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
