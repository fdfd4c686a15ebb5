#!/usr/bin/env python3
"""
Entry point for the sarif-issues CLI.

Subcommands:
  process        Reconcile a SARIF report with the repository's issues
  hash-guidance  Build the SHA-256 manifest for a local prompt pack

Usage examples:
  sarif-issues process --sarif results.sarif
  sarif-issues process --dry-run --threshold medium
  sarif-issues hash-guidance examples/promptpack -o prompt-hashes.json

Exit status: 0 on success (partial per-issue errors included), 1 when the
configuration or the report is unusable, or when --fail-on-errors is given
and any issue operation failed.
"""

import argparse
import sys

from sarif_issues import __version__
from sarif_issues.config import Config
from sarif_issues.errors import ConfigError, FatalInputError
from sarif_issues.guidance import generate_hash_manifest, write_hash_manifest
from sarif_issues.pipeline import run_pipeline
from sarif_issues.reporter.summary_reporter import SummaryReporter
from sarif_issues.utils.logger import get_logger
from sarif_issues.utils.settings import DEFAULT_HASHES_PATH, SEVERITY_LEVELS

LOG = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sarif-issues",
        description="Turn SARIF findings into deduplicated, auto-closing GitHub issues.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    process = subparsers.add_parser("process", help="Reconcile a SARIF report with open issues")
    process.add_argument(
        "-c", "--config",
        help="Path to config file (TOML/YAML/INI). If omitted, will search in cwd for sarif-issues.toml, etc.",
    )
    process.add_argument("--sarif", help="SARIF report to read (default: $SARIF_PATH or results.sarif)")
    process.add_argument("--threshold", choices=SEVERITY_LEVELS, help="Minimum severity to track")
    process.add_argument("--max-issues", type=int, help="Maximum issues to create or update this run")
    process.add_argument("--logs-dir", help="Directory for processing.log and summary.json")
    process.add_argument(
        "--dry-run", action="store_true",
        help="Read the tracker but only log the changes that would be made",
    )
    process.add_argument(
        "--fail-on-errors", action="store_true",
        help="Exit with status 1 if any issue operation failed",
    )

    hashes = subparsers.add_parser("hash-guidance", help="Generate the guidance hash manifest")
    hashes.add_argument("promptpack", help="Local prompt pack directory (owasp/, maintainability/, threat-modeling/)")
    hashes.add_argument(
        "-o", "--output", default=DEFAULT_HASHES_PATH,
        help=f"Manifest to write (default: {DEFAULT_HASHES_PATH})",
    )
    return parser


def _process(args: argparse.Namespace) -> int:
    try:
        config = Config.load(
            args.config,
            sarif_path=args.sarif,
            severity_threshold=args.threshold,
            max_items_per_run=args.max_issues,
            logs_dir=args.logs_dir,
        ).validate()
        summary = run_pipeline(config, dry_run=args.dry_run)
    except (ConfigError, FatalInputError) as e:
        LOG.error("Fatal error: %s", e)
        return 1

    SummaryReporter.print_summary(summary)
    if summary.has_errors:
        LOG.warning("%d issue operation(s) failed; see the summary for details", len(summary.errors))
        if args.fail_on_errors:
            return 1
    return 0


def _hash_guidance(args: argparse.Namespace) -> int:
    try:
        manifest = generate_hash_manifest(args.promptpack)
    except FileNotFoundError as e:
        LOG.error("%s", e)
        return 1
    write_hash_manifest(manifest, args.output)
    total = sum(len(v) for k, v in manifest.items() if not k.startswith("_"))
    print(f"Hashed {total} guidance file(s) into {args.output}")
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "process":
        return _process(args)
    if args.command == "hash-guidance":
        return _hash_guidance(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
