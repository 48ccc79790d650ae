"""Command-line runner: check a claim file without starting the API."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .checkers import checker_names
from .config import configure_logging, load_checker_overrides
from .engine.models import RunResult
from .errors import CheckerError
from .export import export_workbook
from .parsers.metadata import METADATA_KINDS
from .session import SPREADSHEET_KINDS, XML_KIND, UploadSession

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate a claim XML file against reference spreadsheets.",
    )
    parser.add_argument("checker", choices=[*checker_names(), "all"], help="Checker to run")
    parser.add_argument("--xml", required=True, type=Path, help="Claim XML file")
    for kind in SPREADSHEET_KINDS:
        parser.add_argument(f"--{kind}", type=Path, help=f"{kind} spreadsheet (xlsx or csv)")
    parser.add_argument(
        "--metadata",
        action="append",
        default=[],
        metavar="KIND=PATH",
        help=f"Metadata JSON replacing the bundled copy ({', '.join(METADATA_KINDS)})",
    )
    parser.add_argument("--metadata-dir", type=Path, help="Directory of bundled metadata JSON")
    parser.add_argument("--config", type=Path, help="YAML file with checker overrides")
    parser.add_argument("--export", type=Path, help="Write invalid rows to this XLSX file (single checker only)")
    parser.add_argument("--show-valid", action="store_true", help="List valid activities too")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL env)")
    return parser


def _load(session: UploadSession, args: argparse.Namespace) -> None:
    session.upload(XML_KIND, args.xml.name, args.xml.read_bytes())
    for kind in SPREADSHEET_KINDS:
        path = getattr(args, kind)
        if path is not None:
            session.upload(kind, path.name, path.read_bytes())
    for item in args.metadata:
        kind, sep, path = item.partition("=")
        if not sep or kind not in METADATA_KINDS:
            raise SystemExit(f"Invalid --metadata value '{item}': expected KIND=PATH")
        session.upload(kind, Path(path).name, Path(path).read_bytes())


def print_result(result: RunResult, show_valid: bool = False) -> None:
    print("=" * 60)
    print(f"{result.checker}: {result.valid_count} / {result.total_count} valid "
          f"({result.percentage}%, by {result.basis})")
    print("=" * 60)
    for outcome in result.outcomes:
        if outcome.is_valid and not show_valid:
            continue
        status = "VALID" if outcome.is_valid else "INVALID"
        print(f"  [{status}] claim {outcome.claim_id} activity {outcome.activity_id} ({outcome.activity.code})")
        for remark in outcome.remarks:
            print(f"      - {remark}")
        for note in outcome.notes:
            print(f"      * {note}")


def main(argv: list[str] | None = None) -> int:
    """Run the chosen checker(s); returns the process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        overrides = load_checker_overrides(args.config)
        session = UploadSession(metadata_dir=args.metadata_dir, overrides=overrides)
        _load(session, args)

        if args.checker == "all":
            batch = session.run_all()
            results = list(batch.results.values())
            for name, message in batch.errors.items():
                print(f"{name}: ERROR {message}")
            for name in batch.skipped:
                print(f"{name}: skipped (files not supplied)")
        else:
            results = [session.run(args.checker)]
    except (CheckerError, OSError) as e:
        print(f"Error: {e}")
        return 2

    for result in results:
        print_result(result, args.show_valid)

    if args.export is not None:
        if len(results) != 1:
            print("Error: --export needs a single checker")
            return 2
        args.export.write_bytes(export_workbook(results[0]))
        print(f"Invalid rows written to {args.export}")

    return 0 if all(not result.invalid_outcomes for result in results) else 1
