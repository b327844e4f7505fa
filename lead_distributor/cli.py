"""Command line interface for running distribution and sync operations."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Tuple

from .config import ConfigurationError, load_settings
from .factory import build_service
from .models import OperationResult

LOGGER = logging.getLogger(__name__)


def _parse_assignment(value: str) -> Tuple[str, List[int]]:
    person, separator, indices = value.partition("=")
    if not separator or not person.strip():
        raise argparse.ArgumentTypeError(f"Expected NAME=INDEX[,INDEX...], got '{value}'")
    try:
        rows = [int(item) for item in indices.split(",") if item.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Row indices must be integers in '{value}'") from exc
    return person.strip(), rows


def build_parser(prog: str | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Distribute spreadsheet leads and reconcile tracking files with the master dataset",
    )
    parser.add_argument("--config", help="Path to the workspace configuration file (YAML or JSON)")
    parser.add_argument("--data-path", help="Data directory holding Main, Tracking, RawData and Historical")
    parser.add_argument("--actor", help="Username performing the operation; must hold the Manager role")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (e.g. DEBUG, INFO, WARNING)",
    )

    commands = parser.add_subparsers(dest="command")

    distribute = commands.add_parser("distribute", help="Assign master rows to people")
    distribute.add_argument(
        "--assign",
        action="append",
        type=_parse_assignment,
        default=[],
        metavar="NAME=INDEX[,INDEX...]",
        help="Zero-based master data rows to assign to NAME (repeatable)",
    )
    distribute.add_argument(
        "--assignments-file",
        help="JSON file mapping person names to lists of row indices",
    )
    distribute.add_argument("--level", type=int, choices=[1, 2], default=1, help="Pipeline level to assign")

    promote = commands.add_parser("promote", help="Promote leads to a level 2 coordinator")
    promote.add_argument("coordinator", help="Coordinator receiving the leads")
    promote.add_argument("lead_ids", nargs="+", help="Lead IDs to promote")

    sync = commands.add_parser("sync", help="Reconcile tracking files into the master")
    sync.add_argument(
        "--mode",
        choices=["update", "release"],
        default="update",
        help="'update' copies progress and releases pass-overs; 'release' returns negative outcomes to the pool",
    )

    commands.add_parser("process-raw", help="Ingest RawData batches into the master")
    commands.add_parser("structure", help="List the spreadsheets in every workspace folder")
    return parser


def _load_assignments(args: argparse.Namespace) -> Dict[str, List[int]]:
    assignments: Dict[str, List[int]] = {}
    if args.assignments_file:
        data = json.loads(Path(args.assignments_file).read_text(encoding="utf-8"))
        for person, rows in data.items():
            assignments.setdefault(person, []).extend(rows)
    for person, rows in args.assign:
        assignments.setdefault(person, []).extend(rows)
    return assignments


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    if not args.command:
        parser.print_help()
        return 2

    try:
        settings = load_settings(args.config)
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return 1
    if args.data_path:
        settings = replace(settings, data_path=Path(args.data_path).expanduser())

    service = build_service(settings)
    actor = args.actor

    if args.command == "distribute":
        try:
            assignments = _load_assignments(args)
        except (OSError, ValueError, AttributeError, TypeError) as exc:
            LOGGER.error("Could not read assignments: %s", exc)
            return 1
        result = service.distribute(assignments, args.level, actor=actor)
    elif args.command == "promote":
        result = service.promote(args.lead_ids, args.coordinator, actor=actor)
    elif args.command == "sync":
        result = service.sync(args.mode, actor=actor)
    elif args.command == "process-raw":
        result = service.process_raw_data(actor=actor)
    else:
        result = service.structure(actor=actor)

    _print_result(result)
    LOGGER.debug("Workspace root: %s", Path(settings.data_path).resolve())
    return 0 if result.success else 1


def _print_result(result: OperationResult) -> None:
    print(json.dumps(result.as_dict(), indent=2, ensure_ascii=False, default=str))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
