"""Main CLI entry point."""

import argparse
import json
import logging
import os
from datetime import date
from pathlib import Path
from typing import Optional

DEFAULT_DB = "pipeline_analytics.db"


def _default_db() -> Path:
    return Path(os.environ.get("PIPELINE_ANALYTICS_DB", DEFAULT_DB))


def _parse_date(value: Optional[str], flag: str) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise SystemExit(f"Invalid {flag} format. Use YYYY-MM-DD.")


def main(argv: Optional[list[str]] = None) -> None:
    """Parse args and dispatch to subcommands."""
    parser = argparse.ArgumentParser(
        prog="pipeline-analytics", description="Sales pipeline snapshot analytics"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ingest
    ingest_parser = subparsers.add_parser("ingest", help="Ingest a batch of snapshot rows")
    ingest_parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="JSON file holding a list of snapshot rows",
    )
    ingest_parser.add_argument(
        "--snapshot-date",
        type=str,
        required=True,
        help="Snapshot date shared by every row in the batch (YYYY-MM-DD)",
    )
    ingest_parser.add_argument("--db", type=Path, default=None, help="Path to SQLite database")
    ingest_parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Settings YAML (stage mappings applied at ingest)",
    )

    # store
    store_parser = subparsers.add_parser("store", help="Query the snapshot store")
    store_parser.add_argument("--db", type=Path, default=None, help="Path to SQLite database")
    store_parser.add_argument(
        "action",
        choices=["list", "count", "batches"],
        help="List opportunities, count snapshots, or list upload batches",
    )

    # clear
    clear_parser = subparsers.add_parser("clear", help="Delete stored data")
    clear_parser.add_argument("--db", type=Path, default=None, help="Path to SQLite database")
    clear_group = clear_parser.add_mutually_exclusive_group(required=True)
    clear_group.add_argument("--all", action="store_true", help="Delete everything")
    clear_group.add_argument("--date", type=str, help="Delete one snapshot date (YYYY-MM-DD)")

    # report
    report_parser = subparsers.add_parser("report", help="Run a report and print JSON")
    report_parser.add_argument("name", help="Report name (see --list)", nargs="?")
    report_parser.add_argument("--list", action="store_true", help="List available reports")
    report_parser.add_argument("--db", type=Path, default=None, help="Path to SQLite database")
    report_parser.add_argument("--start", type=str, default=None, help="Start date (YYYY-MM-DD)")
    report_parser.add_argument("--end", type=str, default=None, help="End date (YYYY-MM-DD)")
    report_parser.add_argument("--settings", type=Path, default=None, help="Settings YAML")
    report_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write report JSON to file (default: stdout)",
    )

    # settings
    settings_parser = subparsers.add_parser("settings", help="Show or export engine settings")
    settings_parser.add_argument("action", choices=["show", "export"])
    settings_parser.add_argument("--settings", type=Path, default=None, help="Settings YAML")
    settings_parser.add_argument(
        "--output", type=Path, default=None, help="Destination YAML for export"
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "ingest":
        _run_ingest(args)
    elif args.command == "store":
        _run_store(args)
    elif args.command == "clear":
        _run_clear(args)
    elif args.command == "report":
        _run_report(args)
    elif args.command == "settings":
        _run_settings(args)
    else:
        parser.print_help()


def _load_settings(path: Optional[Path]):
    """Settings from --settings, else $PIPELINE_ANALYTICS_SETTINGS, else defaults."""
    from pydantic import ValidationError

    from pipeline_analytics.models.settings import EngineSettings

    path = path or os.environ.get("PIPELINE_ANALYTICS_SETTINGS")
    if not path:
        return EngineSettings()
    try:
        return EngineSettings.from_yaml(path)
    except FileNotFoundError:
        raise SystemExit(f"Settings file not found: {path}")
    except (ValueError, ValidationError) as e:
        raise SystemExit(f"Invalid settings file {path}: {e}")


def _run_ingest(args: argparse.Namespace) -> None:
    """Run ingest command."""
    from pydantic import ValidationError

    from pipeline_analytics.store import SnapshotStore

    snapshot_date = _parse_date(args.snapshot_date, "--snapshot-date")
    settings = _load_settings(args.settings)
    data = json.loads(args.input.read_text())
    if not isinstance(data, list):
        raise SystemExit(f"{args.input} must contain a JSON list of rows")

    store = SnapshotStore(args.db or _default_db())
    try:
        batch = store.ingest_batch(data, snapshot_date, filename=args.input.name, settings=settings)
    except ValidationError as e:
        raise SystemExit(f"Invalid row in {args.input}: {e}")
    print(f"Ingested {batch.record_count} snapshots for {batch.snapshot_date} (batch {batch.id})")


def _run_store(args: argparse.Namespace) -> None:
    """Run store command."""
    from pipeline_analytics.store import SnapshotStore

    store = SnapshotStore(args.db or _default_db())
    if args.action == "list":
        opps = store.list_opportunities()
        print(json.dumps([o.model_dump(mode="json") for o in opps], indent=2, default=str))
    elif args.action == "count":
        print(store.count_snapshots())
    elif args.action == "batches":
        batches = store.list_batches()
        print(json.dumps([b.model_dump(mode="json") for b in batches], indent=2, default=str))


def _run_clear(args: argparse.Namespace) -> None:
    """Run clear command."""
    from pipeline_analytics.store import SnapshotStore

    store = SnapshotStore(args.db or _default_db())
    if args.all:
        store.clear_all()
        print("Cleared all data")
    else:
        day = _parse_date(args.date, "--date")
        deleted = store.clear_by_date(day)
        print(f"Cleared {deleted} snapshots for {day}")


def _run_report(args: argparse.Namespace) -> None:
    """Run report command."""
    from pipeline_analytics.engine import ReportEngine
    from pipeline_analytics.reports.registry import ReportRegistry
    from pipeline_analytics.store import SnapshotStore

    if args.list or not args.name:
        for name in ReportRegistry.available_reports():
            print(name)
        return

    start = _parse_date(args.start, "--start")
    end = _parse_date(args.end, "--end")
    engine = ReportEngine(SnapshotStore(args.db or _default_db()), _load_settings(args.settings))
    try:
        report = ReportRegistry.get(args.name, engine)
        result = report(start, end)
    except ValueError as e:
        raise SystemExit(str(e))

    output = json.dumps(result, indent=2, default=str)
    if args.output:
        args.output.write_text(output, encoding="utf-8")
        print(f"Wrote {args.name} report to {args.output}")
    else:
        print(output)


def _run_settings(args: argparse.Namespace) -> None:
    """Run settings command."""
    settings = _load_settings(args.settings)
    if args.action == "show":
        print(json.dumps(settings.model_dump(mode="json", by_alias=True), indent=2))
    elif args.action == "export":
        if not args.output:
            raise SystemExit("settings export requires --output")
        settings.to_yaml(args.output)
        print(f"Wrote settings to {args.output}")


if __name__ == "__main__":
    main()
