"""CLI entry point for milkledger."""

import argparse
import asyncio
import inspect
import json
import logging
import sys
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

from .catalog import VendorCatalog
from .config import Config, load_config
from .errors import RemoteUnavailable, UnknownVendorError, ValidationError
from .ledger import (
    CostAggregator,
    DeliveryLedger,
    DeliveryRecord,
    format_day,
    month_bounds,
    parse_day,
    retention_window,
)
from .serializer import LedgerSerializer
from .storage import LocalCache
from .sync import SyncGateway, validate_access_key


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps({
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        })


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure the root logger; quiet (warnings only) unless asked otherwise."""
    if log_level:
        level = getattr(logging, log_level.upper())
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logging.basicConfig(level=level, handlers=[handler])


@dataclass
class Session:
    """Everything a command needs, wired from the config."""

    config: Config
    cache: LocalCache
    ledger: DeliveryLedger
    gateway: SyncGateway
    aggregator: CostAggregator

    def window(self) -> tuple[date, date]:
        return retention_window(
            date.today(),
            months_back=self.config.sync.months_back,
            months_forward=self.config.sync.months_forward,
        )


def open_session(config: Config) -> Session:
    """Connect the local cache and load the ledger from it."""
    catalog = VendorCatalog.from_config(config.vendors)
    cache = LocalCache(config.storage.db_path)
    cache.connect()

    ledger = DeliveryLedger(catalog, persistence=cache)
    ledger.load()

    gateway = SyncGateway(
        ledger,
        access_key=config.sync.access_key or cache.load_access_key(),
        url_template=config.sync.url_template,
        basket=config.sync.basket,
        timeout=config.sync.timeout,
    )
    return Session(
        config=config,
        cache=cache,
        ledger=ledger,
        gateway=gateway,
        aggregator=CostAggregator(catalog),
    )


def _print_totals(totals: dict[str, float], catalog: VendorCatalog) -> None:
    for name in catalog.names:
        print(f"  {name:<24} {totals.get(name, 0):>10.2f}/-")


def _sync_disabled(session: Session) -> bool:
    if session.config.sync.enabled:
        return False
    print("Error: remote sync is disabled (sync.enabled: false)", file=sys.stderr)
    return True


def _fallback_hint() -> None:
    print(
        "Remote store unavailable. Use 'milkledger export PATH' to save a copy "
        "and 'milkledger import PATH' to restore it.",
        file=sys.stderr,
    )


def cmd_key(args: argparse.Namespace) -> int:
    """Set or show the remote access key."""
    session = open_session(load_config(args.config))
    try:
        if args.key_command == "set":
            try:
                key = validate_access_key(args.key)
            except ValidationError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            session.cache.save_access_key(key)
            print("Access key saved.")
        else:
            key = session.config.sync.access_key or session.cache.load_access_key()
            print(key or "No access key configured.")
        return 0
    finally:
        session.cache.close()


def cmd_show(args: argparse.Namespace) -> int:
    """Show ledger entries for a month."""
    session = open_session(load_config(args.config))
    try:
        if args.month:
            try:
                anchor = datetime.strptime(args.month, "%Y-%m").date()
            except ValueError:
                print(f"Error: month must be YYYY-MM, got {args.month!r}", file=sys.stderr)
                return 1
        else:
            anchor = date.today()
        start, end = month_bounds(anchor)
        entries = session.ledger.entries_between(start, end)

        if args.json:
            print(json.dumps([entry.to_dict() for entry in entries], indent=2))
            return 0

        print(f"Deliveries for {start.strftime('%B %Y')}:")
        if not entries:
            print("  (none)")
        for entry in entries:
            units = ", ".join(
                f"{vendor} {qty:g}L" for vendor, qty in entry.units_by_vendor().items()
            )
            print(f"  {format_day(entry.day)}  {units or '0L'}")
        return 0
    finally:
        session.cache.close()


def _parse_quantities(pairs: list[str]) -> dict[str, str]:
    quantities = {}
    for pair in pairs:
        shift, sep, qty = pair.partition("=")
        if not sep:
            raise ValidationError(f"Expected SHIFT=QTY, got {pair!r}")
        quantities[shift] = qty
    return quantities


def cmd_record(args: argparse.Namespace) -> int:
    """Record one vendor's delivery for a day, keeping other vendors' records."""
    session = open_session(load_config(args.config))
    try:
        try:
            day = parse_day(args.day)
            vendor = session.ledger.catalog.require(args.vendor)
            record = DeliveryRecord.from_dict(
                {"name": vendor.name, "shifts": _parse_quantities(args.quantities)}
            ).require_non_negative()
        except (ValidationError, UnknownVendorError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        for shift in record.quantities:
            if not vendor.supports(shift):
                print(f"Error: {vendor.name} does not deliver in the {shift} shift", file=sys.stderr)
                return 1

        existing = session.ledger.get(day)
        others = [r for r in existing.deliveries if r.vendor != vendor.name] if existing else []
        entry = session.ledger.upsert(day, others + [record])
        print(f"Recorded {format_day(entry.day)}: {entry.units_by_vendor()}")
        return 0
    finally:
        session.cache.close()


def cmd_clear(args: argparse.Namespace) -> int:
    """Remove the entry for a day."""
    session = open_session(load_config(args.config))
    try:
        try:
            day = parse_day(args.day)
        except ValidationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        if not session.ledger.remove(day):
            print(f"No entry for {format_day(day)}.")
            return 1
        print(f"Removed {format_day(day)}.")
        return 0
    finally:
        session.cache.close()


def cmd_totals(args: argparse.Namespace) -> int:
    """Print vendor totals over a date range."""
    session = open_session(load_config(args.config))
    try:
        default_start, default_end = month_bounds(date.today())
        try:
            start = parse_day(args.start) if args.start else default_start
            end = parse_day(args.end) if args.end else default_end
        except ValidationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        totals = session.aggregator.compute_totals(session.ledger.list_entries(), start, end)
        if args.json:
            print(json.dumps({"start": start.isoformat(), "end": end.isoformat(), "totals": totals}))
            return 0
        print(f"Totals {start.isoformat()} .. {end.isoformat()}:")
        _print_totals(totals, session.ledger.catalog)
        return 0
    finally:
        session.cache.close()


def cmd_summary(args: argparse.Namespace) -> int:
    """Print previous and current month totals."""
    session = open_session(load_config(args.config))
    try:
        months = session.aggregator.monthly_summary(session.ledger.list_entries(), date.today())
        for month in months:
            print(f"{month.label}:")
            _print_totals(month.totals, session.ledger.catalog)
        return 0
    finally:
        session.cache.close()


async def cmd_pull(args: argparse.Namespace) -> int:
    """Replace the local ledger with the remote copy."""
    session = open_session(load_config(args.config))
    try:
        if _sync_disabled(session):
            return 1
        result = await session.gateway.pull(window=session.window())
        result.raise_for_state()
        print(f"Pulled {result.entries} entries.")
        return 0
    except RemoteUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        _fallback_hint()
        return 1
    finally:
        session.cache.close()


async def cmd_push(args: argparse.Namespace) -> int:
    """Overwrite the remote copy with the local ledger."""
    session = open_session(load_config(args.config))
    try:
        if _sync_disabled(session):
            return 1
        result = await session.gateway.push()
        result.raise_for_state()
        print(f"Saved {result.entries} entries.")
        return 0
    except RemoteUnavailable as e:
        print(f"Error: {e}", file=sys.stderr)
        _fallback_hint()
        return 1
    finally:
        session.cache.close()


def cmd_status(args: argparse.Namespace) -> int:
    """Show local and remote sync status."""
    config = load_config(args.config)
    session = open_session(config)
    try:
        status = {
            "timestamp": datetime.now().isoformat(),
            "cache": str(session.cache.db_path),
            "vendors": session.ledger.catalog.names,
            "sync": session.gateway.get_sync_status(),
        }
        status["sync"]["enabled"] = config.sync.enabled
        if args.json:
            print(json.dumps(status, indent=2))
            return 0
        print(f"Local cache: {status['cache']}")
        print(f"Entries:     {len(session.ledger)}")
        print(f"Vendors:     {', '.join(status['vendors'])}")
        print(f"Remote sync: {'configured' if status['sync']['configured'] else 'no access key'}")
        return 0
    finally:
        session.cache.close()


async def cmd_export(args: argparse.Namespace) -> int:
    """Write the full ledger to a JSON file."""
    session = open_session(load_config(args.config))
    try:
        path = await LedgerSerializer().write_file(args.path, session.ledger.list_entries())
        print(f"Exported {len(session.ledger)} entries to {path}")
        return 0
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        session.cache.close()


async def cmd_import(args: argparse.Namespace) -> int:
    """Replace the ledger with a previously exported JSON file."""
    session = open_session(load_config(args.config))
    try:
        entries = await LedgerSerializer().read_file(args.path)
        count = session.ledger.replace_all(entries)
        print(f"Imported {count} entries.")
        return 0
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        session.cache.close()


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the JSON API."""
    config = load_config(args.config)

    try:
        from .api import create_app

        import uvicorn
    except ImportError as e:
        print(f"API dependencies not installed: {e}", file=sys.stderr)
        print("Install with: pip install milkledger[api]", file=sys.stderr)
        return 1

    session = open_session(config)
    app = create_app(
        config,
        session.ledger,
        gateway=session.gateway,
        aggregator=session.aggregator,
    )
    host = args.host or config.api.host
    port = args.port or config.api.port
    print(f"Serving milk ledger on http://{host}:{port}")
    try:
        uvicorn.run(app, host=host, port=port)
    finally:
        session.cache.close()
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="milkledger",
        description="Track daily milk deliveries and monthly vendor costs",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: built-in vendors)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Access key
    key_parser = subparsers.add_parser("key", help="Manage the remote access key")
    key_subparsers = key_parser.add_subparsers(dest="key_command", help="Key commands")
    key_set = key_subparsers.add_parser("set", help="Store a version-4 UUID access key")
    key_set.add_argument("key", help="Access key")
    key_set.set_defaults(func=cmd_key)
    key_show = key_subparsers.add_parser("show", help="Show the configured access key")
    key_show.set_defaults(func=cmd_key)

    # Ledger
    show_parser = subparsers.add_parser("show", help="Show entries for a month")
    show_parser.add_argument("--month", help="Month as YYYY-MM (default: current)")
    show_parser.add_argument("--json", action="store_true", help="Output entries as JSON")
    show_parser.set_defaults(func=cmd_show)

    record_parser = subparsers.add_parser("record", help="Record a vendor's delivery for a day")
    record_parser.add_argument("day", help="Date as YYYY-MM-DD or 'Mon Jan 01 2024'")
    record_parser.add_argument("vendor", help="Vendor name")
    record_parser.add_argument("quantities", nargs="+", metavar="SHIFT=QTY", help="Quantity per shift")
    record_parser.set_defaults(func=cmd_record)

    clear_parser = subparsers.add_parser("clear", help="Remove the entry for a day")
    clear_parser.add_argument("day", help="Date as YYYY-MM-DD or 'Mon Jan 01 2024'")
    clear_parser.set_defaults(func=cmd_clear)

    # Totals
    totals_parser = subparsers.add_parser("totals", help="Vendor totals over a date range")
    totals_parser.add_argument("--start", help="First day (default: start of this month)")
    totals_parser.add_argument("--end", help="Last day (default: end of this month)")
    totals_parser.add_argument("--json", action="store_true", help="Output totals as JSON")
    totals_parser.set_defaults(func=cmd_totals)

    summary_parser = subparsers.add_parser("summary", help="Previous and current month totals")
    summary_parser.set_defaults(func=cmd_summary)

    # Sync
    pull_parser = subparsers.add_parser("pull", help="Load the ledger from the remote store")
    pull_parser.set_defaults(func=cmd_pull)

    push_parser = subparsers.add_parser("push", help="Save the ledger to the remote store")
    push_parser.set_defaults(func=cmd_push)

    status_parser = subparsers.add_parser("status", help="Show cache and sync status")
    status_parser.add_argument("--json", action="store_true", help="Output status as JSON")
    status_parser.set_defaults(func=cmd_status)

    # Export / import
    export_parser = subparsers.add_parser("export", help="Export the ledger to a JSON file")
    export_parser.add_argument("path", type=Path, help="File or directory to write")
    export_parser.set_defaults(func=cmd_export)

    import_parser = subparsers.add_parser("import", help="Replace the ledger from a JSON file")
    import_parser.add_argument("path", type=Path, help="File to read")
    import_parser.set_defaults(func=cmd_import)

    # API
    serve_parser = subparsers.add_parser("serve", help="Start the JSON API")
    serve_parser.add_argument("-p", "--port", type=int, default=None, help="Port to listen on")
    serve_parser.add_argument("--host", type=str, default=None, help="Host to bind to")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "key" and not args.key_command:
        key_parser.print_help()
        return 1

    func = args.func
    if inspect.iscoroutinefunction(func):
        return asyncio.run(func(args))
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
