"""
HealthSaga command-line client.

Usage:
    healthsaga sync
    healthsaga status
    healthsaga reminders [--refresh]
    healthsaga export [--output PATH]
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from .client import HealthSagaClient
from .config import ClientSettings
from .store import export_local_data
from .sync import SyncStatus


async def _run_sync(client: HealthSagaClient) -> int:
    status = await client.sync_engine.sync()
    print(client.sync_engine.status_message)
    return 0 if status == SyncStatus.SUCCESS else 1


def _run_status(client: HealthSagaClient) -> int:
    record = client.daily.load()
    meta = client.sync_engine.meta()
    suggestion = client.mindfulness.suggestion()
    print(json.dumps(
        {
            "today": record.to_dict(),
            "sync": meta.to_dict(),
            "mindfulness": suggestion.name if suggestion else None,
            "metricsEntries": len(client.history.entries()),
        },
        indent=2,
    ))
    return 0


async def _run_reminders(client: HealthSagaClient, refresh: bool) -> int:
    reminders = await client.reminders.refresh(force=refresh)
    for reminder in reminders:
        flags = []
        if reminder.get("due"):
            flags.append("due")
        if reminder.get("completed"):
            flags.append("done")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(f"{reminder.get('time')}  {reminder.get('description')}{suffix}")
    if client.reminders.last_error:
        print(f"(offline: {client.reminders.last_error})", file=sys.stderr)
    return 0


def main(argv=None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="HealthSaga local-first client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--data-dir", help="Local store directory")
    parser.add_argument("--server-url", help="Snapshot service base URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("sync", help="Reconcile local state with the service")
    subparsers.add_parser("status", help="Show today's record and sync metadata")
    reminders_parser = subparsers.add_parser("reminders", help="Show today's reminders")
    reminders_parser.add_argument(
        "--refresh", action="store_true", help="Fetch even if the cached result is fresh"
    )
    export_parser = subparsers.add_parser("export", help="Export all local data to JSON")
    export_parser.add_argument("--output", help="Target file or directory")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.server_url:
        overrides["server_url"] = args.server_url
    client = HealthSagaClient(settings=ClientSettings(**overrides))

    try:
        if args.command == "sync":
            return asyncio.run(_run_sync(client))
        if args.command == "status":
            return _run_status(client)
        if args.command == "reminders":
            return asyncio.run(_run_reminders(client, args.refresh))
        if args.command == "export":
            path = export_local_data(client.store, args.output)
            print(f"Exported local data to {path}")
            return 0
    finally:
        client.close()
    return 2


if __name__ == "__main__":
    sys.exit(main())
