#!/usr/bin/env python3
"""
Command line entry point for operators.

Runs the same gateway operations the HTTP API exposes, without the API.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from vetbackup.api.main import build_gateway
from vetbackup.config.logging_config import get_logger, setup_logging
from vetbackup.config.settings import settings as default_settings
from vetbackup.core.error_handling import BaseError, FileSystemError, NotFoundError

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Vet Clinic Backup Manager"
    )

    parser.add_argument(
        '--app-root',
        type=Path,
        default=None,
        help='Directory holding backups/ and exports/'
    )

    parser.add_argument(
        '--run',
        action='store_true',
        help='Dump the database into a new ZIP archive and prune old ones'
    )

    parser.add_argument(
        '--list',
        action='store_true',
        help='List all backups'
    )

    parser.add_argument(
        '--snapshot',
        action='store_true',
        help='Write a full JSON snapshot into the backups directory'
    )

    parser.add_argument(
        '--export',
        action='store_true',
        help='Write the orders/users/products export into the exports directory'
    )

    parser.add_argument(
        '--import-snapshot',
        type=Path,
        metavar='FILE',
        help='Add the records of a JSON snapshot without deleting anything'
    )

    parser.add_argument(
        '--restore',
        type=str,
        metavar='FILE',
        help='Replace the shop collections from a JSON snapshot in the backups directory'
    )

    parser.add_argument(
        '--import-dump',
        type=str,
        metavar='DIR',
        help='Load a mongodump directory from the backups directory (drops collections first)'
    )

    parser.add_argument(
        '--force',
        action='store_true',
        help='Skip confirmation for destructive operations'
    )

    return parser


async def _execute(args: argparse.Namespace, gateway) -> int:
    if args.run:
        artifact = await gateway.run_backup()
        print(f"Backup created: {artifact.location}")

    elif args.list:
        backups = gateway.list_backups()
        if backups:
            print("\nAvailable Backups:")
            print("-" * 80)
            for artifact in backups:
                size_mb = artifact.location.stat().st_size / (1024**2)
                print(f"ID: {artifact.identifier}")
                print(f"  Kind: {artifact.kind.value}")
                print(f"  Created: {artifact.created_at.isoformat()}")
                print(f"  Size: {size_mb:.1f} MB")
                print()
        else:
            print("No backups found")

    elif args.snapshot:
        path = await gateway.create_snapshot()
        print(f"Snapshot created: {path}")

    elif args.export:
        path = await gateway.export_snapshot()
        print(f"Export written: {path}")

    elif args.import_snapshot:
        try:
            payload = args.import_snapshot.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"Snapshot file not found: {args.import_snapshot}", path=str(args.import_snapshot)) from e
        except OSError as e:
            raise FileSystemError(f"Cannot read snapshot file: {e}", path=str(args.import_snapshot)) from e
        summary = await gateway.import_snapshot(payload)
        print(json.dumps({"imported": summary.to_dict()}, indent=2))

    elif args.restore or args.import_dump:
        target = args.restore or args.import_dump
        if not args.force:
            response = input(f"Replace live data from {target}? This cannot be undone. [y/N]: ")
            if response.lower() != 'y':
                print("Restore cancelled")
                return 0
        if args.restore:
            report = await gateway.restore_snapshot_file(args.restore)
            print(json.dumps({"restoredData": report.restored, "atomic": report.atomic}, indent=2))
        else:
            await gateway.import_backup(args.import_dump)
            print("Data successfully imported")

    else:
        return 2

    return 0


def main(argv=None) -> int:
    """Main entry point for the backup CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = default_settings
    if args.app_root is not None:
        settings = settings.model_copy(update={"app_root": args.app_root})
    setup_logging(settings.log_level, settings.log_file)

    try:
        gateway = build_gateway(settings)
    except BaseError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    try:
        code = asyncio.run(_execute(args, gateway))
    except BaseError as e:
        logger.error(f"Operation failed: {e.message}", error_code=e.error_code)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        gateway.close()
        gateway.datastore.close()

    if code == 2:
        parser.print_help()
    return code


if __name__ == '__main__':
    sys.exit(main())
