"""
Push the collections of a local storage file to the hosted backend.

Users and the session are not migrated: accounts live in the identity
provider and have to be created there.
"""

import sys
import argparse
import os
from typing import List, Optional

from cli.common import MIGRATION_ORDER, build_gateway, outcome_frame, print_frame, push_records
from config import settings
from data.local_store import LocalStore
from data.storage import JsonFileStorage, load_json
from utils.logger import get_logger

logger = get_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description='Migrate local fallback data to the hosted backend')
    parser.add_argument('--file', type=str, default=settings.LOCAL_STORAGE_FILE,
                        help='Local storage JSON file')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    gateway = build_gateway()

    if not os.path.exists(args.file):
        print(f"Error: local storage file not found: {args.file}", file=sys.stderr)
        return 1

    storage = JsonFileStorage(args.file)
    outcomes = []
    for table in MIGRATION_ORDER:
        rows = load_json(storage, LocalStore.storage_key(table), default=[]) or []
        logger.info(f"Migrating {len(rows)} rows from {table}")
        outcomes.extend(push_records(gateway, table, rows))

    frame = outcome_frame(outcomes)
    print_frame(frame)
    failed = int((frame["status"] == "failed").sum()) if not frame.empty else 0
    print(f"\n{len(frame) - failed} ok, {failed} failed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
