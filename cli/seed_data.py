"""
Insert the default dataset into the hosted backend, one record at a time.
"""

import sys
from typing import List, Optional

from cli.common import MIGRATION_ORDER, build_gateway, outcome_frame, print_frame, push_records
from data.seed import build_seed
from utils.helpers import utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    gateway = build_gateway()
    seed = build_seed(utc_now())

    outcomes = []
    for table in MIGRATION_ORDER:
        rows = seed.get(table, [])
        if rows:
            logger.info(f"Seeding {len(rows)} rows into {table}")
        outcomes.extend(push_records(gateway, table, rows))

    frame = outcome_frame(outcomes)
    print_frame(frame)
    failed = int((frame["status"] == "failed").sum()) if not frame.empty else 0
    print(f"\n{len(frame) - failed} ok, {failed} failed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
