"""
Probe every known table with a one-row select and report which ones respond.
"""

import sys
from typing import List, Optional

import pandas as pd

from cli.common import build_gateway
from config import settings
from utils.logger import get_logger

logger = get_logger(__name__)


def probe_tables(gateway, tables: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Select one row from each table.

    Returns:
        DataFrame: table, ok, rows, error_kind, message
    """
    results = []
    for table in tables or settings.KNOWN_TABLES:
        result = gateway.select(table, limit=1)
        if result.ok:
            results.append({"table": table, "ok": True, "rows": len(result.value),
                            "error_kind": "", "message": ""})
        else:
            logger.warning(f"Probe of {table} failed: {result.message}")
            results.append({"table": table, "ok": False, "rows": 0,
                            "error_kind": result.kind.value, "message": result.message})
    return pd.DataFrame(results, columns=["table", "ok", "rows", "error_kind", "message"])


def main(argv: Optional[List[str]] = None) -> int:
    gateway = build_gateway()
    frame = probe_tables(gateway)
    print(frame.to_string(index=False))

    failed = int((~frame["ok"]).sum())
    if failed:
        print(f"\n{failed} of {len(frame)} tables failed", file=sys.stderr)
        return 1
    print(f"\nAll {len(frame)} tables reachable")
    return 0


if __name__ == "__main__":
    sys.exit(main())
