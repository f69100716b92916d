"""
Shared plumbing for the diagnostic command-line tools.

Every tool talks to the hosted backend directly, so each needs the gateway
URL and anonymous key from the environment (or the .env file).
"""

import sys
from typing import Any, Dict, List

import pandas as pd

from config import settings
from data.protocols import Filter
from data.rest_gateway import RestGateway
from utils.exceptions import ErrorKind
from utils.logger import get_logger

logger = get_logger(__name__)

OUTCOME_COLUMNS = ["table", "id", "status", "error_kind", "message"]


def require_gateway_env() -> None:
    """Exit with status 1 when the gateway URL or anonymous key is missing."""
    missing = [name for name, value in (("GATEWAY_URL", settings.GATEWAY_URL),
                                        ("GATEWAY_ANON_KEY", settings.GATEWAY_ANON_KEY))
               if not value]
    if missing:
        print(f"Error: missing environment variables: {', '.join(missing)} "
              f"(VITE_SUPABASE_URL / VITE_SUPABASE_ANON_KEY are accepted too)", file=sys.stderr)
        sys.exit(1)


def build_gateway() -> RestGateway:
    require_gateway_env()
    return RestGateway(settings.GATEWAY_URL, settings.GATEWAY_ANON_KEY)


def outcome_frame(outcomes: List[Dict[str, Any]]) -> pd.DataFrame:
    """Tabulate per-record outcomes (table, id, status, error kind, message)."""
    return pd.DataFrame(outcomes, columns=OUTCOME_COLUMNS)


def print_frame(frame: pd.DataFrame) -> None:
    if frame.empty:
        print("(nothing to report)")
    else:
        print(frame.to_string(index=False))


# Parents before children so foreign keys resolve
MIGRATION_ORDER = [
    settings.BLOG_CATEGORIES_TABLE,
    settings.SERMON_CATEGORIES_TABLE,
    settings.BLOG_POSTS_TABLE,
    settings.SERMONS_TABLE,
    settings.EVENTS_TABLE,
    settings.MINISTRIES_TABLE,
    settings.TESTIMONIES_TABLE,
    settings.BLOG_INTERACTIONS_TABLE,
    settings.SERMON_INTERACTIONS_TABLE,
]


def _outcome(table: str, record_id: Any, status: str, error_kind: str = "", message: str = "") -> Dict[str, Any]:
    return {"table": table, "id": record_id, "status": status, "error_kind": error_kind, "message": message}


def push_records(gateway, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Insert rows one at a time, skipping ids that already exist remotely.

    Returns:
        list: One outcome per row; status is inserted, skipped or failed.
    """
    outcomes = []
    for row in rows:
        record_id = row.get("id")
        if record_id:
            existing = gateway.select(table, columns="id", filters=[Filter("id", "eq", record_id)], limit=1)
            if existing.ok and existing.value:
                outcomes.append(_outcome(table, record_id, "skipped", message="already exists"))
                continue

        result = gateway.insert(table, [row])
        if result.ok:
            outcomes.append(_outcome(table, record_id, "inserted"))
        elif result.kind == ErrorKind.DUPLICATE:
            outcomes.append(_outcome(table, record_id, "skipped", result.kind.value, result.message))
        else:
            logger.error(f"Could not insert {record_id} into {table}: {result.message}")
            outcomes.append(_outcome(table, record_id, "failed", result.kind.value, result.message))
    return outcomes
