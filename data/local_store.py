"""
Local Fallback Store

A storage-backed stand-in for the Remote Data Gateway, used when no backend
is configured. It implements the same Gateway protocol, so the entity access
services and state containers run unchanged on top of it.

Behaviour:
- each collection is seeded once, keyed on the presence of its storage key;
- every call sleeps a random delay so results "arrive later" like remote ones;
- writes read the whole collection, mutate it and write it all back;
- push events reach subscribers in this process only.
"""

import itertools
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from config import settings
from data.protocols import (
    ChangeCallback, ChangeEvent, ChangeType, Err, Filter, FilterLike, Ok, Order, Result,
)
from data.query import matches_all, matches_filter, project, run_select
from data.seed import build_seed
from data.storage import KeyValueStorage, load_json, save_json
from utils.exceptions import ErrorKind
from utils.helpers import generate_id, simulate_latency, to_iso, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

ID_PREFIXES = {
    settings.BLOG_POSTS_TABLE: "blog",
    settings.BLOG_CATEGORIES_TABLE: "cat",
    settings.BLOG_INTERACTIONS_TABLE: "interaction",
    settings.SERMONS_TABLE: "sermon",
    settings.SERMON_CATEGORIES_TABLE: "scat",
    settings.SERMON_INTERACTIONS_TABLE: "interaction",
    settings.EVENTS_TABLE: "event",
    settings.MINISTRIES_TABLE: "ministry",
    settings.TESTIMONIES_TABLE: "testimony",
}

UNIQUE_COLUMNS = {
    settings.BLOG_POSTS_TABLE: ("slug",),
    settings.BLOG_CATEGORIES_TABLE: ("slug",),
    settings.SERMONS_TABLE: ("slug",),
    settings.SERMON_CATEGORIES_TABLE: ("slug",),
    settings.EVENTS_TABLE: ("slug",),
}

# rpc name -> (table, argument holding the row id)
VIEW_COUNTER_FUNCTIONS = {
    "increment_blog_post_views": (settings.BLOG_POSTS_TABLE, "post_id"),
    "increment_sermon_views": (settings.SERMONS_TABLE, "sermon_id"),
    "increment_event_views": (settings.EVENTS_TABLE, "event_id"),
}


class LocalSubscription:
    """Handle for a listener registered on a LocalStore."""

    def __init__(self, store: "LocalStore", sub_id: int, table: str,
                 callback: ChangeCallback, row_filter: Optional[Filter]):
        self._store = store
        self.sub_id = sub_id
        self.table = table
        self.callback = callback
        self.row_filter = row_filter
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._remove_subscription(self.sub_id)


class LocalStore:
    """Gateway implementation persisted in browser-style key-value storage."""

    def __init__(
        self,
        storage: KeyValueStorage,
        latency_ms: Optional[Tuple[int, int]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        seed_builder: Callable[[datetime], Dict[str, List[Dict[str, Any]]]] = build_seed,
    ):
        """
        Initialize the store and seed any collection not yet present.

        Args:
            storage: Where collections are persisted.
            latency_ms: (min, max) simulated delay per call; defaults to settings.
            clock: Returns the current time; defaults to UTC now.
            seed_builder: Builds the seed dataset for a reference time.
        """
        self.storage = storage
        self.latency_ms = latency_ms if latency_ms is not None else (
            settings.LOCAL_LATENCY_MIN_MS, settings.LOCAL_LATENCY_MAX_MS
        )
        self.clock = clock or utc_now
        self.seed_builder = seed_builder
        self._subscriptions: Dict[int, LocalSubscription] = {}
        self._sub_ids = itertools.count(1)
        self._sub_lock = threading.Lock()

        self.initialize_default_data()

    # =========================================================================
    # Storage helpers
    # =========================================================================

    @staticmethod
    def storage_key(table: str) -> str:
        return f"{settings.STORAGE_KEY_PREFIX}{table}"

    def initialize_default_data(self) -> List[str]:
        """
        Seed every collection whose storage key is absent.

        Returns:
            list: Names of the tables that were seeded.
        """
        seeded = []
        for table, rows in self.seed_builder(self.clock()).items():
            if self.storage.get_item(self.storage_key(table)) is None:
                save_json(self.storage, self.storage_key(table), rows)
                seeded.append(table)
        if seeded:
            logger.info(f"Seeded local collections: {', '.join(seeded)}")
        return seeded

    def clear_all_data(self) -> None:
        """Wipe every seeded collection and seed it again."""
        for table in self.seed_builder(self.clock()).keys():
            self.storage.remove_item(self.storage_key(table))
        logger.info("Cleared local data")
        self.initialize_default_data()

    def _load(self, table: str) -> List[Dict[str, Any]]:
        rows = load_json(self.storage, self.storage_key(table), default=[])
        if not isinstance(rows, list):
            logger.warning(f"Collection {table} is not a list, treating as empty")
            return []
        return rows

    def _save(self, table: str, rows: List[Dict[str, Any]]) -> None:
        save_json(self.storage, self.storage_key(table), rows)

    def _delay(self) -> None:
        simulate_latency(self.latency_ms)

    def _duplicate(self, table: str, candidate: Dict[str, Any],
                   rows: List[Dict[str, Any]]) -> Optional[str]:
        """Return the offending column if candidate collides with another row."""
        for column in UNIQUE_COLUMNS.get(table, ()):
            value = candidate.get(column)
            if value is None:
                continue
            for row in rows:
                if row.get("id") != candidate.get("id") and row.get(column) == value:
                    return column
        return None

    # =========================================================================
    # Gateway protocol
    # =========================================================================

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Sequence[FilterLike] = (),
        order: Sequence[Order] = (),
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Result:
        self._delay()
        rows = run_select(self._load(table), filters, order, offset, limit)
        return Ok(project(rows, columns))

    def insert(self, table: str, records: List[Dict[str, Any]]) -> Result:
        self._delay()
        rows = self._load(table)
        now = to_iso(self.clock())
        inserted = []
        for record in records:
            row = dict(record)
            row.setdefault("id", generate_id(ID_PREFIXES.get(table, table.rstrip("s"))))
            row.setdefault("created_at", now)
            row["updated_at"] = row.get("updated_at") or now
            if any(r.get("id") == row["id"] for r in rows):
                return Err(ErrorKind.DUPLICATE, f"duplicate key value violates unique constraint \"{table}_pkey\"",
                           code="23505")
            column = self._duplicate(table, row, rows)
            if column:
                return Err(ErrorKind.DUPLICATE,
                           f"duplicate key value violates unique constraint \"{table}_{column}_key\"",
                           code="23505")
            rows.append(row)
            inserted.append(row)
        self._save(table, rows)
        for row in inserted:
            self._publish(ChangeEvent(ChangeType.INSERT, table, new=dict(row)))
        return Ok([dict(r) for r in inserted])

    def update(self, table: str, patch: Dict[str, Any], filters: Sequence[FilterLike]) -> Result:
        self._delay()
        rows = self._load(table)
        now = to_iso(self.clock())
        changes = {k: v for k, v in patch.items() if k != "id"}
        updated = []
        for index, row in enumerate(rows):
            if not matches_all(row, filters):
                continue
            candidate = {**row, **changes, "updated_at": now}
            column = self._duplicate(table, candidate, rows)
            if column:
                return Err(ErrorKind.DUPLICATE,
                           f"duplicate key value violates unique constraint \"{table}_{column}_key\"",
                           code="23505")
            rows[index] = candidate
            updated.append(candidate)
        if updated:
            self._save(table, rows)
            for row in updated:
                self._publish(ChangeEvent(ChangeType.UPDATE, table, new=dict(row)))
        return Ok([dict(r) for r in updated])

    def delete(self, table: str, filters: Sequence[FilterLike]) -> Result:
        self._delay()
        rows = self._load(table)
        kept = [r for r in rows if not matches_all(r, filters)]
        removed = [r for r in rows if matches_all(r, filters)]
        if removed:
            self._save(table, kept)
            for row in removed:
                self._publish(ChangeEvent(ChangeType.DELETE, table, old=dict(row)))
        return Ok([dict(r) for r in removed])

    def rpc(self, name: str, args: Dict[str, Any]) -> Result:
        self._delay()
        if name not in VIEW_COUNTER_FUNCTIONS:
            return Err(ErrorKind.REMOTE, f"Could not find the function public.{name}", code="PGRST202")

        table, id_arg = VIEW_COUNTER_FUNCTIONS[name]
        row_id = args.get(id_arg) or args.get("id")
        rows = self._load(table)
        for row in rows:
            if row.get("id") == row_id:
                row["view_count"] = (row.get("view_count") or 0) + 1
                self._save(table, rows)
                self._publish(ChangeEvent(ChangeType.UPDATE, table, new=dict(row)))
                return Ok(row["view_count"])
        return Err(ErrorKind.NOT_FOUND, f"No row in {table} with id {row_id}", code="PGRST116")

    def subscribe(self, table: str, callback: ChangeCallback,
                  row_filter: Optional[Filter] = None) -> LocalSubscription:
        with self._sub_lock:
            sub_id = next(self._sub_ids)
            subscription = LocalSubscription(self, sub_id, table, callback, row_filter)
            self._subscriptions[sub_id] = subscription
        logger.debug(f"Subscribed #{sub_id} to {table}")
        return subscription

    # =========================================================================
    # Push delivery
    # =========================================================================

    def _remove_subscription(self, sub_id: int) -> None:
        with self._sub_lock:
            self._subscriptions.pop(sub_id, None)
        logger.debug(f"Unsubscribed #{sub_id}")

    def _publish(self, event: ChangeEvent) -> None:
        record = event.new if event.type != ChangeType.DELETE else event.old
        with self._sub_lock:
            listeners = [s for s in self._subscriptions.values() if s.table == event.table]
        for subscription in listeners:
            if not subscription.active:
                continue
            if subscription.row_filter and not matches_filter(record or {}, subscription.row_filter):
                continue
            try:
                subscription.callback(event)
            except Exception as e:
                logger.error(f"Subscriber #{subscription.sub_id} failed on {event.type.value} "
                             f"for {event.table}: {e}", exc_info=True)
