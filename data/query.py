"""
Query Evaluation

Pure functions that evaluate gateway filters, ordering and offset/limit
against in-memory row dictionaries. The local fallback store uses these to
answer select/update/delete the way the hosted store would.
"""

import re
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence

from data.protocols import AnyOf, Filter, FilterLike, Order


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the text matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@lru_cache(maxsize=256)
def _like_regex(pattern: str) -> "re.Pattern":
    """Translate a SQL LIKE pattern (% and _, backslash escapes) into a compiled regex."""
    parts = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == '\\':
            escaped = True
        elif char == '%':
            parts.append('.*')
        elif char == '_':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    if escaped:
        parts.append(re.escape('\\'))
    return re.compile(''.join(parts), re.IGNORECASE | re.DOTALL)


def _compare(left: Any, right: Any, op: str) -> bool:
    if left is None or right is None:
        return False
    try:
        if op == "gt":
            return left > right
        if op == "gte":
            return left >= right
        if op == "lt":
            return left < right
        if op == "lte":
            return left <= right
    except TypeError:
        return False
    return False


def matches_filter(row: Dict[str, Any], predicate: FilterLike) -> bool:
    """
    Check a single predicate against a row.

    Args:
        row: The row dictionary.
        predicate: A Filter or an AnyOf group.

    Returns:
        bool: True if the row satisfies the predicate.
    """
    if isinstance(predicate, AnyOf):
        return any(matches_filter(row, member) for member in predicate.filters)

    value = row.get(predicate.column)
    op = predicate.op

    if op == "eq":
        return value == predicate.value
    if op == "neq":
        return value != predicate.value
    if op == "in":
        return value in tuple(predicate.value)
    if op == "is":
        return value is predicate.value or value == predicate.value
    if op == "ilike":
        if value is None:
            return False
        return _like_regex(str(predicate.value)).fullmatch(str(value)) is not None
    return _compare(value, predicate.value, op)


def matches_all(row: Dict[str, Any], filters: Iterable[FilterLike]) -> bool:
    """Return True if the row satisfies every predicate."""
    return all(matches_filter(row, f) for f in filters)


def apply_order(rows: List[Dict[str, Any]], order: Sequence[Order]) -> List[Dict[str, Any]]:
    """
    Sort rows by one or more keys. Missing values always sort last.

    Args:
        rows: Rows to sort (not modified).
        order: Sort keys, most significant first.

    Returns:
        list: A new sorted list.
    """
    result = list(rows)
    # Stable sorts applied from the least significant key upwards
    for key in reversed(list(order)):
        present = [r for r in result if r.get(key.column) is not None]
        missing = [r for r in result if r.get(key.column) is None]
        present.sort(key=lambda r: r[key.column], reverse=not key.ascending)
        result = present + missing
    return result


def apply_range(rows: List[Dict[str, Any]], offset: Optional[int], limit: Optional[int]) -> List[Dict[str, Any]]:
    """Slice rows by offset and limit."""
    start = offset or 0
    if limit is None:
        return rows[start:]
    return rows[start:start + limit]


def run_select(
    rows: Iterable[Dict[str, Any]],
    filters: Sequence[FilterLike] = (),
    order: Sequence[Order] = (),
    offset: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Evaluate a complete select against a collection.

    Returns:
        list: Copies of the matching rows, ordered and sliced.
    """
    matched = [dict(r) for r in rows if matches_all(r, filters)]
    return apply_range(apply_order(matched, order), offset, limit)


def project(rows: List[Dict[str, Any]], columns: str) -> List[Dict[str, Any]]:
    """
    Keep only the requested columns ("*" keeps everything).

    Args:
        rows: Rows to project.
        columns: Comma-separated column list.

    Returns:
        list: Projected rows.
    """
    if not columns or columns.strip() == "*":
        return rows
    wanted = [c.strip() for c in columns.split(",") if c.strip()]
    return [{c: r.get(c) for c in wanted} for r in rows]
