"""
Data Layer Protocol Definitions

This module defines the Remote Data Gateway contract consumed by the entity
access services, together with the value types that travel across it:
filters, ordering, change events and the Ok/Err result sum type.

Protocols defined:
- Gateway: table-scoped select/insert/update/delete, rpc and push subscriptions
- AuthGateway: the external identity provider's sign-up/sign-in surface
- Subscription: handle returned by Gateway.subscribe
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Union

from utils.exceptions import ErrorKind, exception_for_kind


# =============================================================================
# Query Values
# =============================================================================

FILTER_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "ilike", "in", "is")


@dataclass(frozen=True)
class Filter:
    """A single column predicate, e.g. Filter("post_id", "eq", "blog-001")."""
    column: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


@dataclass(frozen=True)
class AnyOf:
    """An OR group of predicates; a row matches if any member matches."""
    filters: Sequence[Filter]


@dataclass(frozen=True)
class Order:
    """Sort key for select()."""
    column: str
    ascending: bool = False


FilterLike = Union[Filter, AnyOf]


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class Ok:
    """Successful gateway call."""
    value: Any = None
    ok = True

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Err:
    """Failed gateway call, classified once at the gateway boundary."""
    kind: ErrorKind
    message: str
    code: Optional[str] = None
    status: Optional[int] = None
    ok = False

    def unwrap(self) -> Any:
        raise exception_for_kind(self.kind, self.message, self.code)


Result = Union[Ok, Err]


# =============================================================================
# Push Events
# =============================================================================

class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class ChangeEvent:
    """
    A push notification for one row.

    ``new`` holds the inserted/updated record, ``old`` the deleted one (which
    may carry only its id).
    """
    type: ChangeType
    table: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = field(default=None)

    @property
    def record_id(self) -> Optional[str]:
        record = self.new if self.type != ChangeType.DELETE else self.old
        return (record or {}).get("id")


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription(Protocol):
    """Handle for a registered push listener."""

    def unsubscribe(self) -> None:
        """Stop delivering events. Calling it twice is harmless."""
        ...


# =============================================================================
# Gateway Protocols
# =============================================================================

class Gateway(Protocol):
    """Protocol defining the Remote Data Gateway.

    Every data call returns Ok(value) or Err(kind, message); implementations
    never raise for remote failures. The local fallback store implements the
    same protocol, so services and state containers do not branch on which
    backend is active.
    """

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Sequence[FilterLike] = (),
        order: Sequence[Order] = (),
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Result:
        """Read rows.

        Returns:
            Ok(list of row dicts) or Err.
        """
        ...

    def insert(self, table: str, records: List[Dict[str, Any]]) -> Result:
        """Insert rows; the gateway assigns ids and timestamps.

        Returns:
            Ok(list of inserted rows) or Err.
        """
        ...

    def update(self, table: str, patch: Dict[str, Any], filters: Sequence[FilterLike]) -> Result:
        """Patch every row matching the filters.

        Returns:
            Ok(list of updated rows, empty when nothing matched) or Err.
        """
        ...

    def delete(self, table: str, filters: Sequence[FilterLike]) -> Result:
        """Delete every row matching the filters.

        Returns:
            Ok(list of deleted rows, empty when nothing matched) or Err.
        """
        ...

    def rpc(self, name: str, args: Dict[str, Any]) -> Result:
        """Call a server-side function (used for atomic counters)."""
        ...

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        row_filter: Optional[Filter] = None,
    ) -> Subscription:
        """Register a push listener for a table, optionally narrowed to rows
        matching an equality filter. No replay of missed events."""
        ...


class AuthGateway(Protocol):
    """Protocol for the external identity provider."""

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> Result:
        ...

    def sign_in_with_password(self, email: str, password: str) -> Result:
        ...

    def sign_out(self) -> Result:
        ...

    def get_user(self) -> Result:
        ...
