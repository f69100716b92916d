"""
REST Gateway Module

PostgREST/GoTrue client implementing the Gateway and AuthGateway protocols
against a hosted backend. Failures are classified here, once, from the
backend's structured error codes; callers receive Ok/Err results and never
inspect message text. Push subscriptions go through the realtime service
(see data.realtime_channel).
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from config import settings
from data.protocols import (
    AnyOf, ChangeCallback, Err, Filter, FilterLike, Ok, Order, Result, Subscription,
)
from data.realtime_channel import RealtimeBridge
from utils.exceptions import ErrorKind
from utils.logger import get_logger

logger = get_logger(__name__)

# Structured error code -> kind. PostgREST uses PGRST* and SQLSTATE codes,
# GoTrue uses symbolic error codes.
ERROR_CODE_KINDS = {
    "PGRST116": ErrorKind.NOT_FOUND,
    "23505": ErrorKind.DUPLICATE,
    "23502": ErrorKind.VALIDATION,
    "23514": ErrorKind.VALIDATION,
    "22P02": ErrorKind.VALIDATION,
    "42501": ErrorKind.REMOTE,
    "user_already_exists": ErrorKind.DUPLICATE,
    "email_exists": ErrorKind.DUPLICATE,
    "invalid_credentials": ErrorKind.AUTH_REQUIRED,
    "validation_failed": ErrorKind.VALIDATION,
    "weak_password": ErrorKind.VALIDATION,
}


def classify_error(status: int, payload: Any) -> Err:
    """
    Turn an error response into an Err.

    Args:
        status: HTTP status code.
        payload: Decoded JSON body (dict) or raw text.

    Returns:
        Err: The classified error.
    """
    code = None
    message = ""
    if isinstance(payload, dict):
        code = payload.get("code") or payload.get("error_code") or payload.get("error")
        message = (payload.get("message") or payload.get("msg")
                   or payload.get("error_description") or "")
        code = str(code) if code is not None else None
    elif payload:
        message = str(payload)

    if not message:
        message = f"Request failed with status {status}"

    if code in ERROR_CODE_KINDS:
        kind = ERROR_CODE_KINDS[code]
    elif status == 404:
        kind = ErrorKind.NOT_FOUND
    elif status == 409:
        kind = ErrorKind.DUPLICATE
    elif status == 422:
        kind = ErrorKind.VALIDATION
    else:
        # 401/403 policy denials included
        kind = ErrorKind.REMOTE
    return Err(kind, message, code=code, status=status)


# =============================================================================
# PostgREST query encoding
# =============================================================================

def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# Characters that force double-quoting of a value inside in-lists and or-groups
RESERVED_LIST_CHARS = ',.:()"\\'


def _format_list_item(value: Any) -> str:
    text = _format_value(value)
    if any(ch in RESERVED_LIST_CHARS for ch in text):
        text = '"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"'
    return text


def _format_like_pattern(pattern: str) -> str:
    """Use PostgREST's * wildcard for unescaped %; escaped wildcards stay as they are."""
    out = []
    escaped = False
    for char in pattern:
        if escaped:
            out.append(char)
            escaped = False
        elif char == '\\':
            out.append(char)
            escaped = True
        elif char == '%':
            out.append('*')
        else:
            out.append(char)
    return ''.join(out)


def _format_operand(f: Filter) -> str:
    if f.op == "in":
        return "(" + ",".join(_format_list_item(v) for v in f.value) + ")"
    if f.op == "ilike":
        return _format_like_pattern(str(f.value))
    return _format_value(f.value)


def encode_filter(f: FilterLike) -> Tuple[str, str]:
    """
    Encode a filter as a PostgREST query parameter.

    Filter("slug", "eq", "a") -> ("slug", "eq.a")
    AnyOf([...ilike...]) -> ("or", "(title.ilike.*q*,excerpt.ilike.*q*)")
    """
    if isinstance(f, AnyOf):
        members = ",".join(
            f"{m.column}.{m.op}.{_format_operand(m) if m.op == 'in' else _format_list_item(_format_operand(m))}"
            for m in f.filters
        )
        return "or", f"({members})"
    return f.column, f"{f.op}.{_format_operand(f)}"


def encode_order(order: Sequence[Order]) -> str:
    return ",".join(
        f"{o.column}.{'asc' if o.ascending else 'desc'}.nullslast" for o in order
    )


class RestGateway:
    """Gateway over the hosted backend's REST and auth endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        anon_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
        realtime: Optional[RealtimeBridge] = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Project URL; defaults to settings.GATEWAY_URL.
            anon_key: Anonymous API key; defaults to settings.GATEWAY_ANON_KEY.
            session: requests session to use (tests inject a mock).
            timeout: Seconds per request; defaults to settings.REQUEST_TIMEOUT.
            realtime: Push channel bridge; created on first subscribe() when absent.
        """
        self.base_url = (base_url or settings.GATEWAY_URL).rstrip("/")
        self.anon_key = anon_key or settings.GATEWAY_ANON_KEY
        self.session = session or requests.Session()
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.access_token: Optional[str] = None
        self.realtime = realtime

    # =========================================================================
    # HTTP plumbing
    # =========================================================================

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[List[Tuple[str, str]]] = None,
        json_body: Any = None,
        prefer: Optional[str] = None,
    ) -> Result:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=self._headers(prefer),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            return Err(ErrorKind.REMOTE, str(e))

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = response.text

        if response.status_code >= 400:
            err = classify_error(response.status_code, payload)
            logger.warning(f"{method} {path} -> {response.status_code} "
                           f"[{err.kind.value}] {err.message}")
            return err
        return Ok(payload)

    def _table_path(self, table: str) -> str:
        return f"{settings.REST_PATH}/{table}"

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
        params = [("select", columns or "*")]
        params.extend(encode_filter(f) for f in filters)
        if order:
            params.append(("order", encode_order(order)))
        if offset:
            params.append(("offset", str(offset)))
        if limit is not None:
            params.append(("limit", str(limit)))
        result = self._request("GET", self._table_path(table), params=params)
        if result.ok and result.value is None:
            return Ok([])
        return result

    def insert(self, table: str, records: List[Dict[str, Any]]) -> Result:
        result = self._request("POST", self._table_path(table), json_body=list(records),
                               prefer="return=representation")
        if result.ok and result.value is None:
            return Ok([])
        return result

    def update(self, table: str, patch: Dict[str, Any], filters: Sequence[FilterLike]) -> Result:
        params = [encode_filter(f) for f in filters]
        result = self._request("PATCH", self._table_path(table), params=params,
                               json_body=patch, prefer="return=representation")
        if result.ok and result.value is None:
            return Ok([])
        return result

    def delete(self, table: str, filters: Sequence[FilterLike]) -> Result:
        params = [encode_filter(f) for f in filters]
        result = self._request("DELETE", self._table_path(table), params=params,
                               prefer="return=representation")
        if result.ok and result.value is None:
            return Ok([])
        return result

    def rpc(self, name: str, args: Dict[str, Any]) -> Result:
        return self._request("POST", f"{settings.REST_PATH}/rpc/{name}", json_body=args or {})

    def subscribe(self, table: str, callback: ChangeCallback,
                  row_filter: Optional[Filter] = None) -> Subscription:
        if self.realtime is None:
            self.realtime = RealtimeBridge(self.base_url, self.anon_key)
        return self.realtime.subscribe(table, callback, row_filter)

    # =========================================================================
    # Auth gateway
    # =========================================================================

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> Result:
        body = {"email": email, "password": password, "data": metadata or {}}
        result = self._request("POST", f"{settings.AUTH_PATH}/signup", json_body=body)
        if result.ok and isinstance(result.value, dict) and result.value.get("access_token"):
            self.access_token = result.value["access_token"]
        return result

    def sign_in_with_password(self, email: str, password: str) -> Result:
        result = self._request(
            "POST",
            f"{settings.AUTH_PATH}/token",
            params=[("grant_type", "password")],
            json_body={"email": email, "password": password},
        )
        if result.ok and isinstance(result.value, dict):
            self.access_token = result.value.get("access_token")
            logger.info(f"Signed in as {email}")
        return result

    def sign_out(self) -> Result:
        if not self.access_token:
            return Ok(None)
        result = self._request("POST", f"{settings.AUTH_PATH}/logout")
        self.access_token = None
        return result

    def get_user(self) -> Result:
        if not self.access_token:
            return Err(ErrorKind.AUTH_REQUIRED, "No active session")
        return self._request("GET", f"{settings.AUTH_PATH}/user")
