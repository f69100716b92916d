"""
Realtime Channel Module

Push subscriptions against the hosted backend's realtime service. The
``realtime`` client is asyncio-based while the rest of the data layer is
blocking, so the client lives on a private event loop thread and every
connect/join/leave is submitted to it and waited on.

Callbacks run on that loop thread; state containers guard their data with
their own locks.
"""

import asyncio
import threading
from typing import Any, Callable, Dict, Optional

from realtime import AsyncRealtimeClient

from config import settings
from data.protocols import ChangeCallback, ChangeEvent, ChangeType, Filter
from utils.exceptions import RemoteError
from utils.logger import get_logger

logger = get_logger(__name__)


def encode_channel_filter(row_filter: Optional[Filter]) -> Optional[str]:
    """
    Encode a row filter the way postgres_changes expects it.

    Filter("post_id", "eq", "blog-001") -> "post_id=eq.blog-001"
    """
    if row_filter is None:
        return None
    if row_filter.op == "in":
        values = ",".join(str(v) for v in row_filter.value)
        return f"{row_filter.column}=in.({values})"
    return f"{row_filter.column}={row_filter.op}.{row_filter.value}"


def change_event_from_payload(table: str, payload: Dict[str, Any]) -> Optional[ChangeEvent]:
    """
    Map a postgres_changes payload to a ChangeEvent.

    Accepts both the wire shape (``data.type``/``record``/``old_record``)
    and the flattened one (``eventType``/``new``/``old``).

    Returns:
        ChangeEvent or None if the payload is not a row change.
    """
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    kind = data.get("type") or data.get("eventType")
    kind = getattr(kind, "value", kind)
    try:
        change = ChangeType(str(kind).upper())
    except ValueError:
        logger.debug(f"Ignoring realtime payload of type {kind!r} on {table}")
        return None

    new = data.get("record") or data.get("new") or None
    old = data.get("old_record") or data.get("old") or None
    return ChangeEvent(change, data.get("table") or table, new=new, old=old)


class RealtimeSubscription:
    """Handle for one joined realtime channel."""

    def __init__(self, bridge: "RealtimeBridge", channel: Any, table: str):
        self._bridge = bridge
        self.channel = channel
        self.table = table
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._bridge.leave(self)


class RealtimeBridge:
    """Runs an AsyncRealtimeClient on its own event loop thread."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client_factory: Callable[..., Any] = AsyncRealtimeClient,
        timeout: Optional[int] = None,
        schema: Optional[str] = None,
    ):
        """
        Initialize the bridge. Nothing connects until the first subscribe().

        Args:
            base_url: Project URL (http/https; the client switches to ws/wss).
            api_key: API key or access token for the socket.
            client_factory: Builds the realtime client (tests inject a mock).
            timeout: Seconds to wait for connect/join/leave.
            schema: Database schema to listen on.
        """
        self.url = f"{base_url.rstrip('/')}{settings.REALTIME_PATH}"
        self.api_key = api_key
        self.client_factory = client_factory
        self.timeout = timeout or settings.REALTIME_TIMEOUT
        self.schema = schema or settings.REALTIME_SCHEMA

        self._client = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._topics = 0

    # =========================================================================
    # Loop management
    # =========================================================================

    def _run(self, coro) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(self.timeout)

    def _start(self) -> None:
        """Start the loop thread and connect the client, once."""
        if self._client is not None:
            return

        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=loop.run_forever, name="refugio-realtime", daemon=True)
        thread.start()
        self._loop, self._thread = loop, thread

        client = self.client_factory(self.url, self.api_key)
        try:
            self._run(client.connect())
        except Exception as e:
            self._stop_loop()
            raise RemoteError(f"Could not connect to realtime service: {e}") from e
        self._client = client
        logger.info(f"Connected to realtime service at {self.url}")

    def _stop_loop(self) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join(self.timeout)
        self._loop = self._thread = None

    # =========================================================================
    # Channels
    # =========================================================================

    def subscribe(self, table: str, callback: ChangeCallback,
                  row_filter: Optional[Filter] = None) -> RealtimeSubscription:
        """
        Join a postgres_changes channel for one table.

        Raises:
            RemoteError: The service could not be reached or refused the join.
        """
        with self._lock:
            self._start()
            self._topics += 1
            topic = f"refugio:{table}:{self._topics}"

        subscription = None

        def deliver(payload: Dict[str, Any]) -> None:
            if subscription is not None and not subscription.active:
                return
            event = change_event_from_payload(table, payload)
            if event is None:
                return
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Realtime subscriber failed on {event.type.value} for {table}: {e}",
                             exc_info=True)

        channel = self._client.channel(topic)
        channel.on_postgres_changes(
            "*", callback=deliver, table=table, schema=self.schema,
            filter=encode_channel_filter(row_filter),
        )
        try:
            self._run(channel.subscribe())
        except Exception as e:
            raise RemoteError(f"Could not subscribe to {table}: {e}") from e

        subscription = RealtimeSubscription(self, channel, table)
        logger.debug(f"Joined realtime channel {topic}")
        return subscription

    def leave(self, subscription: RealtimeSubscription) -> None:
        if self._client is None:
            return
        try:
            self._run(self._client.remove_channel(subscription.channel))
        except Exception as e:
            logger.warning(f"Could not leave realtime channel for {subscription.table}: {e}")

    def close(self) -> None:
        """Disconnect and stop the loop thread."""
        with self._lock:
            if self._client is None:
                return
            try:
                self._run(self._client.close())
            except Exception as e:
                logger.warning(f"Realtime client did not close cleanly: {e}")
            self._client = None
            self._stop_loop()
