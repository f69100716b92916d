"""
Interaction State

UI-facing cache of one post's interactions and the current user's own
interactions. It fetches on mount, applies mutations optimistically,
reconciles them from the service's return value and merges push events
while mounted.

Optimistic entries are tagged ``pending``. They are replaced by the
server's record on success and rolled back on failure.
"""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from config import settings
from data.models import Interaction, InteractionType, ToggleResult
from data.protocols import ChangeEvent, ChangeType, Subscription
from services.protocols import InteractionServiceProtocol
from utils.exceptions import AuthRequiredError, DuplicateError, RemoteError, ValidationError
from utils.helpers import to_iso, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CommentThread:
    """A top-level comment and its replies, oldest reply first."""
    comment: Interaction
    replies: List[Interaction] = field(default_factory=list)


class InteractionState:
    """Interaction cache for one post, optionally kept live by push events."""

    def __init__(
        self,
        service: InteractionServiceProtocol,
        post_id: str,
        user_id: Optional[str] = None,
        type_filter: Optional[str] = None,
        realtime: bool = False,
        on_change: Optional[Callable[["InteractionState"], None]] = None,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
    ):
        """
        Initialize the state. Nothing is fetched until ``mount()``.

        Args:
            service: Interaction service for the post's table.
            post_id: The post whose interactions are mirrored.
            user_id: The signed-in user, if any.
            type_filter: Only mirror interactions of this type.
            realtime: Subscribe to push events while mounted.
            on_change: Called with this state after every change.
            author_name: Snapshot stored on the user's comments.
            author_email: Snapshot stored on the user's comments.
        """
        self.service = service
        self.post_id = post_id
        self.user_id = user_id
        self.type_filter = type_filter
        self.realtime = realtime
        self.on_change = on_change
        self.author_name = author_name
        self.author_email = author_email

        self.interactions: List[Interaction] = []
        self.user_interactions: Dict[str, Interaction] = {}
        self.loading = False
        self.error: Optional[str] = None

        self._mounted = False
        self._generation = 0
        self._subscription: Optional[Subscription] = None
        # Push callbacks may arrive from another thread
        self._lock = threading.RLock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def __enter__(self) -> "InteractionState":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self) -> None:
        """Subscribe (when realtime) and fetch the initial state."""
        self._mounted = True
        if self.realtime:
            try:
                self._subscription = self.service.subscribe(self.post_id, self._handle_event)
            except RemoteError as e:
                logger.warning(f"Push updates unavailable for {self.post_id}: {e}")
        self.refetch()

    def unmount(self) -> None:
        """Release the subscription; later responses and events are discarded."""
        self._mounted = False
        with self._lock:
            self._generation += 1
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    def _notify(self) -> None:
        if self.on_change and self._mounted:
            self.on_change(self)

    def _fail(self, error: Exception) -> None:
        with self._lock:
            self.error = getattr(error, "message", None) or str(error)
        self._notify()

    def refetch(self) -> None:
        """
        Reload the interaction list and the user's interactions.

        A newer refetch supersedes this one; its results are then dropped.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.loading = True
            self.error = None
        self._notify()

        try:
            interactions = self.service.get_by_post(self.post_id, self.type_filter)
            user_map = (self.service.get_user_interactions(self.post_id, self.user_id)
                        if self.user_id else {})
        except Exception as e:
            if self._is_current(generation):
                with self._lock:
                    self.loading = False
                self._fail(e)
            raise

        if not self._is_current(generation):
            logger.debug(f"Discarding stale interaction fetch for {self.post_id}")
            return

        with self._lock:
            self.interactions = interactions
            self.user_interactions = dict(user_map)
            self.loading = False
        self._notify()

    # =========================================================================
    # Local list helpers (callers hold the lock)
    # =========================================================================

    def _accepts(self, interaction_type: Optional[str]) -> bool:
        return self.type_filter is None or interaction_type == self.type_filter

    def _index_of(self, interaction_id: str) -> Optional[int]:
        for index, interaction in enumerate(self.interactions):
            if interaction.id == interaction_id:
                return index
        return None

    def _remove(self, interaction_id: str) -> Optional[Interaction]:
        index = self._index_of(interaction_id)
        if index is None:
            return None
        return self.interactions.pop(index)

    def _upsert(self, interaction: Interaction, position: int = 0) -> None:
        """Insert a record, replacing it in place if its id is already listed."""
        if not self._accepts(interaction.type):
            return
        index = self._index_of(interaction.id)
        if index is not None:
            self.interactions[index] = interaction
        else:
            self.interactions.insert(min(position, len(self.interactions)), interaction)

    def _provisional(self, interaction_type: str, content: Optional[str] = None,
                     parent_id: Optional[str] = None) -> Interaction:
        return Interaction(
            id=f"pending-{uuid.uuid4().hex}",
            post_id=self.post_id,
            type=interaction_type,
            user_id=self.user_id,
            content=content,
            parent_id=parent_id,
            author_name=self.author_name,
            author_email=self.author_email,
            created_at=to_iso(utc_now()),
            pending=True,
        )

    def _confirm(self, provisional: Interaction, record: Interaction) -> None:
        """Swap a provisional entry for the server's record."""
        index = self._index_of(provisional.id)
        if index is not None:
            self.interactions.pop(index)
        self._upsert(record, position=index or 0)
        if self.user_interactions.get(record.type) is provisional:
            self.user_interactions[record.type] = record

    def _require_user(self, action: str) -> str:
        if not self.user_id:
            error = AuthRequiredError(f"User must be signed in to {action}")
            self._fail(error)
            raise error
        return self.user_id

    # =========================================================================
    # Mutations
    # =========================================================================

    def _toggle(self, interaction_type: str) -> Optional[ToggleResult]:
        user_id = self._require_user(f"{interaction_type} posts")

        with self._lock:
            self.error = None
            existing = self.user_interactions.get(interaction_type)
            provisional = None
            removed_at = None
            if existing:
                removed_at = self._index_of(existing.id)
                self._remove(existing.id)
                self.user_interactions.pop(interaction_type, None)
            else:
                provisional = self._provisional(interaction_type)
                self._upsert(provisional)
                self.user_interactions[interaction_type] = provisional
        self._notify()

        def rollback():
            if provisional is not None:
                self._remove(provisional.id)
                if self.user_interactions.get(interaction_type) is provisional:
                    self.user_interactions.pop(interaction_type, None)
            else:
                if removed_at is not None:
                    self._upsert(existing, position=removed_at)
                self.user_interactions[interaction_type] = existing

        try:
            result = self.service.toggle(self.post_id, user_id, interaction_type)
        except DuplicateError as e:
            # The interaction already exists remotely; keep going without it
            logger.warning(f"Duplicate {interaction_type} on {self.post_id}: {e.message}")
            if self._mounted:
                with self._lock:
                    rollback()
                self._fail(e)
            return None
        except Exception as e:
            if self._mounted:
                with self._lock:
                    rollback()
                self._fail(e)
            raise

        if not self._mounted:
            return result

        with self._lock:
            if provisional is not None:
                self._remove(provisional.id)
                if self.user_interactions.get(interaction_type) is provisional:
                    self.user_interactions.pop(interaction_type, None)
            if result.active and result.interaction:
                self._upsert(result.interaction)
                self.user_interactions[interaction_type] = result.interaction
            else:
                if result.interaction:
                    self._remove(result.interaction.id)
                self.user_interactions.pop(interaction_type, None)
        self._notify()
        return result

    def toggle_like(self) -> Optional[ToggleResult]:
        """Like or unlike the post. Returns None when the like already existed remotely."""
        return self._toggle(InteractionType.LIKE.value)

    def toggle_favorite(self) -> Optional[ToggleResult]:
        return self._toggle(InteractionType.FAVORITE.value)

    def add_comment(self, content: str, parent_id: Optional[str] = None) -> Interaction:
        """
        Add a comment (or a reply to a top-level comment).

        Args:
            content: Comment text; stripped, non-empty, bounded in length.
            parent_id: Id of the comment being replied to.

        Returns:
            Interaction: The stored comment.
        """
        user_id = self._require_user("comment")
        text = (content or "").strip()
        if not text:
            error = ValidationError("Comment cannot be empty")
            self._fail(error)
            raise error
        if len(text) > settings.COMMENT_MAX_LENGTH:
            error = ValidationError(f"Comment exceeds {settings.COMMENT_MAX_LENGTH} characters")
            self._fail(error)
            raise error

        with self._lock:
            self.error = None
            provisional = self._provisional(InteractionType.COMMENT.value, text, parent_id)
            self._upsert(provisional)
        self._notify()

        try:
            comment = self.service.add_comment(
                self.post_id, user_id, text, parent_id=parent_id,
                author_name=self.author_name, author_email=self.author_email,
            )
        except Exception as e:
            if self._mounted:
                with self._lock:
                    self._remove(provisional.id)
                self._fail(e)
            raise

        if self._mounted:
            with self._lock:
                self._confirm(provisional, comment)
                self.user_interactions[comment.type] = comment
            self._notify()
        return comment

    def share(self, platform: Optional[str] = None) -> Interaction:
        user_id = self._require_user("share")
        return self.create_interaction({"post_id": self.post_id, "user_id": user_id,
                                        "type": InteractionType.SHARE.value, "content": platform})

    def create_interaction(self, fields: Dict[str, Any]) -> Interaction:
        """Create any interaction for this post and add it to the local state."""
        with self._lock:
            self.error = None
        record = dict(fields)
        record.setdefault("post_id", self.post_id)
        try:
            interaction = self.service.create(record)
        except Exception as e:
            if self._mounted:
                self._fail(e)
            raise

        if self._mounted:
            with self._lock:
                self._upsert(interaction)
                if self.user_id and interaction.user_id == self.user_id:
                    self.user_interactions[interaction.type] = interaction
            self._notify()
        return interaction

    def delete_interaction(self, interaction_id: str, interaction_type: str) -> None:
        """Delete an interaction, removing it locally first and restoring it on failure."""
        with self._lock:
            self.error = None
            index = self._index_of(interaction_id)
            removed = self._remove(interaction_id)
            mapped = self.user_interactions.get(interaction_type)
            if mapped and mapped.id == interaction_id:
                self.user_interactions.pop(interaction_type)
            else:
                mapped = None
        self._notify()

        try:
            self.service.delete(interaction_id)
        except Exception as e:
            if self._mounted:
                with self._lock:
                    if removed is not None:
                        self._upsert(removed, position=index or 0)
                    if mapped is not None:
                        self.user_interactions[interaction_type] = mapped
                self._fail(e)
            raise

    # =========================================================================
    # Push merge
    # =========================================================================

    def _handle_event(self, event: ChangeEvent) -> None:
        if not self._mounted:
            return

        with self._lock:
            if event.type == ChangeType.DELETE:
                changed = self._merge_delete(event.old or {})
            else:
                changed = self._merge_upsert(event.type, event.new or {})
        if changed:
            self._notify()

    def _merge_upsert(self, change: ChangeType, record: Dict[str, Any]) -> bool:
        if not record.get("id") or not self._accepts(record.get("type")):
            return False
        interaction = Interaction.from_row(record, target_column=getattr(self.service, "target_column", "post_id"))
        if interaction.post_id and interaction.post_id != self.post_id:
            return False

        if change == ChangeType.INSERT:
            self._upsert(interaction)
        else:
            index = self._index_of(interaction.id)
            if index is None:
                return False
            self.interactions[index] = interaction

        if self.user_id and interaction.user_id == self.user_id:
            self.user_interactions[interaction.type] = interaction
        return True

    def _merge_delete(self, record: Dict[str, Any]) -> bool:
        interaction_id = record.get("id")
        if not interaction_id:
            return False
        removed = self._remove(interaction_id) is not None
        for interaction_type, interaction in list(self.user_interactions.items()):
            if interaction.id == interaction_id:
                del self.user_interactions[interaction_type]
                removed = True
        return removed

    # =========================================================================
    # Derived views
    # =========================================================================

    def _of_type(self, interaction_type: str) -> List[Interaction]:
        with self._lock:
            return [i for i in self.interactions if i.type == interaction_type]

    def get_likes(self) -> List[Interaction]:
        return self._of_type(InteractionType.LIKE.value)

    def get_comments(self) -> List[Interaction]:
        return self._of_type(InteractionType.COMMENT.value)

    def get_favorites(self) -> List[Interaction]:
        return self._of_type(InteractionType.FAVORITE.value)

    def get_shares(self) -> List[Interaction]:
        return self._of_type(InteractionType.SHARE.value)

    def get_views(self) -> List[Interaction]:
        return self._of_type(InteractionType.VIEW.value)

    def get_like_count(self) -> int:
        return len(self.get_likes())

    def get_comment_count(self) -> int:
        return len(self.get_comments())

    def get_favorite_count(self) -> int:
        return len(self.get_favorites())

    def get_share_count(self) -> int:
        return len(self.get_shares())

    def get_view_count(self) -> int:
        return len(self.get_views())

    def is_liked_by_user(self) -> bool:
        return InteractionType.LIKE.value in self.user_interactions

    def is_favorited_by_user(self) -> bool:
        return InteractionType.FAVORITE.value in self.user_interactions

    def get_replies(self, comment_id: str) -> List[Interaction]:
        replies = [c for c in self.get_comments() if c.parent_id == comment_id]
        return sorted(replies, key=lambda c: c.created_at or "")

    def get_comment_threads(self) -> List[CommentThread]:
        """Top-level comments newest first, each with its replies."""
        comments = self.get_comments()
        return [
            CommentThread(comment=c, replies=self.get_replies(c.id))
            for c in comments
            if not c.parent_id
        ]
