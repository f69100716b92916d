"""
Interaction Service Module

Entity access for typed user actions against a post: likes, comments, views,
favorites and shares. One instance serves one interaction table; the column
referencing the post differs per entity ("post_id" for blog posts,
"sermon_id" for sermons).
"""

from typing import Any, Dict, Iterable, List, Optional

from config import settings
from data.models import INTERACTION_TYPES, TOGGLE_TYPES, Interaction, InteractionType, ToggleResult
from data.protocols import ChangeCallback, Filter, Gateway, Order, Subscription
from utils.exceptions import AuthRequiredError, NotFoundError, ValidationError
from utils.helpers import is_blank
from utils.logger import get_logger

logger = get_logger(__name__)


class InteractionService:
    """Entity access for one interaction table."""

    def __init__(
        self,
        gateway: Gateway,
        table: Optional[str] = None,
        target_column: str = "post_id",
        max_comment_length: Optional[int] = None,
        require_approval: Optional[bool] = None,
    ):
        """
        Initialize the service.

        Args:
            gateway: The data gateway.
            table: Interaction table; defaults to the blog interactions table.
            target_column: Column referencing the post.
            max_comment_length: Defaults to settings.COMMENT_MAX_LENGTH.
            require_approval: New comments start unapproved when True;
                defaults to settings.COMMENTS_REQUIRE_APPROVAL.
        """
        self.gateway = gateway
        self.table = table or settings.BLOG_INTERACTIONS_TABLE
        self.target_column = target_column
        self.max_comment_length = max_comment_length or settings.COMMENT_MAX_LENGTH
        self.require_approval = (settings.COMMENTS_REQUIRE_APPROVAL
                                 if require_approval is None else require_approval)

    def _to_interaction(self, row: Dict[str, Any]) -> Interaction:
        return Interaction.from_row(row, target_column=self.target_column)

    def _newest_first(self) -> List[Order]:
        return [Order("created_at", ascending=False)]

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_post(self, post_id: str, interaction_type: Optional[str] = None) -> List[Interaction]:
        """
        Fetch a post's interactions, newest first.

        Args:
            post_id: The post.
            interaction_type: Restrict to one type.

        Returns:
            list: Interactions.
        """
        filters = [Filter(self.target_column, "eq", post_id)]
        if interaction_type:
            filters.append(Filter("type", "eq", interaction_type))
        rows = self.gateway.select(self.table, filters=filters, order=self._newest_first()).unwrap()
        return [self._to_interaction(row) for row in rows]

    def get_user_interaction(self, post_id: str, user_id: str,
                             interaction_type: str) -> Optional[Interaction]:
        """Return the user's interaction of a type on a post, or None."""
        rows = self.gateway.select(
            self.table,
            filters=[
                Filter(self.target_column, "eq", post_id),
                Filter("user_id", "eq", user_id),
                Filter("type", "eq", interaction_type),
            ],
            order=self._newest_first(),
            limit=1,
        ).unwrap()
        return self._to_interaction(rows[0]) if rows else None

    def get_user_interactions(self, post_id: str, user_id: str,
                              types: Optional[Iterable[str]] = None) -> Dict[str, Interaction]:
        """
        Fetch all of a user's interactions on a post in a single query.

        Args:
            post_id: The post.
            user_id: The user.
            types: Types to include; defaults to every type.

        Returns:
            dict: Type -> the user's newest interaction of that type.
        """
        wanted = [str(t.value if isinstance(t, InteractionType) else t) for t in (types or INTERACTION_TYPES)]
        rows = self.gateway.select(
            self.table,
            filters=[
                Filter(self.target_column, "eq", post_id),
                Filter("user_id", "eq", user_id),
                Filter("type", "in", wanted),
            ],
            order=self._newest_first(),
        ).unwrap()

        by_type: Dict[str, Interaction] = {}
        for row in rows:
            by_type.setdefault(row.get("type"), self._to_interaction(row))
        return by_type

    def get_comments(self, post_id: str) -> List[Interaction]:
        return self.get_by_post(post_id, InteractionType.COMMENT.value)

    def get_user_favorites(self, user_id: str) -> List[Interaction]:
        rows = self.gateway.select(
            self.table,
            filters=[Filter("user_id", "eq", user_id), Filter("type", "eq", InteractionType.FAVORITE.value)],
            order=self._newest_first(),
        ).unwrap()
        return [self._to_interaction(row) for row in rows]

    # =========================================================================
    # Writes
    # =========================================================================

    def _validate_parent(self, post_id: str, parent_id: str) -> None:
        rows = self.gateway.select(self.table, filters=[Filter("id", "eq", parent_id)], limit=1).unwrap()
        if not rows:
            raise ValidationError(f"Parent comment '{parent_id}' does not exist")
        parent = self._to_interaction(rows[0])
        if parent.post_id != post_id:
            raise ValidationError("Replies must belong to the same post as their parent")
        if parent.type != InteractionType.COMMENT.value:
            raise ValidationError("Replies can only be made to comments")
        if parent.parent_id:
            # One level of nesting
            raise ValidationError("Replies to replies are not allowed")

    def create(self, fields: Dict[str, Any]) -> Interaction:
        """
        Create an interaction.

        Args:
            fields: ``type``, the target column (or ``post_id``), ``user_id``
                and for comments ``content`` / ``parent_id``.

        Returns:
            Interaction: The stored record.

        Raises:
            ValidationError: Unknown type, missing post, bad comment content
                or an invalid reply parent.
            AuthRequiredError: A non-view interaction without a user.
        """
        interaction_type = fields.get("type")
        if interaction_type not in INTERACTION_TYPES:
            raise ValidationError(f"Unknown interaction type: {interaction_type}")

        post_id = fields.get(self.target_column) or fields.get("post_id")
        if is_blank(post_id):
            raise ValidationError(f"{self.target_column} is required")

        user_id = fields.get("user_id")
        if interaction_type != InteractionType.VIEW.value and is_blank(user_id):
            raise AuthRequiredError(f"Sign in to {interaction_type} this post")

        content = fields.get("content")
        parent_id = fields.get("parent_id")
        record: Dict[str, Any] = {
            self.target_column: post_id,
            "user_id": user_id,
            "type": interaction_type,
        }

        if interaction_type == InteractionType.COMMENT.value:
            content = (content or "").strip()
            if not content:
                raise ValidationError("Comment cannot be empty")
            if len(content) > self.max_comment_length:
                raise ValidationError(f"Comment exceeds {self.max_comment_length} characters")
            if parent_id:
                self._validate_parent(post_id, parent_id)
                record["parent_id"] = parent_id
            record["is_approved"] = not self.require_approval
        elif interaction_type == InteractionType.SHARE.value:
            content = content or "general"

        if content:
            record["content"] = content
        for snapshot in ("author_name", "author_email"):
            if fields.get(snapshot):
                record[snapshot] = fields[snapshot]

        rows = self.gateway.insert(self.table, [record]).unwrap()
        interaction = self._to_interaction(rows[0])
        logger.debug(f"Created {interaction_type} {interaction.id} on {post_id}")
        return interaction

    def delete(self, interaction_id: str) -> bool:
        rows = self.gateway.delete(self.table, [Filter("id", "eq", interaction_id)]).unwrap()
        if not rows:
            raise NotFoundError(f"Interaction '{interaction_id}' not found", code="PGRST116")
        return True

    def toggle(self, post_id: str, user_id: str, interaction_type: str) -> ToggleResult:
        """
        Flip a like or favorite: delete the user's existing one or create it.

        Two sequential gateway calls (lookup, then delete or create); two
        concurrent toggles are not serialized.

        Returns:
            ToggleResult: ``active`` tells whether the interaction now exists;
                ``interaction`` is the record created or removed.
        """
        if is_blank(user_id):
            raise AuthRequiredError(f"Sign in to {interaction_type} this post")
        if interaction_type not in TOGGLE_TYPES:
            raise ValidationError(f"'{interaction_type}' cannot be toggled")

        existing = self.get_user_interaction(post_id, user_id, interaction_type)
        if existing:
            self.delete(existing.id)
            return ToggleResult(active=False, interaction=existing)

        created = self.create({self.target_column: post_id, "user_id": user_id, "type": interaction_type})
        return ToggleResult(active=True, interaction=created)

    def toggle_like(self, post_id: str, user_id: str) -> ToggleResult:
        return self.toggle(post_id, user_id, InteractionType.LIKE.value)

    def toggle_favorite(self, post_id: str, user_id: str) -> ToggleResult:
        return self.toggle(post_id, user_id, InteractionType.FAVORITE.value)

    def add_comment(
        self,
        post_id: str,
        user_id: str,
        content: str,
        parent_id: Optional[str] = None,
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
    ) -> Interaction:
        return self.create({
            self.target_column: post_id,
            "user_id": user_id,
            "type": InteractionType.COMMENT.value,
            "content": content,
            "parent_id": parent_id,
            "author_name": author_name,
            "author_email": author_email,
        })

    def share(self, post_id: str, user_id: str, platform: Optional[str] = None) -> Interaction:
        return self.create({
            self.target_column: post_id,
            "user_id": user_id,
            "type": InteractionType.SHARE.value,
            "content": platform,
        })

    def record_view(self, post_id: str, user_id: Optional[str] = None) -> Interaction:
        """Record a view; anonymous views are allowed."""
        return self.create({self.target_column: post_id, "user_id": user_id, "type": InteractionType.VIEW.value})

    def subscribe(self, post_id: str, callback: ChangeCallback) -> Subscription:
        """Listen for interaction events on one post."""
        return self.gateway.subscribe(self.table, callback, Filter(self.target_column, "eq", post_id))
