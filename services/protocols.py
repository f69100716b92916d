"""
Service Protocol Definitions

This module defines typing.Protocol interfaces for the entity access and
authentication services. State containers and the CLI depend on these
protocols, so tests can hand them a double instead of a real service.

Protocols defined:
- PostServiceProtocol: Blog posts, sermons and events
- CategoryServiceProtocol: Post categories
- InteractionServiceProtocol: Likes, comments, views, favorites and shares
- AuthServiceProtocol: Local or remote sign-in and sessions
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from data.models import Category, Interaction, LocalSession, LocalUser, Post, PostFilters, ToggleResult
from data.protocols import ChangeCallback, Filter, Subscription


class PostServiceProtocol(Protocol):
    """Protocol defining the interface for post-like entity access.

    Implementations should provide methods for:
    - Paged, filtered listing and case-insensitive search
    - Lookup by id or slug
    - Create/update/delete with required-field validation
    - Server-side view counting and push subscriptions
    """

    def get_all(self, filters: Optional[PostFilters] = None) -> List[Post]:
        """Fetch posts in the default ordering.

        Args:
            filters: Optional query options (published, featured, category,
                limit and offset).

        Returns:
            List of posts with categories attached.
        """
        ...

    def get_by_id(self, post_id: str) -> Post:
        """Fetch one post; raises NotFoundError when absent."""
        ...

    def get_by_slug(self, slug: str) -> Post:
        """Fetch one post by slug; raises NotFoundError when absent."""
        ...

    def search(self, query: str, limit: Optional[int] = None) -> List[Post]:
        """Search published posts; raises ValidationError for a blank query."""
        ...

    def create(self, fields: Dict[str, Any]) -> Post:
        ...

    def update(self, post_id: str, changes: Dict[str, Any]) -> Post:
        ...

    def delete(self, post_id: str) -> bool:
        ...

    def increment_view_count(self, post_id: str) -> Any:
        ...

    def to_post(self, row: Dict[str, Any]) -> Post:
        """Shape a raw row (e.g. from a push event) into a Post."""
        ...

    def matches(self, row: Dict[str, Any], filters: PostFilters) -> bool:
        """Check a raw row against listing filters."""
        ...

    def subscribe(self, callback: ChangeCallback, scope_filter: Optional[Filter] = None) -> Subscription:
        ...


class CategoryServiceProtocol(Protocol):
    """Protocol defining the interface for category entity access."""

    def get_all(self, active: Optional[bool] = None, order_by: str = "display_order") -> List[Category]:
        ...

    def get_by_id(self, category_id: str) -> Category:
        ...

    def get_by_slug(self, slug: str) -> Category:
        ...

    def create(self, fields: Dict[str, Any]) -> Category:
        ...

    def update(self, category_id: str, changes: Dict[str, Any]) -> Category:
        ...

    def delete(self, category_id: str) -> bool:
        ...


class InteractionServiceProtocol(Protocol):
    """Protocol defining the interface for interaction entity access.

    Implementations should provide methods for:
    - Listing a post's interactions and a user's own interactions
    - Creating and deleting interactions, toggling likes/favorites
    - Push subscriptions scoped to one post
    """

    def get_by_post(self, post_id: str, interaction_type: Optional[str] = None) -> List[Interaction]:
        """Fetch a post's interactions, newest first."""
        ...

    def get_user_interactions(self, post_id: str, user_id: str,
                              types: Optional[Iterable[str]] = None) -> Dict[str, Interaction]:
        """Fetch the user's interactions on a post, keyed by type, in one call."""
        ...

    def create(self, fields: Dict[str, Any]) -> Interaction:
        ...

    def delete(self, interaction_id: str) -> bool:
        ...

    def toggle(self, post_id: str, user_id: str, interaction_type: str) -> ToggleResult:
        ...

    def subscribe(self, post_id: str, callback: ChangeCallback) -> Subscription:
        ...


class AuthServiceProtocol(Protocol):
    """Protocol defining the interface for authentication services."""

    def sign_in(self, email: str, password: str) -> Tuple[LocalUser, LocalSession]:
        """Sign in.

        Returns:
            Tuple of the user and the new session.
        """
        ...

    def sign_up(self, email: str, password: str, full_name: str) -> Tuple[LocalUser, Optional[LocalSession]]:
        ...

    def get_session(self) -> Optional[LocalSession]:
        """Return the current unexpired session, or None."""
        ...

    def get_user(self) -> Optional[LocalUser]:
        ...

    def is_authenticated(self) -> bool:
        ...

    def sign_out(self) -> None:
        ...
