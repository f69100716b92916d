"""
Data Models for Refugio Sync

This module contains the data classes used throughout the application.
Gateways speak plain row dictionaries; services convert them to these
models with ``from_row`` and back with ``to_row``.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class InteractionType(str, Enum):
    """Fixed vocabulary of interactions against a post."""
    LIKE = "like"
    COMMENT = "comment"
    VIEW = "view"
    FAVORITE = "favorite"
    SHARE = "share"


TOGGLE_TYPES = (InteractionType.LIKE, InteractionType.FAVORITE)
INTERACTION_TYPES = tuple(t.value for t in InteractionType)


class UserRole(str, Enum):
    """Roles known to the local fallback authentication."""
    ADMIN = "admin"
    PASTOR = "pastor"
    LEADER = "leader"
    MEMBER = "member"


COUNTER_FIELDS = ("view_count", "like_count", "comment_count")


@dataclass
class Category:
    """A post category (blog or sermon)."""
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    color: Optional[str] = None
    display_order: int = 0
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Category":
        return cls(
            id=row["id"],
            name=row.get("name") or "",
            slug=row.get("slug") or "",
            description=row.get("description"),
            color=row.get("color"),
            display_order=row.get("display_order") or 0,
            is_active=row.get("is_active", True),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


_POST_COLUMNS = (
    "id", "slug", "title", "content", "excerpt", "author_id", "author_name",
    "category_id", "tags", "is_published", "is_featured", "view_count",
    "like_count", "comment_count", "created_at", "updated_at", "published_at",
)


@dataclass
class Post:
    """
    A content item: blog post, sermon or event.

    Columns that only some entities carry (preacher, event_date, is_active...)
    live in ``extra``. ``category`` is attached by the service and stays None
    when the referenced category no longer exists.
    """
    id: str
    slug: str
    title: str
    content: str = ""
    excerpt: Optional[str] = None
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    category_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    is_published: bool = False
    is_featured: bool = False
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    published_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    category: Optional[Category] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any], content_field: str = "content") -> "Post":
        """
        Build a Post from a gateway row.

        Args:
            row: The row dictionary.
            content_field: Column holding the body text ("description" for
                sermons and events).

        Returns:
            Post: The model.
        """
        known = set(_POST_COLUMNS) | {content_field}
        extra = {k: v for k, v in row.items() if k not in known and not isinstance(v, dict)}
        if content_field != "content" and "content" in row:
            extra["content"] = row["content"]
        return cls(
            id=row["id"],
            slug=row.get("slug") or "",
            title=row.get("title") or "",
            content=row.get(content_field) or "",
            excerpt=row.get("excerpt"),
            author_id=row.get("author_id"),
            author_name=row.get("author_name"),
            category_id=row.get("category_id"),
            tags=list(row.get("tags") or []),
            is_published=bool(row.get("is_published", False)),
            is_featured=bool(row.get("is_featured", False)),
            view_count=row.get("view_count") or 0,
            like_count=row.get("like_count") or 0,
            comment_count=row.get("comment_count") or 0,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            published_at=row.get("published_at"),
            extra=extra,
        )

    def to_row(self, content_field: str = "content") -> Dict[str, Any]:
        """Flatten back into a row; the joined category is left out."""
        row = dict(self.extra)
        row.update({column: getattr(self, column) for column in _POST_COLUMNS if column != "content"})
        row[content_field] = self.content
        return row

    def get(self, column: str, default: Any = None) -> Any:
        """Read a column by name, looking into ``extra`` as well."""
        if column in _POST_COLUMNS:
            return getattr(self, column)
        return self.extra.get(column, default)


@dataclass
class Interaction:
    """A typed user action against a post; comments are interactions too."""
    id: str
    post_id: str
    type: str
    user_id: Optional[str] = None
    content: Optional[str] = None
    parent_id: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None
    is_approved: bool = True
    created_at: Optional[str] = None
    pending: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any], target_column: str = "post_id") -> "Interaction":
        """
        Build an Interaction from a gateway row.

        Args:
            row: The row dictionary.
            target_column: Column referencing the post ("post_id", "sermon_id").

        Returns:
            Interaction: The model.
        """
        return cls(
            id=row["id"],
            post_id=row.get(target_column) or row.get("post_id") or "",
            type=row.get("type") or "",
            user_id=row.get("user_id"),
            content=row.get("content"),
            parent_id=row.get("parent_id"),
            author_name=row.get("author_name"),
            author_email=row.get("author_email"),
            is_approved=row.get("is_approved", True),
            created_at=row.get("created_at"),
        )

    def to_row(self, target_column: str = "post_id") -> Dict[str, Any]:
        row = asdict(self)
        row.pop("pending")
        row[target_column] = row.pop("post_id")
        return row


@dataclass
class LocalUser:
    """A user of the local fallback authentication."""
    id: str
    email: str
    full_name: str
    role: str = UserRole.MEMBER.value
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[str] = None
    last_login: Optional[str] = None
    password_hash: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalUser":
        names = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in names})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def public_dict(self) -> Dict[str, Any]:
        """The user without credential material."""
        data = self.to_dict()
        data.pop("password_hash", None)
        return data


@dataclass
class LocalSession:
    """A signed-in user with an opaque token and an absolute expiry (epoch ms)."""
    user: LocalUser
    access_token: str
    expires_at: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalSession":
        return cls(
            user=LocalUser.from_dict(data["user"]),
            access_token=data["access_token"],
            expires_at=int(data["expires_at"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user.public_dict(),
            "access_token": self.access_token,
            "expires_at": self.expires_at,
        }


@dataclass
class PostFilters:
    """Query options for PostService.get_all."""
    published_only: Optional[bool] = None
    featured_only: Optional[bool] = None
    category_id: Optional[str] = None
    preacher: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    order_field: Optional[str] = None
    order_direction: Optional[str] = None


@dataclass
class ToggleResult:
    """Outcome of a like/favorite toggle."""
    active: bool
    interaction: Optional[Interaction] = None
