"""
Tests for the Interaction Service

Tests cover the interaction vocabulary, sign-in requirements, comment
validation, reply nesting rules, like/favorite toggles and the single-query
lookup of a user's interactions.
"""

import pytest
from unittest.mock import MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings
from data.protocols import ChangeType, Ok
from services.interaction_service import InteractionService
from utils.exceptions import AuthRequiredError, NotFoundError, ValidationError


# =============================================================================
# Create Tests
# =============================================================================

class TestCreate:
    """Tests for InteractionService.create."""

    def test_unknown_type(self, interaction_service):
        with pytest.raises(ValidationError):
            interaction_service.create({"post_id": "blog-001", "user_id": "u1", "type": "dislike"})

    def test_post_required(self, interaction_service):
        with pytest.raises(ValidationError):
            interaction_service.create({"user_id": "u1", "type": "like"})

    def test_like_requires_user(self, interaction_service):
        with pytest.raises(AuthRequiredError):
            interaction_service.create({"post_id": "blog-001", "type": "like"})

    def test_anonymous_view_allowed(self, interaction_service):
        view = interaction_service.record_view("blog-001")

        assert view.type == "view"
        assert view.user_id is None

    def test_share_defaults_platform(self, interaction_service):
        assert interaction_service.share("blog-001", "u1").content == "general"
        assert interaction_service.share("blog-001", "u1", "whatsapp").content == "whatsapp"


class TestComments:
    """Tests for comment validation and replies."""

    def test_comment_is_trimmed_with_snapshot(self, interaction_service):
        comment = interaction_service.add_comment(
            "blog-001", "member-001", "  Amén  ", author_name="Miembro de Prueba"
        )

        assert comment.content == "Amén"
        assert comment.parent_id is None
        assert comment.author_name == "Miembro de Prueba"
        assert comment.is_approved is True

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_comment(self, interaction_service, content):
        with pytest.raises(ValidationError):
            interaction_service.add_comment("blog-001", "u1", content)

    def test_length_limit(self, local_store):
        service = InteractionService(local_store, max_comment_length=10)

        service.add_comment("blog-001", "u1", "x" * 10)
        with pytest.raises(ValidationError):
            service.add_comment("blog-001", "u1", "x" * 11)

    def test_approval_required(self, local_store):
        service = InteractionService(local_store, require_approval=True)
        assert service.add_comment("blog-001", "u1", "Hola").is_approved is False

    def test_reply_to_comment(self, interaction_service):
        parent = interaction_service.add_comment("blog-001", "u1", "Pregunta")

        reply = interaction_service.add_comment("blog-001", "u2", "Respuesta", parent_id=parent.id)

        assert reply.parent_id == parent.id

    def test_reply_to_reply_rejected(self, interaction_service):
        parent = interaction_service.add_comment("blog-001", "u1", "Pregunta")
        reply = interaction_service.add_comment("blog-001", "u2", "Respuesta", parent_id=parent.id)

        with pytest.raises(ValidationError):
            interaction_service.add_comment("blog-001", "u1", "Más", parent_id=reply.id)

    def test_reply_across_posts_rejected(self, interaction_service):
        parent = interaction_service.add_comment("blog-001", "u1", "Pregunta")

        with pytest.raises(ValidationError):
            interaction_service.add_comment("blog-002", "u2", "Respuesta", parent_id=parent.id)

    def test_reply_to_missing_parent(self, interaction_service):
        with pytest.raises(ValidationError):
            interaction_service.add_comment("blog-001", "u1", "Hola", parent_id="interaction-missing")

    def test_reply_to_like_rejected(self, interaction_service):
        like = interaction_service.toggle_like("blog-001", "u1").interaction

        with pytest.raises(ValidationError):
            interaction_service.add_comment("blog-001", "u2", "Hola", parent_id=like.id)


# =============================================================================
# Toggle Tests
# =============================================================================

class TestToggle:
    """Tests for like/favorite toggles."""

    def test_toggle_pair_restores_state(self, interaction_service):
        first = interaction_service.toggle_like("blog-001", "u1")
        second = interaction_service.toggle_like("blog-001", "u1")

        assert first.active is True
        assert second.active is False
        assert second.interaction.id == first.interaction.id
        assert interaction_service.get_by_post("blog-001", "like") == []

    def test_favorite_independent_of_like(self, interaction_service):
        interaction_service.toggle_like("blog-001", "u1")
        interaction_service.toggle_favorite("blog-001", "u1")

        types = sorted(i.type for i in interaction_service.get_by_post("blog-001"))
        assert types == ["favorite", "like"]

    def test_toggle_requires_user(self, interaction_service):
        with pytest.raises(AuthRequiredError):
            interaction_service.toggle_like("blog-001", None)

    def test_comment_not_toggleable(self, interaction_service):
        with pytest.raises(ValidationError):
            interaction_service.toggle("blog-001", "u1", "comment")


# =============================================================================
# Read Tests
# =============================================================================

class TestReads:
    """Tests for lookups."""

    def test_get_user_interactions_single_query(self):
        gateway = MagicMock()
        gateway.select.return_value = Ok([
            {"id": "i1", "post_id": "blog-001", "user_id": "u1", "type": "like"},
            {"id": "i2", "post_id": "blog-001", "user_id": "u1", "type": "favorite"},
        ])
        service = InteractionService(gateway)

        result = service.get_user_interactions("blog-001", "u1", ["like", "favorite"])

        assert set(result) == {"like", "favorite"}
        assert result["like"].id == "i1"
        gateway.select.assert_called_once()
        filters = gateway.select.call_args[1]["filters"]
        assert [f.column for f in filters] == ["post_id", "user_id", "type"]
        assert filters[2].op == "in"

    def test_get_user_favorites(self, interaction_service):
        interaction_service.toggle_favorite("blog-001", "u1")
        interaction_service.toggle_favorite("blog-002", "u1")
        interaction_service.toggle_favorite("blog-002", "u2")

        assert sorted(i.post_id for i in interaction_service.get_user_favorites("u1")) == ["blog-001", "blog-002"]

    def test_sermon_target_column(self, local_store):
        service = InteractionService(local_store, settings.SERMON_INTERACTIONS_TABLE, "sermon_id")

        like = service.toggle_like("sermon-001", "u1").interaction

        assert like.post_id == "sermon-001"
        rows = local_store.select(settings.SERMON_INTERACTIONS_TABLE).unwrap()
        assert rows[0]["sermon_id"] == "sermon-001"

    def test_delete_missing(self, interaction_service):
        with pytest.raises(NotFoundError):
            interaction_service.delete("interaction-missing")


class TestSubscribe:
    """Tests for post-scoped push subscriptions."""

    def test_only_events_for_the_post(self, interaction_service):
        callback = MagicMock()
        interaction_service.subscribe("blog-002", callback)

        interaction_service.toggle_like("blog-001", "u1")
        interaction_service.toggle_like("blog-002", "u1")

        assert callback.call_count == 1
        event = callback.call_args[0][0]
        assert event.type == ChangeType.INSERT
        assert event.new["post_id"] == "blog-002"
