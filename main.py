"""
Refugio Sync

This is the main entry point for Refugio Sync. It builds the data gateway
and the entity access services for the configured mode (hosted backend, or
the local fallback store when no backend is configured) and prints the most
recent published content.
"""

import sys
import argparse
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

import pandas as pd

from config import settings
from config.validators import get_config_summary, validate_settings
from data.local_store import LocalStore
from data.models import Post
from data.protocols import Gateway
from data.rest_gateway import RestGateway
from data.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from services.category_service import CategoryService
from services.interaction_service import InteractionService
from services.local_auth_service import LocalAuthService
from services.post_service import BlogPostService, EventService, SermonService
from services.remote_auth_service import RemoteAuthService
from state.interaction_state import InteractionState
from state.post_state import PostListState
from utils.exceptions import RefugioSyncError
from utils.helpers import truncate_text
from utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)


@dataclass
class AppServices:
    """Everything the UI layer needs, wired to one gateway."""
    gateway: Gateway
    mode: str
    blog_posts: BlogPostService
    sermons: SermonService
    events: EventService
    blog_categories: CategoryService
    sermon_categories: CategoryService
    blog_interactions: InteractionService
    sermon_interactions: InteractionService
    auth: Union[LocalAuthService, RemoteAuthService]

    def blog_post_list(self, **kwargs) -> PostListState:
        return PostListState(self.blog_posts, **kwargs)

    def blog_interaction_state(self, post_id: str, user_id: Optional[str] = None, **kwargs) -> InteractionState:
        return InteractionState(self.blog_interactions, post_id, user_id=user_id, **kwargs)

    def sermon_interaction_state(self, sermon_id: str, user_id: Optional[str] = None, **kwargs) -> InteractionState:
        return InteractionState(self.sermon_interactions, sermon_id, user_id=user_id, **kwargs)


def create_services(
    gateway: Optional[Gateway] = None,
    storage: Optional[KeyValueStorage] = None,
    force_local: bool = False,
) -> AppServices:
    """
    Build the services for the configured mode.

    Args:
        gateway: Use this gateway instead of choosing one from settings.
        storage: Storage for the local fallback store and local auth;
            defaults to a JSON file at settings.LOCAL_STORAGE_FILE.
        force_local: Use the local fallback store even if a backend is configured.

    Returns:
        AppServices: The wired services.
    """
    if gateway is None:
        if settings.is_remote_configured() and not force_local:
            gateway = RestGateway()
        else:
            if storage is None:
                storage = JsonFileStorage(settings.LOCAL_STORAGE_FILE)
            gateway = LocalStore(storage)

    if isinstance(gateway, RestGateway):
        mode = "remote"
        auth = RemoteAuthService(gateway)
    else:
        mode = "local"
        if storage is None:
            storage = getattr(gateway, "storage", None) or MemoryStorage()
        auth = LocalAuthService(storage)

    logger.info(f"Using {mode} data gateway")
    return AppServices(
        gateway=gateway,
        mode=mode,
        blog_posts=BlogPostService(gateway),
        sermons=SermonService(gateway),
        events=EventService(gateway),
        blog_categories=CategoryService(gateway, settings.BLOG_CATEGORIES_TABLE),
        sermon_categories=CategoryService(gateway, settings.SERMON_CATEGORIES_TABLE),
        blog_interactions=InteractionService(gateway, settings.BLOG_INTERACTIONS_TABLE, "post_id"),
        sermon_interactions=InteractionService(gateway, settings.SERMON_INTERACTIONS_TABLE, "sermon_id"),
        auth=auth,
    )


def posts_frame(posts: List[Post], date_column: str = "published_at") -> pd.DataFrame:
    """Tabulate posts for console output."""
    return pd.DataFrame(
        [
            {
                "id": p.id,
                "title": truncate_text(p.title, 60),
                "date": p.get(date_column),
                "category": p.category.name if p.category else "",
                "views": p.view_count,
                "likes": p.like_count,
                "comments": p.comment_count,
            }
            for p in posts
        ],
        columns=["id", "title", "date", "category", "views", "likes", "comments"],
    )


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Refugio Sync')
    parser.add_argument('--log-file', type=str, default='refugio_sync.log', help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')
    parser.add_argument('--local', action='store_true',
                        help='Use the local fallback store even if a backend is configured')
    parser.add_argument('--limit', type=int, default=5, help='Number of items to list per section')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info("Starting Refugio Sync")

    try:
        validate_settings()
        logger.info(f"Configuration: {get_config_summary()}")

        services = create_services(force_local=args.local)

        sections = [
            ("Blog posts", services.blog_posts.get_recent(args.limit), "published_at"),
            ("Sermons", services.sermons.get_recent(args.limit), "preached_at"),
            ("Upcoming events", services.events.get_upcoming(args.limit), "event_date"),
        ]
        for title, posts, date_column in sections:
            print(f"\n{title} ({len(posts)})")
            if posts:
                print(posts_frame(posts, date_column).to_string(index=False))

        exit_code = 0

    except RefugioSyncError as e:
        logger.error(f"Refugio Sync error ({e.kind.value}): {e}", exc_info=True)
        exit_code = 1
    except Exception as e:
        logger.error(f"Unhandled exception in Refugio Sync: {e}", exc_info=True)
        exit_code = 2

    logger.info(f"Refugio Sync finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
