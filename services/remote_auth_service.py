"""
Remote Authentication Service

Adapts the hosted identity provider (AuthGateway) to the same surface as
the local authentication, so callers do not branch on the active mode.
"""

from typing import Any, Callable, Dict, Optional, Tuple

from data.models import LocalSession, LocalUser, UserRole
from data.protocols import AuthGateway
from utils.exceptions import ValidationError
from utils.helpers import is_blank, now_millis
from utils.logger import get_logger

logger = get_logger(__name__)


def user_from_payload(payload: Dict[str, Any]) -> LocalUser:
    """Build a user from the identity provider's user object."""
    metadata = payload.get("user_metadata") or {}
    app_metadata = payload.get("app_metadata") or {}
    return LocalUser(
        id=payload.get("id", ""),
        email=payload.get("email") or "",
        full_name=metadata.get("full_name") or "",
        role=metadata.get("role") or app_metadata.get("role") or UserRole.MEMBER.value,
        avatar_url=metadata.get("avatar_url"),
        created_at=payload.get("created_at"),
        last_login=payload.get("last_sign_in_at"),
    )


def session_from_payload(payload: Dict[str, Any], user: LocalUser, clock: Callable[[], int]) -> Optional[LocalSession]:
    """Build a session from a token response; None when no token was issued."""
    token = payload.get("access_token")
    if not token:
        return None
    if payload.get("expires_at"):
        expires_at = int(payload["expires_at"]) * 1000
    else:
        expires_at = clock() + int(payload.get("expires_in") or 3600) * 1000
    return LocalSession(user=user, access_token=token, expires_at=expires_at)


class RemoteAuthService:
    """Authentication against the hosted identity provider."""

    def __init__(self, gateway: AuthGateway, clock: Optional[Callable[[], int]] = None):
        self.gateway = gateway
        self.clock = clock or now_millis
        self._session: Optional[LocalSession] = None

    def sign_in(self, email: str, password: str) -> Tuple[LocalUser, LocalSession]:
        if is_blank(email) or is_blank(password):
            raise ValidationError("Email and password are required")
        payload = self.gateway.sign_in_with_password(email.strip(), password).unwrap()
        user = user_from_payload(payload.get("user") or {})
        self._session = session_from_payload(payload, user, self.clock)
        logger.info(f"Signed in {user.email} ({user.role})")
        return user, self._session

    def sign_up(self, email: str, password: str, full_name: str) -> Tuple[LocalUser, Optional[LocalSession]]:
        """
        Register a user. The session is None when the provider requires email
        confirmation first.
        """
        if is_blank(email) or is_blank(password):
            raise ValidationError("Email and password are required")
        metadata = {"full_name": (full_name or "").strip(), "role": UserRole.MEMBER.value}
        payload = self.gateway.sign_up(email.strip().lower(), password, metadata).unwrap() or {}
        user = user_from_payload(payload.get("user") or payload)
        self._session = session_from_payload(payload, user, self.clock)
        logger.info(f"Registered {user.email}")
        return user, self._session

    def get_session(self) -> Optional[LocalSession]:
        if self._session and self.clock() > self._session.expires_at:
            logger.info("Remote session expired")
            self._session = None
        return self._session

    def get_user(self) -> Optional[LocalUser]:
        session = self.get_session()
        return session.user if session else None

    def is_authenticated(self) -> bool:
        return self.get_session() is not None

    def sign_out(self) -> None:
        self._session = None
        self.gateway.sign_out().unwrap()
        logger.info("Signed out")
