"""
Local Authentication Service

Users and sessions for the local fallback mode, persisted in the same
key-value storage as the local collections. Sessions carry an absolute
expiry that is re-checked on every read.

By default this runs in an explicitly insecure development mode: any
password is accepted for a known email. With INSECURE_LOCAL_AUTH disabled,
passwords are verified against a PBKDF2 hash stored at sign-up.
"""

import hashlib
import hmac
import secrets
from typing import Any, Callable, Dict, List, Optional, Tuple

from config import settings
from data.models import LocalSession, LocalUser, UserRole
from data.seed import build_seed_users
from data.storage import KeyValueStorage, load_json, save_json
from utils.exceptions import (
    AuthRequiredError, DuplicateError, InvalidCredentialsError, NotFoundError, ValidationError,
)
from utils.helpers import generate_id, is_blank, now_millis, to_iso, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
PROTECTED_PROFILE_FIELDS = ("id", "email", "password_hash", "created_at")


def hash_password(password: str, iterations: int, salt: Optional[str] = None) -> str:
    """
    Hash a password as ``pbkdf2_sha256$<iterations>$<salt>$<digest>``.

    Args:
        password: The plain password.
        iterations: PBKDF2 iteration count.
        salt: Hex salt; a random one is generated when omitted.

    Returns:
        str: The encoded hash.
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: Optional[str]) -> bool:
    """Check a password against an encoded hash. Missing or malformed hashes never match."""
    if not encoded:
        return False
    try:
        algorithm, iterations, salt, _ = encoded.split("$")
        iterations = int(iterations)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    return hmac.compare_digest(hash_password(password, iterations, salt), encoded)


class LocalAuthService:
    """Sign-in, sign-up and session handling for the local fallback mode."""

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Optional[Callable[[], int]] = None,
        session_ttl_hours: Optional[int] = None,
        insecure: Optional[bool] = None,
        hash_iterations: Optional[int] = None,
    ):
        """
        Initialize the service and seed the default users if none exist.

        Args:
            storage: Where users and the current session are kept.
            clock: Returns the current epoch time in milliseconds.
            session_ttl_hours: Session lifetime; defaults to settings.SESSION_TTL_HOURS.
            insecure: Accept any password for known emails; defaults to
                settings.INSECURE_LOCAL_AUTH.
            hash_iterations: PBKDF2 iterations; defaults to settings.PASSWORD_HASH_ITERATIONS.
        """
        self.storage = storage
        self.clock = clock or now_millis
        self.session_ttl_hours = session_ttl_hours or settings.SESSION_TTL_HOURS
        self.insecure = settings.INSECURE_LOCAL_AUTH if insecure is None else insecure
        self.hash_iterations = hash_iterations or settings.PASSWORD_HASH_ITERATIONS

        if self.insecure:
            logger.warning("Local auth is running in insecure mode: passwords are not verified")
        self._ensure_default_users()

    # =========================================================================
    # Storage helpers
    # =========================================================================

    def _ensure_default_users(self) -> None:
        if not load_json(self.storage, settings.USERS_STORAGE_KEY, default=[]):
            save_json(self.storage, settings.USERS_STORAGE_KEY, build_seed_users(utc_now()))
            logger.info("Seeded default local users")

    def _load_users(self) -> List[LocalUser]:
        data = load_json(self.storage, settings.USERS_STORAGE_KEY, default=[]) or []
        return [LocalUser.from_dict(item) for item in data]

    def _save_users(self, users: List[LocalUser]) -> None:
        save_json(self.storage, settings.USERS_STORAGE_KEY, [u.to_dict() for u in users])

    @staticmethod
    def _find(users: List[LocalUser], email: str) -> Optional[LocalUser]:
        wanted = email.strip().lower()
        return next((u for u in users if u.email.lower() == wanted), None)

    @staticmethod
    def _public(user: LocalUser) -> LocalUser:
        return LocalUser.from_dict(user.public_dict())

    def _start_session(self, user: LocalUser) -> LocalSession:
        session = LocalSession(
            user=self._public(user),
            access_token=secrets.token_urlsafe(32),
            expires_at=self.clock() + self.session_ttl_hours * 60 * 60 * 1000,
        )
        save_json(self.storage, settings.SESSION_STORAGE_KEY, session.to_dict())
        return session

    # =========================================================================
    # Public API
    # =========================================================================

    def sign_in(self, email: str, password: str) -> Tuple[LocalUser, LocalSession]:
        """
        Sign in a known user.

        Returns:
            tuple: (user, session)

        Raises:
            NotFoundError: Unknown email.
            InvalidCredentialsError: Password mismatch (secure mode only).
        """
        users = self._load_users()
        user = self._find(users, email or "")
        if user is None:
            raise NotFoundError(f"No local user with email {email}")

        if self.insecure:
            logger.warning(f"Insecure local sign-in for {user.email}: password not checked")
        elif not verify_password(password or "", user.password_hash):
            raise InvalidCredentialsError("Invalid email or password")

        user.last_login = to_iso(utc_now())
        self._save_users(users)
        session = self._start_session(user)
        logger.info(f"Signed in {user.email} ({user.role})")
        return self._public(user), session

    def sign_up(self, email: str, password: str, full_name: str) -> Tuple[LocalUser, LocalSession]:
        """
        Register a member and sign them in.

        Raises:
            ValidationError: Missing email or password.
            DuplicateError: The email is already registered (case-insensitive).
        """
        if is_blank(email) or is_blank(password):
            raise ValidationError("Email and password are required")

        users = self._load_users()
        if self._find(users, email):
            raise DuplicateError(f"User {email} already exists", code="user_already_exists")

        user = LocalUser(
            id=generate_id("user"),
            email=email.strip().lower(),
            full_name=(full_name or "").strip(),
            role=UserRole.MEMBER.value,
            created_at=to_iso(utc_now()),
            password_hash=hash_password(password, self.hash_iterations),
        )
        users.append(user)
        self._save_users(users)
        session = self._start_session(user)
        logger.info(f"Registered local user {user.email}")
        return self._public(user), session

    def get_session(self) -> Optional[LocalSession]:
        """Return the current session, dropping it if it has expired."""
        data = load_json(self.storage, settings.SESSION_STORAGE_KEY)
        if data is None:
            return None
        try:
            session = LocalSession.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed session: {e}")
            self.storage.remove_item(settings.SESSION_STORAGE_KEY)
            return None

        if self.clock() > session.expires_at:
            logger.info(f"Session for {session.user.email} expired")
            self.storage.remove_item(settings.SESSION_STORAGE_KEY)
            return None
        return session

    def get_user(self) -> Optional[LocalUser]:
        session = self.get_session()
        return session.user if session else None

    def is_authenticated(self) -> bool:
        return self.get_session() is not None

    def sign_out(self) -> None:
        self.storage.remove_item(settings.SESSION_STORAGE_KEY)
        logger.info("Signed out")

    def update_profile(self, user_id: str, updates: Dict[str, Any]) -> LocalUser:
        """
        Update profile fields. Identity fields (id, email, password hash) are ignored.

        Raises:
            NotFoundError: Unknown user.
        """
        users = self._load_users()
        user = next((u for u in users if u.id == user_id), None)
        if user is None:
            raise NotFoundError(f"No local user with id {user_id}")

        for key, value in updates.items():
            if key in PROTECTED_PROFILE_FIELDS or not hasattr(user, key):
                continue
            setattr(user, key, value)
        self._save_users(users)

        session = self.get_session()
        if session and session.user.id == user_id:
            session.user = self._public(user)
            save_json(self.storage, settings.SESSION_STORAGE_KEY, session.to_dict())
        return self._public(user)

    def reset_password(self, email: str) -> None:
        """Locally there is no mail delivery; the request is only logged."""
        if self._find(self._load_users(), email or "") is None:
            raise NotFoundError(f"No local user with email {email}")
        logger.info(f"Password reset requested for {email.strip().lower()}")

    def get_all_users(self) -> List[LocalUser]:
        """
        List every user. Admins only.

        Raises:
            AuthRequiredError: No session, or the current user is not an admin.
        """
        user = self.get_user()
        if user is None or user.role != UserRole.ADMIN.value:
            raise AuthRequiredError("Only administrators can list users")
        return [self._public(u) for u in self._load_users()]
