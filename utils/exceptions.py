"""
Custom Exception Classes for Refugio Sync

This module defines the error taxonomy shared by the gateways, the entity
access services and the state containers. Every exception carries a
structured ``kind`` so callers never need to inspect message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Structured error categories produced at the gateway boundary."""
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    AUTH_REQUIRED = "auth_required"
    REMOTE = "remote"


class RefugioSyncError(Exception):
    """Base exception for all Refugio Sync errors."""

    kind: ErrorKind = ErrorKind.REMOTE

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(RefugioSyncError):
    """Raised when configuration validation fails or required settings are missing."""
    kind = ErrorKind.VALIDATION


# =============================================================================
# Entity Errors
# =============================================================================

class NotFoundError(RefugioSyncError):
    """Raised when an id or slug lookup misses."""
    kind = ErrorKind.NOT_FOUND


class ValidationError(RefugioSyncError):
    """Raised when required fields are missing or content is malformed."""
    kind = ErrorKind.VALIDATION


class DuplicateError(ValidationError):
    """Raised on unique-constraint style collisions (email, slug)."""
    kind = ErrorKind.DUPLICATE


# =============================================================================
# Authentication Errors
# =============================================================================

class AuthRequiredError(RefugioSyncError):
    """Raised when a mutating interaction is attempted without a signed-in user."""
    kind = ErrorKind.AUTH_REQUIRED


class InvalidCredentialsError(AuthRequiredError):
    """Raised when a password does not match the stored credentials."""
    pass


# =============================================================================
# Gateway Errors
# =============================================================================

class RemoteError(RefugioSyncError):
    """Opaque passthrough of a gateway failure, including policy denials."""
    kind = ErrorKind.REMOTE


_EXCEPTIONS_BY_KIND = {
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.DUPLICATE: DuplicateError,
    ErrorKind.AUTH_REQUIRED: AuthRequiredError,
    ErrorKind.REMOTE: RemoteError,
}


def exception_for_kind(kind: ErrorKind, message: str, code: Optional[str] = None) -> RefugioSyncError:
    """
    Build the exception matching a structured error kind.

    Args:
        kind: The error category reported by a gateway.
        message: The gateway's original message.
        code: The gateway's own error code, if any.

    Returns:
        RefugioSyncError: An instance of the matching subclass.
    """
    exc_class = _EXCEPTIONS_BY_KIND.get(kind, RemoteError)
    return exc_class(message, code=code)
