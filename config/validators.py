"""
Configuration Validation for Refugio Sync

This module contains configuration validation logic and the redacted
configuration summary logged at startup.
"""

from utils.exceptions import ConfigurationError
from utils.helpers import is_valid_url


def validate_settings(require_remote: bool = False):
    """
    Validate that all required settings are properly configured.

    Args:
        require_remote: If True, missing gateway settings are errors rather
            than a signal to run on the local fallback store.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    errors = []

    if require_remote or settings.GATEWAY_URL or settings.GATEWAY_ANON_KEY:
        required_vars = [
            ("GATEWAY_URL", settings.GATEWAY_URL),
            ("GATEWAY_ANON_KEY", settings.GATEWAY_ANON_KEY),
        ]
        for var_name, var_value in required_vars:
            if not var_value:
                errors.append(f"Missing required environment variable: {var_name}")

        if settings.GATEWAY_URL and not is_valid_url(settings.GATEWAY_URL):
            errors.append(f"GATEWAY_URL is not a valid URL: {settings.GATEWAY_URL}")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("COMMENT_MAX_LENGTH", settings.COMMENT_MAX_LENGTH, 1, 100000),
        ("DEFAULT_PAGE_SIZE", settings.DEFAULT_PAGE_SIZE, 1, 1000),
        ("SEARCH_DEFAULT_LIMIT", settings.SEARCH_DEFAULT_LIMIT, 1, 1000),
        ("SESSION_TTL_HOURS", settings.SESSION_TTL_HOURS, 1, 24 * 365),
        ("REQUEST_TIMEOUT", settings.REQUEST_TIMEOUT, 1, 300),
        ("REALTIME_TIMEOUT", settings.REALTIME_TIMEOUT, 1, 300),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    if settings.LOCAL_LATENCY_MIN_MS < 0:
        errors.append(f"LOCAL_LATENCY_MIN_MS must not be negative, got {settings.LOCAL_LATENCY_MIN_MS}")
    if settings.LOCAL_LATENCY_MAX_MS < settings.LOCAL_LATENCY_MIN_MS:
        errors.append(
            f"LOCAL_LATENCY_MAX_MS ({settings.LOCAL_LATENCY_MAX_MS}) must be >= "
            f"LOCAL_LATENCY_MIN_MS ({settings.LOCAL_LATENCY_MIN_MS})"
        )

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from config import settings

    key = settings.GATEWAY_ANON_KEY
    return {
        "mode": "remote" if settings.is_remote_configured() else "local",
        "gateway": {
            "url": settings.GATEWAY_URL,
            "anon_key": (key[:6] + "...") if key else "",
            "timeout": settings.REQUEST_TIMEOUT,
        },
        "local_store": {
            "file": str(settings.LOCAL_STORAGE_FILE),
            "latency_ms": f"{settings.LOCAL_LATENCY_MIN_MS}-{settings.LOCAL_LATENCY_MAX_MS}",
            "insecure_auth": settings.INSECURE_LOCAL_AUTH,
            "session_ttl_hours": settings.SESSION_TTL_HOURS,
        },
        "content_settings": {
            "comment_max_length": settings.COMMENT_MAX_LENGTH,
            "comments_require_approval": settings.COMMENTS_REQUIRE_APPROVAL,
            "page_size": settings.DEFAULT_PAGE_SIZE,
            "search_limit": settings.SEARCH_DEFAULT_LIMIT,
        },
    }
