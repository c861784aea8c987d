"""
Configuration Validation for Bluesky Comments

This module contains configuration validation logic.
Extracted from settings.py for better separation of concerns.
"""

import logging

from utils.exceptions import ConfigurationError
from utils.helpers import is_valid_url


def validate_settings():
    """
    Validate that all settings are properly configured.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from config import settings

    logger = logging.getLogger(__name__)
    errors = []

    # Credentials are optional, but a half-configured pair is a mistake
    username = settings.AT_PROTOCOL_USERNAME
    password = settings.AT_PROTOCOL_PASSWORD
    if bool(username) != bool(password):
        errors.append("AT_PROTOCOL_USERNAME and AT_PROTOCOL_PASSWORD must be set together.")
    elif not username:
        logger.warning("No BlueSky credentials configured. Threads will be read anonymously "
                       "and replies are disabled.")

    # Endpoints must be absolute URLs
    url_settings = [
        ("BLUESKY_SERVICE_URL", settings.BLUESKY_SERVICE_URL),
        ("BLUESKY_PUBLIC_API_URL", settings.BLUESKY_PUBLIC_API_URL),
        ("BLUESKY_WEB_URL", settings.BLUESKY_WEB_URL),
    ]

    for name, value in url_settings:
        if not value or not is_valid_url(value):
            errors.append(f"{name} must be an absolute URL, got {value!r}")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("POLL_INTERVAL_SECONDS", settings.POLL_INTERVAL_SECONDS, 1, 3600),
        ("FETCH_COOLDOWN_SECONDS", settings.FETCH_COOLDOWN_SECONDS, 0, 600),
        ("FETCH_TIMEOUT_SECONDS", settings.FETCH_TIMEOUT_SECONDS, 1, 300),
        ("THREAD_FETCH_DEPTH", settings.THREAD_FETCH_DEPTH, 1, 1000),
        ("REPLY_PAGE_SIZE", settings.REPLY_PAGE_SIZE, 1, 100),
        ("MEDIA_GRID_COLUMNS", settings.MEDIA_GRID_COLUMNS, 1, 4),
        ("MAX_REPLY_LENGTH", settings.MAX_REPLY_LENGTH, 1, 3000),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    # A cooldown longer than the poll interval would suppress every timer tick
    if settings.FETCH_COOLDOWN_SECONDS >= settings.POLL_INTERVAL_SECONDS:
        errors.append(f"FETCH_COOLDOWN_SECONDS ({settings.FETCH_COOLDOWN_SECONDS}) must be shorter "
                      f"than POLL_INTERVAL_SECONDS ({settings.POLL_INTERVAL_SECONDS})")

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

    return {
        "account": {
            "configured": bool(settings.AT_PROTOCOL_USERNAME and settings.AT_PROTOCOL_PASSWORD),
            "username": settings.AT_PROTOCOL_USERNAME,
        },
        "endpoints": {
            "service": settings.BLUESKY_SERVICE_URL,
            "public_api": settings.BLUESKY_PUBLIC_API_URL,
        },
        "sync_settings": {
            "poll_interval": settings.POLL_INTERVAL_SECONDS,
            "cooldown": settings.FETCH_COOLDOWN_SECONDS,
            "timeout": settings.FETCH_TIMEOUT_SECONDS,
            "depth": settings.THREAD_FETCH_DEPTH,
        },
        "view_settings": {
            "page_size": settings.REPLY_PAGE_SIZE,
        },
    }
