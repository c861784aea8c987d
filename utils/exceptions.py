"""
Custom Exception Classes for Bluesky Comments

This module defines custom exceptions for better error handling and
categorization of failures across the application.
"""


class BlueskyCommentsError(Exception):
    """Base exception for all Bluesky Comments application errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(BlueskyCommentsError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


class InvalidUrlError(BlueskyCommentsError):
    """Raised when a post URL or block directive cannot be resolved to a post reference."""
    pass


# =============================================================================
# Social Media Errors
# =============================================================================

class SocialMediaError(BlueskyCommentsError):
    """Base exception for Bluesky service errors."""
    pass


class AuthenticationError(SocialMediaError):
    """Raised when authentication with Bluesky fails."""
    pass


class SubmitError(SocialMediaError):
    """Raised when a reply cannot be submitted."""
    pass


# =============================================================================
# Thread Fetch Errors
# =============================================================================

class ThreadFetchError(SocialMediaError):
    """Base exception for thread retrieval errors."""

    is_terminal = False


class NetworkError(ThreadFetchError):
    """Raised when the service cannot be reached or does not answer in time."""
    pass


class NotFoundError(ThreadFetchError):
    """Raised when the referenced post no longer exists or is unavailable."""

    is_terminal = True


class MalformedResponseError(ThreadFetchError):
    """Raised when the service response does not match the expected schema."""

    is_terminal = True
