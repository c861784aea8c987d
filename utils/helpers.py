"""
Helper Utility Module

This module provides various helper functions used throughout the Bluesky Comments application.
"""

from typing import Optional
from datetime import datetime
from urllib.parse import urlparse

def is_valid_url(url: str) -> bool:
    """
    Check if a URL is valid.

    Args:
        url: The URL to validate

    Returns:
        bool: True if the URL is valid, False otherwise
    """
    try:
        result = urlparse(url)
        return all([result.scheme, result.netloc])
    except Exception:
        return False

def truncate_text(text: str, max_length: int = 100, add_ellipsis: bool = True) -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length
        add_ellipsis: Whether to add an ellipsis if text is truncated

    Returns:
        str: Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    truncated = text[:max_length].rstrip()
    if add_ellipsis:
        truncated += "..."

    return truncated

def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as delivered by the AT Protocol.

    Args:
        value: Timestamp string, e.g. ``2024-01-15T10:00:00.000Z``

    Returns:
        datetime: Timezone-aware datetime, or None if the value is missing or unparseable
    """
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except (TypeError, ValueError):
        return None

def byte_to_char_index(encoded: bytes, byte_index: int) -> int:
    """
    Convert a UTF-8 byte offset into a character offset.

    Offsets falling inside a multi-byte character snap back to the start
    of that character.

    Args:
        encoded: The UTF-8 encoded text
        byte_index: Byte offset into ``encoded``

    Returns:
        int: The character offset
    """
    byte_index = max(0, min(byte_index, len(encoded)))
    return len(encoded[:byte_index].decode('utf-8', errors='ignore'))
