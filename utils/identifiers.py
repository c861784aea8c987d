"""
Post Identifier Utilities

This module converts between the human-facing Bluesky post URLs that users
paste into their notes and the canonical ``at://`` identifiers the AT
Protocol works with. Everything here is a pure string transform.
"""

import re
from typing import List
from urllib.parse import urlparse

from config import settings
from data.models import Post, PostRef
from utils.exceptions import InvalidUrlError


def extract_post_url(block_content: str) -> str:
    """
    Pull the post URL out of a ``{{bluesky:<url>}}`` block directive.

    Args:
        block_content: Raw block string supplied by the host

    Returns:
        str: The embedded URL, whitespace-stripped

    Raises:
        InvalidUrlError: If the directive is missing or empty
    """
    match = re.search(settings.BLOCK_DIRECTIVE_PATTERN, block_content or "")
    url = match.group(1).strip() if match else ""
    if not url:
        raise InvalidUrlError(f"No bluesky directive found in block content: {block_content!r}")
    return url


def _path_segments(url: str) -> List[str]:
    try:
        path = urlparse(url.strip()).path
    except (AttributeError, ValueError) as e:
        raise InvalidUrlError(f"Cannot parse post URL {url!r}") from e
    return [segment for segment in path.split("/") if segment]


def resolve_post_ref(url: str) -> PostRef:
    """
    Resolve a post URL such as ``https://bsky.app/profile/<handle>/post/<id>``.

    The segment following ``profile`` is the author handle, the last segment
    is the post id.

    Args:
        url: Human-facing post URL

    Returns:
        PostRef: ``at://<handle>/app.bsky.feed.post/<id>``

    Raises:
        InvalidUrlError: If ``profile``, the handle or the post id is missing
    """
    segments = _path_segments(url)

    if "profile" not in segments:
        raise InvalidUrlError(f"Post URL has no profile segment: {url!r}")

    handle_index = segments.index("profile") + 1
    # The handle must be followed by at least the post id
    if handle_index >= len(segments) - 1:
        raise InvalidUrlError(f"Post URL is missing the handle or post id: {url!r}")

    handle = segments[handle_index]
    post_id = segments[-1]
    return PostRef(f"{settings.AT_URI_SCHEME}://{handle}/{settings.POST_COLLECTION}/{post_id}")


def post_web_url(post: Post) -> str:
    """
    Build the bsky.app link for a fetched post.

    Args:
        post: The post to link to

    Returns:
        str: ``<web>/profile/<handle>/post/<id>``
    """
    handle = post.author.handle or post.ref.authority
    return f"{settings.BLUESKY_WEB_URL}/profile/{handle}/post/{post.ref.rkey}"
