"""
Thread Service Module

This module retrieves a post and its reply tree through the SocialService
and normalizes the SDK's nested thread view into the application's Thread
model. Reply order is kept as delivered; rich-text facets are converted
from UTF-8 byte offsets to character offsets and sorted.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from config import settings
from data.models import (
    Author, LinkCard, Media, Post, PostRef, QuotedPost, ReplyNode, TextSpan, Thread
)
from services.social_service import SocialService
from utils.exceptions import MalformedResponseError, NetworkError, NotFoundError
from utils.helpers import byte_to_char_index, parse_timestamp
from utils.logger import get_logger

logger = get_logger(__name__)

THREAD_VIEW_POST = "app.bsky.feed.defs#threadViewPost"
NOT_FOUND_POST = "app.bsky.feed.defs#notFoundPost"
BLOCKED_POST = "app.bsky.feed.defs#blockedPost"

EMBED_IMAGES = "app.bsky.embed.images#view"
EMBED_EXTERNAL = "app.bsky.embed.external#view"
EMBED_RECORD = "app.bsky.embed.record#view"
EMBED_RECORD_WITH_MEDIA = "app.bsky.embed.recordWithMedia#view"
EMBED_VIEW_RECORD = "app.bsky.embed.record#viewRecord"


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a field from an SDK model or a plain dict (unknown record types)."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _py_type(obj: Any) -> Optional[str]:
    return _field(obj, "py_type") or _field(obj, "$type")


# =============================================================================
# Normalization
# =============================================================================

def normalize_author(raw: Any) -> Author:
    return Author(
        id=raw.did,
        handle=raw.handle,
        display_name=_field(raw, "display_name") or raw.handle,
        avatar_url=_field(raw, "avatar"),
    )


def normalize_spans(text: str, facets: Optional[List[Any]]) -> Tuple[TextSpan, ...]:
    """
    Convert rich-text facets into character-offset spans sorted by start.

    A link feature takes precedence over a mention feature on the same
    facet. Facets with neither (e.g. hashtags) produce no span.
    """
    if not facets:
        return ()

    encoded = text.encode("utf-8")
    spans = []
    for facet in facets:
        index = _field(facet, "index")
        features = _field(facet, "features") or []
        uri = next((_field(f, "uri") for f in features if _field(f, "uri")), None)
        subject_id = next((_field(f, "did") for f in features if _field(f, "did")), None)
        if index is None or not (uri or subject_id):
            continue
        spans.append(TextSpan(
            start=byte_to_char_index(encoded, _field(index, "byte_start", 0)),
            end=byte_to_char_index(encoded, _field(index, "byte_end", 0)),
            uri=uri,
            subject_id=None if uri else subject_id,
        ))

    return tuple(sorted(spans, key=lambda s: (s.start, s.end)))


def _normalize_images(view: Any) -> Tuple[Media, ...]:
    return tuple(
        Media(
            thumbnail_url=_field(image, "thumb"),
            fullsize_url=_field(image, "fullsize"),
            alt_text=_field(image, "alt") or "",
        )
        for image in _field(view, "images") or []
    )


def _normalize_link_card(view: Any) -> LinkCard:
    external = _field(view, "external")
    return LinkCard(
        uri=_field(external, "uri"),
        title=_field(external, "title") or "",
        description=_field(external, "description") or "",
        thumbnail_url=_field(external, "thumb"),
    )


def _normalize_quote(record: Any) -> Optional[QuotedPost]:
    """Quoted post from a viewRecord; anything else (blocked, deleted) yields None."""
    if _py_type(record) != EMBED_VIEW_RECORD:
        return None

    media: Tuple[Media, ...] = ()
    for embed in _field(record, "embeds") or []:
        if _py_type(embed) == EMBED_IMAGES:
            media = _normalize_images(embed)
            break

    uri = _field(record, "uri")
    return QuotedPost(
        author=normalize_author(_field(record, "author")),
        text=_field(_field(record, "value"), "text") or "",
        media=media,
        ref=PostRef(uri) if uri else None,
    )


def normalize_embed(embed: Any) -> Tuple[Tuple[Media, ...], Optional[QuotedPost], Optional[LinkCard]]:
    """Split a post embed into images, quoted post and link card."""
    if embed is None:
        return (), None, None

    kind = _py_type(embed)
    if kind == EMBED_IMAGES:
        return _normalize_images(embed), None, None
    if kind == EMBED_EXTERNAL:
        return (), None, _normalize_link_card(embed)
    if kind == EMBED_RECORD:
        return (), _normalize_quote(_field(embed, "record")), None
    if kind == EMBED_RECORD_WITH_MEDIA:
        quoted = _normalize_quote(_field(_field(embed, "record"), "record"))
        media_view = _field(embed, "media")
        if _py_type(media_view) == EMBED_EXTERNAL:
            return (), quoted, _normalize_link_card(media_view)
        return _normalize_images(media_view), quoted, None

    logger.debug(f"Ignoring unsupported embed type {kind}")
    return (), None, None


def normalize_post(view: Any) -> Post:
    record = view.record
    text = _field(record, "text") or ""
    media, quoted, link_card = normalize_embed(_field(view, "embed"))

    return Post(
        ref=PostRef(view.uri),
        cid=_field(view, "cid"),
        author=normalize_author(view.author),
        text=text,
        created_at=parse_timestamp(_field(record, "created_at")) or parse_timestamp(_field(view, "indexed_at")),
        spans=normalize_spans(text, _field(record, "facets")),
        media=media,
        quoted=quoted,
        link_card=link_card,
        reply_count=_field(view, "reply_count") or 0,
        repost_count=_field(view, "repost_count") or 0,
        like_count=_field(view, "like_count") or 0,
    )


def _normalize_replies(raw_replies: Optional[List[Any]], posts: Dict[PostRef, Post]) -> List[ReplyNode]:
    nodes = []
    for raw in raw_replies or []:
        # Deleted and blocked replies are placeholders without a post
        if _py_type(raw) != THREAD_VIEW_POST:
            continue
        post = normalize_post(raw.post)
        posts[post.ref] = post
        children = _normalize_replies(_field(raw, "replies"), posts)
        nodes.append(ReplyNode(ref=post.ref, children=tuple(children)))
    return nodes


def normalize_thread(response: Any) -> Thread:
    """
    Build a Thread from a ``getPostThread`` response.

    Raises:
        NotFoundError: The root post is deleted or blocked
        MalformedResponseError: Required fields are missing
    """
    raw = _field(response, "thread")
    kind = _py_type(raw)

    if kind in (NOT_FOUND_POST, BLOCKED_POST):
        raise NotFoundError(f"Thread unavailable: {_field(raw, 'uri')}")
    if raw is None or kind != THREAD_VIEW_POST:
        raise MalformedResponseError(f"Unexpected thread type {kind!r}")

    try:
        posts: Dict[PostRef, Post] = {}
        root = normalize_post(raw.post)
        replies = _normalize_replies(_field(raw, "replies"), posts)
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
        raise MalformedResponseError(f"Could not normalize thread response: {e}") from e

    return Thread(root=root, replies=replies, posts=posts)


# =============================================================================
# Service
# =============================================================================

class ThreadService:
    """Fetches and normalizes threads for one Session."""

    def __init__(self, social_service: Optional[SocialService] = None,
                 timeout: float = settings.FETCH_TIMEOUT_SECONDS):
        self.social_service = social_service or SocialService()
        self.timeout = timeout

    async def fetch(self, ref: PostRef) -> Thread:
        """
        Fetch the thread rooted at ``ref``.

        Args:
            ref: Root post

        Returns:
            Thread: The normalized thread

        Raises:
            NetworkError: Transient failure, including the fetch timing out
            NotFoundError: The post no longer exists
            MalformedResponseError: The response could not be normalized
        """
        try:
            response = await asyncio.wait_for(self.social_service.get_thread(ref.uri), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Timed out after {self.timeout}s fetching thread {ref}") from e

        thread = normalize_thread(response)
        logger.debug(f"Fetched thread {ref} with {thread.total_replies} replies")
        return thread
