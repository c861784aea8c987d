"""
Shared Test Fixtures for Bluesky Comments

This module provides common fixtures used across all test modules.
Fixtures include data factories for raw SDK thread responses (built from
SimpleNamespace objects mirroring the atproto model attributes), factories
for normalized Thread objects, and fake collaborators for the
synchronization engine.
"""

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from typing import Any, Callable, List, Optional
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data.models import Author, Post, PostRef, ReplyNode, Session, Thread


THREAD_VIEW_POST = "app.bsky.feed.defs#threadViewPost"


# =============================================================================
# Raw SDK Response Factories
# =============================================================================

@pytest.fixture
def author_view_factory():
    """
    Factory fixture for raw author views (``ProfileViewBasic``).

    Returns:
        callable: Builds a SimpleNamespace with did, handle, display_name, avatar.
    """
    def _create(handle: str = "alice.bsky.social", did: str = "did:plc:alice",
                display_name: Optional[str] = "Alice", avatar: Optional[str] = None):
        return SimpleNamespace(did=did, handle=handle, display_name=display_name, avatar=avatar)

    return _create


@pytest.fixture
def facet_factory():
    """
    Factory fixture for raw rich-text facets.

    Usage:
        facet_factory(0, 5, uri="https://example.com")
        facet_factory(6, 12, did="did:plc:bob")
    """
    def _create(byte_start: int, byte_end: int, uri: Optional[str] = None,
                did: Optional[str] = None, tag: Optional[str] = None):
        feature = SimpleNamespace()
        if uri:
            feature.uri = uri
        if did:
            feature.did = did
        if tag:
            feature.tag = tag
        return SimpleNamespace(
            index=SimpleNamespace(byte_start=byte_start, byte_end=byte_end),
            features=[feature],
        )

    return _create


@pytest.fixture
def post_view_factory(author_view_factory):
    """
    Factory fixture for raw post views (``PostView``).

    Returns:
        callable: Builds a SimpleNamespace post view with record, embed and counters.
    """
    def _create(rkey: str = "abc123", text: str = "Hello Bluesky", author: Any = None,
                facets: Optional[List[Any]] = None, embed: Any = None,
                created_at: Optional[str] = "2024-01-15T10:00:00.000Z",
                reply_count: int = 0, repost_count: int = 0, like_count: int = 0):
        author = author or author_view_factory()
        return SimpleNamespace(
            uri=f"at://{author.did}/app.bsky.feed.post/{rkey}",
            cid=f"cid-{rkey}",
            author=author,
            record=SimpleNamespace(text=text, facets=facets, created_at=created_at),
            embed=embed,
            indexed_at="2024-01-15T10:00:05.000Z",
            reply_count=reply_count,
            repost_count=repost_count,
            like_count=like_count,
        )

    return _create


@pytest.fixture
def thread_view_factory(post_view_factory):
    """
    Factory fixture for raw ``threadViewPost`` nodes.

    Usage:
        reply = thread_view_factory(post_view_factory(rkey="r1"))
        root = thread_view_factory(replies=[reply])
    """
    def _create(post: Any = None, replies: Optional[List[Any]] = None):
        return SimpleNamespace(
            py_type=THREAD_VIEW_POST,
            post=post or post_view_factory(),
            replies=replies or [],
        )

    return _create


@pytest.fixture
def thread_response_factory():
    """Wrap a raw thread node the way ``getPostThread`` responses do."""
    def _create(thread: Any):
        return SimpleNamespace(thread=thread)

    return _create


# =============================================================================
# Normalized Model Factories
# =============================================================================

def _make_post(rkey: str, text: str = "A reply", handle: str = "bob.bsky.social",
               did: str = "did:plc:bob") -> Post:
    return Post(
        ref=PostRef(f"at://{did}/app.bsky.feed.post/{rkey}"),
        author=Author(id=did, handle=handle, display_name=handle.split(".")[0].title()),
        text=text,
        created_at=None,
        cid=f"cid-{rkey}",
    )


@pytest.fixture
def post_factory():
    """Factory fixture for normalized Post objects."""
    return _make_post


@pytest.fixture
def thread_factory():
    """
    Factory fixture for normalized Thread objects.

    Usage:
        thread_factory(2)                    # root with 2 top-level replies
        thread_factory(2, children={0: 3})   # first reply has 3 children

    Returns:
        callable: Builds a Thread with deterministic reply refs ``r0``, ``r1``, ...
        and child refs ``r0c0``, ``r0c1``, ...
    """
    def _create(reply_count: int = 0, children: Optional[dict] = None,
                prefix: str = "r") -> Thread:
        children = children or {}
        root = _make_post("root", text="Root post", handle="alice.bsky.social", did="did:plc:alice")
        posts = {}
        replies = []
        for i in range(reply_count):
            child_nodes = []
            for j in range(children.get(i, 0)):
                child = _make_post(f"{prefix}{i}c{j}")
                posts[child.ref] = child
                child_nodes.append(ReplyNode(ref=child.ref))
            reply = _make_post(f"{prefix}{i}")
            posts[reply.ref] = reply
            replies.append(ReplyNode(ref=reply.ref, children=tuple(child_nodes)))
        return Thread(root=root, replies=replies, posts=posts)

    return _create


@pytest.fixture
def authenticated_session():
    return Session(service_endpoint="https://bsky.social", is_authenticated=True,
                   credentials_present=True, handle="alice.bsky.social", did="did:plc:alice")


@pytest.fixture
def anonymous_session():
    return Session(service_endpoint="https://public.api.bsky.app")


# =============================================================================
# Collaborator Fakes
# =============================================================================

@pytest.fixture
def root_ref():
    return PostRef("at://alice.bsky.social/app.bsky.feed.post/abc123")


@pytest.fixture
def fake_clock():
    """
    Controllable monotonic clock.

    Usage:
        fake_clock.advance(10)
        controller = SyncController(..., clock=fake_clock)
    """
    class FakeClock:
        def __init__(self):
            self.now = 1000.0

        def __call__(self) -> float:
            return self.now

        def advance(self, seconds: float) -> None:
            self.now += seconds

    return FakeClock()


@pytest.fixture
def mock_thread_service():
    """
    Mock ThreadFetcher with an AsyncMock ``fetch``.

    Configure results with ``mock_thread_service.fetch.side_effect = [...]``.
    """
    service = MagicMock()
    service.fetch = AsyncMock()
    service.social_service = MagicMock()
    service.social_service.session = Session(service_endpoint="https://public.api.bsky.app")
    return service


@pytest.fixture
def focus_source():
    """Focus event source recording registered listeners."""
    class FakeFocusSource:
        def __init__(self):
            self.listeners: List[Callable[[], None]] = []

        def add_listener(self, callback):
            self.listeners.append(callback)

        def remove_listener(self, callback):
            self.listeners.remove(callback)

        def fire(self):
            for callback in list(self.listeners):
                callback()

    return FakeFocusSource()
