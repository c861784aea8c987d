"""
Thread Presentation Module

This module selects what of a thread is displayed for a given ViewState and
turns it into display models: rendered text segments per post, the media
arrangement, paging and notification information. Only two reply levels
are ever displayed: top-level replies and, for expanded replies, their
direct children.

It also provides a plain-text rendering used by the command line host.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from config import settings
from data.models import Post, ReplyNode, Session, Thread
from data.view_state import ViewState, displayed_reply_count
from utils.exceptions import (
    BlueskyCommentsError, InvalidUrlError, MalformedResponseError, NotFoundError
)
from utils.helpers import truncate_text
from utils.identifiers import post_web_url
from utils.rich_text import LinkSegment, RenderSegment, render


class MediaLayout(Enum):
    NONE = "none"
    SINGLE = "single"
    GRID = "grid"


def media_layout(count: int) -> MediaLayout:
    if count <= 0:
        return MediaLayout.NONE
    if count == 1:
        return MediaLayout.SINGLE
    return MediaLayout.GRID


def media_grid_rows(count: int, columns: int = settings.MEDIA_GRID_COLUMNS) -> int:
    return -(-max(count, 0) // columns)


@dataclass
class PostView:
    post: Post
    segments: List[RenderSegment]
    layout: MediaLayout
    web_url: str
    quoted_segments: Optional[List[RenderSegment]] = None


@dataclass
class ReplyView:
    post: PostView
    child_count: int
    is_expanded: bool = False
    is_new: bool = False
    children: List["ReplyView"] = field(default_factory=list)


@dataclass
class ThreadView:
    root: Optional[PostView]
    replies: List[ReplyView] = field(default_factory=list)
    total_replies: int = 0
    hidden_reply_count: int = 0
    pending_notification_count: int = 0
    error_message: Optional[str] = None
    is_authenticated: bool = False

    @property
    def has_more(self) -> bool:
        return self.hidden_reply_count > 0


def build_post_view(post: Post) -> PostView:
    quoted = render(post.quoted.text) if post.quoted else None
    return PostView(
        post=post,
        segments=render(post.text, post.spans),
        layout=media_layout(len(post.media)),
        web_url=post_web_url(post),
        quoted_segments=quoted,
    )


def _build_reply_view(thread: Thread, node: ReplyNode, state: ViewState,
                      new_refs: Set, with_children: bool) -> Optional[ReplyView]:
    post = thread.get_post(node.ref)
    if post is None:
        return None

    is_expanded = node.ref in state.expanded_node_ids
    view = ReplyView(
        post=build_post_view(post),
        child_count=len(node.children),
        is_expanded=is_expanded,
        is_new=node.ref in new_refs,
    )
    if with_children and is_expanded:
        for child in node.children:
            child_view = _build_reply_view(thread, child, state, new_refs, with_children=False)
            if child_view is not None:
                view.children.append(child_view)
    return view


def describe_error(error: Optional[Exception], session: Optional[Session] = None) -> Optional[str]:
    """User-facing message for a whole-component error."""
    if error is None:
        return None

    if isinstance(error, InvalidUrlError):
        message = f"Configuration problem: {error}"
    elif isinstance(error, NotFoundError):
        message = "Thread unavailable."
    elif isinstance(error, MalformedResponseError):
        message = "Bluesky returned an unexpected response."
    elif isinstance(error, BlueskyCommentsError):
        message = "Could not load the thread. It will be retried automatically."
    else:
        message = f"Unexpected error: {error}"

    if session is not None and not session.is_authenticated:
        message += " (Not logged in to Bluesky.)"
    return message


def build_thread_view(thread: Optional[Thread], state: ViewState,
                      error: Optional[Exception] = None,
                      session: Optional[Session] = None,
                      new_refs: Optional[Set] = None) -> ThreadView:
    """
    Select the displayed part of a thread.

    Args:
        thread: Latest thread, or None if nothing has loaded
        state: Current view state
        error: Whole-component error, shown only when there is no thread
        session: Current session, for the authentication note
        new_refs: Replies to highlight as new

    Returns:
        ThreadView: Display model
    """
    is_authenticated = bool(session and session.is_authenticated)
    if thread is None:
        return ThreadView(
            root=None,
            pending_notification_count=state.pending_notification_count,
            error_message=describe_error(error, session),
            is_authenticated=is_authenticated,
        )

    new_refs = new_refs or set()
    visible = thread.replies[:displayed_reply_count(state, len(thread.replies))]
    replies = []
    for node in visible:
        reply_view = _build_reply_view(thread, node, state, new_refs, with_children=True)
        if reply_view is not None:
            replies.append(reply_view)

    return ThreadView(
        root=build_post_view(thread.root),
        replies=replies,
        total_replies=thread.total_replies,
        hidden_reply_count=max(len(thread.replies) - len(visible), 0),
        pending_notification_count=state.pending_notification_count,
        is_authenticated=is_authenticated,
    )


# =============================================================================
# Plain text rendering
# =============================================================================

def format_segments(segments: List[RenderSegment]) -> str:
    parts = []
    for segment in segments:
        if isinstance(segment, LinkSegment) and segment.uri != segment.text:
            parts.append(f"{segment.text} <{segment.uri}>")
        else:
            parts.append(segment.text)
    return "".join(parts)


def _format_post(view: PostView, indent: str) -> List[str]:
    post = view.post
    stamp = post.created_at.strftime("%Y-%m-%d %H:%M") if post.created_at else ""
    lines = [f"{indent}{post.author.display_name} (@{post.author.handle}) {stamp}".rstrip()]
    lines.extend(f"{indent}  {line}" for line in format_segments(view.segments).splitlines() or [""])

    if view.layout is MediaLayout.SINGLE:
        lines.append(f"{indent}  [image] {post.media[0].alt_text or post.media[0].fullsize_url}")
    elif view.layout is MediaLayout.GRID:
        lines.append(f"{indent}  [{len(post.media)} images, {media_grid_rows(len(post.media))} rows]")
    if post.link_card:
        lines.append(f"{indent}  [link] {post.link_card.title or post.link_card.uri} <{post.link_card.uri}>")
    if post.quoted and view.quoted_segments is not None:
        quoted_text = truncate_text(format_segments(view.quoted_segments), 140)
        lines.append(f"{indent}  > @{post.quoted.author.handle}: {quoted_text}")

    lines.append(f"{indent}  replies {post.reply_count} | reposts {post.repost_count} | likes {post.like_count}")
    return lines


def format_thread_view(view: ThreadView) -> str:
    """Render a ThreadView as indented plain text."""
    if view.root is None:
        return view.error_message or "Loading..."

    lines = []
    if view.pending_notification_count:
        lines.append(f"*** {view.pending_notification_count} new replies ***")
    lines.extend(_format_post(view.root, ""))
    lines.append(view.root.web_url)
    lines.append(f"--- {view.total_replies} replies ---")

    for reply in view.replies:
        marker = "* " if reply.is_new else ""
        post_lines = _format_post(reply.post, "  ")
        post_lines[0] = "  " + marker + post_lines[0].lstrip()
        lines.extend(post_lines)
        for child in reply.children:
            lines.extend(_format_post(child.post, "      "))
        if reply.child_count and not reply.is_expanded:
            lines.append(f"    ({reply.child_count} more replies)")

    if view.has_more:
        lines.append(f"  ... {view.hidden_reply_count} more replies")
    if not view.is_authenticated:
        lines.append("Log in to Bluesky to reply.")
    return "\n".join(lines)
