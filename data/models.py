"""
Data Models for Bluesky Comments

This module contains the data classes for a fetched discussion thread.
Posts are stored once per thread in an arena keyed by PostRef; the reply
tree only holds refs into that arena, so successive fetches can be
compared key by key.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set, Tuple


@dataclass(frozen=True)
class PostRef:
    """Canonical AT Protocol identifier of a post (``at://<authority>/<collection>/<rkey>``)."""
    uri: str

    @property
    def authority(self) -> str:
        """Handle or DID of the repository holding the post."""
        return self._parts()[0]

    @property
    def rkey(self) -> str:
        """Record key, the trailing post id."""
        return self._parts()[2]

    def _parts(self) -> Tuple[str, str, str]:
        path = self.uri.split("://", 1)[-1]
        authority, _, rest = path.partition("/")
        collection, _, rkey = rest.partition("/")
        return authority, collection, rkey

    def __str__(self) -> str:
        return self.uri


@dataclass(frozen=True)
class Author:
    """Author of a post, as reported by the service."""
    id: str                            # BlueSky DID
    handle: str
    display_name: str
    avatar_url: Optional[str] = None


class SpanKind(Enum):
    PLAIN_TEXT = "plain"
    LINK = "link"
    MENTION = "mention"


@dataclass(frozen=True)
class TextSpan:
    """Annotated slice ``[start, end)`` of a post's text, in character offsets."""
    start: int
    end: int
    uri: Optional[str] = None          # Link target
    subject_id: Optional[str] = None   # Mentioned DID

    @property
    def kind(self) -> SpanKind:
        if self.uri:
            return SpanKind.LINK
        if self.subject_id:
            return SpanKind.MENTION
        return SpanKind.PLAIN_TEXT


@dataclass(frozen=True)
class Media:
    """A single image attached to a post."""
    thumbnail_url: str
    fullsize_url: str
    alt_text: str = ""


@dataclass(frozen=True)
class LinkCard:
    """External link preview attached to a post."""
    uri: str
    title: str = ""
    description: str = ""
    thumbnail_url: Optional[str] = None


@dataclass(frozen=True)
class QuotedPost:
    """Post embedded in another post. Quotes are never nested."""
    author: Author
    text: str
    media: Tuple[Media, ...] = ()
    ref: Optional[PostRef] = None


@dataclass(frozen=True)
class Post:
    """A single post. Immutable; a later fetch supersedes it with a new instance."""
    ref: PostRef
    author: Author
    text: str
    created_at: Optional[datetime]
    spans: Tuple[TextSpan, ...] = ()
    media: Tuple[Media, ...] = ()
    quoted: Optional[QuotedPost] = None
    link_card: Optional[LinkCard] = None
    cid: Optional[str] = None          # Content hash, needed to reply to the post
    reply_count: int = 0
    repost_count: int = 0
    like_count: int = 0


@dataclass(frozen=True)
class ReplyNode:
    """One reply in the tree. ``ref`` keys into ``Thread.posts``."""
    ref: PostRef
    children: Tuple["ReplyNode", ...] = ()

    def size(self) -> int:
        """Number of posts in this subtree, this node included."""
        return 1 + sum(child.size() for child in self.children)


@dataclass
class Thread:
    """A root post plus its full reply forest, as retrieved in one fetch."""
    root: Post
    replies: List[ReplyNode] = field(default_factory=list)
    posts: Dict[PostRef, Post] = field(default_factory=dict)

    def get_post(self, ref: PostRef) -> Optional[Post]:
        if ref == self.root.ref:
            return self.root
        return self.posts.get(ref)

    def iter_nodes(self) -> Iterator[ReplyNode]:
        """Walk every reply node, depth first, in delivered order."""
        stack = list(reversed(self.replies))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    @property
    def total_replies(self) -> int:
        """Size of the whole reply forest, used to detect new activity."""
        return sum(node.size() for node in self.replies)

    def reply_refs(self) -> Set[PostRef]:
        return {node.ref for node in self.iter_nodes()}

    def new_reply_refs(self, previous: Optional["Thread"]) -> Set[PostRef]:
        """Replies present in this fetch but not in ``previous``."""
        if previous is None:
            return set()
        return self.reply_refs() - previous.reply_refs()


@dataclass
class Session:
    """Connection state shared by every fetch and reply of one mounted thread."""
    service_endpoint: str
    is_authenticated: bool = False
    credentials_present: bool = False
    handle: Optional[str] = None
    did: Optional[str] = None
