"""
Rich Text Rendering

Splits a post's text into display segments according to its link and
mention spans. Rendering is lossless: joining the text of the returned
segments always gives back the original text.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from data.models import TextSpan


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class LinkSegment:
    text: str
    uri: str


@dataclass(frozen=True)
class MentionSegment:
    text: str
    subject_id: str


RenderSegment = Union[PlainText, LinkSegment, MentionSegment]


def _segment_for(text: str, span: TextSpan) -> RenderSegment:
    if span.uri:
        return LinkSegment(text, span.uri)
    if span.subject_id:
        return MentionSegment(text, span.subject_id)
    return PlainText(text)


def render(text: str, spans: Optional[Iterable[TextSpan]] = None) -> List[RenderSegment]:
    """
    Render post text into an ordered list of segments.

    Spans may arrive unsorted. Out-of-range bounds are clamped to the text,
    empty spans are skipped, and the overlapping part of a span that starts
    inside an earlier one is trimmed so no character is emitted twice.

    Args:
        text: Raw post text
        spans: Annotations in character offsets

    Returns:
        List[RenderSegment]: Segments covering the text from start to end
    """
    text = text or ""
    usable = [
        span for span in (spans or [])
        if isinstance(span.start, int) and isinstance(span.end, int)
    ]
    if not usable:
        return [PlainText(text)]

    segments: List[RenderSegment] = []
    cursor = 0
    length = len(text)

    for span in sorted(usable, key=lambda s: (s.start, s.end)):
        start = max(cursor, min(span.start, length))
        end = max(0, min(span.end, length))
        if end <= start:
            continue
        if start > cursor:
            segments.append(PlainText(text[cursor:start]))
        segments.append(_segment_for(text[start:end], span))
        cursor = end

    if cursor < length:
        segments.append(PlainText(text[cursor:]))

    return segments or [PlainText(text)]


def segments_to_text(segments: Iterable[RenderSegment]) -> str:
    """Join segment text back into a plain string."""
    return "".join(segment.text for segment in segments)
