"""
View State for Bluesky Comments

Client-local display state of one mounted thread, and the pure reducer
functions that move it from one value to the next. Nothing here touches
the network or the clock: timestamps are passed in by the caller.
"""

from dataclasses import dataclass, field, replace
from typing import FrozenSet, Optional

from config import settings
from data.models import PostRef


@dataclass(frozen=True)
class ViewState:
    """
    Display state owned by the client, never sent to the service.

    ``visible_reply_count`` and ``expanded_node_ids`` only change on user
    action. The initial page size is independent of the thread, so
    ``visible_reply_count`` may exceed the number of top-level replies;
    use ``displayed_reply_count`` for the number actually shown.
    ``pending_notification_count`` and ``last_known_reply_total`` are
    updated by fetch results.
    """
    visible_reply_count: int = settings.REPLY_PAGE_SIZE
    expanded_node_ids: FrozenSet[PostRef] = field(default_factory=frozenset)
    pending_notification_count: int = 0
    last_known_reply_total: int = 0
    last_fetch_timestamp: Optional[float] = None

    @property
    def has_baseline(self) -> bool:
        """True once a fetch result has been applied."""
        return self.last_fetch_timestamp is not None


def initial_view_state() -> ViewState:
    return ViewState()


def expand_page(state: ViewState, total_top_level: int,
                increment: int = settings.REPLY_PAGE_SIZE) -> ViewState:
    """
    Reveal the next page of top-level replies.

    Args:
        state: Current state
        total_top_level: Number of top-level replies available
        increment: Page size

    Returns:
        ViewState: State with ``visible_reply_count`` grown by ``increment``,
        capped at ``total_top_level`` (never shrunk)
    """
    grown = min(state.visible_reply_count + increment, max(total_top_level, 0))
    return replace(state, visible_reply_count=max(grown, state.visible_reply_count))


def displayed_reply_count(state: ViewState, total_top_level: int) -> int:
    """Number of top-level replies shown: the page size capped at what is available."""
    return max(min(state.visible_reply_count, total_top_level), 0)


def toggle_expanded(state: ViewState, node_id: PostRef) -> ViewState:
    """Show or hide the children of one reply."""
    if node_id in state.expanded_node_ids:
        expanded = state.expanded_node_ids - {node_id}
    else:
        expanded = state.expanded_node_ids | {node_id}
    return replace(state, expanded_node_ids=frozenset(expanded))


def acknowledge_notifications(state: ViewState) -> ViewState:
    """Clear the new-activity counter. Reply totals are left alone."""
    return replace(state, pending_notification_count=0)


def apply_fetch_result(state: ViewState, new_total: int, fetched_at: float) -> ViewState:
    """
    Fold a successful fetch into the view state.

    The first result only records the baseline total. Afterwards growth in
    the reply total is added to ``pending_notification_count``; a shrinking
    or unchanged total only refreshes the fetch timestamp. User-intent
    fields are never touched.

    Args:
        state: Current state
        new_total: Total reply count of the fetched thread
        fetched_at: Clock reading of when the fetch completed

    Returns:
        ViewState: The updated state
    """
    if not state.has_baseline:
        return replace(state, last_known_reply_total=new_total, last_fetch_timestamp=fetched_at)

    if new_total > state.last_known_reply_total:
        return replace(
            state,
            pending_notification_count=state.pending_notification_count
            + (new_total - state.last_known_reply_total),
            last_known_reply_total=new_total,
            last_fetch_timestamp=fetched_at,
        )

    return replace(state, last_fetch_timestamp=fetched_at)
