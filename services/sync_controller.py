"""
Synchronization Controller Module

This module keeps one mounted thread fresh. It performs the initial load,
polls in the background on a fixed interval, refreshes when the host window
regains focus, and folds every successful fetch into the ViewState without
touching the user's paging or expansion choices.

At most one fetch is in flight at a time; poll and focus triggers arriving
meanwhile are dropped, while a refresh following a user action waits for
the in-flight fetch and then fetches again. Each mount starts from fresh
state, and results belonging to an earlier mount are discarded.
"""

import asyncio
import time
from enum import Enum
from typing import Callable, Optional, Set

from config import settings
from data.models import PostRef, Session, Thread
from data.view_state import (
    ViewState, acknowledge_notifications, apply_fetch_result, expand_page, initial_view_state,
    toggle_expanded,
)
from services.protocols import FocusSource, ThreadFetcher
from utils.exceptions import MalformedResponseError, ThreadFetchError
from utils.logger import get_logger

logger = get_logger(__name__)


class SyncStatus(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    ERROR = "error"


class FetchKind(Enum):
    INITIAL = "initial"
    BACKGROUND = "background"


class SyncController:
    """Owns the Thread, ViewState and refresh schedule of one mounted thread."""

    def __init__(self, ref: PostRef, thread_service: ThreadFetcher,
                 focus_source: Optional[FocusSource] = None,
                 on_change: Optional[Callable[["SyncController"], None]] = None,
                 poll_interval: float = settings.POLL_INTERVAL_SECONDS,
                 cooldown: float = settings.FETCH_COOLDOWN_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.ref = ref
        self.thread_service = thread_service
        self.focus_source = focus_source
        self.on_change = on_change
        self.poll_interval = poll_interval
        self.cooldown = cooldown
        self._clock = clock

        self._mounted = False
        self._generation = 0
        self._fetch_future: Optional[asyncio.Future] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._focus_registered = False
        self._trigger_tasks: Set[asyncio.Task] = set()
        self._reset_state()

    def _reset_state(self) -> None:
        self.thread: Optional[Thread] = None
        self.view_state: ViewState = initial_view_state()
        self.status = SyncStatus.IDLE
        self.fetch_kind: Optional[FetchKind] = None
        self.error: Optional[ThreadFetchError] = None
        self.last_background_error: Optional[ThreadFetchError] = None
        self.new_reply_refs: Set[PostRef] = set()
        self.fetch_count = 0
        self._halted = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def is_halted(self) -> bool:
        """True after a terminal error; no automatic refresh happens until remount."""
        return self._halted

    @property
    def is_fetching(self) -> bool:
        """True while a fetch started by the current mount is in flight."""
        return self._fetch_future is not None and not self._fetch_future.done()

    @property
    def session(self) -> Optional[Session]:
        social_service = getattr(self.thread_service, "social_service", None)
        return getattr(social_service, "session", None)

    async def start(self) -> bool:
        """
        Mount the controller: register the focus listener, run the initial
        fetch, then start the polling timer.

        Every mount starts from a fresh thread and view state. Fetches still
        in flight from an earlier mount are ignored when they complete.

        Returns:
            bool: True if the initial fetch succeeded
        """
        if self._mounted:
            return self.thread is not None

        self._generation += 1
        generation = self._generation
        self._mounted = True
        self._reset_state()
        if self.focus_source is not None:
            self.focus_source.add_listener(self.on_focus)
            self._focus_registered = True

        success = await self.refresh(FetchKind.INITIAL)

        if generation != self._generation:
            return False
        if self._mounted and not self._halted:
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        return success

    def teardown(self) -> None:
        """Stop the timer and remove the focus listener. Safe to call repeatedly."""
        if self._mounted:
            logger.debug(f"Tearing down controller for {self.ref}")
        self._mounted = False
        # An in-flight fetch belongs to this mount and no longer blocks the next one
        self._fetch_future = None

        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

        if self._focus_registered and self.focus_source is not None:
            self.focus_source.remove_listener(self.on_focus)
            self._focus_registered = False

    def _is_current(self, generation: int) -> bool:
        return self._mounted and generation == self._generation

    async def _poll_loop(self) -> None:
        while self._mounted and not self._halted:
            await asyncio.sleep(self.poll_interval)
            if not self._mounted or self._halted:
                break
            try:
                await self.refresh(FetchKind.BACKGROUND)
            except Exception as e:
                logger.error(f"Unexpected error during background refresh of {self.ref}: {e}", exc_info=True)

    def on_focus(self) -> None:
        """Focus listener: schedule a background refresh on the running loop."""
        if not self._mounted or self._halted or self.is_fetching:
            return
        task = asyncio.get_running_loop().create_task(self.refresh(FetchKind.BACKGROUND))
        self._trigger_tasks.add(task)
        task.add_done_callback(self._trigger_tasks.discard)

    # =========================================================================
    # Fetching
    # =========================================================================

    def _in_cooldown(self) -> bool:
        last = self.view_state.last_fetch_timestamp
        return last is not None and self._clock() - last < self.cooldown

    async def refresh(self, kind: FetchKind = FetchKind.BACKGROUND, bypass_cooldown: bool = False) -> bool:
        """
        Fetch the thread once and apply the result.

        Background refreshes are skipped while another fetch is in flight,
        after a terminal error, or within the cooldown window unless
        ``bypass_cooldown`` is set.

        Args:
            kind: Initial or background fetch
            bypass_cooldown: Ignore the cooldown window (user-initiated refresh)

        Returns:
            bool: True if a fetch ran and its result was applied
        """
        generation = self._generation
        if not self._mounted or self._halted:
            return False
        if self.is_fetching:
            logger.debug(f"Dropping {kind.value} refresh of {self.ref}: fetch already in flight")
            return False
        if kind is FetchKind.BACKGROUND and not bypass_cooldown and self._in_cooldown():
            logger.debug(f"Skipping background refresh of {self.ref}: within cooldown")
            return False

        future = asyncio.get_running_loop().create_future()
        self._fetch_future = future
        self.fetch_count += 1
        previous_status = self.status
        self.status = SyncStatus.FETCHING
        self.fetch_kind = kind
        self._notify()

        try:
            thread = await self.thread_service.fetch(self.ref)
        except Exception as e:
            if not self._is_current(generation):
                logger.debug(f"Discarding fetch error for {self.ref} after teardown: {e}")
                return False
            error = e
            if not isinstance(e, ThreadFetchError):
                # Any other failure is a bug in normalization; treat it as a malformed response
                logger.error(f"Unexpected error fetching {self.ref}: {e}", exc_info=True)
                error = MalformedResponseError(f"Unexpected error fetching thread {self.ref}: {e}")
                error.__cause__ = e
            self._apply_failure(kind, error)
            return False
        finally:
            future.set_result(None)
            if self._fetch_future is future:
                self._fetch_future = None
            if generation == self._generation:
                if self.status is SyncStatus.FETCHING:
                    self.status = previous_status if previous_status is not SyncStatus.FETCHING else SyncStatus.IDLE
                self.fetch_kind = None

        if not self._is_current(generation):
            logger.debug(f"Discarding fetch result for {self.ref} after teardown")
            return False

        self._apply_success(thread)
        return True

    async def refresh_after_action(self) -> bool:
        """
        Refresh as a consequence of a user action such as posting a reply.

        A fetch already in flight may predate the action, so it is awaited
        first and a new fetch is started afterwards, bypassing the cooldown.

        Returns:
            bool: True if the follow-up fetch ran and its result was applied
        """
        while self.is_fetching:
            await asyncio.shield(self._fetch_future)
        return await self.refresh(FetchKind.BACKGROUND, bypass_cooldown=True)

    def _apply_success(self, thread: Thread) -> None:
        self.new_reply_refs |= thread.new_reply_refs(self.thread)
        self.thread = thread
        self.view_state = apply_fetch_result(self.view_state, thread.total_replies, self._clock())
        self.status = SyncStatus.IDLE
        self.error = None
        self.last_background_error = None
        logger.debug(f"Applied thread {self.ref}: {thread.total_replies} replies, "
                     f"{self.view_state.pending_notification_count} pending")
        self._notify()

    def _apply_failure(self, kind: FetchKind, error: ThreadFetchError) -> None:
        if kind is FetchKind.INITIAL:
            logger.error(f"Initial fetch of {self.ref} failed: {error}")
            self.error = error
            self.status = SyncStatus.ERROR
        else:
            # The last good thread stays on screen
            logger.warning(f"Background fetch of {self.ref} failed: {error}")
            self.last_background_error = error
            self.status = SyncStatus.ERROR if self.thread is None else SyncStatus.IDLE
            if self.thread is None and self.error is None:
                self.error = error

        if error.is_terminal:
            logger.warning(f"Stopping automatic refresh of {self.ref}: {type(error).__name__}")
            self._halted = True
        self._notify()

    # =========================================================================
    # View state actions
    # =========================================================================

    def expand_page(self) -> ViewState:
        total = len(self.thread.replies) if self.thread else 0
        return self._set_view_state(expand_page(self.view_state, total))

    def toggle_expanded(self, node_id: PostRef) -> ViewState:
        return self._set_view_state(toggle_expanded(self.view_state, node_id))

    def acknowledge_notifications(self) -> ViewState:
        self.new_reply_refs = set()
        return self._set_view_state(acknowledge_notifications(self.view_state))

    def _set_view_state(self, state: ViewState) -> ViewState:
        self.view_state = state
        self._notify()
        return state

    def _notify(self) -> None:
        if self.on_change is not None and self._mounted:
            self.on_change(self)
