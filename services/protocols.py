"""
Service Protocol Definitions

This module defines typing.Protocol interfaces for the collaborators of the
thread synchronization engine. These protocols enable loose coupling,
dependency injection, and easier testing.

Protocols defined:
- ThreadFetcher: Interface for retrieving a normalized thread
- FocusSource: Interface for the host's window/tab focus events
"""

from typing import Callable, Protocol

from data.models import PostRef, Thread


class ThreadFetcher(Protocol):
    """Protocol defining the interface for thread retrieval.

    Implementations perform one network retrieval per call and return the
    normalized thread, raising a ThreadFetchError subclass on failure.
    """

    async def fetch(self, ref: PostRef) -> Thread:
        """Fetch the thread rooted at a post.

        Args:
            ref: The root post reference.

        Returns:
            The normalized Thread.
        """
        ...


class FocusSource(Protocol):
    """Protocol for the host event that fires when the view regains focus.

    Listeners are called on the event loop thread with no arguments.
    """

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a focus listener.

        Args:
            callback: Called each time focus is regained.
        """
        ...

    def remove_listener(self, callback: Callable[[], None]) -> None:
        """Unregister a focus listener previously added.

        Args:
            callback: The listener to remove.
        """
        ...
