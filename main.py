"""
Bluesky Comments Application

This is the main entry point for the Bluesky Comments application.
It resolves a Bluesky post from a ``{{bluesky:<url>}}`` block (or a bare
post URL), renders the post with its replies, optionally keeps the view
fresh in the background, and can post a reply to the root post.
"""

import sys
import asyncio
import argparse
import logging
from typing import Callable, List, Optional

from config import settings
from config.validators import validate_settings, get_config_summary
from data.models import PostRef
from services.presenter import build_thread_view, describe_error, format_thread_view
from services.reply_service import ReplyService
from services.social_service import SocialService
from services.sync_controller import SyncController, SyncStatus
from services.thread_service import ThreadService
from utils.exceptions import BlueskyCommentsError, InvalidUrlError, SubmitError
from utils.identifiers import extract_post_url, resolve_post_ref
from utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)


class FocusEvents:
    """Focus event source owned by one host view."""

    def __init__(self):
        self._listeners: List[Callable[[], None]] = []

    def add_listener(self, callback: Callable[[], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def fire(self) -> None:
        for callback in list(self._listeners):
            callback()


def resolve_target(target: str) -> PostRef:
    """
    Resolve command line input to a post reference.

    Args:
        target: Either block content containing ``{{bluesky:<url>}}`` or a post URL

    Returns:
        PostRef: The root post

    Raises:
        InvalidUrlError: If no usable post URL is found
    """
    url = extract_post_url(target) if "{{bluesky:" in target else target
    return resolve_post_ref(url)


class BlueskyComments:
    """
    One mounted comment thread.

    This class wires the services together the way a host view would:
    mount starts synchronization, render produces the current display,
    unmount tears everything down.
    """

    def __init__(self, target: str, social_service: Optional[SocialService] = None,
                 thread_service: Optional[ThreadService] = None,
                 focus_source: Optional[FocusEvents] = None,
                 on_change: Optional[Callable[[SyncController], None]] = None):
        self.target = target
        self.social_service = social_service or SocialService()
        self.thread_service = thread_service or ThreadService(self.social_service)
        self.focus_source = focus_source
        self.on_change = on_change
        self.controller: Optional[SyncController] = None
        self.reply_service: Optional[ReplyService] = None
        self.error: Optional[BlueskyCommentsError] = None

    async def mount(self) -> bool:
        """
        Resolve the post and run the initial fetch.

        Returns:
            bool: True if the thread loaded
        """
        try:
            ref = resolve_target(self.target)
        except InvalidUrlError as e:
            logger.error(f"Invalid Bluesky block: {e}")
            self.error = e
            return False

        self.controller = SyncController(
            ref, self.thread_service, focus_source=self.focus_source, on_change=self.on_change,
        )
        self.reply_service = ReplyService(self.social_service, self.controller)
        return await self.controller.start()

    def render(self) -> str:
        if self.controller is None:
            return describe_error(self.error) or "Not mounted."
        view = build_thread_view(
            self.controller.thread,
            self.controller.view_state,
            error=self.controller.error,
            session=self.controller.session,
            new_refs=self.controller.new_reply_refs,
        )
        return format_thread_view(view)

    async def reply(self, text: str) -> bool:
        """Reply to the root post of the mounted thread."""
        if self.controller is None or self.controller.thread is None:
            return False
        root_ref = self.controller.thread.root.ref
        return await self.reply_service.submit_reply(self.social_service.session, root_ref, root_ref, text)

    def unmount(self) -> None:
        if self.controller is not None:
            self.controller.teardown()


def _watch_stdin(loop: asyncio.AbstractEventLoop, focus: FocusEvents) -> bool:
    """Treat Enter on stdin as the view regaining focus."""
    def _on_input():
        sys.stdin.readline()
        focus.fire()

    try:
        loop.add_reader(sys.stdin.fileno(), _on_input)
        return True
    except (NotImplementedError, OSError, ValueError):
        return False


async def run(args) -> int:
    """Run the application with parsed arguments and return an exit code."""
    focus = FocusEvents() if args.watch else None
    app = BlueskyComments(args.target, focus_source=focus)
    loop = asyncio.get_running_loop()
    reading_stdin = False

    def _redraw(controller: SyncController) -> None:
        if controller.status is not SyncStatus.FETCHING:
            print("\n" + app.render(), flush=True)

    try:
        loaded = await app.mount()
        if loaded:
            for _ in range(args.pages):
                app.controller.expand_page()
            if args.expand_all:
                for node in app.controller.thread.replies:
                    app.controller.toggle_expanded(node.ref)

        if args.reply:
            if not loaded:
                print(app.render())
                logger.error("Cannot reply: thread did not load")
                return 1
            try:
                posted = await app.reply(args.reply)
            except SubmitError as e:
                print(f"Reply failed: {e}")
                return 1
            if not posted:
                print("Reply not sent: log in to Bluesky and enter some text.")
                return 1

        print(app.render(), flush=True)

        if args.watch and app.controller is not None:
            app.controller.on_change = _redraw
            reading_stdin = _watch_stdin(loop, focus)
            logger.warning("Watching thread, press Ctrl+C to stop"
                           + (" (Enter refreshes)" if reading_stdin else ""))
            while app.controller.is_mounted and not app.controller.is_halted:
                await asyncio.sleep(1)

        return 0 if loaded else 1
    finally:
        if reading_stdin:
            loop.remove_reader(sys.stdin.fileno())
        app.unmount()


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Render a Bluesky thread and its replies')
    parser.add_argument('target', help='Block content with {{bluesky:<url>}} or a Bluesky post URL')
    parser.add_argument('--watch', action='store_true', help='Keep polling and re-render on new replies')
    parser.add_argument('--reply', type=str, default=None, help='Post a reply to the root post')
    parser.add_argument('--pages', type=int, default=0,
                        help=f'Extra pages of {settings.REPLY_PAGE_SIZE} top-level replies to show')
    parser.add_argument('--expand-all', action='store_true', help='Show the direct replies of every reply')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='WARNING', help='Logging level')
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    try:
        validate_settings()
        logger.debug(f"Configuration: {get_config_summary()}")
        exit_code = asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        exit_code = 0
    except BlueskyCommentsError as e:
        logger.error(f"Bluesky Comments error: {e}")
        exit_code = 1
    except Exception as e:
        logger.error(f"Unhandled exception in Bluesky Comments: {e}", exc_info=True)
        exit_code = 2

    logger.debug(f"Bluesky Comments finished with exit code {exit_code}")
    return exit_code

if __name__ == "__main__":
    sys.exit(main())
