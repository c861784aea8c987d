"""
Reply Service Module

This module coordinates posting a reply from the inline compose box: it
gates on an authenticated session and non-empty text, submits through the
SocialService, resets the compose state, and asks the SyncController for an
immediate refresh so the new reply shows up.
"""

from dataclasses import dataclass
from typing import Optional

from config import settings
from data.models import PostRef, Session
from services.social_service import SocialService
from services.sync_controller import SyncController
from utils.exceptions import SubmitError
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ComposeState:
    """Inline reply box state. Errors here never affect the thread's error state."""
    target: Optional[PostRef] = None
    buffer: str = ""
    is_open: bool = False
    is_submitting: bool = False
    error: Optional[str] = None


class ReplyService:
    """Submits replies for one mounted thread."""

    def __init__(self, social_service: SocialService, controller: SyncController,
                 max_length: int = settings.MAX_REPLY_LENGTH):
        self.social_service = social_service
        self.controller = controller
        self.max_length = max_length
        self.compose = ComposeState()

    # =========================================================================
    # Compose box
    # =========================================================================

    def open_compose(self, target: PostRef) -> ComposeState:
        """Open the compose box under ``target``, keeping the draft if it is already open there."""
        if self.compose.is_open and self.compose.target == target:
            return self.compose
        self.compose = ComposeState(target=target, is_open=True)
        return self.compose

    def update_buffer(self, text: str) -> ComposeState:
        self.compose = ComposeState(
            target=self.compose.target, buffer=text, is_open=self.compose.is_open,
        )
        return self.compose

    def cancel_compose(self) -> ComposeState:
        self.compose = ComposeState()
        return self.compose

    def can_submit(self, session: Session, text: str) -> bool:
        """UI gate: a reply is only attempted with a logged-in session and some text."""
        return bool(session.is_authenticated and text and text.strip())

    # =========================================================================
    # Submission
    # =========================================================================

    async def submit_reply(self, session: Session, parent_ref: PostRef, root_ref: PostRef, text: str) -> bool:
        """
        Post a reply and refresh the thread.

        Args:
            session: Current session
            parent_ref: Post being replied to
            root_ref: Root post of the thread
            text: Reply text

        Returns:
            bool: True if the reply was posted, False if it was not attempted
            because the session is anonymous or the text is blank

        Raises:
            SubmitError: If the reply was attempted and failed
        """
        if not self.can_submit(session, text):
            logger.debug("Reply not attempted: anonymous session or empty text")
            return False

        text = text.strip()
        self.compose = ComposeState(target=parent_ref, buffer=text, is_open=True, is_submitting=True)

        try:
            if len(text) > self.max_length:
                raise SubmitError(f"Reply is {len(text)} characters, the limit is {self.max_length}")

            thread = self.controller.thread
            parent = thread.get_post(parent_ref) if thread else None
            root = thread.get_post(root_ref) if thread else None
            if parent is None or root is None:
                raise SubmitError(f"Cannot reply to {parent_ref}: post is not part of the loaded thread")

            await self.social_service.create_reply(parent, root, text)
        except SubmitError as e:
            logger.error(f"Reply to {parent_ref} failed: {e}")
            self.compose = ComposeState(target=parent_ref, buffer=text, is_open=True, error=str(e))
            raise

        self.compose = ComposeState()
        await self.controller.refresh_after_action()
        return True

    async def submit_compose(self) -> bool:
        """Submit the compose buffer to its target as part of the controller's thread."""
        thread = self.controller.thread
        if self.compose.target is None or thread is None:
            return False
        return await self.submit_reply(
            self.social_service.session, self.compose.target, thread.root.ref, self.compose.buffer,
        )
