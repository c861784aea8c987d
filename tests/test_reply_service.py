"""
Tests for Reply Service

Tests cover the submit gate, successful replies triggering a refresh,
failure handling in the compose state, and compose box transitions.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.reply_service import ComposeState, ReplyService
from services.sync_controller import FetchKind, SyncController, SyncStatus
from utils.exceptions import SubmitError


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def mock_social_service(authenticated_session):
    """Mock SocialService with an authenticated session."""
    service = MagicMock()
    service.session = authenticated_session
    service.create_reply = AsyncMock(return_value=MagicMock(uri="at://did:plc:alice/app.bsky.feed.post/new"))
    return service


@pytest.fixture
def load_controller(root_ref, mock_thread_service, thread_factory, fake_clock):
    """
    Factory for mounted controllers whose first fetch returns one reply
    and whose second fetch returns two.

    Usage:
        controller = await load_controller()
    """
    created = []

    async def _load():
        mock_thread_service.fetch.side_effect = [thread_factory(1), thread_factory(2)]
        controller = SyncController(root_ref, mock_thread_service, poll_interval=3600, cooldown=5,
                                    clock=fake_clock)
        created.append(controller)
        await controller.start()
        return controller

    yield _load

    for controller in created:
        controller.teardown()


# =============================================================================
# Submit Gate Tests
# =============================================================================

class TestCanSubmit:
    """Tests for the session and text gate."""

    def test_authenticated_with_text(self, mock_social_service, authenticated_session):
        """Logged in with text: allowed."""
        service = ReplyService(mock_social_service, MagicMock())
        assert service.can_submit(authenticated_session, "hello") is True

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text(self, mock_social_service, authenticated_session, text):
        """Blank text is never submitted."""
        service = ReplyService(mock_social_service, MagicMock())
        assert service.can_submit(authenticated_session, text) is False

    def test_anonymous_session(self, mock_social_service, anonymous_session):
        """Anonymous sessions cannot reply."""
        service = ReplyService(mock_social_service, MagicMock())
        assert service.can_submit(anonymous_session, "hello") is False


# =============================================================================
# Submission Tests
# =============================================================================

class TestSubmitReply:
    """Tests for posting replies."""

    @pytest.mark.asyncio
    async def test_success_refreshes_once(self, mock_social_service, load_controller,
                                          mock_thread_service, authenticated_session):
        """A posted reply resets the compose box and triggers one extra fetch."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        root = loaded_controller.thread.root
        service.open_compose(root.ref)
        service.update_buffer("  Great post  ")

        result = await service.submit_reply(authenticated_session, root.ref, root.ref, "  Great post  ")

        assert result is True
        mock_social_service.create_reply.assert_awaited_once_with(root, root, "Great post")
        assert mock_thread_service.fetch.await_count == 2
        assert loaded_controller.thread.total_replies == 2
        assert service.compose == ComposeState()

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cooldown(self, mock_social_service, load_controller,
                                             mock_thread_service, authenticated_session):
        """The follow-up fetch runs even right after the initial one."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        assert loaded_controller._in_cooldown() is True
        root_ref = loaded_controller.thread.root.ref

        await service.submit_reply(authenticated_session, root_ref, root_ref, "Hi")
        assert mock_thread_service.fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_refresh_waits_for_poll_in_flight(self, mock_social_service, load_controller,
                                                    mock_thread_service, thread_factory, authenticated_session):
        """A poll already fetching when the reply posts is followed by a fresh fetch."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        root_ref = loaded_controller.thread.root.ref
        gate = asyncio.Event()
        responses = [thread_factory(1), thread_factory(2)]

        async def _fetch(ref):
            if len(responses) == 2:
                await gate.wait()
            return responses.pop(0)

        mock_thread_service.fetch.side_effect = _fetch
        poll_task = asyncio.create_task(loaded_controller.refresh(FetchKind.BACKGROUND, bypass_cooldown=True))
        await asyncio.sleep(0)
        assert loaded_controller.is_fetching is True

        submit_task = asyncio.create_task(service.submit_reply(authenticated_session, root_ref, root_ref, "Hi"))
        await asyncio.sleep(0)
        gate.set()

        assert await poll_task is True
        assert await submit_task is True
        assert mock_thread_service.fetch.await_count == 3
        assert loaded_controller.thread.total_replies == 2

    @pytest.mark.asyncio
    async def test_reply_to_nested_post(self, mock_social_service, load_controller, authenticated_session):
        """Replying to a reply passes the reply as parent and the root as root."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        thread = loaded_controller.thread
        parent_ref = thread.replies[0].ref

        await service.submit_reply(authenticated_session, parent_ref, thread.root.ref, "Agreed")

        mock_social_service.create_reply.assert_awaited_once_with(
            thread.get_post(parent_ref), thread.root, "Agreed",
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_text_not_attempted(self, mock_social_service, load_controller,
                                            mock_thread_service, authenticated_session, text):
        """Blank text makes no network calls."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        root_ref = loaded_controller.thread.root.ref

        assert await service.submit_reply(authenticated_session, root_ref, root_ref, text) is False
        mock_social_service.create_reply.assert_not_called()
        assert mock_thread_service.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_anonymous_not_attempted(self, mock_social_service, load_controller,
                                           mock_thread_service, anonymous_session):
        """Anonymous sessions make no network calls."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        root_ref = loaded_controller.thread.root.ref

        assert await service.submit_reply(anonymous_session, root_ref, root_ref, "Hi") is False
        mock_social_service.create_reply.assert_not_called()
        assert mock_thread_service.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_failure_sets_compose_error_only(self, mock_social_service, load_controller,
                                                   mock_thread_service, authenticated_session):
        """A failed submit keeps the draft, records the error and leaves the thread alone."""
        loaded_controller = await load_controller()
        mock_social_service.create_reply.side_effect = SubmitError("rate limited")
        service = ReplyService(mock_social_service, loaded_controller)
        root_ref = loaded_controller.thread.root.ref

        with pytest.raises(SubmitError):
            await service.submit_reply(authenticated_session, root_ref, root_ref, "Hi there")

        assert service.compose.error == "rate limited"
        assert service.compose.buffer == "Hi there"
        assert service.compose.is_open is True
        assert service.compose.is_submitting is False
        assert loaded_controller.error is None
        assert loaded_controller.status is SyncStatus.IDLE
        assert mock_thread_service.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_too_long(self, mock_social_service, load_controller, authenticated_session):
        """Replies over the length limit are rejected before sending."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller, max_length=10)
        root_ref = loaded_controller.thread.root.ref

        with pytest.raises(SubmitError):
            await service.submit_reply(authenticated_session, root_ref, root_ref, "x" * 11)
        mock_social_service.create_reply.assert_not_called()
        assert "limit is 10" in service.compose.error

    @pytest.mark.asyncio
    async def test_unknown_parent(self, mock_social_service, load_controller, authenticated_session,
                                  post_factory):
        """Replying to a post outside the loaded thread fails."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        stranger = post_factory("elsewhere")

        with pytest.raises(SubmitError):
            await service.submit_reply(authenticated_session, stranger.ref,
                                       loaded_controller.thread.root.ref, "Hi")
        mock_social_service.create_reply.assert_not_called()


# =============================================================================
# Compose Box Tests
# =============================================================================

class TestCompose:
    """Tests for compose box state transitions."""

    def test_open_update_cancel(self, mock_social_service, root_ref):
        """Opening, typing and cancelling."""
        service = ReplyService(mock_social_service, MagicMock())

        state = service.open_compose(root_ref)
        assert state.is_open is True
        assert state.target == root_ref

        state = service.update_buffer("draft")
        assert state.buffer == "draft"
        assert state.target == root_ref

        assert service.cancel_compose() == ComposeState()

    def test_reopen_same_target_keeps_draft(self, mock_social_service, root_ref):
        """Opening the box already open on the same post keeps the draft."""
        service = ReplyService(mock_social_service, MagicMock())
        service.open_compose(root_ref)
        service.update_buffer("draft")
        assert service.open_compose(root_ref).buffer == "draft"

    @pytest.mark.asyncio
    async def test_submit_compose(self, mock_social_service, load_controller):
        """Submitting the compose box replies to its target within the thread."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        target = loaded_controller.thread.replies[0].ref
        service.open_compose(target)
        service.update_buffer("From the box")
        parent = loaded_controller.thread.get_post(target)
        root = loaded_controller.thread.root

        assert await service.submit_compose() is True
        mock_social_service.create_reply.assert_awaited_once_with(parent, root, "From the box")

    @pytest.mark.asyncio
    async def test_submit_compose_closed(self, mock_social_service, load_controller):
        """Nothing is sent when the box has no target."""
        loaded_controller = await load_controller()
        service = ReplyService(mock_social_service, loaded_controller)
        assert await service.submit_compose() is False
        mock_social_service.create_reply.assert_not_called()
