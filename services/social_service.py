"""
Social Service Module

This module handles the AT Protocol (BlueSky) connection for a mounted thread.
It owns the Session, authenticates once when credentials are configured, and
shapes the three remote calls the application makes: authenticate, get a
post thread, and create a reply. SDK errors are translated into the
application's exception hierarchy here.
"""

from typing import Any, Callable, Optional

from atproto import AsyncClient, models
from atproto_client import exceptions as at_exceptions

from config import settings
from data.models import Post, Session
from utils.exceptions import (
    AuthenticationError, MalformedResponseError, NetworkError, NotFoundError, SubmitError
)
from utils.logger import get_logger

logger = get_logger(__name__)

# XRPC error names the AppView uses for a post that cannot be shown
NOT_FOUND_ERRORS = {"NotFound", "InvalidRequest"}


def _xrpc_url(endpoint: str) -> str:
    return endpoint.rstrip("/") + "/xrpc"


def _error_name(exc: Exception) -> str:
    """Best-effort XRPC error name from an SDK request error."""
    content = getattr(getattr(exc, "response", None), "content", None)
    return getattr(content, "error", None) or ""


class SocialService:
    """Service for the AT Protocol (BlueSky) session of one mounted thread."""

    def __init__(self, username: Optional[str] = None, password: Optional[str] = None,
                 client_factory: Callable[..., Any] = AsyncClient):
        """
        Initialize the social service. No network call is made until the
        first fetch or reply.

        Args:
            username: BlueSky handle or email, defaults to AT_PROTOCOL_USERNAME
            password: App password, defaults to AT_PROTOCOL_PASSWORD
            client_factory: Callable building an SDK client from a base URL
        """
        self.username = username if username is not None else settings.AT_PROTOCOL_USERNAME
        self.password = password if password is not None else settings.AT_PROTOCOL_PASSWORD
        self._client_factory = client_factory
        self.at_client = None
        self.session = self._anonymous_session()

    def _anonymous_session(self) -> Session:
        return Session(
            service_endpoint=settings.BLUESKY_PUBLIC_API_URL,
            is_authenticated=False,
            credentials_present=bool(self.username and self.password),
        )

    async def authenticate(self, identifier: str, secret: str) -> Session:
        """
        Log in to BlueSky and switch the session to authenticated mode.

        Args:
            identifier: Handle or email
            secret: App password

        Returns:
            Session: The authenticated session

        Raises:
            AuthenticationError: If the login is rejected or cannot be completed
        """
        client = self._client_factory(base_url=_xrpc_url(settings.BLUESKY_SERVICE_URL))
        try:
            profile = await client.login(identifier, secret)
        except Exception as e:
            raise AuthenticationError(f"Failed to authenticate with AT Protocol as {identifier}: {e}") from e

        self.at_client = client
        self.session = Session(
            service_endpoint=settings.BLUESKY_SERVICE_URL,
            is_authenticated=True,
            credentials_present=True,
            handle=getattr(profile, "handle", identifier),
            did=getattr(profile, "did", None),
        )
        logger.info(f"Successfully logged in to AT Protocol as {self.session.handle}")
        return self.session

    async def ensure_session(self) -> Session:
        """
        Establish the session on first use and reuse it afterwards.

        Authentication failure is not fatal: the session falls back to
        anonymous reads against the public API.

        Returns:
            Session: The live session
        """
        if self.at_client is not None:
            return self.session

        if self.username and self.password:
            try:
                return await self.authenticate(self.username, self.password)
            except AuthenticationError as e:
                logger.warning(f"{e}. Continuing anonymously.")

        self.at_client = self._client_factory(base_url=_xrpc_url(settings.BLUESKY_PUBLIC_API_URL))
        self.session = self._anonymous_session()
        logger.debug("Using anonymous session against the public API")
        return self.session

    def invalidate(self) -> None:
        """Drop the live session so the next call authenticates again."""
        logger.debug("Invalidating AT Protocol session")
        self.at_client = None
        self.session = self._anonymous_session()

    async def get_thread(self, uri: str, depth: int = settings.THREAD_FETCH_DEPTH) -> Any:
        """
        Retrieve the raw thread view for a post.

        Args:
            uri: ``at://`` URI of the root post
            depth: Reply depth to request

        Returns:
            The SDK's ``app.bsky.feed.getPostThread`` response

        Raises:
            NetworkError: Transport failure or expired session
            NotFoundError: The post does not exist or cannot be shown
            MalformedResponseError: The response did not match the SDK schema
        """
        await self.ensure_session()
        try:
            return await self.at_client.get_post_thread(uri=uri, depth=depth, parent_height=0)
        except at_exceptions.BadRequestError as e:
            if _error_name(e) in NOT_FOUND_ERRORS:
                raise NotFoundError(f"Thread unavailable: {uri}") from e
            raise MalformedResponseError(f"Service rejected thread request for {uri}: {_error_name(e)}") from e
        except at_exceptions.UnauthorizedError as e:
            self.invalidate()
            raise NetworkError(f"Session expired while fetching {uri}") from e
        except at_exceptions.ModelError as e:
            raise MalformedResponseError(f"Unexpected thread response for {uri}: {e}") from e
        except (at_exceptions.NetworkError, at_exceptions.RequestException) as e:
            raise NetworkError(f"Error fetching thread {uri}: {e}") from e

    async def create_reply(self, parent: Post, root: Post, text: str) -> Any:
        """
        Post a plain-text reply.

        Args:
            parent: Post being replied to
            root: Root post of the thread
            text: Reply text

        Returns:
            The SDK's create-record response (``uri`` and ``cid``)

        Raises:
            SubmitError: If the session is anonymous or the service rejects the post
        """
        session = await self.ensure_session()
        if not session.is_authenticated:
            raise SubmitError("Replying requires a logged-in BlueSky account")
        if not parent.cid or not root.cid:
            raise SubmitError(f"Cannot reply to {parent.ref}: post has not been fetched")

        reply_to = models.AppBskyFeedPost.ReplyRef(
            parent=models.ComAtprotoRepoStrongRef.Main(uri=parent.ref.uri, cid=parent.cid),
            root=models.ComAtprotoRepoStrongRef.Main(uri=root.ref.uri, cid=root.cid),
        )
        try:
            response = await self.at_client.send_post(text=text, reply_to=reply_to)
        except at_exceptions.AtProtocolError as e:
            raise SubmitError(f"Error posting reply to {parent.ref}: {e}") from e

        logger.info(f"Successfully posted reply to {parent.ref}")
        return response
