"""
ntfy notification client.

Publishes plain text messages to ntfy-style HTTP endpoints.
"""

import asyncio
import logging

import aiohttp

from ntfy_watcher.errors import NotificationDeliveryError
from ntfy_watcher.rss_parser import FeedItem

logger = logging.getLogger(__name__)


def format_message(item: FeedItem) -> str:
    """
    Format a feed item as a notification message.

    Parameters
    ----------
    item : FeedItem
        The item to format.

    Returns
    -------
    str
        ``"New update: {subject}\\n{link}\\n{body}"``.
    """
    return f"New update: {item.subject}\n{item.link}\n{item.body}"


class NtfyNotifier:
    """
    ntfy notification client.

    POSTs each message to the destination URL, with an optional bearer
    token. Failed deliveries are reported, never retried.
    """

    def __init__(self, timeout: int = 30):
        """
        Initialize the ntfy notifier.

        Parameters
        ----------
        timeout : int
            HTTP request timeout in seconds.
        """
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def send(self, message: str, endpoint: str, token: str | None = None) -> None:
        """
        Publish a message to one endpoint.

        Parameters
        ----------
        message : str
            Plain text message body.
        endpoint : str
            ntfy URL (server and topic).
        token : str | None
            Bearer token, sent only when set.

        Raises
        ------
        NotificationDeliveryError
            On transport errors, timeouts, or any status other than 200.
        """
        headers = {"Content-Type": "text/plain"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        session = await self._get_session()

        try:
            async with session.post(
                endpoint, data=message.encode("utf-8"), headers=headers
            ) as response:
                if response.status != 200:
                    raise NotificationDeliveryError(
                        endpoint,
                        f"Unexpected status {response.status} from {endpoint}",
                        status=response.status,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NotificationDeliveryError(
                endpoint, f"Failed to reach {endpoint}: {e!r}"
            ) from e

        logger.info("Sent notification to %s", endpoint)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
        logger.debug("ntfy client closed")
