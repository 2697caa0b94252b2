"""
Feed fetching and parsing module.

Fetches the feed with async HTTP requests and decodes its
``recent-post`` elements into feed items.
"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass

import aiohttp

from ntfy_watcher.errors import DecodeError, NetworkError

logger = logging.getLogger(__name__)

# Element holding one feed item, as a direct child of the document root
ITEM_TAG = "recent-post"


@dataclass
class FeedItem:
    """
    A single item of the feed.

    Attributes
    ----------
    id : str
        Unique identifier of the item.
    subject : str
        Item headline.
    body : str
        Item text.
    link : str
        URL of the item.
    """

    id: str = ""
    subject: str = ""
    body: str = ""
    link: str = ""

    @classmethod
    def from_element(cls, element: ET.Element) -> "FeedItem":
        """
        Create a FeedItem from a ``recent-post`` element.

        Missing child elements become empty strings.

        Parameters
        ----------
        element : ET.Element
            The item element.

        Returns
        -------
        FeedItem
            Normalized item instance.
        """

        def text(tag: str) -> str:
            child = element.find(tag)
            if child is None or child.text is None:
                return ""
            return child.text.strip()

        return cls(
            id=text("id"),
            subject=text("subject"),
            body=text("body"),
            link=text("link"),
        )


class FeedParser:
    """
    Async feed fetcher.

    Fetches the feed using aiohttp and parses it with ElementTree.
    """

    def __init__(self, timeout: int = 30, user_agent: str = "ntfy-watcher/1.0"):
        """
        Initialize the feed parser.

        Parameters
        ----------
        timeout : int
            HTTP request timeout in seconds.
        user_agent : str
            User-Agent header for HTTP requests.
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            headers = {"User-Agent": self.user_agent}
            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)
        return self._session

    async def fetch_feed(self, url: str) -> list[FeedItem]:
        """
        Fetch and parse the feed.

        Parameters
        ----------
        url : str
            URL of the feed.

        Returns
        -------
        list[FeedItem]
            Items in the order the feed lists them.

        Raises
        ------
        NetworkError
            If the request fails, times out or returns a non-2xx status.
        DecodeError
            If the response body is not a valid feed document.
        """
        session = await self._get_session()

        logger.debug("Fetching feed %s", url)

        try:
            async with session.get(url) as response:
                response.raise_for_status()
                content = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"Failed to fetch feed {url}: {e!r}") from e

        items = self.parse_feed(content)
        logger.debug("Fetched %d item(s) from %s", len(items), url)
        return items

    def parse_feed(self, content: bytes | str) -> list[FeedItem]:
        """
        Parse feed content into FeedItem objects.

        Parameters
        ----------
        content : bytes | str
            Raw feed XML.

        Returns
        -------
        list[FeedItem]
            List of parsed items, empty if the document has none.

        Raises
        ------
        DecodeError
            If the content is not well-formed XML.
        """
        # Some servers return content with leading newlines which breaks
        # XML declaration parsing
        content = content.lstrip()

        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise DecodeError(f"Invalid feed document: {e}") from e

        return [FeedItem.from_element(element) for element in root.findall(ITEM_TAG)]

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
            logger.debug("HTTP session closed")

    async def __aenter__(self) -> "FeedParser":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
