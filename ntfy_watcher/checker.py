"""
Update detection for ntfy-watcher.

Compares the newest feed item against the last notified one and fans a
notification out to every destination when they differ.
"""

import logging

from ntfy_watcher.config import ConfigStore
from ntfy_watcher.errors import EmptyFeedError, NotificationDeliveryError
from ntfy_watcher.notifier import Notifier
from ntfy_watcher.ntfy import format_message
from ntfy_watcher.rss_parser import FeedParser

logger = logging.getLogger(__name__)


class UpdateChecker:
    """
    Runs one poll-diff-notify-persist cycle.

    The feed's first item is taken as the latest one; no timestamps are
    compared.
    """

    def __init__(self, parser: FeedParser, notifier: Notifier, store: ConfigStore):
        """
        Initialize the checker.

        Parameters
        ----------
        parser : FeedParser
            Fetcher for the feed.
        notifier : Notifier
            Backend used to deliver notifications.
        store : ConfigStore
            Store the new last seen id is persisted to.
        """
        self.parser = parser
        self.notifier = notifier
        self.store = store

    async def check(
        self,
        last_seen_id: str,
        destinations: dict[str, str | None],
        feed_url: str,
    ) -> str:
        """
        Check the feed once and notify on a new item.

        Parameters
        ----------
        last_seen_id : str
            Id of the most recently notified item.
        destinations : dict[str, str | None]
            Endpoint to bearer token mapping. Delivery order is unspecified.
        feed_url : str
            URL of the feed.

        Returns
        -------
        str
            The new last seen id, unchanged when there was no update.

        Raises
        ------
        FetchError
            If the feed could not be fetched or decoded.
        EmptyFeedError
            If the feed has no items.
        PersistenceError
            If the new id could not be written back.
        """
        items = await self.parser.fetch_feed(feed_url)

        if not items:
            raise EmptyFeedError(f"No items in feed {feed_url}")

        latest = items[0]
        if latest.id == last_seen_id:
            logger.info("No updates. Last id: %s, newest id: %s", last_seen_id, latest.id)
            return last_seen_id

        logger.info("New item %s: %s", latest.id, latest.subject[:50])
        message = format_message(latest)

        delivered = 0
        for endpoint, token in destinations.items():
            try:
                await self.notifier.send(message, endpoint, token)
                delivered += 1
            except NotificationDeliveryError as e:
                logger.error("Error sending notification to %s: %s", endpoint, e)

        logger.info("Delivered item %s to %d/%d destination(s)", latest.id, delivered, len(destinations))

        self.store.persist_last_seen_id(latest.id)
        return latest.id
