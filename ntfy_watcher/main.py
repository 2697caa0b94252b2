"""
Main entry point for ntfy-watcher.

Runs the poll loop that checks the feed and sends notifications.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

import coloredlogs

from ntfy_watcher.checker import UpdateChecker
from ntfy_watcher.config import CONFIG_FILE, ConfigStore
from ntfy_watcher.errors import ConfigError, PersistenceError
from ntfy_watcher.ntfy import NtfyNotifier
from ntfy_watcher.rss_parser import FeedParser

logger = logging.getLogger(__name__)


class Watcher:
    """
    Main ntfy-watcher application.

    Owns the poll loop and the last seen id carried between iterations.
    """

    def __init__(self, config_path: str | Path = CONFIG_FILE):
        """
        Initialize the watcher.

        Parameters
        ----------
        config_path : str | Path
            Path to the YAML configuration file.

        Raises
        ------
        ConfigError
            If the configuration cannot be loaded.
        """
        self.store = ConfigStore(config_path)
        self.config = self.store.load()
        self.parser: FeedParser | None = None
        self.notifier: NtfyNotifier | None = None
        self.checker: UpdateChecker | None = None
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the watcher and run until stopped."""
        logger.info("Starting ntfy-watcher")

        self.parser = FeedParser(timeout=self.config.request_timeout)
        self.notifier = NtfyNotifier(timeout=self.config.request_timeout)
        self.checker = UpdateChecker(self.parser, self.notifier, self.store)

        self._running = True
        self._task = asyncio.create_task(self.run())

        logger.info(
            "Watching %s every %s for %d destination(s)",
            self.config.feed_url,
            self.config.refresh_interval,
            len(self.config.destinations),
        )

        try:
            await asyncio.gather(self._task)
        except asyncio.CancelledError:
            logger.info("Watcher task cancelled")

    def request_stop(self) -> None:
        """
        Cancel the poll loop without waiting for it.

        Safe to call from a signal handler; :meth:`stop` still has to be
        awaited afterwards to close the HTTP sessions.
        """
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Stop the watcher gracefully."""
        logger.info("Stopping ntfy-watcher")
        self.request_stop()

        if self._task:
            await asyncio.gather(self._task, return_exceptions=True)

        if self.parser:
            await self.parser.close()
        if self.notifier:
            await self.notifier.close()

        logger.info("ntfy-watcher stopped")

    async def run(self) -> None:
        """
        Poll the feed until stopped.

        Sleeps for the refresh interval after every iteration, whether or
        not it succeeded.

        Raises
        ------
        PersistenceError
            If a new last seen id could not be written back.
        """
        interval = self.config.refresh_interval.total_seconds()
        last_seen_id = self.config.last_seen_id

        while self._running:
            last_seen_id = await self._poll_once(last_seen_id)
            await asyncio.sleep(interval)

    async def _poll_once(self, last_seen_id: str) -> str:
        """
        Run a single update check.

        Parameters
        ----------
        last_seen_id : str
            Id of the most recently notified item.

        Returns
        -------
        str
            The id to carry into the next iteration.
        """
        if not self.checker:
            raise RuntimeError("Components not initialized")

        try:
            return await self.checker.check(
                last_seen_id,
                self.config.destinations,
                self.config.feed_url,
            )
        except PersistenceError:
            raise
        except Exception as e:
            logger.error("Error checking feed: %s", e)
            return last_seen_id


def setup_logging(verbose: bool = False) -> None:
    """
    Configure application logging.

    Parameters
    ----------
    verbose : bool
        If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO

    coloredlogs.install(
        level=level,
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    setup_logging()

    try:
        watcher = Watcher(CONFIG_FILE)
    except ConfigError as e:
        logger.error("Error reading configuration: %s", e)
        sys.exit(1)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def signal_handler():
        logger.info("Received shutdown signal")
        watcher.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    exit_code = 0
    try:
        loop.run_until_complete(watcher.start())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except PersistenceError as e:
        logger.critical("Cannot persist last seen id, exiting: %s", e)
        exit_code = 1
    finally:
        loop.run_until_complete(watcher.stop())
        loop.close()

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
