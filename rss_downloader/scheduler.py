"""
Supervisor for the feed pollers.
Starts one polling thread per feed and waits until every one has finished.
"""
import logging
import queue
import threading
from typing import Any, Dict, List, Optional

from rss_downloader.config_manager import FeedConfig
from rss_downloader.counter_store import CounterStore
from rss_downloader.feed_poller import EXIT_STORAGE_ERROR, FeedPoller, PollerExit
from rss_downloader.rss_fetcher import RSSFetcher
from rss_downloader.rss_parser import RSSParser
from rss_downloader.utils.logging_utils import log_poller_exit

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STORAGE_FAILURE = 2


class FeedSupervisor:
    """
    Runs every configured feed concurrently.

    Pollers report back through a queue when their thread ends. A poller that
    cannot write the counter store takes the whole process down; any other exit
    only retires that feed.
    """

    def __init__(self, feeds: List[FeedConfig], fetcher: RSSFetcher, parser: RSSParser, store: CounterStore):
        """
        Initialize the supervisor.

        Args:
            feeds: Feeds to poll, one poller each
            fetcher: Fetcher shared by all pollers
            parser: Feed parser
            store: Counter store shared by all pollers
        """
        self._exits: "queue.Queue[PollerExit]" = queue.Queue()
        self._stop_event = threading.Event()
        self.running = False
        self.exits: List[PollerExit] = []

        self.pollers = [
            FeedPoller(feed, fetcher, parser, store, stop_event=self._stop_event, on_exit=self._exits.put)
            for feed in feeds
        ]
        logger.debug(f"FeedSupervisor initialized with {len(self.pollers)} feeds")

    def start(self):
        """Start one thread per feed."""
        if self.running:
            logger.warning("Supervisor is already running")
            return

        self.running = True
        for poller in self.pollers:
            poller.start()
        logger.info(f"Started {len(self.pollers)} pollers")

    def wait(self) -> int:
        """
        Block until every poller has exited.

        Returns:
            EXIT_STORAGE_FAILURE if any poller lost the counter store, EXIT_OK otherwise
        """
        exit_code = EXIT_OK
        remaining = len(self.pollers)

        while remaining > 0:
            try:
                # Timed get keeps the main thread responsive to Ctrl+C
                exit_info = self._exits.get(timeout=1)
            except queue.Empty:
                continue

            remaining -= 1
            self.exits.append(exit_info)
            log_poller_exit(logger, exit_info.name, exit_info.reason,
                            str(exit_info.error) if exit_info.error else None)

            if exit_info.reason == EXIT_STORAGE_ERROR and exit_code == EXIT_OK:
                logger.critical("Counter store is unusable, stopping all pollers")
                exit_code = EXIT_STORAGE_FAILURE
                self.stop()

        self.running = False
        logger.info("Exit because all pollers are down")
        return exit_code

    def run(self) -> int:
        """Start the pollers and wait for them. Returns the process exit code."""
        self.start()
        return self.wait()

    def stop(self, timeout: Optional[float] = None):
        """
        Ask every poller to finish.

        Args:
            timeout: If given, also join each poller thread for up to this long
        """
        self._stop_event.set()
        if timeout is None:
            return

        for poller in self.pollers:
            if poller.thread and poller.thread.is_alive():
                poller.thread.join(timeout=timeout)
                if poller.thread.is_alive():
                    logger.warning(f"Poller '{poller.name}' did not terminate cleanly.")

    def get_status(self) -> Dict[str, Any]:
        """
        Get supervisor status information.

        Returns:
            Dictionary with supervisor status
        """
        exited = {e.name: e.reason for e in self.exits}
        return {
            "running": self.running,
            "pollers": [
                {
                    "name": poller.name,
                    "alive": bool(poller.thread and poller.thread.is_alive()),
                    "exit_reason": exited.get(poller.name),
                }
                for poller in self.pollers
            ],
        }
