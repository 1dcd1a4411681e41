"""
Per-feed polling loop.

Each configured feed gets one FeedPoller running in its own thread. A poller
fetches its feed, skips links that reached the retry limit and downloads the
rest one at a time, recording every outcome in the counter store.
"""
import logging
import os
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import schedule

from rss_downloader.config_manager import FeedConfig
from rss_downloader.counter_store import CounterStore, StorageIntegrityError
from rss_downloader.downloader import DownloadOutcome, LinkDownloader
from rss_downloader.rss_fetcher import FetchError, RSSFetcher
from rss_downloader.rss_parser import FeedParseError, RSSParser
from rss_downloader.utils.logging_utils import get_feed_logger, log_cycle_summary, log_fetch_failure

logger = logging.getLogger(__name__)

EXIT_STOPPED = 'stopped'
EXIT_DIR_ERROR = 'dir_error'
EXIT_STORAGE_ERROR = 'storage_error'
EXIT_CRASHED = 'crashed'


@dataclass
class CycleResult:
    """What one poll cycle did."""

    total: int = 0
    eligible: int = 0
    succeeded: int = 0
    failed: int = 0
    feed_ok: bool = True


@dataclass
class PollerExit:
    """Sent to the supervisor when a poller's thread finishes."""

    name: str
    reason: str
    error: Optional[BaseException] = None


class FeedPoller:
    """
    Polls one feed forever: immediately on start, then every `interval` seconds
    after the previous cycle finished.
    """

    def __init__(self, feed: FeedConfig, fetcher: RSSFetcher, parser: RSSParser,
                 store: CounterStore, stop_event: Optional[threading.Event] = None,
                 on_exit: Optional[Callable[[PollerExit], None]] = None):
        """
        Initialize the poller.

        Args:
            feed: Feed to poll
            fetcher: Shared fetcher
            parser: Feed parser
            store: Shared counter store
            stop_event: Event that ends the loop when set; shared by all pollers
                of a supervisor
            on_exit: Called with a PollerExit when the loop ends, for any reason
        """
        self.feed = feed
        self.fetcher = fetcher
        self.parser = parser
        self.store = store
        self.on_exit = on_exit

        self.log = get_feed_logger(feed.name)
        self.downloader = LinkDownloader(fetcher, feed.download_dir, self.log)

        self._stop_event = stop_event or threading.Event()
        self._job_scheduler = schedule.Scheduler()
        self.thread: Optional[threading.Thread] = None

    @property
    def name(self) -> str:
        return self.feed.name

    def start(self) -> threading.Thread:
        """Run the poller in a new daemon thread."""
        self.thread = threading.Thread(target=self.run, name=f"poller-{self.feed.name}", daemon=True)
        self.thread.start()
        logger.debug(f"Started poller thread for {self.feed.name}")
        return self.thread

    def stop(self):
        """Ask the loop to finish; it exits at its next wait."""
        self._stop_event.set()

    def run(self) -> PollerExit:
        """
        Thread body. Never raises; the reason the loop ended is passed to
        on_exit and returned.
        """
        exit_info = PollerExit(self.feed.name, EXIT_STOPPED)
        try:
            self.log.info(f"Start with url {self.feed.rss}")
            error = self._prepare_download_dir()
            if error is not None:
                exit_info = PollerExit(self.feed.name, EXIT_DIR_ERROR, error)
            else:
                self._loop()
        except StorageIntegrityError as e:
            self.log.critical(f"Counter store failure, stopping: {e}")
            exit_info = PollerExit(self.feed.name, EXIT_STORAGE_ERROR, e)
        except Exception as e:
            self.log.exception(f"Poller crashed: {e}")
            exit_info = PollerExit(self.feed.name, EXIT_CRASHED, e)
        finally:
            self._job_scheduler.clear()
            self.fetcher.close()
            if self.on_exit:
                self.on_exit(exit_info)
        return exit_info

    def run_once(self) -> Optional[CycleResult]:
        """
        Prepare the download directory and run a single cycle.

        Returns:
            CycleResult, or None if the download directory cannot be created

        Raises:
            StorageIntegrityError: If the counter store fails
        """
        if self._prepare_download_dir() is not None:
            return None
        return self.run_cycle()

    def _prepare_download_dir(self) -> Optional[OSError]:
        try:
            os.makedirs(self.feed.download_dir, exist_ok=True)
        except OSError as e:
            self.log.error(f"Error create download directory {self.feed.download_dir}: {e}")
            return e
        return None

    def _loop(self):
        if self._stop_event.is_set():
            return

        self._run_cycle_safely()
        self._job_scheduler.every(self.feed.interval).seconds.do(self._run_cycle_safely)

        while not self._stop_event.is_set():
            self._job_scheduler.run_pending()
            idle = self._job_scheduler.idle_seconds
            self._stop_event.wait(max(idle, 0) if idle is not None else 1)

    def _run_cycle_safely(self) -> Optional[CycleResult]:
        if self._stop_event.is_set():
            return None
        try:
            return self.run_cycle()
        except StorageIntegrityError:
            raise
        except Exception as e:
            self.log.exception(f"Unexpected error during poll cycle: {e}")
            return None

    def run_cycle(self) -> CycleResult:
        """
        Fetch the feed once and process every eligible link.

        Feed fetch and parse failures end the cycle early and are only logged.

        Returns:
            CycleResult with link counts

        Raises:
            StorageIntegrityError: If the counter store fails
        """
        result = CycleResult()

        try:
            response = self.fetcher.fetch(self.feed.rss)
        except FetchError as e:
            log_fetch_failure(self.log, "rss", self.feed.rss, e)
            result.feed_ok = False
            return result

        try:
            links = self.parser.parse_links(response.content)
        except FeedParseError as e:
            self.log.warning(f"Error parse rss: {e}")
            result.feed_ok = False
            return result

        eligible = self.eligible_links(links)
        result.total = len(links)
        result.eligible = len(eligible)
        log_cycle_summary(self.log, result.total, result.eligible)

        for link in eligible:
            if self._stop_event.is_set():
                break

            if self.downloader.download(link) is DownloadOutcome.SUCCESS:
                self.store.mark_succeeded(link)
                result.succeeded += 1
            else:
                count = self.store.increment(link)
                result.failed += 1
                if count >= self.store.retry_limit:
                    self.log.warning(f"Giving up on {link} after {count} attempts")

        return result

    def eligible_links(self, links: List[str]) -> List[str]:
        """Links still below the retry limit, in feed order."""
        return [link for link in links if self.store.is_eligible(link)]
