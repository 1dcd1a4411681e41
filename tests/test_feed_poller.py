"""
Tests for FeedPoller

Unit tests for the per-feed poll cycle and loop.
"""

import os
import shutil
import tempfile
import threading
import time
import unittest
from unittest.mock import MagicMock, patch

from rss_downloader.config_manager import FeedConfig
from rss_downloader.counter_store import CounterStore, LinkStatus, StorageIntegrityError
from rss_downloader.downloader import DownloadOutcome
from rss_downloader.feed_poller import (
    EXIT_CRASHED,
    EXIT_DIR_ERROR,
    EXIT_STOPPED,
    EXIT_STORAGE_ERROR,
    CycleResult,
    FeedPoller
)
from rss_downloader.rss_fetcher import FetchError, FetchResult
from rss_downloader.rss_parser import FeedParseError

FEED_URL = 'https://tracker.example.com/rss'
LINK_A = 'https://tracker.example.com/download/a'
LINK_B = 'https://tracker.example.com/download/b'
LINK_C = 'https://tracker.example.com/download/c'


class TestFeedPoller(unittest.TestCase):
    """Test cases for FeedPoller class."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = tempfile.mkdtemp()
        self.store = CounterStore.open(os.path.join(self.test_dir, 'settings'), retry_limit=3)
        self.feed = FeedConfig(
            name='tracker',
            rss=FEED_URL,
            interval=1,
            download_dir=os.path.join(self.test_dir, 'downloads')
        )

        self.fetcher = MagicMock()
        self.fetcher.fetch.return_value = FetchResult(url=FEED_URL, status_code=200, headers={}, content=b'<rss/>')
        self.parser = MagicMock()
        self.parser.parse_links.return_value = [LINK_A, LINK_B, LINK_C]

        self.poller = FeedPoller(self.feed, self.fetcher, self.parser, self.store)
        self.poller.downloader = MagicMock()
        self.poller.downloader.download.return_value = DownloadOutcome.SUCCESS

    def tearDown(self):
        """Clean up test fixtures."""
        self.store.close()
        shutil.rmtree(self.test_dir)

    def _attempted_links(self):
        return [c.args[0] for c in self.poller.downloader.download.call_args_list]

    def test_only_links_below_limit_are_attempted(self):
        self.store.set_count(LINK_B, 2)
        self.store.set_count(LINK_C, 3)

        result = self.poller.run_cycle()

        self.assertEqual(self._attempted_links(), [LINK_A, LINK_B])
        self.assertEqual(result, CycleResult(total=3, eligible=2, succeeded=2, failed=0))

    def test_cycle_summary_is_logged_with_feed_prefix(self):
        self.store.set_count(LINK_C, 3)

        with self.assertLogs('rss_downloader.feed', level='INFO') as captured:
            self.poller.run_cycle()

        self.assertIn('[tracker]\tGet 3 links include 2 new links', [r.getMessage() for r in captured.records])

    def test_success_pins_link(self):
        self.poller.run_cycle()

        for link in (LINK_A, LINK_B, LINK_C):
            self.assertEqual(self.store.get_count(link), 3)
            self.assertEqual(self.store.get_status(link), LinkStatus.SUCCEEDED)

        self.poller.downloader.download.reset_mock()
        result = self.poller.run_cycle()

        self.poller.downloader.download.assert_not_called()
        self.assertEqual(result.eligible, 0)

    def test_failing_link_is_retried_until_exhausted(self):
        self.parser.parse_links.return_value = [LINK_A]
        self.poller.downloader.download.return_value = DownloadOutcome.FAILURE

        for expected in (1, 2, 3):
            self.poller.run_cycle()
            self.assertEqual(self.store.get_count(LINK_A), expected)

        self.poller.downloader.download.reset_mock()
        self.poller.run_cycle()

        self.poller.downloader.download.assert_not_called()
        self.assertEqual(self.store.get_status(LINK_A), LinkStatus.EXHAUSTED)

    def test_mixed_outcomes(self):
        self.poller.downloader.download.side_effect = [
            DownloadOutcome.SUCCESS, DownloadOutcome.FAILURE, DownloadOutcome.SUCCESS
        ]

        result = self.poller.run_cycle()

        self.assertEqual(result.succeeded, 2)
        self.assertEqual(result.failed, 1)
        self.assertEqual(self.store.get_count(LINK_B), 1)

    def test_each_outcome_is_stored_before_next_download(self):
        counts_seen = []

        def download(link):
            counts_seen.append(self.store.get_count(LINK_A))
            return DownloadOutcome.SUCCESS

        self.poller.downloader.download.side_effect = download
        self.poller.run_cycle()

        self.assertEqual(counts_seen, [0, 3, 3])

    def test_feed_fetch_failure_ends_cycle(self):
        self.fetcher.fetch.side_effect = FetchError(FEED_URL, "ConnectionError: refused")

        result = self.poller.run_cycle()

        self.assertFalse(result.feed_ok)
        self.parser.parse_links.assert_not_called()
        self.poller.downloader.download.assert_not_called()

    def test_feed_parse_failure_ends_cycle(self):
        self.parser.parse_links.side_effect = FeedParseError("not a feed")

        result = self.poller.run_cycle()

        self.assertFalse(result.feed_ok)
        self.poller.downloader.download.assert_not_called()
        self.assertEqual(self.store.list_records(), [])

    def test_storage_error_propagates_from_cycle(self):
        with patch.object(self.store, 'is_eligible', side_effect=StorageIntegrityError("disk I/O error")):
            with self.assertRaises(StorageIntegrityError):
                self.poller.run_cycle()

    def test_run_once_creates_download_dir(self):
        self.assertIsInstance(self.poller.run_once(), CycleResult)
        self.assertTrue(os.path.isdir(self.feed.download_dir))


class TestFeedPollerLoop(unittest.TestCase):
    """Test cases for the FeedPoller thread body."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = tempfile.mkdtemp()
        self.feed = FeedConfig(
            name='tracker',
            rss=FEED_URL,
            interval=1,
            download_dir=os.path.join(self.test_dir, 'downloads')
        )
        self.store = MagicMock()
        self.fetcher = MagicMock()
        self.exits = []
        self.poller = FeedPoller(self.feed, self.fetcher, MagicMock(), self.store, on_exit=self.exits.append)

    def tearDown(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.test_dir)

    def test_first_cycle_runs_immediately_then_on_interval(self):
        calls = []

        def cycle():
            calls.append(time.monotonic())
            if len(calls) == 2:
                self.poller.stop()
            return CycleResult()

        started = time.monotonic()
        with patch.object(self.poller, 'run_cycle', side_effect=cycle):
            exit_info = self.poller.run()

        self.assertEqual(len(calls), 2)
        self.assertLess(calls[0] - started, 0.5)
        self.assertGreaterEqual(calls[1] - calls[0], self.feed.interval - 0.05)
        self.assertEqual(exit_info.reason, EXIT_STOPPED)
        self.assertEqual(self.exits, [exit_info])
        self.fetcher.close.assert_called_once()

    def test_stop_before_start_runs_no_cycle(self):
        self.poller.stop()

        with patch.object(self.poller, 'run_cycle') as mock_cycle:
            exit_info = self.poller.run()

        mock_cycle.assert_not_called()
        self.assertEqual(exit_info.reason, EXIT_STOPPED)

    def test_unexpected_cycle_error_does_not_stop_loop(self):
        calls = []

        def cycle():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            self.poller.stop()
            return CycleResult()

        with patch.object(self.poller, 'run_cycle', side_effect=cycle):
            exit_info = self.poller.run()

        self.assertEqual(len(calls), 2)
        self.assertEqual(exit_info.reason, EXIT_STOPPED)

    def test_storage_error_ends_poller(self):
        error = StorageIntegrityError("database disk image is malformed")

        with patch.object(self.poller, 'run_cycle', side_effect=error):
            exit_info = self.poller.run()

        self.assertEqual(exit_info.reason, EXIT_STORAGE_ERROR)
        self.assertIs(exit_info.error, error)
        self.assertEqual(self.exits, [exit_info])

    def test_download_dir_failure_ends_poller(self):
        with patch('rss_downloader.feed_poller.os.makedirs', side_effect=PermissionError("denied")), \
                patch.object(self.poller, 'run_cycle') as mock_cycle:
            exit_info = self.poller.run()

        mock_cycle.assert_not_called()
        self.assertEqual(exit_info.reason, EXIT_DIR_ERROR)
        self.assertIsInstance(exit_info.error, OSError)

    def test_download_dir_failure_in_run_once(self):
        with patch('rss_downloader.feed_poller.os.makedirs', side_effect=PermissionError("denied")):
            self.assertIsNone(self.poller.run_once())

    def test_crash_is_reported(self):
        with patch.object(self.poller, '_loop', side_effect=RuntimeError("boom")):
            exit_info = self.poller.run()

        self.assertEqual(exit_info.reason, EXIT_CRASHED)

    def test_start_runs_in_thread(self):
        done = threading.Event()
        self.poller.on_exit = lambda exit_info: done.set()
        self.poller.stop()

        thread = self.poller.start()
        thread.join(timeout=5)

        self.assertTrue(done.is_set())
        self.assertTrue(thread.daemon)
        self.assertEqual(thread.name, 'poller-tracker')


class TestFeedsSharingALink(unittest.TestCase):
    """Two feeds that list the same link, polled at the same time."""

    def setUp(self):
        """Set up test fixtures."""
        self.test_dir = tempfile.mkdtemp()
        self.store = CounterStore.open(os.path.join(self.test_dir, 'settings'), retry_limit=3)

    def tearDown(self):
        """Clean up test fixtures."""
        self.store.close()
        shutil.rmtree(self.test_dir)

    def _poller(self, name, both_downloading):
        feed = FeedConfig(name=name, rss=f'https://{name}.example.com/rss', interval=60,
                          download_dir=os.path.join(self.test_dir, name))
        fetcher = MagicMock()
        fetcher.fetch.return_value = FetchResult(url=feed.rss, status_code=200, headers={}, content=b'<rss/>')
        parser = MagicMock()
        parser.parse_links.return_value = [LINK_A]

        poller = FeedPoller(feed, fetcher, parser, self.store)
        poller.downloader = MagicMock()

        def failing_download(link):
            # Both pollers have judged the link eligible before either records a failure
            both_downloading.wait(timeout=5)
            return DownloadOutcome.FAILURE

        poller.downloader.download.side_effect = failing_download
        return poller

    def test_concurrent_failures_are_both_counted(self):
        both_downloading = threading.Barrier(2)
        pollers = [self._poller('alpha', both_downloading), self._poller('beta', both_downloading)]
        results = {}

        def run(poller):
            results[poller.name] = poller.run_once()

        threads = [threading.Thread(target=run, args=(p,)) for p in pollers]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        self.assertEqual(results['alpha'].failed, 1)
        self.assertEqual(results['beta'].failed, 1)
        self.assertEqual(self.store.get_count(LINK_A), 2)
        self.assertEqual(self.store.get_status(LINK_A), LinkStatus.PENDING)


if __name__ == '__main__':
    unittest.main()
