"""
RSS Downloader Package

Polls RSS/Atom feeds on independent schedules and downloads every item link,
retrying failed links a bounded number of times across restarts.
"""

__version__ = "1.2.0"
__author__ = "RSS Downloader Team"

# Package-level imports for convenience
from .config_manager import ConfigManager, FeedConfig
from .counter_store import CounterStore, LinkStatus
from .downloader import LinkDownloader
from .feed_poller import FeedPoller
from .rss_fetcher import RSSFetcher
from .rss_parser import RSSParser
from .scheduler import FeedSupervisor

__all__ = [
    'ConfigManager',
    'FeedConfig',
    'CounterStore',
    'LinkStatus',
    'LinkDownloader',
    'FeedPoller',
    'RSSFetcher',
    'RSSParser',
    'FeedSupervisor'
]
