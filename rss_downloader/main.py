"""
Main entry point for RSS Downloader.
Loads the configuration, opens the counter store and runs the feed pollers.
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv

from rss_downloader import __version__
from rss_downloader.config_manager import ConfigError, ConfigManager
from rss_downloader.counter_store import CounterStore, StorageIntegrityError
from rss_downloader.feed_poller import FeedPoller
from rss_downloader.rss_fetcher import RSSFetcher
from rss_downloader.rss_parser import RSSParser
from rss_downloader.scheduler import EXIT_OK, EXIT_STORAGE_FAILURE, FeedSupervisor
from rss_downloader.utils.logging_utils import add_file_logging, set_log_level, setup_logging
from rss_downloader.utils.proxy_utils import ProxyConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = 'config.json'
CONFIG_ENV_VAR = 'RSS_DOWNLOADER_CONFIG'
LOG_LEVEL_ENV_VAR = 'RSS_DOWNLOADER_LOG_LEVEL'

EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog='rss-downloader',
        description='RSS Downloader - poll feeds and download every new item link',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  rss-downloader                          # Poll every feed in ./config.json forever
  rss-downloader -c ~/feeds.json          # Use another configuration file
  rss-downloader --run-now                # Poll every feed once and exit
  rss-downloader --status                 # Show the download ledger
        """
    )
    parser.add_argument(
        '-c', '--config',
        default=None,
        help=f"Path to configuration file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument(
        '--run-now',
        action='store_true',
        help='Run one cycle for every feed, one feed after another, then exit'
    )
    parser.add_argument(
        '--status',
        action='store_true',
        help='Print every link in the counter store and exit'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"RSS Downloader v{__version__}"
    )
    return parser.parse_args(argv)


def print_status(store: CounterStore, out=None) -> int:
    """
    Print the counter store contents.

    Args:
        store: Counter store to read
        out: Stream to write to (default: stdout)

    Returns:
        Number of records printed
    """
    out = out or sys.stdout
    records = store.list_records()

    for record in records:
        last_update = record.last_update.strftime('%Y-%m-%d %H:%M:%S') if record.last_update else '-'
        status = store.status_of(record).value
        out.write(f"{last_update}\t{record.attempt_count}/{store.retry_limit}\t{status}\t{record.link}\n")

    out.write(f"{len(records)} links\n")
    return len(records)


def run_once(config_manager: ConfigManager, fetcher: RSSFetcher, parser: RSSParser, store: CounterStore) -> int:
    """
    Run a single cycle for every feed, sequentially.

    Returns:
        Process exit code
    """
    for feed in config_manager.get_feeds():
        poller = FeedPoller(feed, fetcher, parser, store)
        result = poller.run_once()
        if result is None:
            continue
        logger.info(f"Feed '{feed.name}': {result.succeeded} downloaded, {result.failed} failed "
                    f"({result.eligible} of {result.total} links eligible)")
    return EXIT_OK


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    args = parse_arguments(argv)
    load_dotenv()

    level_override = 'DEBUG' if args.debug else os.environ.get(LOG_LEVEL_ENV_VAR)
    setup_logging(log_level=level_override or 'INFO')

    config_path = args.config or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH

    try:
        config_manager = ConfigManager(config_path)
    except FileNotFoundError:
        logger.error("Copy config/config.example.json and list your feeds under 'sites'.")
        sys.exit(EXIT_CONFIG_ERROR)
    except ConfigError as e:
        logger.critical(f"Invalid configuration in {config_path}: {e}")
        sys.exit(EXIT_CONFIG_ERROR)

    if not level_override:
        set_log_level(config_manager.get_config_value("logging.level", "INFO"))
    log_dir = config_manager.get_config_value("logging.log_dir")
    if log_dir:
        add_file_logging(os.path.expanduser(log_dir))

    store = None
    supervisor = None
    fetcher = None
    try:
        try:
            store = CounterStore.open(config_manager.settings_dir, config_manager.retry_limit)
        except OSError as e:
            logger.critical(f"Cannot create settings directory {config_manager.settings_dir}: {e}")
            sys.exit(EXIT_CONFIG_ERROR)

        if args.status:
            print_status(store)
            sys.exit(EXIT_OK)

        proxy_config = ProxyConfig.from_settings(config_manager.get_config_value("proxy"))
        logger.info(f"Fetching {proxy_config.describe()}")

        fetcher = RSSFetcher(
            timeout=config_manager.timeout,
            proxy_config=proxy_config,
            user_agent=config_manager.get_config_value("user_agent")
        )
        parser = RSSParser()

        if args.run_now:
            logger.info("Running every feed once")
            sys.exit(run_once(config_manager, fetcher, parser, store))

        supervisor = FeedSupervisor(config_manager.get_feeds(), fetcher, parser, store)
        logger.info("Starting pollers - Press Ctrl+C to stop")
        sys.exit(supervisor.run())

    except StorageIntegrityError as e:
        logger.critical(f"Counter store failure: {e}")
        sys.exit(EXIT_STORAGE_FAILURE)
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping pollers")
        if supervisor:
            supervisor.stop(timeout=5)
        sys.exit(EXIT_INTERRUPTED)
    finally:
        if fetcher:
            fetcher.close()
        if store:
            store.close()


if __name__ == "__main__":
    main()
