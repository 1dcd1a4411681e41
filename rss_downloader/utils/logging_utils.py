"""
Logging utilities for RSS Downloader.
Contains helper functions for consistent logging across modules.
"""
import logging, os
from logging.handlers import TimedRotatingFileHandler
from typing import Optional


logger = logging.getLogger(__name__)


class FeedLoggerAdapter(logging.LoggerAdapter):
    """
    Prefixes every message with the feed name, e.g. "[mysite]\tStart with url ...".
    """

    def process(self, msg, kwargs):
        return f"[{self.extra['feed']}]\t{msg}", kwargs


def get_feed_logger(feed_name: str, module_name: str = "rss_downloader.feed") -> FeedLoggerAdapter:
    """
    Get a logger whose messages are scoped to a single feed.

    Args:
        feed_name: Name of the feed, used as the message prefix
        module_name: Name of the underlying logger

    Returns:
        Logger adapter for the feed
    """
    return FeedLoggerAdapter(logging.getLogger(module_name), {"feed": feed_name})


def log_fetch_failure(logger: logging.Logger, what: str, url: str, error: Exception) -> None:
    """
    Log a failed HTTP fetch.

    Args:
        logger: Logger instance to use
        what: Short description of the resource ("rss", "link")
        url: URL that failed
        error: The error raised by the fetcher
    """
    logger.warning(f"Error fetching {what} {url}: {error}")


def log_cycle_summary(logger: logging.Logger, total: int, eligible: int) -> None:
    """
    Log how many links a feed yielded and how many are still eligible.

    Args:
        logger: Logger instance to use
        total: Number of links in the feed document
        eligible: Number of links below the retry limit
    """
    logger.info(f"Get {total} links include {eligible} new links")


def log_poller_exit(logger: logging.Logger, feed_name: str, reason: str, details: Optional[str] = None) -> None:
    """
    Log a poller reporting completion to the supervisor.

    Args:
        logger: Logger instance to use
        feed_name: Name of the feed whose poller stopped
        reason: Exit reason (stopped, dir_error, storage_error, crashed)
        details: Optional additional details
    """
    message = f"Poller '{feed_name}' exited: {reason}"
    if details:
        message += f" ({details})"

    if reason == "stopped":
        logger.info(message)
    else:
        logger.error(message)


def format_bytes(byte_count: int) -> str:
    """
    Format byte count in human-readable format.

    Args:
        byte_count: Number of bytes

    Returns:
        Formatted string (e.g., "1.2 KB", "3.4 MB")
    """
    if byte_count == 0:
        return "0 B"

    sizes = ["B", "KB", "MB", "GB"]
    i = 0

    while byte_count >= 1024 and i < len(sizes) - 1:
        byte_count /= 1024.0
        i += 1

    return f"{byte_count:.1f} {sizes[i]}"


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure console and, optionally, file logging.

    Args:
        log_level: Minimum logging level (e.g., "INFO", "DEBUG")
        log_dir: Directory to store log files; console only when None

    Returns:
        The configured root logger instance.
    """
    root_logger = logging.getLogger()
    set_log_level(log_level)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(message)s'))
    root_logger.addHandler(console_handler)

    if log_dir:
        add_file_logging(log_dir)

    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logger.info(f"Logging configured to level {log_level.upper()}" + (f". Log files in {log_dir}" if log_dir else ""))
    return root_logger


def set_log_level(log_level: str) -> None:
    """Set the root logger level by name; unknown names fall back to INFO."""
    logging.getLogger().setLevel(getattr(logging, log_level.upper(), logging.INFO))


def add_file_logging(log_dir: str) -> logging.Handler:
    """
    Add a daily-rotating log file to the root logger.

    Args:
        log_dir: Directory to store log files, created if missing

    Returns:
        The file handler that was added
    """
    os.makedirs(log_dir, exist_ok=True)

    # File handler (daily rotation)
    file_handler = TimedRotatingFileHandler(os.path.join(log_dir, 'rss_downloader.log'), when='midnight', interval=1, backupCount=7)
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logging.getLogger().addHandler(file_handler)
    return file_handler
