"""
Single-attempt download of one feed link into a feed's download directory.
"""
import logging
import os
from enum import Enum
from typing import Optional, Union

from rss_downloader.rss_fetcher import FetchError, FetchResult, RSSFetcher
from rss_downloader.utils.helpers import (
    add_link_digest,
    decode_disposition,
    filename_from_url,
    get_filename,
    safe_basename
)
from rss_downloader.utils.logging_utils import format_bytes, log_fetch_failure

logger = logging.getLogger(__name__)


class DownloadOutcome(Enum):
    SUCCESS = 'success'
    FAILURE = 'failure'


class LinkDownloader:
    """
    Fetches a link once and saves the body under the name the server gives it.

    The outcome is only reported; persisting it in the counter store is the
    caller's job.
    """

    def __init__(self, fetcher: RSSFetcher, download_dir: str,
                 log: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None):
        """
        Args:
            fetcher: Shared fetcher, same timeout as feed requests
            download_dir: Directory the files are written to
            log: Logger to report through (a feed-scoped adapter in practice)
        """
        self.fetcher = fetcher
        self.download_dir = download_dir
        self.log = log or logger

    def download(self, link: str) -> DownloadOutcome:
        """
        Attempt to download a link.

        Args:
            link: URL taken from the feed

        Returns:
            DownloadOutcome.SUCCESS once the file is written, FAILURE otherwise
        """
        self.log.info(f"Handled link {link}")

        try:
            result = self.fetcher.fetch(link)
        except FetchError as e:
            log_fetch_failure(self.log, "link", link, e)
            return DownloadOutcome.FAILURE

        filename = self.resolve_filename(link, result)
        if not filename:
            self.log.warning(f"No filename for {link}, not saving")
            return DownloadOutcome.FAILURE

        self.log.info(f"Get file {filename}")
        file_path = os.path.join(self.download_dir, filename)

        try:
            with open(file_path, 'wb') as f:
                f.write(result.content)
        except OSError as e:
            self.log.error(f"Save file {filename} failed: {e}")
            return DownloadOutcome.FAILURE

        self.log.info(f"Saved to {file_path} ({format_bytes(len(result.content))})")
        return DownloadOutcome.SUCCESS

    def resolve_filename(self, link: str, result: FetchResult) -> str:
        """
        Work out the local filename for a fetched link.

        The Content-Disposition filename comes first. Otherwise the last
        segment of the final URL path is used, tagged with a hash of the link
        so two links never write the same file.

        Args:
            link: Link as it appears in the feed
            result: Fetch result for the link

        Returns:
            A bare filename, or "" if neither source yields one
        """
        disposition = decode_disposition(result.headers.get('Content-Disposition', ''))
        filename = safe_basename(get_filename(disposition))
        if filename:
            return filename

        filename = filename_from_url(result.url)
        if not filename:
            return ""
        return add_link_digest(filename, link)
