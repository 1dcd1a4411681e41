"""
RSS Parser module for processing RSS feeds.
Extracts the downloadable link of every item, in document order.
"""
import logging
import feedparser
from typing import List, Optional

logger = logging.getLogger(__name__)


class FeedParseError(Exception):
    """Raised when a document is not a recognisable RSS or Atom feed."""


class RSSParser:
    """
    Parses RSS/Atom documents into the list of item download links.
    """

    def __init__(self):
        """Initialize the RSS parser."""
        logger.debug("RSSParser initialized")

    def parse_links(self, content: bytes) -> List[str]:
        """
        Parse a feed document into its item links.

        Args:
            content: Raw feed document

        Returns:
            Links in the order the items appear in the feed

        Raises:
            FeedParseError: If the document is not a feed
        """
        feed = feedparser.parse(content)

        if not feed.get('version'):
            reason = feed.get('bozo_exception') or "unrecognised document format"
            raise FeedParseError(f"Not a valid RSS or Atom feed: {reason}")

        if feed.bozo:
            logger.debug(f"Feed has formatting issues: {feed.get('bozo_exception')}")

        links = []
        for entry in feed.entries:
            link = self._extract_link(entry)
            if link:
                links.append(link)
            else:
                logger.debug(f"Skipping item without link: {entry.get('title', 'N/A')}")

        logger.debug(f"Extracted {len(links)} links from {len(feed.entries)} items")
        return links

    def _extract_link(self, entry) -> Optional[str]:
        """
        Pick the download link of a feed entry.

        The first enclosure is the file itself on torrent and podcast feeds;
        the item link is used when there is no enclosure.

        Args:
            entry: Feed entry from feedparser

        Returns:
            Link string or None
        """
        for enclosure in entry.get('enclosures', []):
            href = (enclosure.get('href') or '').strip()
            if href:
                return href

        link = (entry.get('link') or '').strip()
        return link or None
