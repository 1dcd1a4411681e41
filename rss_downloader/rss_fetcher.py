#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
rss_fetcher.py - Module for fetching feeds and downloads using requests and proxy.
"""

import threading
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import requests

from rss_downloader.utils.proxy_utils import DEFAULT_USER_AGENT, ProxyConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
MAX_TIMEOUT = 3600


class FetchError(Exception):
    """Raised when a URL cannot be retrieved (network error, timeout or non-2xx status)."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


@dataclass
class FetchResult:
    """Body and metadata of a successful GET. `url` is the final URL after redirects."""

    url: str
    status_code: int
    headers: Mapping[str, str]
    content: bytes


class RSSFetcher:
    """
    Timeout-bounded HTTP GET shared by every feed poller.

    requests sessions are not safe to share between threads, so each thread
    that calls fetch() gets its own proxy-aware session.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT,
                 proxy_config: Optional[ProxyConfig] = None,
                 user_agent: str = DEFAULT_USER_AGENT):
        """
        Initialize the fetcher.

        Args:
            timeout (float): Request timeout in seconds, applied to every request.
            proxy_config (Optional[ProxyConfig]): Proxy configuration.
            user_agent (str): User-Agent header value.
        """
        self.timeout = timeout
        self.proxy_config = proxy_config
        self.user_agent = user_agent
        self._local = threading.local()

        logger.debug(f"RSSFetcher initialized with timeout {timeout}s")

    @property
    def session(self) -> requests.Session:
        """The calling thread's session, created on first use."""
        session = getattr(self._local, 'session', None)
        if session is None:
            session = self._create_session()
            self._local.session = session
        return session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({'User-Agent': self.user_agent})
        if self.proxy_config and self.proxy_config.enabled:
            session.proxies.update(self.proxy_config.requests_proxies())
        logger.debug(f"Created session for {threading.current_thread().name} "
                     f"({self.proxy_config.describe() if self.proxy_config else 'direct connection'})")
        return session

    def fetch(self, url: str) -> FetchResult:
        """
        Fetch a URL.

        Args:
            url (str): URL to retrieve

        Returns:
            FetchResult: Status, headers and raw body.

        Raises:
            FetchError: On connection errors, timeouts and non-2xx responses.
        """
        logger.debug(f"Attempting to fetch {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise FetchError(url, str(e), status_code=response.status_code) from e
        finally:
            response.close()

        logger.debug(f"Successfully fetched {url} ({len(response.content)} bytes)")
        return FetchResult(
            url=response.url or url,
            status_code=response.status_code,
            headers=response.headers,
            content=response.content
        )

    def close(self):
        """Close the calling thread's session, if it has one."""
        session = getattr(self._local, 'session', None)
        if session is not None:
            session.close()
            self._local.session = None
