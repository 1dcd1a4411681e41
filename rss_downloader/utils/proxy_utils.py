"""
Proxy settings for the fetcher.

Turns the "proxy" section of config.json into the proxies mapping requests
expects. SOCKS proxies need the optional requests[socks] extra.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = 'rss-downloader/1.2 (+https://github.com/your-org/rss-downloader)'

PROXY_PROTOCOLS = ('http', 'https', 'socks5', 'socks5h')


@dataclass(frozen=True)
class ProxyConfig:
    """Proxy every feed and link request goes through, when enabled."""

    enabled: bool = False
    host: str = 'localhost'
    port: int = 8081
    protocol: str = 'http'

    @classmethod
    def from_settings(cls, settings: Optional[Dict[str, Any]]) -> 'ProxyConfig':
        """Build from a validated "proxy" config section; None means no proxy."""
        if not settings or not settings.get('enabled'):
            return cls()
        return cls(
            enabled=True,
            host=settings['host'],
            port=int(settings['port']),
            protocol=settings.get('protocol', 'http'),
        )

    @property
    def url(self) -> Optional[str]:
        if not self.enabled:
            return None
        return f"{self.protocol}://{self.host}:{self.port}"

    def requests_proxies(self) -> Dict[str, str]:
        """Mapping for requests.Session.proxies; empty when disabled."""
        if not self.enabled:
            return {}
        return {'http': self.url, 'https': self.url}

    def describe(self) -> str:
        return f"via proxy {self.url}" if self.enabled else "direct connection"


def proxy_settings_error(settings: Any) -> Optional[str]:
    """
    Check a "proxy" config section.

    Args:
        settings: Value of the "proxy" key

    Returns:
        A description of the first problem found, or None if the section is usable
    """
    if not isinstance(settings, dict):
        return "expected an object"

    # Disabled sections are never read further
    if not settings.get('enabled', False):
        return None

    host = settings.get('host')
    if not isinstance(host, str) or not host.strip():
        return "'host' must be a non-empty string"

    port = settings.get('port')
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        return "'port' must be an integer between 1 and 65535"

    if settings.get('protocol', 'http') not in PROXY_PROTOCOLS:
        return f"'protocol' must be one of {', '.join(PROXY_PROTOCOLS)}"

    return None
