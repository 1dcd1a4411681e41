"""
Helper functions for RSS Downloader.
Contains utility functions for URL validation and Content-Disposition handling.
"""
import hashlib
import os
import re
import urllib.parse
import logging

logger = logging.getLogger(__name__)

# A '%' that does not start a two-digit hex escape makes the value undecodable
_BAD_ESCAPE = re.compile(r'%(?![0-9A-Fa-f]{2})')


def query_unescape(value: str) -> str:
    """
    Decode a percent-encoded string using query-string rules ('+' is a space).

    Args:
        value: Encoded string

    Returns:
        Decoded string

    Raises:
        ValueError: If the value contains a malformed escape or the decoded
            bytes are not valid UTF-8.
    """
    if _BAD_ESCAPE.search(value):
        raise ValueError(f"Invalid percent escape in {value!r}")

    # UnicodeDecodeError is a ValueError subclass
    return urllib.parse.unquote_plus(value, encoding='utf-8', errors='strict')


def decode_disposition(header_value: str) -> str:
    """
    Percent-decode a Content-Disposition header, keeping the raw value on failure.

    Args:
        header_value: Raw header value (may be empty)

    Returns:
        Decoded header value, or the raw value if decoding fails
    """
    if not header_value:
        return ""

    try:
        return query_unescape(header_value)
    except ValueError as e:
        logger.debug(f"Could not decode Content-Disposition '{header_value}': {e}")
        return header_value


def get_filename(disposition: str) -> str:
    """
    Extract the filename directive from a (decoded) Content-Disposition value.

    The first plain ``filename=`` directive wins; ``filename*=`` is used only
    when no plain directive is present.

    Args:
        disposition: Content-Disposition value, e.g. 'attachment; filename="a.torrent"'

    Returns:
        The filename with surrounding quotes removed, or "" if none is present
    """
    extended = ""

    for part in disposition.split(';'):
        part = part.strip()
        lowered = part.lower()

        if lowered.startswith('filename='):
            return _strip_quotes(part[len('filename='):])

        if lowered.startswith('filename*=') and not extended:
            value = _strip_quotes(part[len('filename*='):])
            # RFC 5987: charset'language'value
            if value.count("'") >= 2:
                value = value.split("'", 2)[2]
            extended = value

    return extended


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def safe_basename(filename: str) -> str:
    """
    Drop any directory components from a server-supplied filename.

    Args:
        filename: Filename as sent by the server

    Returns:
        Last path component, or "" for names such as "." or ".."
    """
    name = filename.replace('\\', '/').rsplit('/', 1)[-1].strip()
    if name in ('.', '..'):
        return ""
    return name


def filename_from_url(url: str) -> str:
    """
    Derive a filename from the last path segment of a URL.

    Args:
        url: Full URL string

    Returns:
        Decoded last path segment, or "" if the path has none
    """
    try:
        path = urllib.parse.urlparse(url).path
    except ValueError:
        return ""

    return safe_basename(urllib.parse.unquote(path))


def add_link_digest(filename: str, link: str) -> str:
    """
    Make a filename unique to one link by inserting a short hash of the link.

    "download.php" for ".../download.php?id=1" becomes "download-<hash>.php",
    so links that differ only in their query never share a file.

    Args:
        filename: Filename derived from the URL path
        link: Full link the file was downloaded from, query included

    Returns:
        The filename with the digest before its extension
    """
    digest = hashlib.sha1(link.encode('utf-8')).hexdigest()[:10]
    stem, ext = os.path.splitext(filename)
    return f"{stem}-{digest}{ext}"


def validate_url(url: str) -> bool:
    """
    Validate if a string is a proper http(s) URL.

    Args:
        url: URL string to validate

    Returns:
        True if valid URL, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urllib.parse.urlparse(url)
        return parsed.scheme in ('http', 'https') and bool(parsed.netloc)
    except ValueError:
        return False


def expand_path(path: str) -> str:
    """Expand '~' and environment variables in a configured path."""
    return os.path.expandvars(os.path.expanduser(path))
