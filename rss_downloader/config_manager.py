"""
Configuration manager for RSS Downloader.
Handles loading and validation of configuration settings.
"""
import copy
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Any
from json.decoder import JSONDecodeError

from rss_downloader.counter_store import DEFAULT_RETRY_LIMIT
from rss_downloader.rss_fetcher import DEFAULT_TIMEOUT, MAX_TIMEOUT
from rss_downloader.utils.helpers import validate_url, expand_path
from rss_downloader.utils.proxy_utils import DEFAULT_USER_AGENT, proxy_settings_error

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 300


class ConfigError(ValueError):
    """Raised when the configuration file is missing required values or is malformed."""


@dataclass(frozen=True)
class FeedConfig:
    """A configured feed, polled by exactly one FeedPoller."""

    name: str
    rss: str
    interval: int
    download_dir: str


class ConfigManager:
    """
    Loads config.json, fills in defaults and validates it.
    """

    def __init__(self, config_path: str):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to the JSON configuration file

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigError: If the file is not valid JSON or fails validation.
        """
        self.config_path = config_path
        self.settings: Dict[str, Any] = {}

        logger.debug(f"ConfigManager initialized with config: {config_path}")

        try:
            self.settings = self._load_json_file(config_path)
        except FileNotFoundError:
            logger.critical(f"Fatal: Configuration file not found: {config_path}")
            raise

        self._set_default_settings()
        self._validate_settings()
        self._feeds = self._build_feeds()

    def _load_json_file(self, file_path: str) -> Dict[str, Any]:
        """
        Load a JSON configuration file.

        Args:
            file_path: Path to JSON file

        Returns:
            Configuration dictionary
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in configuration file '{file_path}': {e}") from e
        except UnicodeDecodeError as e:
            raise ConfigError(f"Configuration file '{file_path}' is not UTF-8: {e}") from e
        except FileNotFoundError:
            raise
        except OSError as e:
            raise ConfigError(f"Cannot read configuration file '{file_path}': {e}") from e

        if not isinstance(config, dict):
            raise ConfigError(f"Configuration file '{file_path}' must contain a JSON object")

        logger.info(f"Loaded configuration from {file_path}")
        return config

    def _set_default_settings(self):
        """Recursively set default values for missing settings."""
        defaults = {
            "settings_dir": "~/.rss-downloader",
            "timeout": DEFAULT_TIMEOUT,
            "retry_limit": DEFAULT_RETRY_LIMIT,
            "user_agent": DEFAULT_USER_AGENT,
            "proxy": {
                "enabled": False,
                "host": "localhost",
                "port": 8081,
                "protocol": "http"
            },
            "logging": {
                "level": "INFO",
                "log_dir": None
            },
            "sites": []
        }

        def merge_dicts(source, default):
            """Recursively merges default dict into source dict."""
            for key, value in default.items():
                if key not in source:
                    source[key] = copy.deepcopy(value)
                elif isinstance(value, dict) and isinstance(source[key], dict):
                    merge_dicts(source[key], value)
                # No else: existing values in source take precedence

        merge_dicts(self.settings, defaults)

    def _validate_settings(self):
        """Validate the top-level settings and clamp the timeout."""
        settings = self.settings

        if not isinstance(settings["settings_dir"], str) or not settings["settings_dir"].strip():
            raise ConfigError("Missing or invalid 'settings_dir'. Expected non-empty string.")

        # Out-of-range timeouts fall back to the default rather than failing
        timeout = settings["timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or not 0 < timeout <= MAX_TIMEOUT:
            logger.warning(f"Timeout {timeout!r} out of range (0, {MAX_TIMEOUT}], using {DEFAULT_TIMEOUT}s")
            settings["timeout"] = DEFAULT_TIMEOUT

        retry_limit = settings["retry_limit"]
        if isinstance(retry_limit, bool) or not isinstance(retry_limit, int) or retry_limit < 1:
            raise ConfigError("Invalid 'retry_limit'. Expected a positive integer.")

        if not isinstance(settings["user_agent"], str):
            raise ConfigError("Invalid type for 'user_agent'. Expected a string.")

        error = proxy_settings_error(settings["proxy"])
        if error:
            raise ConfigError(f"Invalid 'proxy' settings: {error}")

        logging_settings = settings["logging"]
        if not isinstance(logging_settings, dict):
            raise ConfigError("Invalid 'logging' section. Expected an object.")
        if not isinstance(logging_settings.get("level"), str):
            raise ConfigError("Invalid type for 'logging.level'. Expected a string.")

        self._validate_sites()
        logger.info("Configuration validated")

    def _validate_sites(self):
        """Validate the list of feeds."""
        sites = self.settings["sites"]
        if not isinstance(sites, list) or len(sites) == 0:
            raise ConfigError("'sites' must be a non-empty list")

        seen = set()
        for i, site in enumerate(sites):
            if not isinstance(site, dict):
                raise ConfigError(f"Invalid site at index {i}: expected an object")

            for key in ("name", "rss", "download_dir"):
                value = site.get(key)
                if not isinstance(value, str) or not value.strip():
                    raise ConfigError(f"Invalid site at index {i}: missing or invalid '{key}'")

            if not validate_url(site["rss"]):
                raise ConfigError(f"Invalid site '{site['name']}': 'rss' must be an http(s) URL")

            interval = site.setdefault("interval", DEFAULT_INTERVAL)
            if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
                raise ConfigError(f"Invalid site '{site['name']}': 'interval' must be a positive integer")

            if site["name"] in seen:
                raise ConfigError(f"Duplicate site name: '{site['name']}'")
            seen.add(site["name"])

    def _build_feeds(self) -> List[FeedConfig]:
        return [
            FeedConfig(
                name=site["name"],
                rss=site["rss"],
                interval=site["interval"],
                download_dir=expand_path(site["download_dir"]),
            )
            for site in self.settings["sites"]
        ]

    def get_feeds(self) -> List[FeedConfig]:
        """
        Get the configured feeds.

        Returns:
            List of FeedConfig, in configuration order
        """
        return list(self._feeds)

    @property
    def settings_dir(self) -> str:
        return expand_path(self.settings["settings_dir"])

    @property
    def timeout(self) -> float:
        return self.settings["timeout"]

    @property
    def retry_limit(self) -> int:
        return self.settings["retry_limit"]

    def get_config_value(self, key_path: str, default=None):
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path to configuration value (e.g., "logging.level")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.settings

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value
