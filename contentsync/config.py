"""Configuration for the content hub connection."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import ContentSyncConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://content-hub.example.com/api"

API_KEY_ENV = "CONTENTSYNC_API_KEY"
API_URL_ENV = "CONTENTSYNC_API_URL"


class Config:
    """Connection settings read from the environment or a config file.

    Environment variables take precedence over the values stored in
    ``~/.config/contentsync/config.json``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        if config_dir is None:
            config_dir = Path.home() / ".config" / "contentsync"
        self.config_dir = config_dir

    def get_config_path(self) -> Path:
        """Return the path of the JSON config file."""
        return self.config_dir / "config.json"

    def _load_file(self) -> dict[str, Any]:
        path = self.get_config_path()
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ContentSyncConfigError(
                f"Failed to read config file {path}: {e}"
            ) from e
        if not isinstance(data, dict):
            raise ContentSyncConfigError(f"Config file {path} must hold an object")
        return data

    @property
    def api_key(self) -> Optional[str]:
        """API key from the environment or the config file."""
        return os.environ.get(API_KEY_ENV) or self._load_file().get("api_key")

    @property
    def api_url(self) -> str:
        """API URL from the environment, the config file, or the default."""
        return (
            os.environ.get(API_URL_ENV)
            or self._load_file().get("api_url")
            or DEFAULT_API_URL
        )

    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self.api_key)

    def save_api_key(self, api_key: str, api_url: Optional[str] = None) -> None:
        """Store the API key (and optionally the API URL) in the config file.

        Args:
            api_key: API key to store
            api_url: Optional API URL to store alongside the key
        """
        data = self._load_file()
        data["api_key"] = api_key
        if api_url:
            data["api_url"] = api_url

        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        try:
            path.chmod(0o600)
        except OSError as e:
            logger.debug(f"Could not restrict permissions on {path}: {e}")


config = Config()
