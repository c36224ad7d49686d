"""Configuration management for pyshoptheme.

Settings live in ``.shopify-theme/config.json`` inside the theme project
directory. Environment variables take precedence over the file:

- ``SHOPIFY_SHOP``: shop name (the ``<name>`` in ``<name>.myshopify.com``)
- ``SHOPIFY_API_KEY``: private app API key
- ``SHOPIFY_API_PASSWORD``: private app password
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import ShopifyConfigError
from .utils import STATE_DIR_NAME

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"


class Config:
    """Configuration for a theme project directory."""

    def __init__(self, root: Optional[Path] = None):
        """Initialize configuration.

        Args:
            root: Project directory holding ``.shopify-theme``. Defaults to
                the current working directory at the time of each access.
        """
        self._root = root
        self._data: Optional[dict[str, Any]] = None

    @property
    def root(self) -> Path:
        return self._root if self._root is not None else Path.cwd()

    def get_state_dir(self) -> Path:
        """Get the directory holding config and theme caches."""
        return self.root / STATE_DIR_NAME

    def get_config_path(self) -> Path:
        """Get the path to the config file."""
        return self.get_state_dir() / CONFIG_FILE_NAME

    def _load(self) -> dict[str, Any]:
        """Load the config file, caching its contents.

        Returns:
            Parsed config, or an empty dict if the file does not exist

        Raises:
            ShopifyConfigError: If the file exists but is not valid JSON
        """
        if self._data is not None:
            return self._data

        config_path = self.get_config_path()
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug(f"No config file at {config_path}")
            data = {}
        except json.JSONDecodeError as e:
            raise ShopifyConfigError(f"Could not parse config: {e}") from e

        if not isinstance(data, dict):
            raise ShopifyConfigError("Could not parse config: expected an object")

        self._data = data
        return data

    def reload(self) -> None:
        """Discard cached file contents so the next access rereads them."""
        self._data = None

    @property
    def shop(self) -> Optional[str]:
        return os.environ.get("SHOPIFY_SHOP") or self._load().get("shop")

    @property
    def api_key(self) -> Optional[str]:
        return os.environ.get("SHOPIFY_API_KEY") or self._load().get("api_key")

    @property
    def api_password(self) -> Optional[str]:
        return os.environ.get("SHOPIFY_API_PASSWORD") or self._load().get(
            "api_pass"
        )

    @property
    def branches(self) -> dict[str, int]:
        branches = self._load().get("branches") or {}
        try:
            return {str(k): int(v) for k, v in branches.items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise ShopifyConfigError(f"Invalid branch theme id in config: {e}") from e

    def is_configured(self) -> bool:
        """Check whether shop and credentials are all available."""
        return bool(self.shop and self.api_key and self.api_password)

    def theme_for_branch(self, branch: Optional[str]) -> Optional[int]:
        """Look up the theme id associated with a git branch."""
        if not branch:
            return None
        return self.branches.get(branch)

    def _write(self, data: dict[str, Any]) -> None:
        state_dir = self.get_state_dir()
        state_dir.mkdir(parents=True, exist_ok=True)
        with open(self.get_config_path(), "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        self._data = data

    def save_credentials(self, shop: str, api_key: str, api_password: str) -> None:
        """Save shop and credentials, keeping any branch associations.

        Args:
            shop: Shop name
            api_key: API key
            api_password: API password
        """
        data = dict(self._load())
        data.update({"shop": shop, "api_key": api_key, "api_pass": api_password})
        self._write(data)

    def save_branch_theme(self, branch: str, theme_id: int) -> None:
        """Associate a git branch with a theme id.

        Args:
            branch: Git branch name
            theme_id: Theme id to use when on that branch
        """
        data = dict(self._load())
        branches = dict(data.get("branches") or {})
        branches[branch] = theme_id
        data["branches"] = branches
        self._write(data)


# Global config instance
config = Config()
