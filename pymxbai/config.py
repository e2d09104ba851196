"""Configuration management for pymxbai.

Settings are resolved with the precedence: explicit argument, environment
variable, config file, built-in default. The config file lives at
``$MXBAI_CONFIG_PATH/config.json`` (default ``~/.config/mixedbread/config.json``).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import MxbaiConfigError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.mixedbread.com"
DEFAULT_STRATEGY = "fast"
DEFAULT_SYNC_PARALLEL = 100
UPLOAD_STRATEGIES = ("fast", "high_quality")


class Config:
    """Read-only view of the pymxbai configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory containing config.json. Defaults to
                $MXBAI_CONFIG_PATH or ~/.config/mixedbread
        """
        if config_dir is None:
            env_dir = os.environ.get("MXBAI_CONFIG_PATH")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "mixedbread"
            )
        self.config_dir = config_dir
        self._data: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_dir / "config.json"

    def _load(self) -> dict[str, Any]:
        """Load and cache the config file contents."""
        if self._data is not None:
            return self._data

        config_file = self.get_config_path()
        data: dict[str, Any] = {}
        if config_file.exists():
            try:
                with open(config_file, encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    logger.warning(
                        f"Invalid config file format in {config_file}, using defaults"
                    )
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to load config file {config_file}: {e}")

        self._data = data
        return data

    def reload(self) -> None:
        """Drop cached file contents so the next access re-reads the file."""
        self._data = None

    @property
    def api_key(self) -> Optional[str]:
        """API key from the environment or config file."""
        return os.environ.get("MXBAI_API_KEY") or self._load().get("api_key")

    @property
    def base_url(self) -> str:
        """API base URL from the environment or config file."""
        return (
            os.environ.get("MXBAI_BASE_URL")
            or self._load().get("base_url")
            or DEFAULT_BASE_URL
        )

    @property
    def aliases(self) -> dict[str, str]:
        """Store aliases mapping alias name to store identifier."""
        aliases = self._load().get("aliases") or {}
        if not isinstance(aliases, dict):
            logger.warning("Ignoring malformed 'aliases' entry in config file")
            return {}
        return {str(k): str(v) for k, v in aliases.items()}

    def _upload_defaults(self) -> dict[str, Any]:
        defaults = self._load().get("defaults") or {}
        upload = defaults.get("upload") if isinstance(defaults, dict) else None
        return upload if isinstance(upload, dict) else {}

    @property
    def default_strategy(self) -> str:
        """Default upload strategy (fast or high_quality)."""
        strategy = self._upload_defaults().get("strategy")
        if strategy in UPLOAD_STRATEGIES:
            return strategy
        return DEFAULT_STRATEGY

    @property
    def default_parallel(self) -> int:
        """Default number of concurrent sync operations."""
        parallel = self._upload_defaults().get("parallel")
        if isinstance(parallel, int) and 1 <= parallel <= 200:
            return parallel
        return DEFAULT_SYNC_PARALLEL

    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self.api_key)

    def resolve_store_name(self, name_or_alias: str) -> str:
        """Resolve a store alias to its identifier.

        Args:
            name_or_alias: Store alias, name or ID

        Returns:
            The aliased identifier, or the input unchanged
        """
        return self.aliases.get(name_or_alias, name_or_alias)

    def require_api_key(self, api_key: Optional[str] = None) -> str:
        """Return the API key to use, raising if none is configured.

        Args:
            api_key: Explicit API key (takes precedence)

        Raises:
            MxbaiConfigError: If no API key is available
        """
        key = api_key or self.api_key
        if not key:
            raise MxbaiConfigError(
                "API key not configured. Use --api-key, set MXBAI_API_KEY, "
                f"or add api_key to {self.get_config_path()}"
            )
        return key


config = Config()
