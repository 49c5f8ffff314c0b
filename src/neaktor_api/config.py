"""Configuration management for neaktor-api hosts using YAML files."""

from pathlib import Path
from typing import Any

import structlog
import yaml

from neaktor_api.client import DEFAULT_API_LIMIT, DEFAULT_PAGE_SIZE, Neaktor

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".neaktor"

SETTINGS = {
    "token": "Static API token, sent as is in the Authorization header",
    "client_id": "OAuth client id used to refresh the token",
    "client_secret": "OAuth client secret used to refresh the token",
    "refresh_token": "OAuth refresh token, replaced after every refresh",
    "api_limit": f"Outbound API calls per minute (default {DEFAULT_API_LIMIT})",
    "page_size": f"Tasks requested per listing page (default {DEFAULT_PAGE_SIZE})",
}
SECRET_KEYS = frozenset({"token", "client_secret", "refresh_token"})
INT_KEYS = frozenset({"api_limit", "page_size"})


def validate_setting(key: str, value: str) -> str:
    """Check a setting before it is stored and return its normalized value.

    Raises:
        ValueError: Unknown key, empty value, or a non-positive integer setting
    """
    if key not in SETTINGS:
        raise ValueError(f"Unknown setting {key!r}, expected one of: {', '.join(SETTINGS)}")

    value = value.strip()
    if not value:
        raise ValueError(f"Setting {key!r} must not be empty")

    if key in INT_KEYS:
        try:
            number = int(value)
        except ValueError as e:
            raise ValueError(f"Setting {key!r} must be an integer, got {value!r}") from e
        if number <= 0:
            raise ValueError(f"Setting {key!r} must be positive, got {number}")
        return str(number)

    return value


class Config:
    """Configuration manager using YAML file storage.

    Supports both local (directory-level) and global (user-level) configuration.
    Local config is stored in .neaktor/config.yaml in the current directory.
    Global config is stored in ~/.neaktor/config.yaml.

    When reading, values are looked up in local config first, then global config.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
            self.is_global = use_global
        elif use_global:
            self.config_dir = Path.home() / CONFIG_DIR_NAME
            self.is_global = True
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
            self.is_global = False

        self.config_file = self.config_dir / "config.yaml"
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self._config: dict[str, Any] = self._load(self.config_file)

        # Local config falls back to global values
        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_config_file = Path.home() / CONFIG_DIR_NAME / "config.yaml"
            if global_config_file != self.config_file and global_config_file.exists():
                try:
                    self._global_config = self._load(global_config_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _load(config_file: Path) -> dict[str, Any]:
        if not config_file.exists():
            logger.debug("Config file does not exist, initializing empty config", config_file=str(config_file))
            return {}

        try:
            with open(config_file, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", error=str(e))
            raise ValueError(f"Failed to load config from {config_file}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Config file {config_file} must contain a mapping")
        logger.debug("Config loaded successfully", keys=list(config.keys()))
        return config

    def _save(self) -> None:
        try:
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
            logger.debug("Config saved successfully")
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e

    def get(self, key: str, default: str | None = None) -> str | None:
        """Get a configuration value, checking local config before global."""
        if key in self._config:
            logger.debug("Getting config value from local", key=key)
            return self._config[key]

        if not self.is_global and key in self._global_config:
            logger.debug("Getting config value from global", key=key)
            return self._global_config[key]

        logger.debug("Config value not found", key=key)
        return default

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Config value {key!r} must be an integer, got {value!r}") from e

    def set(self, key: str, value: str) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, str]:
        """List all configuration settings, local values taking precedence."""
        if self.is_global:
            return self._config.copy()

        merged = self._global_config.copy()
        merged.update(self._config)
        return merged


def get_config(use_global: bool = False) -> Config:
    return Config(use_global=use_global)


def client_from_config(config: Config) -> Neaktor:
    """Build a client from configuration.

    A static ``token`` is used as is. When ``client_id``, ``client_secret`` and
    ``refresh_token`` are all set, the token is refreshed and the new refresh
    token is written back to the config.
    """
    client = Neaktor(
        token=config.get("token") or "",
        api_limit=config.get_int("api_limit", DEFAULT_API_LIMIT),
        page_size=config.get_int("page_size", DEFAULT_PAGE_SIZE),
    )

    client_id = config.get("client_id")
    client_secret = config.get("client_secret")
    refresh_token = config.get("refresh_token")
    if client_id and client_secret and refresh_token:
        client.refresh_token(client_id, client_secret, refresh_token)
        if client.last_refresh_token and client.last_refresh_token != refresh_token:
            config.set("refresh_token", client.last_refresh_token)
    elif not client.token:
        raise ValueError(
            "Neaktor credentials not configured. Set them using:\n"
            "  neaktor config set token <token>\n"
            "or\n"
            "  neaktor config set client_id <id>\n"
            "  neaktor config set client_secret <secret>\n"
            "  neaktor config set refresh_token <token>"
        )

    return client
