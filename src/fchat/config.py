"""Configuration: YAML + env overlay."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from loguru import logger

from fchat import __version__
from fchat.errors import FchatConfigurationError

DEFAULT_TICKET_URL = "https://www.f-list.net/json/getApiTicket.php"
DEFAULT_API_BASE_URL = "https://www.f-list.net/json/api/"
DEFAULT_CHAT_URL = "wss://chat.f-list.net/chat2"
DEFAULT_CHAT_DEV_URL = "wss://chat.f-list.net:8799"

# Env keys that override config (loaded once per reload)
_ENV_OVERRIDE_KEYS = (
    "FCHAT_ACCOUNT",
    "FCHAT_PASSWORD",
    "FCHAT_CHARACTER",
    "FCHAT_DEV_MODE",
)


_DEFAULTS: dict[str, Any] = {
    "options": {
        "auto_ping": True,
        "join_on_invite": False,
        "prune_offline_from_channels": False,
        "log_server_commands": False,
        "log_client_commands": False,
    },
}


def _deep_update(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_update(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str | Path) -> dict[str, Any]:
    """Load config from YAML file. Use SafeLoader. Returns raw dict."""
    path = Path(path)
    if not path.exists():
        logger.warning("Config file not found: {}", path)
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse config {}: {}", path, exc)
        raise FchatConfigurationError(
            f"Invalid YAML in {path}",
            code="invalid_yaml",
            details={"path": str(path)},
            original_error=exc,
        ) from exc
    if not isinstance(data, dict):
        logger.warning("Config file {} has invalid structure (expected dict)", path)
        return {}
    return data


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load config from YAML after loading .env into the process environment."""
    from dotenv import load_dotenv

    load_dotenv()
    return load_config(path)


def _load_env_overrides() -> dict[str, str]:
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


def _parse_bool_env(val: str) -> bool | None:
    """Parse env string to bool; None if not a recognized bool."""
    v = val.lower()
    if v in ("1", "true", "yes"):
        return True
    if v in ("0", "false", "no"):
        return False
    return None


class Config:
    """Config accessor with attribute-style access for nested keys."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = _deep_update(copy.deepcopy(_DEFAULTS), data or {})
        self._env: dict[str, str] = _load_env_overrides()

    def reload(self, data: dict[str, Any], *, validate: bool = True) -> None:
        """Replace config data and re-read env overrides."""
        self._data = _deep_update(copy.deepcopy(_DEFAULTS), data or {})
        self._env = _load_env_overrides()
        if validate:
            self.validate()
        logger.debug("Config reloaded: chat_url={}", self.chat_url)

    def validate(self) -> None:
        """Raise FchatConfigurationError on a malformed config."""
        for section in ("client", "options"):
            value = self._data.get(section)
            if value is not None and not isinstance(value, dict):
                raise FchatConfigurationError(
                    f"{section} must be a mapping",
                    code=f"invalid_{section}",
                    details={"type": type(value).__name__},
                )
        for key, url, schemes in (
            ("ticket_url", self.ticket_url, ("http", "https")),
            ("api_base_url", self.api_base_url, ("http", "https")),
            ("chat_url", self.chat_url, ("ws", "wss")),
        ):
            if urlparse(url).scheme not in schemes:
                raise FchatConfigurationError(
                    f"{key} must be a {'/'.join(schemes)} URL",
                    code="invalid_url",
                    details={"key": key, "url": url},
                )
        if self.ticket_expiration_seconds <= 0:
            raise FchatConfigurationError(
                "ticket_expiration_seconds must be positive",
                code="invalid_ticket_expiration",
                details={"value": self.ticket_expiration_seconds},
            )
        if self.ticket_retry_attempts < 1:
            raise FchatConfigurationError(
                "ticket_retry_attempts must be at least 1",
                code="invalid_retry_attempts",
                details={"value": self.ticket_retry_attempts},
            )

    @property
    def raw(self) -> dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path (e.g. 'options.auto_ping')."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return obj

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    @property
    def ticket_url(self) -> str:
        return str(self._data.get("ticket_url", DEFAULT_TICKET_URL))

    @property
    def api_base_url(self) -> str:
        return str(self._data.get("api_base_url", DEFAULT_API_BASE_URL))

    @property
    def dev_mode(self) -> bool:
        parsed = _parse_bool_env(self._env.get("FCHAT_DEV_MODE", ""))
        if parsed is not None:
            return parsed
        return bool(self._data.get("dev_mode", False))

    @property
    def chat_url(self) -> str:
        """Socket URL; the dev server when dev_mode is on."""
        if self.dev_mode:
            return str(self._data.get("chat_dev_url", DEFAULT_CHAT_DEV_URL))
        return str(self._data.get("chat_url", DEFAULT_CHAT_URL))

    @property
    def client_name(self) -> str:
        return str(self.get("client.name", "fchat-client"))

    @property
    def client_version(self) -> str:
        return str(self.get("client.version", __version__))

    @property
    def ticket_expiration_seconds(self) -> float:
        return float(self._data.get("ticket_expiration_seconds", 1800))

    @property
    def ticket_retry_attempts(self) -> int:
        """Attempts per ticket request; 1 disables retry."""
        return int(self._data.get("ticket_retry_attempts", 1))

    @property
    def http_timeout_seconds(self) -> float:
        return float(self._data.get("http_timeout_seconds", 10.0))

    @property
    def auto_ping(self) -> bool:
        return bool(self.get("options.auto_ping", True))

    @property
    def join_on_invite(self) -> bool:
        return bool(self.get("options.join_on_invite", False))

    @property
    def prune_offline_from_channels(self) -> bool:
        """Whether FLN also removes the character from every channel member list."""
        return bool(self.get("options.prune_offline_from_channels", False))

    @property
    def log_server_commands(self) -> bool:
        return bool(self.get("options.log_server_commands", False))

    @property
    def log_client_commands(self) -> bool:
        return bool(self.get("options.log_client_commands", False))

    @property
    def account(self) -> str:
        return self._env.get("FCHAT_ACCOUNT", "")

    @property
    def password(self) -> str:
        return self._env.get("FCHAT_PASSWORD", "")

    @property
    def character(self) -> str:
        return self._env.get("FCHAT_CHARACTER", "") or str(self._data.get("character", ""))


# Global config instance (set by __main__)
cfg: Config = Config({})
