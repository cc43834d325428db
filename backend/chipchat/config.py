"""
Configuration management for chipchat.

Loads settings from ~/.chipchat/settings.json (or $CHIPCHAT_DIR) and
provides typed access to all configurable values. Environment variables
TOKEN, SECRET, APIHOST and WEBHOOK_PATH override the file.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

log = logging.getLogger("chipchat.config")

DEFAULT_HOST = "https://api.chatshipper.com"


class Config:
    """Bot settings with dot-path access."""

    def __init__(self, base_dir: Path | str | None = None) -> None:
        if base_dir is not None:
            self.base_dir = Path(base_dir).expanduser()
        else:
            env_dir = os.getenv("CHIPCHAT_DIR")
            self.base_dir = Path(env_dir).expanduser() if env_dir else Path.home() / ".chipchat"

        self.log_dir = self.base_dir / "log"
        self.settings_file = self.base_dir / "settings.json"

        self._settings: dict[str, Any] = self._load_settings()

    def _default_settings(self) -> dict[str, Any]:
        return {
            "api": {"token": "", "host": DEFAULT_HOST},
            "webhook": {"path": "/", "secret": ""},
            "bot": {
                "ignore_self": True,
                "ignore_bots": True,
                "only_first_match": False,
                "preload_organizations": False,
            },
            "server": {"host": "0.0.0.0", "port": 3000},
            "logging": {"level": "INFO", "file": False},
        }

    def _load_settings(self) -> dict[str, Any]:
        defaults = self._default_settings()
        if self.settings_file.exists():
            try:
                data = json.loads(self.settings_file.read_text())
                # Merge with defaults (adds any missing keys)
                return self._deep_merge(defaults, data)
            except (OSError, ValueError) as e:
                log.warning("Ignoring unreadable settings file %s: %s", self.settings_file, e)
        return defaults

    def _deep_merge(self, base: dict, override: dict) -> dict:
        result = base.copy()
        for k, v in override.items():
            if k in result and isinstance(result[k], dict) and isinstance(v, dict):
                result[k] = self._deep_merge(result[k], v)
            else:
                result[k] = v
        return result

    def save(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.settings_file.write_text(json.dumps(self._settings, indent=2))

    def get(self, key_path: str, default: Any = None) -> Any:
        """Dot-notation access. e.g. config.get('bot.ignore_self')"""
        parts = key_path.split(".")
        val: Any = self._settings
        for part in parts:
            if not isinstance(val, dict) or part not in val:
                return default
            val = val[part]
        return val

    def set(self, key_path: str, value: Any, save: bool = False) -> None:
        parts = key_path.split(".")
        d = self._settings
        for part in parts[:-1]:
            d = d.setdefault(part, {})
        d[parts[-1]] = value
        if save:
            self.save()

    def _flag(self, key_path: str, default: bool) -> bool:
        val = self.get(key_path, default)
        return val if isinstance(val, bool) else default

    @property
    def token(self) -> str | None:
        return os.getenv("TOKEN") or self.get("api.token") or None

    @property
    def secret(self) -> str | None:
        return os.getenv("SECRET") or self.get("webhook.secret") or None

    @property
    def host(self) -> str:
        return os.getenv("APIHOST") or self.get("api.host") or DEFAULT_HOST

    @property
    def webhook(self) -> str:
        path = os.getenv("WEBHOOK_PATH") or self.get("webhook.path") or "/"
        return path if path.startswith("/") else f"/{path}"

    @property
    def ignore_self(self) -> bool:
        return self._flag("bot.ignore_self", True)

    @property
    def ignore_bots(self) -> bool:
        return self._flag("bot.ignore_bots", True)

    @property
    def only_first_match(self) -> bool:
        return self._flag("bot.only_first_match", False)

    @property
    def preload_organizations(self) -> bool:
        return self._flag("bot.preload_organizations", False)

    @property
    def server_host(self) -> str:
        return str(self.get("server.host", "0.0.0.0"))

    @property
    def server_port(self) -> int:
        return int(self.get("server.port", 3000))

    @property
    def log_level(self) -> str:
        return str(self.get("logging.level", "INFO")).upper()

    @property
    def log_file(self) -> Path | None:
        """`logging.file`: true for log/chipchat.log under base_dir, or an explicit path."""
        value = self.get("logging.file")
        if not value:
            return None
        if value is True:
            return self.log_dir / "chipchat.log"
        return Path(str(value)).expanduser()

    @property
    def dev_mode(self) -> bool:
        return os.getenv("DEV_MODE", "").lower() in ("1", "true", "yes")

    def __repr__(self) -> str:
        return f"Config(base_dir={str(self.base_dir)!r})"
