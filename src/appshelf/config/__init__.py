"""Configuration management for appshelf.

Settings live in a YAML file (``~/.appshelf/config.yaml`` unless another
path is given). Values from ``APPSHELF__SECTION__KEY`` environment variables
override the file, and dotted CLI overrides win over both.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import AppShelfConfig
from .resolver import assign_path, env_to_overrides, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.appshelf/config.yaml")
_HEADER_LINES = (
    "# appshelf configuration file",
    "# Edit by hand or with `appshelf config set KEY --value VALUE`.",
)


class ConfigManager:
    """Read, validate and update the appshelf configuration file."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config_path: YAML file to manage; defaults to ``~/.appshelf/config.yaml``.
            env: Environment consulted for overrides; defaults to ``os.environ``.
        """
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = False,
    ) -> AppShelfConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted-key overrides with the highest precedence.
            include_env: Whether ``APPSHELF__`` variables are applied.
            ensure_file: Write a default file first when none exists.

        Raises:
            ConfigError: If the file is malformed or a value is invalid.
        """
        if ensure_file:
            self.ensure_exists()
        env_overrides = env_to_overrides(self._env) if include_env else None
        return resolve_with_precedence(
            defaults=AppShelfConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=env_overrides,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the configuration file."""
        text = self.read_text()
        if not text:
            return {}
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse {self._config_path}: {exc}") from exc
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ConfigError(f"{self._config_path} must contain a mapping at the top level.")
        return raw

    def set_value(self, key: str, raw_value: str) -> tuple[str, str]:
        """Store ``raw_value`` (parsed as YAML) under the dotted ``key``.

        The file is only rewritten when the resulting configuration validates.

        Returns:
            tuple[str, str]: File contents before and after the update.

        Raises:
            ConfigError: If the key is empty, the value is not YAML, or the
                updated configuration is invalid.
        """
        segments = [segment.strip() for segment in key.split(".") if segment.strip()]
        if not segments:
            raise ConfigError("KEY must be a dotted path such as 'storage.directory'.")
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Unable to parse value for {key}: {exc}") from exc

        self.ensure_exists()
        before = self.read_text()
        data = self.load_file_overrides()
        assign_path(data, segments, value)
        resolve_with_precedence(defaults=AppShelfConfig(), file_overrides=data)
        self.save(data)
        return before, self.read_text()

    def save(self, config: AppShelfConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to disk below a header with the update time."""
        if isinstance(config, AppShelfConfig):
            data: dict[str, Any] = config.model_dump(mode="python")
        else:
            data = dict(config)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        header = "\n".join((*_HEADER_LINES, f"# Last updated: {stamp}"))
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        self._config_path.write_text(
            f"{header}\n{yaml.safe_dump(data, sort_keys=False)}", encoding="utf-8"
        )

    def ensure_exists(self) -> Path:
        """Create the file with default settings unless it already exists."""
        if not self._config_path.exists():
            self.save(AppShelfConfig())
        return self._config_path

    def read_text(self) -> str:
        """Return the configuration file contents, or ``""`` when missing."""
        try:
            return self._config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "AppShelfConfig",
    "resolve_with_precedence",
    "flatten_for_env",
    "ConfigError",
]
