"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from appshelf.config import (
    AppShelfConfig,
    ConfigError,
    ConfigManager,
    flatten_for_env,
    resolve_with_precedence,
)
from appshelf.config.resolver import env_to_overrides


def _manager(tmp_path: Path, env: dict[str, str] | None = None) -> ConfigManager:
    return ConfigManager(tmp_path / "config.yaml", env=env or {})


def test_ensure_exists_creates_default_file(tmp_path: Path) -> None:
    manager = _manager(tmp_path)

    path = manager.ensure_exists()

    assert path.exists()
    text = path.read_text(encoding="utf-8")
    assert "appshelf configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, AppShelfConfig)
    assert config.catalog.default_folder_name == "New Folder"


def test_default_manager_uses_home_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    manager = ConfigManager(env={})

    assert manager.config_path == tmp_path / ".appshelf" / "config.yaml"


def test_load_respects_file_env_cli_order(tmp_path: Path) -> None:
    env = {
        "APPSHELF__LOGGING__LEVEL": "INFO",
        "APPSHELF__DISCOVERY__SEARCH_LOCATIONS": "[/opt/apps, ~/Apps]",
        "UNRELATED": "ignored",
    }
    manager = _manager(tmp_path, env)
    manager.save({"logging": {"level": "ERROR", "backup_count": 7}})

    config = manager.load(cli_overrides={"logging.level": "DEBUG"})

    assert config.logging.backup_count == 7
    assert config.discovery.search_locations == ["/opt/apps", "~/Apps"]
    # CLI overrides take precedence over environment
    assert config.logging.level == "DEBUG"
    assert manager.load(include_env=False).logging.level == "ERROR"


def test_env_to_overrides_parses_yaml_scalars() -> None:
    overrides = env_to_overrides(
        {"APPSHELF__DISCOVERY__INCLUDE_HIDDEN": "true", "APPSHELF__": "skipped"}
    )

    assert overrides == {"discovery": {"include_hidden": True}}


def test_bundle_suffixes_are_normalised() -> None:
    config = resolve_with_precedence(
        defaults=AppShelfConfig(),
        file_overrides={"discovery": {"bundle_suffixes": ["APP", " .prefPane ", ""]}},
    )

    assert config.discovery.bundle_suffixes == [".app", ".prefpane"]


def test_invalid_yaml_raises_config_error(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(AppShelfConfig())

    assert flat["APPSHELF__LOGGING__LEVEL"] == "WARNING"
    assert flat["APPSHELF__DISCOVERY__INCLUDE_HIDDEN"] == "false"
    assert env_to_overrides(flat)["discovery"]["search_locations"] == [
        "/Applications",
        "/System/Applications",
        "~/Applications",
    ]


@pytest.mark.parametrize(
    "overrides",
    [
        {"logging": {"max_size_mb": "not-an-int"}},
        {"storage": {"unknown_key": 1}},
    ],
)
def test_resolve_with_precedence_invalid_value_raises(overrides: dict) -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=AppShelfConfig(), file_overrides=overrides)


def test_set_value_updates_file_and_returns_both_versions(tmp_path: Path) -> None:
    manager = _manager(tmp_path)

    before, after = manager.set_value("discovery.include_hidden", "true")

    assert "include_hidden: false" in before
    assert "include_hidden: true" in after
    assert manager.load().discovery.include_hidden is True


def test_set_value_rejects_invalid_update(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    manager.set_value("logging.level", "INFO")
    original = manager.read_text()

    with pytest.raises(ConfigError):
        manager.set_value("logging.backup_count", "many")
    with pytest.raises(ConfigError):
        manager.set_value(" . ", "1")

    assert manager.read_text() == original
