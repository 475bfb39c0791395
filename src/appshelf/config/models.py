"""Configuration models describing appshelf settings."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AppShelfBaseModel(BaseModel):
    """Shared configuration for appshelf Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class DiscoverySettings(AppShelfBaseModel):
    """Options governing where and how application bundles are discovered.

    Attributes:
        search_locations: Directories scanned for installable items, in priority order.
        bundle_suffixes: Directory suffixes recognised as application bundles.
        include_hidden: Whether dot-prefixed entries are considered.
    """

    search_locations: List[str] = Field(
        default_factory=lambda: [
            "/Applications",
            "/System/Applications",
            "~/Applications",
        ]
    )
    bundle_suffixes: List[str] = Field(default_factory=lambda: [".app"])
    include_hidden: bool = False

    @field_validator("bundle_suffixes")
    @classmethod
    def _normalise_suffixes(cls, value: List[str]) -> List[str]:
        normalised = []
        for suffix in value:
            suffix = suffix.strip().lower()
            if not suffix:
                continue
            if not suffix.startswith("."):
                suffix = f".{suffix}"
            normalised.append(suffix)
        return normalised


class StorageSettings(AppShelfBaseModel):
    """Location of persisted organizational metadata.

    Attributes:
        directory: Directory holding one file per record set.
    """

    directory: str = "~/.appshelf/metadata"


class CatalogSettings(AppShelfBaseModel):
    """Defaults applied by organization commands.

    Attributes:
        default_folder_name: Name used when a folder is created without a usable name.
    """

    default_folder_name: str = "New Folder"


class LoggingSettings(AppShelfBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 3


class CLIOptions(AppShelfBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class AppShelfConfig(AppShelfBaseModel):
    """Top-level configuration struct for appshelf.

    Attributes:
        discovery: Bundle discovery settings.
        storage: Metadata storage settings.
        catalog: Organization defaults.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "AppShelfBaseModel",
    "DiscoverySettings",
    "StorageSettings",
    "CatalogSettings",
    "LoggingSettings",
    "CLIOptions",
    "AppShelfConfig",
]
