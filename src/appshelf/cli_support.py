"""Helpers shared by CLI commands: logging setup and JSON payloads."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, List, Optional

from pydantic import TypeAdapter
from rich.console import Console
from rich.logging import RichHandler

from appshelf.catalog import CatalogSnapshot, PresentationEntry
from appshelf.config.models import LoggingSettings

_ENTRIES_ADAPTER: TypeAdapter[List[PresentationEntry]] = TypeAdapter(List[PresentationEntry])
_HANDLER_MARKER = "_appshelf_handler"


def configure_logging(
    settings: LoggingSettings,
    *,
    log_path: Optional[Path] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach appshelf handlers to the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Level and rotation settings.
        log_path: Rotating log file; skipped when ``None``.
        console: Rich console used for stderr output; skipped when ``None``.

    Returns:
        logging.Logger: The configured ``appshelf`` logger.
    """
    logger = logging.getLogger("appshelf")
    level = logging.getLevelName(settings.level.upper())
    logger.setLevel(level if isinstance(level, int) else logging.WARNING)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = []
    if console is not None:
        handlers.append(RichHandler(console=console, show_path=False, rich_tracebacks=False))
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)

    for handler in handlers:
        setattr(handler, _HANDLER_MARKER, True)
        logger.addHandler(handler)
    return logger


def entries_payload(entries: Any) -> list[dict[str, Any]]:
    """Serialize presentation entries to JSON-ready dictionaries."""
    return _ENTRIES_ADAPTER.dump_python(list(entries), mode="json")


def snapshot_payload(snapshot: CatalogSnapshot, *, entries: Any = None) -> dict[str, Any]:
    """Return a JSON-ready payload describing ``snapshot``.

    Args:
        snapshot: Published catalog snapshot.
        entries: Optional subset of entries to emit instead of all of them.
    """
    completed = snapshot.completed_at.isoformat() if snapshot.completed_at else None
    return {
        "generation": snapshot.generation,
        "completed_at": completed,
        "counts": {
            "items": len(snapshot.items),
            "folders": len(snapshot.folders),
            "entries": len(snapshot.entries),
            "errors": len(snapshot.errors),
        },
        "entries": entries_payload(snapshot.entries if entries is None else entries),
        "errors": list(snapshot.errors),
    }


__all__ = ["configure_logging", "entries_payload", "snapshot_payload"]
