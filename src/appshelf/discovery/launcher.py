"""Open catalog items with the platform's default handler."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import Sequence

LOGGER = logging.getLogger(__name__)


def launch_command(location: str, platform: str | None = None) -> Sequence[str] | None:
    """Return the argv used to open ``location``, or ``None`` on Windows."""
    platform = platform or sys.platform
    if platform == "darwin":
        return ["open", location]
    if platform.startswith("win"):
        return None
    return ["xdg-open", location]


def launch(location: str) -> bool:
    """Open ``location`` without waiting for it; return whether the request was issued."""
    if not os.path.exists(location):
        LOGGER.warning("Cannot launch %s: path does not exist.", location)
        return False

    command = launch_command(location)
    try:
        if command is None:
            os.startfile(location)  # type: ignore[attr-defined]
        else:
            subprocess.Popen(
                list(command),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
    except OSError as exc:
        LOGGER.warning("Failed to launch %s: %s", location, exc)
        return False
    return True


__all__ = ["launch", "launch_command"]
