"""Organization commands over persisted catalog metadata."""

from .commands import DEFAULT_FOLDER_NAME, OrganizationCommands
from .errors import CommandError
from .membership import place_item

__all__ = ["OrganizationCommands", "CommandError", "DEFAULT_FOLDER_NAME", "place_item"]
