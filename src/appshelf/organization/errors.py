"""Organization command errors."""


class CommandError(ValueError):
    """Raised when a command is called with arguments that can never be valid."""
