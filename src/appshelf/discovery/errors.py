"""Discovery errors."""


class EnumerationError(Exception):
    """Raised when a search location cannot be read."""

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"{location}: {reason}")
        self.location = location
        self.reason = reason
