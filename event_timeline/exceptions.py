"""Exceptions for event_timeline library."""


class TimelineError(Exception):
    """Base exception for all event_timeline errors."""


class DeltaParseError(TimelineError):
    """Exception raised when a live feed message can't be parsed.

    The 'message' attribute contains a human-readable message about the
    error. The 'detailed_error' attribute can provide additional information
    such as the underlying validation error.
    """

    def __init__(self, message: str, *, detailed_error: str | None = None) -> None:
        """Initialize the DeltaParseError with a message."""
        super().__init__(message)
        self.message = message
        self.detailed_error = detailed_error
