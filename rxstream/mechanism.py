"""Core error types for :mod:`rxstream`."""


class StreamException(Exception):
    """Wraps a lower-level failure together with the component that saw it."""

    def __init__(self, exception: Exception, source: str = "Unknown", note: str = ""):
        super().__init__(f"<{source}> {note}: {exception}")
        self.exception = exception
        self.source = source
        self.note = note

    def __str__(self):
        return f"<{self.source}> {self.note}: {self.exception}"


class StreamConfigError(ValueError):
    """Base class for invalid connection configuration.

    Raised synchronously while building a :class:`StreamConnection`; the
    connection object is never created.
    """


class InvalidBaseURL(StreamConfigError):
    """The endpoint URL is empty."""

    def __init__(self, message: str = "base URL must not be empty"):
        super().__init__(message)


class InvalidUserID(StreamConfigError):
    """The user identifier is empty."""

    def __init__(self, message: str = "user ID must not be empty"):
        super().__init__(message)


class InvalidUserToken(StreamConfigError):
    """The authentication token is empty."""

    def __init__(self, message: str = "user token must not be empty"):
        super().__init__(message)
