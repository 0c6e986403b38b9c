"""
Exception types raised by the Design Log client.

Every error derives from `DesignLogError` so the presentation layer can catch a
single type. Remote failures are split into transport problems (`NetworkError`)
and answers the server refused (`RemoteRejection`, `NotFound`). `InvalidPin` and
`NotAuthorized` are local and never touch the remote store.
"""
# designlog/errors.py

GENERIC_ERROR_MESSAGE = "API request failed"


class DesignLogError(Exception):
    """Base class for all errors raised by the dashboard client."""

    def __init__(self, message=GENERIC_ERROR_MESSAGE):
        super().__init__(message)
        self.message = message


class ConfigurationError(DesignLogError):
    """Raised when the client configuration is missing or invalid."""


class NetworkError(DesignLogError):
    """Raised when a request could not reach the remote store or timed out."""


class RemoteRejection(DesignLogError):
    """Raised when the remote store answers with a non-2xx status.

    Attributes:
        status (int): The HTTP status code.
        message (str): The server's `error` text, or a generic message.
        details (dict): The decoded error body, if any.
    """
    def __init__(self, status, message=GENERIC_ERROR_MESSAGE, details=None):
        super().__init__(message)
        self.status = status
        self.details = details or {}

    def __str__(self):
        return f"{self.message} (HTTP {self.status})"


class NotFound(RemoteRejection):
    """Raised when an operation targets a record that no longer exists."""

    def __init__(self, message="Record not found", details=None, status=404):
        super().__init__(status, message, details)


class InvalidPin(DesignLogError):
    """Raised (or returned) when an entered PIN does not match the stored one."""

    def __init__(self, message="Invalid PIN"):
        super().__init__(message)


class NotAuthorized(DesignLogError):
    """Raised when the current identity may not perform an operation."""
