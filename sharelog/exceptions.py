"""Custom exception classes for the file-share log sink."""

from typing import Optional


class ShareLogException(Exception):
    """
    Base exception class for all sink-related errors.
    """
    pass


class ConfigurationError(ShareLogException):
    """
    Raised when the connection string is malformed, the share does not exist,
    or a target is configured with invalid values.

    Not self-correcting: every later write fails the same way until the
    configuration changes.
    """
    pass


class StorageError(ShareLogException):
    """
    Raised when a call to the file-share service fails (network failure,
    throttling, permission denial, quota exceeded, unexpected status).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
