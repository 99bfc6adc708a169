"""Logging sink that appends log lines to files on a remote file share."""

from sharelog.config import ShareTargetConfig, ShareTargetSettings
from sharelog.exceptions import ConfigurationError, ShareLogException, StorageError
from sharelog.handlers import AsyncFileShareHandler, FileShareHandler
from sharelog.share_manager import FileShareManager

__all__ = [
    "ShareTargetConfig",
    "ShareTargetSettings",
    "ShareLogException",
    "ConfigurationError",
    "StorageError",
    "FileShareHandler",
    "AsyncFileShareHandler",
    "FileShareManager",
]
