"""Creation of missing directory chains on a file share."""

from azure.storage.fileshare.aio import ShareClient, ShareDirectoryClient

from common.logging_config import TRACE, get_logger
from sharelog.exceptions import StorageError
from sharelog.share_client import storage_errors

logger = get_logger(__name__)

# Error code the file service returns when a directory is already there.
DIRECTORY_ALREADY_EXISTS = "ResourceAlreadyExists"


def split_folder_path(folder: str) -> list[str]:
    """
    Split a folder string on '/' or '\\' and drop empty segments.

    Args:
        folder: Raw folder path, e.g. '2024\\05/' or '/logs//app'

    Returns:
        Ordered list of segments, e.g. ['2024', '05']
    """
    if not folder or not folder.strip():
        return []
    return [segment for segment in folder.replace("\\", "/").split("/") if segment]


def normalize_folder_path(folder: str) -> str:
    """Return the canonical '/'-joined form of `folder` ('' for the root)."""
    return "/".join(split_folder_path(folder))


class PathProvisioner:
    """Ensures a directory chain exists, creating missing levels parent first."""

    async def ensure_path(self, share: ShareClient, folder: str) -> ShareDirectoryClient:
        """
        Make sure every level of `folder` exists on the share.

        Args:
            share: Resolved share
            folder: Folder path; empty or whitespace means the share root

        Returns:
            ShareDirectoryClient for the deepest level

        Raises:
            StorageError: If an existence check or creation fails; remaining levels are skipped
        """
        segments = split_folder_path(folder)
        if not segments:
            return share.get_directory_client()

        path = "/".join(segments)
        target = share.get_directory_client(path)
        async with storage_errors(f"Directory lookup '{path}'"):
            if await target.exists():
                return target

        current = ""
        for segment in segments:
            current = f"{current}/{segment}" if current else segment
            if await self._create_if_missing(share.get_directory_client(current)):
                logger.log(TRACE, f"FileShareTarget - Folder {current} initialized")

        return target

    async def _create_if_missing(self, directory: ShareDirectoryClient) -> bool:
        try:
            async with storage_errors(f"Directory creation '{directory.directory_path}'"):
                if await directory.exists():
                    return False
                await directory.create_directory()
        except StorageError as e:
            if e.code != DIRECTORY_ALREADY_EXISTS:
                raise
            logger.debug(f"Directory {directory.directory_path} created concurrently")
            return False
        return True
