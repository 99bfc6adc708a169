"""Append-via-grow writes to remote files."""

import io

from azure.storage.fileshare.aio import ShareDirectoryClient

from common.logging_config import TRACE, get_logger
from sharelog.share_client import open_write, storage_errors

logger = get_logger(__name__)


class AppendWriter:
    """
    Appends bytes to a remote file that has no native append operation.

    The file is grown by the payload length, then the payload is written into
    the newly added tail range. Existing content is never touched and the file
    is never shrunk.
    """

    async def append(self, directory: ShareDirectoryClient, file_name: str, payload: bytes) -> None:
        """
        Append `payload` to `file_name` under `directory`, creating the file if needed.

        Args:
            directory: Existing directory
            file_name: Target file name
            payload: Bytes to append; empty payload makes no remote calls

        Raises:
            StorageError: If any service call fails
        """
        if not payload:
            return

        size = len(payload)
        file_client = directory.get_file_client(file_name)

        async with storage_errors(f"Growing file '{file_client.file_name}'"):
            if not await file_client.exists():
                await file_client.create_file(size)
                logger.log(TRACE, f"FileShareTarget - File {file_client.file_name} created")
            else:
                properties = await file_client.get_file_properties()
                await file_client.resize_file(properties.size + size)

        async with await open_write(file_client) as stream:
            stream.seek(-size, io.SEEK_END)
            await stream.write(payload)
