"""Azure Files client construction, error translation and a tail write stream."""

import io
from contextlib import asynccontextmanager
from typing import AsyncIterator

from azure.core.exceptions import AzureError
from azure.storage.fileshare.aio import ShareFileClient, ShareServiceClient

from common.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS, MAX_RANGE_SIZE_BYTES
from common.logging_config import get_logger
from sharelog.exceptions import ConfigurationError, StorageError

logger = get_logger(__name__)


def create_service_client(
    connection_string: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
) -> ShareServiceClient:
    """
    Build an async file-service client from a storage connection string.

    Args:
        connection_string: Standard storage account connection string
        timeout: Connection and read timeout in seconds

    Returns:
        azure.storage.fileshare.aio.ShareServiceClient

    Raises:
        ConfigurationError: If the connection string is malformed or lacks credentials
    """
    try:
        service = ShareServiceClient.from_connection_string(
            connection_string,
            connection_timeout=timeout,
            read_timeout=timeout
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid storage connection string: {e}") from e

    logger.debug(f"Initialized ShareServiceClient [account={service.account_name}]")
    return service


@asynccontextmanager
async def storage_errors(action: str) -> AsyncIterator[None]:
    """
    Translate Azure SDK failures raised inside the block into StorageError.

    Args:
        action: Short description used in the error message

    Raises:
        StorageError: Carrying the HTTP status and the service error code when known
    """
    try:
        yield
    except AzureError as e:
        status_code = getattr(e, 'status_code', None)
        code = getattr(e, 'error_code', None)
        if code is not None:
            code = str(getattr(code, 'value', code))
        raise StorageError(
            f"{action} failed ({code or type(e).__name__}): {e.message}",
            status_code=status_code,
            code=code
        ) from e


async def open_write(file_client: ShareFileClient) -> "FileWriteStream":
    """
    Open a seekable write stream over the file's current extent.

    Returns:
        FileWriteStream positioned at offset 0

    Raises:
        StorageError: If the file properties cannot be read
    """
    async with storage_errors(f"File properties '{file_client.file_name}'"):
        properties = await file_client.get_file_properties()
    return FileWriteStream(file_client, properties.size)


class FileWriteStream:
    """
    Seekable stream that overwrites ranges of an existing remote file.

    The stream never grows the file: writes must fall inside the length the
    file had when the stream was opened.
    """

    def __init__(self, file_client: ShareFileClient, length: int):
        self._file = file_client
        self._length = length
        self._position = 0
        self.closed = False

    @property
    def length(self) -> int:
        return self._length

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            base = 0
        elif whence == io.SEEK_CUR:
            base = self._position
        elif whence == io.SEEK_END:
            base = self._length
        else:
            raise ValueError(f"Invalid whence: {whence}")

        position = base + offset
        if position < 0 or position > self._length:
            raise ValueError(f"Seek position {position} outside file of length {self._length}")
        self._position = position
        return position

    async def write(self, data: bytes) -> int:
        """
        Upload `data` at the current position, split into ranges of at most
        MAX_RANGE_SIZE_BYTES.

        Returns:
            Number of bytes written

        Raises:
            ValueError: If the stream is closed or the write would pass the end
            StorageError: If a range upload fails
        """
        if self.closed:
            raise ValueError("Write to closed stream")
        if self._position + len(data) > self._length:
            raise ValueError(
                f"Write of {len(data)} bytes at {self._position} exceeds file length {self._length}"
            )

        view = memoryview(data)
        for start in range(0, len(data), MAX_RANGE_SIZE_BYTES):
            piece = bytes(view[start:start + MAX_RANGE_SIZE_BYTES])
            offset = self._position + start
            async with storage_errors(f"Range write '{self._file.file_name}' at offset {offset}"):
                await self._file.upload_range(piece, offset=offset, length=len(piece))

        self._position += len(data)
        return len(data)

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FileWriteStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
