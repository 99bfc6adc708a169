"""logging.Handler integrations that ship records to a file share."""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Optional

from common.logging_config import get_logger
from sharelog.config import ShareTargetConfig
from sharelog.exceptions import ConfigurationError, StorageError
from sharelog.layout import render_layout
from sharelog.share_manager import FileShareManager
from sharelog.share_session import ServiceClientFactory

logger = get_logger(__name__)

# Records from these loggers are produced while writing and must not be written back.
INTERNAL_LOGGER_PREFIXES = ('sharelog', 'common', 'azure', 'aiohttp', 'asyncio')


class InternalRecordFilter(logging.Filter):
    """Drop records emitted by the sink itself or its HTTP stack."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not any(
            record.name == prefix or record.name.startswith(prefix + '.')
            for prefix in INTERNAL_LOGGER_PREFIXES
        )


class FileShareHandler(logging.Handler):
    """
    Synchronous handler: emit() returns once the line is on the share.

    Storage and configuration failures are logged and re-raised to the code
    that issued the log call.
    """

    def __init__(
        self,
        config: ShareTargetConfig,
        level: int = logging.NOTSET,
        client_factory: Optional[ServiceClientFactory] = None
    ):
        """
        Initialize handler.

        Args:
            config: Target configuration
            level: Handler level
            client_factory: Optional service-client factory (defaults to the Azure SDK client)
        """
        super().__init__(level)
        self.config = config
        self.manager = FileShareManager(config, timeout=config.timeout, client_factory=client_factory)
        self.addFilter(InternalRecordFilter())

    def render(self, record: logging.LogRecord) -> tuple[str, str, str]:
        """
        Render a record into (message, folder, file_name).

        Raises:
            ConfigurationError: If a layout cannot be rendered
        """
        try:
            folder = render_layout(self.config.folder_layout, record)
            file_name = render_layout(self.config.file_layout, record)
        except ConfigurationError as e:
            logger.error(f"FileShareTarget(Name={self.config.name}): failed rendering layouts: {e}")
            raise
        message = self.format(record) + self.config.line_terminator
        return message, folder, file_name

    def _log_storage_error(self, error: StorageError, folder: str, file_name: str) -> None:
        logger.error(
            f"FileShareTarget(Name={self.config.name}): failed writing to file: {file_name} "
            f"in folder: {folder}: {error}",
            exc_info=True
        )

    def _log_configuration_error(self, error: ConfigurationError, folder: str, file_name: str) -> None:
        logger.error(
            f"FileShareTarget(Name={self.config.name}): configuration error writing to file: "
            f"{file_name} in folder: {folder}: {error}"
        )

    def emit(self, record: logging.LogRecord) -> None:
        if not record.getMessage():
            return

        message, folder, file_name = self.render(record)
        try:
            self.manager.log_message(message, folder, file_name)
        except StorageError as e:
            self._log_storage_error(e, folder, file_name)
            raise
        except ConfigurationError as e:
            self._log_configuration_error(e, folder, file_name)
            raise

    def close(self) -> None:
        try:
            self.manager.close()
        finally:
            super().close()


class AsyncFileShareHandler(FileShareHandler):
    """
    Queued handler: emit() schedules the write on the writer's loop and
    returns immediately.

    Storage failures are logged and the line is dropped so logging never
    breaks the application. Configuration failures are logged, re-raised into
    the queued write and kept in `last_error`.
    """

    def __init__(
        self,
        config: ShareTargetConfig,
        level: int = logging.NOTSET,
        client_factory: Optional[ServiceClientFactory] = None,
        flush_timeout: Optional[float] = None
    ):
        super().__init__(config, level=level, client_factory=client_factory)
        self.flush_timeout = flush_timeout
        self.last_error: Optional[Exception] = None
        self._pending: set[concurrent.futures.Future] = set()
        self._pending_lock = threading.Lock()

    async def _deliver(self, message: str, folder: str, file_name: str) -> None:
        try:
            await self.manager.log_message_async(message, folder, file_name)
        except StorageError as e:
            self._log_storage_error(e, folder, file_name)
        except ConfigurationError as e:
            self._log_configuration_error(e, folder, file_name)
            raise

    async def write_async(self, record: logging.LogRecord) -> None:
        """
        Render and write one record from a coroutine.

        Raises:
            ConfigurationError: Bad connection string, missing share or bad layout
        """
        if not record.getMessage():
            return
        message, folder, file_name = self.render(record)
        await self._deliver(message, folder, file_name)

    def emit(self, record: logging.LogRecord) -> None:
        if not record.getMessage():
            return

        message, folder, file_name = self.render(record)
        future = asyncio.run_coroutine_threadsafe(
            self._deliver(message, folder, file_name),
            self.manager.coordinator.loop
        )
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)

    def _on_done(self, future: concurrent.futures.Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.last_error = error

    def flush(self) -> None:
        """Block until every queued write has finished (or flush_timeout passes)."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            concurrent.futures.wait(pending, timeout=self.flush_timeout)

    def close(self) -> None:
        self.flush()
        super().close()
