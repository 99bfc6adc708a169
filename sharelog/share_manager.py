"""Wiring of session, provisioner, writer and coordinator for one writer instance."""

import concurrent.futures
from typing import Optional

from common.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS
from common.logging_config import get_logger
from sharelog.append_writer import AppendWriter
from sharelog.config import ShareTargetSettings
from sharelog.path_provisioner import PathProvisioner
from sharelog.share_session import ServiceClientFactory, ShareSession
from sharelog.write_coordinator import WriteCoordinator

logger = get_logger(__name__)


class FileShareManager:
    """
    Appends log messages to files on a remote share.

    One manager is one writer instance: it owns the cached share handle and
    the lock, and runs share resolution, path provisioning and the append as a
    single critical section per message.
    """

    def __init__(
        self,
        settings: ShareTargetSettings,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        client_factory: Optional[ServiceClientFactory] = None
    ):
        """
        Initialize manager.

        Args:
            settings: Target settings exposing name, connection string and share name
            timeout: Timeout for the storage client
            client_factory: Optional service-client factory (defaults to the Azure SDK client)
        """
        self.settings = settings
        self.session = ShareSession(settings, timeout=timeout, client_factory=client_factory)
        self.provisioner = PathProvisioner()
        self.writer = AppendWriter()
        self.coordinator = WriteCoordinator(name=f"sharelog-{settings.name}")

    async def _append(self, payload: bytes, folder: str, file_name: str) -> None:
        share = await self.session.resolve()
        directory = await self.provisioner.ensure_path(share, folder)
        await self.writer.append(directory, file_name, payload)

    def _critical_section(self, message: str, folder: str, file_name: str):
        payload = message.encode('utf-8')
        return lambda: self._append(payload, folder, file_name)

    def log_message(self, message: str, folder: str, file_name: str) -> None:
        """
        Append a message and block until it is on the share.

        Args:
            message: Text to append, line terminator included
            folder: Folder path inside the share, one or more levels; created if missing
            file_name: File name inside the folder; created if missing

        Raises:
            ConfigurationError: Bad connection string or missing share
            StorageError: Any service failure
        """
        if not message:
            return
        self.coordinator.run_sync(self._critical_section(message, folder, file_name))

    async def log_message_async(self, message: str, folder: str, file_name: str) -> None:
        """Awaitable form of log_message(); same critical section."""
        if not message:
            return
        await self.coordinator.run(self._critical_section(message, folder, file_name))

    def submit(self, message: str, folder: str, file_name: str) -> Optional[concurrent.futures.Future]:
        """
        Queue a message without waiting.

        Returns:
            Future completing when the append finishes, or None for an empty message
        """
        if not message:
            return None
        return self.coordinator.submit(self._critical_section(message, folder, file_name))

    def close(self) -> None:
        """
        Wait for queued writes, release the HTTP session and stop the loop thread.

        Calling it again is a no-op.

        Raises:
            RuntimeError: If called from inside a write on the writer's own loop thread
        """
        if self.coordinator.closed:
            logger.debug(f"FileShareManager already closed [target={self.settings.name}]")
            return
        if self.coordinator.in_loop_thread():
            raise RuntimeError(f"FileShareManager {self.settings.name} cannot be closed from its own write loop")
        self.coordinator.run_sync(self.session.close)
        self.coordinator.close()
