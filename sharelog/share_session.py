"""Lazy resolution and caching of the share handle for one writer instance."""

from enum import Enum
from typing import Callable, Optional

from azure.storage.fileshare.aio import ShareClient, ShareServiceClient

from common.logging_config import TRACE, get_logger
from sharelog.config import ShareTargetSettings
from sharelog.exceptions import ConfigurationError, ShareLogException
from sharelog.share_client import create_service_client, storage_errors

logger = get_logger(__name__)

ServiceClientFactory = Callable[[str, float], ShareServiceClient]


class SessionState(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    FAILED = "failed"


class ShareSession:
    """
    Resolves the share once per writer instance and caches it on success.

    A failed resolution is never cached: the state moves to FAILED and the
    next call to resolve() tries again from scratch.
    """

    def __init__(
        self,
        settings: ShareTargetSettings,
        timeout: float,
        client_factory: Optional[ServiceClientFactory] = None
    ):
        """
        Initialize session.

        Args:
            settings: Target settings (connection string, share name, target name)
            timeout: Timeout handed to the storage client
            client_factory: Builds the service client from (connection_string, timeout);
                defaults to create_service_client
        """
        self._settings = settings
        self._timeout = timeout
        self._client_factory = client_factory or create_service_client
        self._service: Optional[ShareServiceClient] = None
        self._share: Optional[ShareClient] = None
        self.state = SessionState.UNRESOLVED
        self.last_error: Optional[Exception] = None

    @property
    def share(self) -> Optional[ShareClient]:
        return self._share

    async def resolve(self) -> ShareClient:
        """
        Return the cached share, resolving it on first use or after a failure.

        Returns:
            ShareClient for the configured share

        Raises:
            ConfigurationError: Malformed connection string or missing share
            StorageError: Service unreachable during the existence check
        """
        if self.state is SessionState.RESOLVED:
            return self._share

        if self.state is SessionState.FAILED:
            logger.debug(f"Retrying share resolution after failure [target={self._settings.name}]")

        try:
            service, share = await self._resolve_share()
        except ShareLogException as e:
            self.state = SessionState.FAILED
            self.last_error = e
            logger.error(
                f"FileShareTarget(Name={self._settings.name}): failed init: {e}",
                exc_info=True
            )
            raise

        self._service = service
        self._share = share
        self.state = SessionState.RESOLVED
        self.last_error = None
        return share

    async def _resolve_share(self) -> tuple[ShareServiceClient, ShareClient]:
        service = self._client_factory(self._settings.connection_string, self._timeout)
        logger.log(TRACE, "FileShareTarget - Storage connection initialized")

        share = service.get_share_client(self._settings.share_name)
        try:
            async with storage_errors(f"Share lookup '{self._settings.share_name}'"):
                exists = await share.exists()
            if not exists:
                raise ConfigurationError(
                    f"There is no share with name '{self._settings.share_name}' defined in the storage account"
                )
        except ShareLogException:
            await service.close()
            raise

        logger.log(TRACE, f"FileShareTarget - File share '{self._settings.share_name}' initialized")
        return service, share

    async def close(self) -> None:
        """Close the cached service client's HTTP session, if any."""
        if self._service is not None:
            await self._service.close()
        self._service = None
        self._share = None
        self.state = SessionState.UNRESOLVED
