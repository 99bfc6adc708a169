"""Configuration for file-share log targets."""

import os
from typing import Optional, Protocol

from pydantic import BaseModel, Field, ValidationError, field_validator

from common.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS
from sharelog.exceptions import ConfigurationError


class ShareTargetSettings(Protocol):
    """
    Read accessors a writer instance needs from whichever target embeds it.
    """

    @property
    def name(self) -> str: ...

    @property
    def connection_string(self) -> str: ...

    @property
    def share_name(self) -> str: ...

    @property
    def folder_layout(self) -> str: ...

    @property
    def file_layout(self) -> str: ...


class ShareTargetConfig(BaseModel):
    """Settings for one logging destination on a file share."""

    name: str = "FileShareTarget"
    connection_string: str
    share_name: str
    folder_layout: str = ""
    file_layout: str = "{shortdate}.log"
    line_terminator: str = os.linesep
    timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT_SECONDS, gt=0)

    @field_validator('connection_string', 'share_name', 'file_layout')
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @classmethod
    def create(cls, **values) -> "ShareTargetConfig":
        """
        Build a config, reporting validation failures as ConfigurationError.

        Raises:
            ConfigurationError: If any field is missing or invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid file-share target configuration: {e}") from e

    @classmethod
    def from_env(cls, name: Optional[str] = None) -> "ShareTargetConfig":
        """
        Load settings from SHARELOG_* environment variables.

        Variables:
            SHARELOG_CONNECTION_STRING, SHARELOG_SHARE_NAME (required)
            SHARELOG_FOLDER_LAYOUT, SHARELOG_FILE_LAYOUT, SHARELOG_TIMEOUT (optional)

        Raises:
            ConfigurationError: If required variables are missing or invalid
        """
        values = {
            'connection_string': os.environ.get("SHARELOG_CONNECTION_STRING", ""),
            'share_name': os.environ.get("SHARELOG_SHARE_NAME", ""),
        }
        if name:
            values['name'] = name
        if "SHARELOG_FOLDER_LAYOUT" in os.environ:
            values['folder_layout'] = os.environ["SHARELOG_FOLDER_LAYOUT"]
        if "SHARELOG_FILE_LAYOUT" in os.environ:
            values['file_layout'] = os.environ["SHARELOG_FILE_LAYOUT"]
        if "SHARELOG_TIMEOUT" in os.environ:
            values['timeout'] = os.environ["SHARELOG_TIMEOUT"]
        return cls.create(**values)
