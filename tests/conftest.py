"""Shared pytest fixtures for all tests."""

import pytest

from sharelog.config import ShareTargetConfig
from sharelog.share_manager import FileShareManager
from sharelog.write_coordinator import WriteCoordinator
from tests.fakes import CONNECTION_STRING, SHARE_NAME, FileShareState


@pytest.fixture
def state():
    """
    Fake storage account holding the 'logs' share.

    Returns:
        FileShareState instance
    """
    return FileShareState()


@pytest.fixture
def share(state):
    """
    Fake share client for 'logs'.

    Args:
        state: Fake storage account fixture

    Returns:
        FakeShareClient instance
    """
    return state.client_factory(CONNECTION_STRING, 5).get_share_client(SHARE_NAME)


@pytest.fixture
def target_config():
    """
    Target configuration writing to logs/app.log with '\\n' terminators.

    Returns:
        ShareTargetConfig instance
    """
    return ShareTargetConfig(
        name="test-target",
        connection_string=CONNECTION_STRING,
        share_name=SHARE_NAME,
        folder_layout="",
        file_layout="app.log",
        line_terminator="\n"
    )


@pytest.fixture
def manager(target_config, state):
    """
    FileShareManager wired to the fake account; closed after the test.

    Args:
        target_config: Target configuration fixture
        state: Fake storage account fixture

    Yields:
        FileShareManager instance
    """
    manager = FileShareManager(target_config, client_factory=state.client_factory)
    yield manager
    manager.close()


@pytest.fixture
def coordinator():
    """
    Standalone WriteCoordinator; closed after the test.

    Yields:
        WriteCoordinator instance
    """
    coordinator = WriteCoordinator(name="test-coordinator")
    yield coordinator
    coordinator.close()
