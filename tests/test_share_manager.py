"""End-to-end tests for FileShareManager against the in-memory file share."""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from azure.core.exceptions import HttpResponseError

from sharelog.config import ShareTargetConfig
from sharelog.exceptions import ConfigurationError, StorageError
from sharelog.share_manager import FileShareManager
from tests.fakes import CONNECTION_STRING, SHARE_NAME, Call, azure_error


def read(state, path: str) -> str:
    return state.read_file(SHARE_NAME, path).decode('utf-8')


def test_writes_into_nested_folder(manager, state):
    manager.log_message("hello\n", "2024/05", "app.log")
    manager.log_message("world\n", "2024/05", "app.log")

    assert read(state, "2024/05/app.log") == "hello\nworld\n"
    assert state.mutations() == [
        Call("create_directory", "2024"),
        Call("create_directory", "2024/05"),
        Call("create_file", "2024/05/app.log"),
        Call("upload_range", "2024/05/app.log"),
        Call("resize_file", "2024/05/app.log"),
        Call("upload_range", "2024/05/app.log"),
    ]


def test_share_is_resolved_once(manager, state):
    for i in range(3):
        manager.log_message(f"line {i}\n", "", "app.log")

    share_lookups = [call for call in state.calls if call.operation == "share_exists"]
    assert share_lookups == [Call("share_exists", "")]
    assert len(state.clients) == 1


def test_root_folder_writes_at_share_root(manager, state):
    manager.log_message("root line\n", "", "root.log")

    assert read(state, "root.log") == "root line\n"
    assert [call for call in state.calls if "directory" in call.operation] == []


def test_unicode_is_written_as_utf8(manager, state):
    manager.log_message("żółw 🐢\n", "", "app.log")

    assert state.read_file(SHARE_NAME, "app.log") == "żółw 🐢\n".encode('utf-8')


def test_empty_message_makes_no_calls(manager, state):
    manager.log_message("", "2024", "app.log")

    assert state.calls == []
    assert manager.submit("", "2024", "app.log") is None


@pytest.mark.asyncio
async def test_empty_async_message_makes_no_calls(manager, state):
    await manager.log_message_async("", "2024", "app.log")

    assert state.calls == []


def test_concurrent_threads_lose_no_lines(manager, state):
    lines = [f"thread-{t} line-{i}\n" for t in range(8) for i in range(10)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        for future in [pool.submit(manager.log_message, line, "app", "app.log") for line in lines]:
            future.result()

    content = read(state, "app/app.log")
    assert len(content) == sum(len(line) for line in lines)
    assert sorted(content.splitlines(keepends=True)) == sorted(lines)


@pytest.mark.asyncio
async def test_concurrent_coroutines_lose_no_lines(manager, state):
    lines = [f"task-{i}\n" for i in range(30)]

    await asyncio.gather(*(manager.log_message_async(line, "async", "app.log") for line in lines))

    content = read(state, "async/app.log")
    assert sorted(content.splitlines(keepends=True)) == sorted(lines)


def test_submitted_messages_keep_order(manager, state):
    futures = [manager.submit(f"{i}\n", "", "ordered.log") for i in range(15)]
    for future in futures:
        future.result(timeout=5)

    assert read(state, "ordered.log") == "".join(f"{i}\n" for i in range(15))


def test_appends_never_interleave(manager, state):
    manager.log_message("first\n", "", "app.log")

    with ThreadPoolExecutor(max_workers=4) as pool:
        for future in [pool.submit(manager.log_message, f"{i}\n", "", "app.log") for i in range(8)]:
            future.result()

    file_calls = [call.operation for call in state.calls if call.path == "app.log"]
    create = ["file_exists", "create_file", "get_file_properties", "upload_range"]
    grow = ["file_exists", "get_file_properties", "resize_file", "get_file_properties", "upload_range"]
    assert file_calls == create + grow * 8


def test_missing_share_fails_without_mutations(state):
    config = ShareTargetConfig(
        name="missing-share",
        connection_string=CONNECTION_STRING,
        share_name="does-not-exist",
        file_layout="app.log"
    )
    manager = FileShareManager(config, client_factory=state.client_factory)
    try:
        with pytest.raises(ConfigurationError, match="does-not-exist"):
            manager.log_message("hello\n", "2024/05", "app.log")
        assert state.mutations() == []
    finally:
        manager.close()


def test_malformed_connection_string_is_configuration_error(state):
    config = ShareTargetConfig(
        name="bad-connection",
        connection_string="this is not a connection string",
        share_name=SHARE_NAME,
        file_layout="app.log"
    )
    manager = FileShareManager(config, client_factory=state.client_factory)
    try:
        with pytest.raises(ConfigurationError, match="Invalid storage connection string"):
            manager.log_message("hello\n", "", "app.log")
        assert state.calls == []
    finally:
        manager.close()


def test_storage_failure_propagates_and_next_write_succeeds(manager, state):
    async def interceptor(call):
        if call.operation == "upload_range":
            state.interceptor = None
            raise azure_error(HttpResponseError, 500, "InternalError", "Internal error")

    state.interceptor = interceptor

    with pytest.raises(StorageError) as exc_info:
        manager.log_message("lost\n", "", "app.log")
    assert exc_info.value.status_code == 500

    manager.log_message("kept\n", "", "app.log")
    # The failed write left a zero-filled tail; the next append lands after it.
    assert state.read_file(SHARE_NAME, "app.log") == b"\x00" * 5 + b"kept\n"


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_write(manager, state):
    gate, entered = threading.Event(), threading.Event()

    async def interceptor(call):
        if call.operation == "upload_range" and not gate.is_set():
            entered.set()
            await asyncio.get_running_loop().run_in_executor(None, gate.wait, 5)

    state.interceptor = interceptor

    task = asyncio.ensure_future(manager.log_message_async("first\n", "", "app.log"))
    await asyncio.get_running_loop().run_in_executor(None, entered.wait, 5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    gate.set()
    await manager.log_message_async("second\n", "", "app.log")

    assert read(state, "app.log") == "first\nsecond\n"


def test_close_is_idempotent(target_config, state):
    manager = FileShareManager(target_config, client_factory=state.client_factory)
    manager.log_message("x\n", "", "app.log")

    manager.close()
    manager.close()

    assert manager.coordinator.closed
    assert state.clients[0].closed
    with pytest.raises(RuntimeError):
        manager.log_message("y\n", "", "app.log")


def test_close_from_inside_a_write_is_refused(manager, state):
    seen = []

    async def close_from_loop():
        with pytest.raises(RuntimeError, match="own write loop") as exc_info:
            manager.close()
        seen.append(exc_info.value)

    manager.coordinator.run_sync(close_from_loop)

    assert len(seen) == 1
    assert not manager.coordinator.closed
    manager.log_message("still open\n", "", "app.log")
    assert read(state, "app.log") == "still open\n"
