"""
Per-writer mutual exclusion for the provision-and-append sequence.

The grow-then-write protocol is not atomic on the file-share service: two
writers that read the same length would compute the same tail offset and
overwrite each other. The coordinator makes the whole sequence one critical
section per writer instance.

It protects one writer instance in one process only. Other processes, or other
writer instances aimed at the same remote file, can still race.
"""

import asyncio
import concurrent.futures
import contextvars
import threading
from typing import Awaitable, Callable, Optional, TypeVar

from common.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

CriticalSection = Callable[[], Awaitable[T]]

_held_coordinators: contextvars.ContextVar[tuple] = contextvars.ContextVar(
    'sharelog_held_coordinators', default=()
)


class WriteCoordinator:
    """
    Single asyncio.Lock living on a private event-loop thread.

    Every critical section runs on that loop whatever the caller is: blocking
    callers go through run_sync(), coroutines await run(), fire-and-forget
    callers use submit(). The lock is FIFO, so the service sees operations in
    the order callers acquired it.
    """

    def __init__(self, name: str = "sharelog-writer"):
        """
        Initialize coordinator. The loop thread starts on first use.

        Args:
            name: Thread name, usually the target name
        """
        self.name = name
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self._closed = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._ensure_loop()

    @property
    def closed(self) -> bool:
        return self._closed

    def locked(self) -> bool:
        return self._lock is not None and self._lock.locked()

    def in_loop_thread(self) -> bool:
        """True when called from the coordinator's own loop thread."""
        return self._thread is not None and threading.current_thread() is self._thread

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._start_lock:
            if self._closed:
                raise RuntimeError(f"WriteCoordinator {self.name} is closed")
            if self._loop is None:
                loop = asyncio.new_event_loop()
                ready = threading.Event()
                thread = threading.Thread(
                    target=self._run_loop,
                    args=(loop, ready),
                    name=self.name,
                    daemon=True
                )
                thread.start()
                ready.wait()
                self._loop = loop
                self._thread = thread
                logger.debug(f"Write coordinator loop started [name={self.name}]")
            return self._loop

    def _run_loop(self, loop: asyncio.AbstractEventLoop, ready: threading.Event) -> None:
        asyncio.set_event_loop(loop)
        # Created here so the lock belongs to this loop on every Python version.
        self._lock = asyncio.Lock()
        loop.call_soon(ready.set)
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _run_exclusive(self, critical: CriticalSection) -> T:
        if self in _held_coordinators.get():
            return await critical()

        # Cancellation while waiting here leaves the lock untouched.
        await self._lock.acquire()

        task = asyncio.get_running_loop().create_task(self._run_holding(critical))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                logger.debug(f"Caller cancelled inside critical section, finishing write [name={self.name}]")
                task.add_done_callback(self._report_detached)
            raise

    async def _run_holding(self, critical: CriticalSection) -> T:
        _held_coordinators.set(_held_coordinators.get() + (self,))
        try:
            return await critical()
        finally:
            self._lock.release()

    def _report_detached(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Write finished after caller cancellation with error: {error} [name={self.name}]",
                exc_info=error
            )

    async def run(self, critical: CriticalSection) -> T:
        """
        Run `critical()` with exclusive access, from any event loop.

        Args:
            critical: Zero-argument callable returning the awaitable to protect;
                it is only called once the lock is held

        Returns:
            Result of the critical section

        Raises:
            Whatever the critical section raises; CancelledError if the caller is cancelled
        """
        loop = self._ensure_loop()
        if asyncio.get_running_loop() is loop:
            return await self._run_exclusive(critical)

        future = asyncio.run_coroutine_threadsafe(self._run_exclusive(critical), loop)
        return await asyncio.wrap_future(future)

    def submit(self, critical: CriticalSection) -> concurrent.futures.Future:
        """
        Schedule `critical()` under the lock and return immediately.

        Work submitted from inside a critical section queues behind it.
        """
        loop = self._ensure_loop()
        # A fresh context so the new task does not inherit the caller's held lock.
        return contextvars.Context().run(
            asyncio.run_coroutine_threadsafe, self._run_exclusive(critical), loop
        )

    def run_sync(self, critical: CriticalSection) -> T:
        """
        Blocking form of run(): drive the same critical section to completion.

        Raises:
            RuntimeError: If called from the coordinator's own loop thread
        """
        loop = self._ensure_loop()
        if self.in_loop_thread():
            raise RuntimeError("run_sync() called on the coordinator loop; await run() instead")
        return asyncio.run_coroutine_threadsafe(self._run_exclusive(critical), loop).result()

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the loop thread. Further calls raise RuntimeError."""
        with self._start_lock:
            self._closed = True
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None

        if loop is None:
            return

        loop.call_soon_threadsafe(loop.stop)
        if thread is not threading.current_thread():
            thread.join(timeout)
        logger.debug(f"Write coordinator loop stopped [name={self.name}]")
