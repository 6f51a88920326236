import asyncio
from types import TracebackType
from typing import Awaitable, Callable, Optional, Type, TypeVar

from loguru import logger

T = TypeVar("T")


class TaskManager:
    """
    Context manager owning one background task.
    The task starts on enter and is cancelled on exit.
    """

    def __init__(
        self,
        coro: Callable[[], Awaitable[T]],
        name: Optional[str] = None,
        timeout: float = 0.5,
    ):
        """
        Args:
            coro: Factory function that returns the coroutine to run
            name: Name used for the asyncio task and in log messages
            timeout: Seconds to wait for the task to finish after cancelling it
        """
        self.coro_factory = coro
        self.name = name or "Task"
        self.task: Optional[asyncio.Task] = None
        self.timeout = timeout
        self.result: Optional[T] = None

    async def __aenter__(self) -> "TaskManager":
        self.task = asyncio.create_task(self.coro_factory(), name=self.name)
        logger.debug(f"Started task {self.name}")
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.cancel()

    async def cancel(self) -> None:
        """Cancel the task if it is still running and collect its outcome"""
        if not self.task:
            return

        if not self.task.done():
            self.task.cancel()
            # Shield so that cancelling the caller doesn't abort the cleanup
            await asyncio.shield(asyncio.wait([self.task], timeout=self.timeout))

        if self.task.done() and not self.task.cancelled():
            error = self.task.exception()
            if error is not None:
                logger.error(f"Task {self.name} failed: {error!r}")
            else:
                self.result = self.task.result()

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


async def run_with_errorhandling(
    coro: Awaitable[T], error_message: str = "Operation failed"
) -> Optional[T]:
    """
    Await a coroutine, logging a warning instead of raising when it fails.

    Args:
        coro: The coroutine to run
        error_message: Prefix of the logged warning

    Returns:
        The result of the coroutine or None if it failed
    """
    try:
        return await coro
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"{error_message}: {e}")
        return None
