# mockmate/core/tasks.py
import asyncio
import logging
from typing import Any, Callable, Coroutine, Optional

logger = logging.getLogger(__name__)


class TaskHandle:
    """Cancellable handle around one asyncio task."""

    def __init__(self, name: str, task: asyncio.Task):
        self.name = name
        self._task = task
        task.add_done_callback(self._log_failure)

    def _log_failure(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Task '{self.name}' failed: {exc}", exc_info=exc)

    def add_done_callback(self, callback: Callable[["TaskHandle"], None]):
        self._task.add_done_callback(lambda _task: callback(self))

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the task had already finished."""
        if self._task.done():
            return False
        logger.debug(f"Cancelling task '{self.name}'")
        return self._task.cancel()

    async def wait(self) -> Optional[Any]:
        """Wait for the task; a cancelled task yields None."""
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled():
                return None
            raise

    def __repr__(self):
        state = "done" if self.done() else "running"
        return f"<TaskHandle {self.name} {state}>"


def spawn(coro: Coroutine, name: str) -> TaskHandle:
    """Schedule `coro` on the running loop and return its handle."""
    return TaskHandle(name, asyncio.get_running_loop().create_task(coro, name=name))
