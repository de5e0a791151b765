import asyncio
from typing import Any, Callable, Coroutine, Dict, Hashable, Optional
from core.exceptions import SessionStateError
from core.logger import logger

class TaskManager:
    """
    Runs slow repository/engine calls in the background for the presentation layer.

    At most one task is in flight per view key; while it runs the view is busy and its
    inputs must be inert. A discarded view never receives the result of its task.
    """

    def __init__(self):
        self._tasks: Dict[Hashable, asyncio.Task] = {}

    def is_busy(self, key: Hashable) -> bool:
        # Busy until the result has been delivered, not merely computed
        return key in self._tasks

    def dispatch(
        self,
        key: Hashable,
        coro: Coroutine[Any, Any, Any],
        on_done: Optional[Callable[[asyncio.Task], None]] = None,
    ) -> asyncio.Task:
        """Schedule `coro` for `key`. `on_done` is called with the finished task."""
        if self.is_busy(key):
            coro.close()
            raise SessionStateError(f"A request for {key!r} is already in flight")

        task = asyncio.create_task(coro)
        self._tasks[key] = task
        logger.debug("Dispatched background task", key=str(key))

        # Remove from dict and deliver the result when done
        task.add_done_callback(lambda t: self._finish(key, t, on_done))
        return task

    def discard(self, key: Hashable):
        """Forget the task of a closed view. It keeps running but its callback is dropped."""
        if self._tasks.pop(key, None) is not None:
            logger.debug("Discarded background task", key=str(key))

    def _finish(self, key: Hashable, task: asyncio.Task, on_done):
        if self._tasks.get(key) is not task:
            return
        del self._tasks[key]
        if on_done is not None and not task.cancelled():
            on_done(task)
