"""
kube_assistant/agent/cancellation.py

Turn-scoped cancellation token.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from kube_assistant.utils.exceptions import CancellationError

T = TypeVar("T")


class CancellationToken:
    """
    Cancels the suspension points of one turn.

    Awaitables run through `run()` become tasks tracked by the token; `cancel()`
    cancels every tracked task and makes later `run()` calls fail immediately.
    Work started outside `run()` (e.g. tool executions on worker threads) is
    never interrupted.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self) -> None:
        self._cancelled = False
        self._tasks: set[asyncio.Task] = set()

    # Public methods _______________________________________________________________________________________________________

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CancellationError("Request cancelled.")

    def cancel(self) -> None:
        """Cancel the token. Idempotent; safe to call from any thread."""
        if self._cancelled:
            return
        self._cancelled = True
        for task in list(self._tasks):
            loop = task.get_loop()
            if loop.is_closed():
                continue
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                task.cancel()
            else:
                loop.call_soon_threadsafe(task.cancel)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` as a cancellable task.

        Raises:
            CancellationError: If the token is or becomes cancelled.
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise CancellationError("Request cancelled.")

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise CancellationError("Request cancelled.") from None
            raise
        finally:
            self._tasks.discard(task)
