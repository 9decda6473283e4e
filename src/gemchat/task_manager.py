"""Lifecycle tracking for fire-and-forget and cancellable asyncio tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track named and anonymous background tasks.

    Settings persistence and host push handlers run as anonymous tasks that
    clean themselves up; backend calls the bridge may need to abort run as
    named tasks.
    """

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._anonymous: set[asyncio.Task[Any]] = set()

    def spawn(
        self, coro: Coroutine[Any, Any, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and track the resulting task."""
        task = asyncio.get_running_loop().create_task(coro)
        self.add(task, name=name)
        return task

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        """Register a task, optionally under a unique name.

        A named task replaces any earlier task with the same name without
        cancelling it, and is dropped from tracking once it finishes.
        """
        if name is not None:
            self._named[name] = task
            task.add_done_callback(lambda done, key=name: self._forget(key, done))
        else:
            self._anonymous.add(task)
            task.add_done_callback(self._anonymous.discard)
            task.add_done_callback(self._log_anonymous_exception)

    def _forget(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    def _log_anonymous_exception(self, task: asyncio.Task[Any]) -> None:
        """Log unhandled exceptions from anonymous tasks so they are not lost."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.anonymous.exception",
                extra={
                    "event": "task.anonymous.exception",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the named task or ``None`` if not registered."""
        return self._named.get(name)

    @property
    def pending_count(self) -> int:
        return sum(1 for t in self._named.values() if not t.done()) + sum(
            1 for t in self._anonymous if not t.done()
        )

    def cancel_named(self, prefix: str = "") -> int:
        """Request cancellation of named tasks whose name starts with ``prefix``.

        Returns how many tasks were asked to cancel. Does not wait for them.
        """
        cancelled = 0
        for name, task in list(self._named.items()):
            if name.startswith(prefix) and not task.done():
                task.cancel()
                cancelled += 1
        return cancelled

    async def cancel(self, name: str) -> None:
        """Cancel a named task and await its completion."""
        task = self._named.pop(name, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        all_tasks: list[asyncio.Task[Any]] = list(self._named.values()) + [
            t for t in self._anonymous if not t.done()
        ]
        for task in all_tasks:
            if not task.done():
                task.cancel()
        for task in all_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._named.clear()
        self._anonymous.clear()

    async def await_all(self) -> None:
        """Await all tracked tasks without cancelling them."""
        all_tasks: list[asyncio.Task[Any]] = list(self._named.values()) + list(
            self._anonymous
        )
        for task in all_tasks:
            if not task.done():
                try:
                    await task
                except asyncio.CancelledError:
                    pass
