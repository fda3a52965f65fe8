"""
Async Utilities for cancellable searches.

Provides:
- AbortController / AbortSignal: cooperative cancellation tokens
- bind_task_to_signal: cancel an asyncio task when its signal aborts
- gather_with_errors: structured parallel execution with TaskGroup
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .exceptions import SearchCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Abort tokens
# =============================================================================


class AbortSignal:
    """
    Read side of a cancellation token.

    A signal is handed to ``search(query, signal)``. Transports that can honour
    it register a listener or poll ``aborted``; the session additionally checks
    token identity when the request settles, which covers transports that
    ignore the signal altogether.
    """

    __slots__ = ("_aborted", "_listeners", "reason")

    def __init__(self) -> None:
        self._aborted = False
        self._listeners: list[Callable[[], None]] = []
        self.reason: Any = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback fired once on abort.

        Fires immediately when the signal is already aborted.
        Returns a function removing the listener.
        """
        if self._aborted:
            listener()
            return lambda: None
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def raise_if_aborted(self) -> None:
        if self._aborted:
            raise SearchCancelledError(reason=self.reason)

    def _abort(self, reason: Any) -> None:
        if self._aborted:
            return
        self._aborted = True
        self.reason = reason
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logger.warning(f"Abort listener failed: {e}")


class AbortController:
    """
    Write side of a cancellation token.

    Example:
        controller = AbortController()
        task = asyncio.create_task(search(query, controller.signal))
        controller.abort()
    """

    __slots__ = ("signal",)

    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Any = None) -> None:
        self.signal._abort(reason)

    @property
    def aborted(self) -> bool:
        return self.signal.aborted


def bind_task_to_signal(task: asyncio.Task[Any], signal: AbortSignal) -> Callable[[], None]:
    """Cancel ``task`` when ``signal`` aborts. Returns an unbind function."""

    def cancel() -> None:
        if not task.done():
            task.cancel()

    return signal.add_listener(cancel)


# =============================================================================
# Parallel Execution with TaskGroup
# =============================================================================


async def gather_with_errors(
    *aws: Awaitable[T],
    return_exceptions: bool = False,
) -> list[T | BaseException]:
    """
    Execute awaitables in parallel using TaskGroup.

    Args:
        *aws: Awaitables to execute
        return_exceptions: If True, failures (including cancellations of the
            awaited tasks) are returned in place of results

    Returns:
        Results in argument order
    """
    if not aws:
        return []

    if return_exceptions:
        results: list[T | BaseException] = [None] * len(aws)  # type: ignore[list-item]

        async def safe_run(aw: Awaitable[T], index: int) -> None:
            try:
                results[index] = await aw
            except asyncio.CancelledError as e:
                # A cancelled inner task must not tear down the group
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                results[index] = e
            except Exception as e:
                results[index] = e

        async with asyncio.TaskGroup() as tg:
            for i, aw in enumerate(aws):
                tg.create_task(safe_run(aw, i))
        return results

    async def run(aw: Awaitable[T]) -> T:
        return await aw

    async with asyncio.TaskGroup() as tg:
        tasks = [tg.create_task(run(aw)) for aw in aws]
    return [task.result() for task in tasks]
