"""Async handle helpers: one vocabulary for asyncio and thread futures.

Cells may return ``asyncio.Future``/``Task`` objects, coroutines (or any
awaitable), or ``concurrent.futures.Future`` objects.  All of them are
normalised to a *handle* exposing ``add_done_callback()``, ``cancelled()``,
``exception()`` and ``result()``.

Completion callbacks never mutate program state.  They call a deposit
function; the scheduler applies deposits at the start of the next tick.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import threading
from collections.abc import Callable, Sequence
from typing import Any

from reflow._errors import ReactiveError

_FUTURE_TYPES: tuple[type, ...] = (asyncio.Future, concurrent.futures.Future)


def is_pending(value: Any) -> bool:
    """Return True if *value* is an async handle or an awaitable."""
    if isinstance(value, _FUTURE_TYPES):
        return True
    return inspect.isawaitable(value)


def as_handle(value: Any, loop: asyncio.AbstractEventLoop | None = None) -> Any:
    """Normalise an awaitable to a future-like handle.

    Futures pass through unchanged.  Other awaitables are scheduled as
    tasks on *loop*, or on the running loop when *loop* is None.

    Raises:
        ReactiveError: If an awaitable needs scheduling but no event loop
            is available.

    """
    if isinstance(value, _FUTURE_TYPES):
        return value
    if loop is None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(value):
                value.close()
            msg = (
                f"Cannot schedule {type(value).__name__!r}: no running event loop. "
                "Run the program under TickRunner or pass loop= to ProgramState."
            )
            raise ReactiveError(msg) from None
    return asyncio.ensure_future(value, loop=loop)


def outcome(handle: Any) -> tuple[bool, Any]:
    """Return ``(ok, value_or_exception)`` for a completed handle."""
    if handle.cancelled():
        return False, asyncio.CancelledError()
    exc = handle.exception()
    if exc is not None:
        return False, exc
    return True, handle.result()


def on_complete(handle: Any, callback: Callable[[Any], None]) -> None:
    """Call ``callback(handle)`` once *handle* completes (immediately if done)."""
    handle.add_done_callback(callback)


def when_all(
    handles: Sequence[Any],
    on_success: Callable[[list[Any]], None],
    on_failure: Callable[[BaseException], None],
) -> None:
    """Join several handles.

    ``on_success(results)`` runs once with results in *handles* order when
    every handle succeeded.  If any handle fails, ``on_failure(exc)`` runs
    once (for the first failure observed) and ``on_success`` never runs.

    Callbacks may fire on other threads; the counter is lock-protected.

    """
    if not handles:
        on_success([])
        return

    lock = threading.Lock()
    remaining = [len(handles)]
    failed = [False]

    def _done(done_handle: Any) -> None:
        ok, value = outcome(done_handle)
        with lock:
            if failed[0]:
                return
            if not ok:
                failed[0] = True
            else:
                remaining[0] -= 1
                if remaining[0] > 0:
                    return
        if not ok:
            on_failure(value)
            return
        on_success([h.result() for h in handles])

    for handle in handles:
        handle.add_done_callback(_done)
