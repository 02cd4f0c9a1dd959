# core/cancellation.py
"""Session cancellation and per-call timeouts for external calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from core.exceptions import GenerationCancelledError

T = TypeVar("T")


def check_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise GenerationCancelledError("Generation cancelled")


async def cancellable(awaitable: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    The pending work is cancelled when the event wins.
    """
    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise GenerationCancelledError("Generation cancelled")
    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.create_task(cancel_event.wait())
    try:
        done, _pending = await asyncio.wait(
            {work, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    finally:
        waiter.cancel()
        if not work.done():
            work.cancel()
    if work in done:
        return work.result()
    raise GenerationCancelledError("Generation cancelled")


async def bounded_call(
    awaitable: Awaitable[T],
    timeout: float | None,
    cancel_event: asyncio.Event | None,
    label: str,
) -> T:
    """Run one external call under ``timeout`` and the session cancel event.

    Raises:
        TimeoutError: the call did not finish within ``timeout`` seconds.
        GenerationCancelledError: the session was cancelled first.
    """
    if cancel_event is not None and cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise GenerationCancelledError("Generation cancelled")
    try:
        return await cancellable(asyncio.wait_for(awaitable, timeout), cancel_event)
    except asyncio.TimeoutError as exc:
        raise TimeoutError(f"Model call for '{label}' timed out after {timeout:g}s") from exc
