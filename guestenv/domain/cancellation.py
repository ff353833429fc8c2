"""Cooperative cancellation helpers built on `asyncio.Event` signals.

A cancellation signal is an `asyncio.Event` threaded through an entire
initialize or dispose call. Setting the event interrupts any operation raced
against it with `OperationCancelledError`.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .errors import OperationCancelledError

ResultT = TypeVar("ResultT")


def domain_raise_if_cancelled(cancellation: asyncio.Event | None, operation_label: str) -> None:
    """Raise when the cancellation signal has already fired.

    Args:
        cancellation: Optional cancellation signal.
        operation_label: Operation name used in the error message.

    Returns:
        None: Returns only when no cancellation was requested.

    Raises:
        OperationCancelledError: Raised when the signal is set.
    """

    if cancellation is not None and cancellation.is_set():
        raise OperationCancelledError(operation_label)


async def domain_run_cancellable(
    operation: Awaitable[ResultT],
    cancellation: asyncio.Event | None,
    operation_label: str,
) -> ResultT:
    """Await one operation, racing it against the cancellation signal.

    When both complete together the operation result wins, so identifiers of
    resources that were created are never lost.

    Args:
        operation: Awaitable to run.
        cancellation: Optional cancellation signal.
        operation_label: Operation name used in the error message.

    Returns:
        ResultT: Result of the operation.

    Raises:
        OperationCancelledError: Raised when the signal fires first.
    """

    if cancellation is None:
        return await operation

    operation_task = asyncio.ensure_future(operation)
    if cancellation.is_set():
        await _domain_discard_task(operation_task)
        raise OperationCancelledError(operation_label)

    signal_task = asyncio.ensure_future(cancellation.wait())
    try:
        done, _ = await asyncio.wait({operation_task, signal_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await _domain_discard_task(operation_task)
        raise
    finally:
        await _domain_discard_task(signal_task)

    if operation_task in done:
        return operation_task.result()

    await _domain_discard_task(operation_task)
    raise OperationCancelledError(operation_label)


async def domain_sleep_cancellable(
    delay_seconds: float,
    cancellation: asyncio.Event | None,
    operation_label: str,
) -> None:
    """Sleep for a bounded delay, waking early when cancellation fires.

    Args:
        delay_seconds: Maximum sleep duration.
        cancellation: Optional cancellation signal.
        operation_label: Operation name used in the error message.

    Returns:
        None: Returns after the delay elapsed without cancellation.

    Raises:
        OperationCancelledError: Raised when the signal fires during the sleep.
    """

    if cancellation is None:
        await asyncio.sleep(delay_seconds)
        return

    try:
        await asyncio.wait_for(cancellation.wait(), timeout=delay_seconds)
    except TimeoutError:
        return
    raise OperationCancelledError(operation_label)


async def _domain_discard_task(task: asyncio.Future) -> None:
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
