"""
Timeout Guard — bound a pluggable crypto call with a deadline.

The operation and a deadline timer run concurrently; whichever finishes
first settles the result, the other one is cancelled and ignored.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..conf import DEFAULT_TIMEOUT
from ..exceptions import CryptoError, CryptoOperationError, CryptoTimeoutError

logger = logging.getLogger("navigator.session.cipher")

T = TypeVar("T")


async def with_timeout(
    label: str,
    operation: Callable[[], Awaitable[T]],
    timeout: float = DEFAULT_TIMEOUT,
) -> T:
    """Run ``operation`` and settle exactly once: result, error or timeout.

    Args:
        label: Name of the pluggable function, reported on failure
            (e.g. "Encryption", "Decryption").
        operation: Zero-argument callable returning an awaitable.
        timeout: Deadline in milliseconds.

    Returns:
        The operation result.

    Raises:
        CryptoTimeoutError: If the deadline fires first.
        CryptoOperationError: If the operation raised a non-crypto error.
        CryptoError: Crypto errors raised by the operation pass through.
    """
    loop = asyncio.get_running_loop()
    waiter: asyncio.Future = loop.create_future()
    task: asyncio.Future | None = None

    def settle(error: BaseException | None = None, result: Any = None) -> None:
        if waiter.done():
            return
        timer.cancel()
        if error is not None:
            waiter.set_exception(error)
        else:
            waiter.set_result(result)

    def on_deadline() -> None:
        if waiter.done():
            return
        logger.warning("%s function timed out after %sms", label, timeout)
        settle(CryptoTimeoutError(label, timeout))
        if task is not None and not task.done():
            task.cancel()

    def on_complete(fut: asyncio.Future) -> None:
        if fut.cancelled():
            settle(CryptoOperationError(label, f"{label} function was cancelled"))
            return
        err = fut.exception()
        if err is None:
            settle(result=fut.result())
        elif isinstance(err, CryptoError):
            settle(err)
        else:
            wrapped = CryptoOperationError(label, f"{label} function failed: {err}")
            wrapped.__cause__ = err
            settle(wrapped)

    timer = loop.call_later(timeout / 1000, on_deadline)
    try:
        task = asyncio.ensure_future(operation())
    except Exception as err:
        timer.cancel()
        raise CryptoOperationError(
            label, f"{label} function failed: {err}"
        ) from err
    task.add_done_callback(on_complete)
    try:
        return await waiter
    finally:
        timer.cancel()
        if not task.done():
            task.cancel()
