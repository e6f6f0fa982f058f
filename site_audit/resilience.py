"""site_audit.resilience: deadline/fallback and retry wrappers for async callables.

Two independent, composable pieces:

* :func:`bounded` – one attempt, bounded wait, never raises; the outcome is
  :class:`~site_audit.models.Ok` or :class:`~site_audit.models.Failed`.
* :func:`with_retry` – repeats a failing call with linear-growth backoff and
  re-raises the last error.

``bounded`` races the analyzer task against a timer on the running loop. The
loser of the race only gets a cancellation request: code that ignores
``CancelledError`` keeps running in the background, but the caller is
released at the deadline either way.
"""
from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from site_audit.logger import logger
from site_audit.models import Failed, Ok, StageResult

T = TypeVar("T")

DEFAULT_STAGE_TIMEOUT: float = 300.0

AsyncFn = Callable[..., Awaitable[Any]]


def _consume_outcome(task: asyncio.Future) -> None:
    # abandoned tasks must not log "exception was never retrieved"
    if not task.cancelled():
        task.exception()


def bounded(
    analyzer: AsyncFn,
    fallback: Any,
    label: str,
    timeout: float = DEFAULT_STAGE_TIMEOUT,
) -> Callable[..., Awaitable[StageResult]]:
    """Wrap *analyzer* so that a call resolves within *timeout* seconds.

    The wrapped callable takes the same arguments as *analyzer* and returns
    ``Ok(result)`` when the analyzer finishes in time (``result`` is the very
    object the analyzer produced), or ``Failed`` holding a deep copy of
    *fallback* plus the error message, ``timed_out`` flag and a timestamp.
    """

    @functools.wraps(analyzer)
    async def wrapper(*args: Any, **kwargs: Any) -> StageResult:
        logger.debug("Starting %s...", label)
        try:
            task = asyncio.ensure_future(analyzer(*args, **kwargs))
        except Exception as exc:
            logger.warning("%s failed: %s, using fallback result", label, exc)
            return Failed.from_error(fallback, str(exc) or type(exc).__name__)

        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            task.cancel()
            task.add_done_callback(_consume_outcome)
            message = f"{label} timed out after {timeout:g} seconds"
            logger.warning("%s, using fallback result", message)
            return Failed.from_error(fallback, message, timed_out=True)

        if task.cancelled():
            logger.warning("%s was cancelled, using fallback result", label)
            return Failed.from_error(fallback, f"{label} was cancelled")

        exc = task.exception()
        if exc is not None:
            logger.warning("%s failed: %s, using fallback result", label, exc)
            return Failed.from_error(fallback, str(exc) or type(exc).__name__)

        logger.debug("%s completed", label)
        return Ok(task.result())

    return wrapper


def with_retry(
    fn: Callable[..., Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 2.0,
    label: str = "Operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Callable[..., Awaitable[T]]:
    """Retry *fn* up to *attempts* times, sleeping ``base_delay * attempt`` in between.

    The last error is re-raised once every attempt has failed.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        for attempt in range(1, attempts + 1):
            try:
                return await fn(*args, **kwargs)
            except retry_on as exc:
                logger.warning("Attempt %d/%d of %s failed: %s", attempt, attempts, label, exc)
                if attempt == attempts:
                    raise
                await sleep(base_delay * attempt)

    return wrapper


__all__ = ["DEFAULT_STAGE_TIMEOUT", "bounded", "with_retry"]
