"""
Newsbot - Resilient Upstream Calls
===================================
Retry-with-exponential-backoff for any single upstream round trip
(Gemini generation, Gemini embeddings), built on ``tenacity``.

Classification (one canonical rule set):
    1. Our own ``UpstreamTransient`` / ``UpstreamPermanent`` decide directly.
    2. **Status code first**: taken from ``status_code``, ``code``,
       ``status`` or ``response.status_code`` on the exception.
       429/500/502/503/504 are transient; any other status is permanent.
    3. **Message fallback**: with no usable status, overload / quota /
       rate-limit / unavailable / timeout wording is transient.
    4. Everything else is permanent and propagates on the first failure.

Transient failures are retried up to ``max_retries - 1`` more times,
sleeping ``base_delay * 2**attempt`` seconds between attempts, then the
last error is re-raised.  Wrap the upstream call only, never a block
that has already committed a side effect.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from newsbot.src.core.errors import UpstreamError, UpstreamPermanent, UpstreamTransient
from newsbot.src.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

TRANSIENT_PATTERNS = re.compile(
    r"overload|quota|rate[ _-]?limit|rate exceeded|too many requests|resource[ _]exhausted"
    r"|service unavailable|temporarily unavailable|unavailable|timed out|timeout|deadline exceeded",
    re.IGNORECASE,
)


def extract_status(exc: BaseException) -> int | None:
    """Best-effort HTTP status from an SDK exception, or ``None``."""
    candidates = [getattr(exc, attr, None) for attr in ("status_code", "code", "status")]
    candidates.append(getattr(getattr(exc, "response", None), "status_code", None))

    for value in candidates:
        if isinstance(value, bool):
            continue
        if isinstance(value, int) and 100 <= value <= 599:
            return value
        if isinstance(value, str) and value.isdigit() and 100 <= int(value) <= 599:
            return int(value)
    return None


def is_transient(exc: BaseException) -> bool:
    """Return True when *exc* is worth retrying."""
    if isinstance(exc, UpstreamPermanent):
        return False
    if isinstance(exc, UpstreamTransient):
        return True

    status = extract_status(exc)
    if status is not None:
        return status in TRANSIENT_STATUS_CODES

    return bool(TRANSIENT_PATTERNS.search(str(exc)))


def to_upstream_error(exc: BaseException, service: str) -> UpstreamError:
    """Wrap an SDK exception in the matching ``Upstream*`` error, keeping its status."""
    if isinstance(exc, UpstreamError):
        return exc
    status = extract_status(exc)
    kind = UpstreamTransient if is_transient(exc) else UpstreamPermanent
    return kind(f"{service} call failed: {exc}", status_code=status)


async def with_retry(operation: Callable[[], Awaitable[T]], max_retries: int = 3, base_delay: float = 1.0, *, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> T:
    """
    Await ``operation()`` with bounded exponential backoff on transient errors.

    Args:
        operation:   Zero-argument callable returning an awaitable.
        max_retries: Total attempts, including the first.
        base_delay:  Seconds before the first retry; doubles each retry.
        sleep:       Awaitable sleep used between attempts.

    Returns:
        Whatever ``operation`` returns on its first successful attempt.

    Raises:
        The last exception raised by ``operation``.
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be ≥ 1, got {max_retries}")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=base_delay, exp_base=2),
        retry=retry_if_exception(is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        sleep=sleep,
    )

    # tenacity only awaits coroutine functions; a lambda returning a coroutine would escape the retry loop
    async def _attempt() -> T:
        return await operation()

    return await retrying(_attempt)
