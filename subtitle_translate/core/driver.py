"""Concurrent, rate-limited, retrying execution of translation batches.

WHY: A subtitle file turns into tens or hundreds of batches. Sending
them one at a time is slow; sending them all at once trips the
backend's rate limits. Transient backend failures (timeouts, 429s,
5xx) are routine and should be invisible, while a backend that breaks
the one-text-in-one-text-out contract must never be papered over.

HOW: One asyncio task per batch. Each attempt takes a slot from an
asyncio.Semaphore (max in flight) and a token from a shared token
bucket (max per time window), then awaits the backend under
asyncio.wait_for. Transient failures back off exponentially and retry.
The run collects tasks with asyncio.wait, racing them against the
external cancellation event.

RULES:
- Results come back in batch order, one per batch
- len(result.texts) == len(batch.fragments) for every result
- Fragment count mismatches are never retried
- STRICT: the first failed batch cancels the rest and its DriverError
  propagates. DEGRADED: the batch falls back to its source text
- Cancellation discards completed results and raises DriverError(CANCELLED)
- Backoff sleeps happen outside the semaphore
- The token bucket is the only state shared between tasks; it is
  updated under an asyncio.Lock
- Semaphores, locks and the bucket are created inside run() so one
  driver can be reused across event loops
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import List, Optional, Tuple

from subtitle_translate.backends.base import TranslationBackend, TranslationBackendError
from subtitle_translate.config import (
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_BACKOFF_INITIAL_S,
    DEFAULT_BACKOFF_MAX_S,
    DEFAULT_CONCURRENCY,
    DEFAULT_FAILURE_POLICY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RATE_LIMIT,
    DEFAULT_RATE_WINDOW_S,
    DEFAULT_REQUEST_TIMEOUT_S,
)
from subtitle_translate.core.errors import DriverError, DriverErrorKind
from subtitle_translate.core.segmenter import Batch

logger = logging.getLogger(__name__)


class FailurePolicy(str, enum.Enum):
    """What a batch that cannot be translated does to the whole run."""

    STRICT = "strict"
    DEGRADED = "degraded"


def _default_policy() -> FailurePolicy:
    try:
        return FailurePolicy(DEFAULT_FAILURE_POLICY)
    except ValueError:
        logger.warning(
            "Unknown failure policy %r in environment, using 'degraded'", DEFAULT_FAILURE_POLICY
        )
        return FailurePolicy.DEGRADED


@dataclass
class DriverSettings:
    """Throttling, retry and failure-policy knobs for a translation run.

    RULES:
    - concurrency, rate_limit and max_attempts are at least 1
    - rate_window_s and request_timeout_s are positive seconds
    - Backoff before retry n is backoff_initial_s * backoff_factor**(n-1),
      capped at backoff_max_s
    - policy accepts a FailurePolicy or its string value
    """

    concurrency: int = DEFAULT_CONCURRENCY
    rate_limit: int = DEFAULT_RATE_LIMIT
    rate_window_s: float = DEFAULT_RATE_WINDOW_S
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_initial_s: float = DEFAULT_BACKOFF_INITIAL_S
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    backoff_max_s: float = DEFAULT_BACKOFF_MAX_S
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    policy: Optional[FailurePolicy] = None

    def __post_init__(self) -> None:
        self.policy = FailurePolicy(self.policy) if self.policy is not None else _default_policy()
        for name in ("concurrency", "rate_limit", "max_attempts"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        for name in ("rate_window_s", "request_timeout_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.backoff_initial_s < 0 or self.backoff_max_s < 0 or self.backoff_factor < 1:
            raise ValueError("backoff delays must be non-negative and backoff_factor at least 1")

    def backoff_delay(self, retry: int) -> float:
        """Seconds to wait before retry number ``retry`` (1-based)."""
        return min(self.backoff_initial_s * self.backoff_factor ** (retry - 1), self.backoff_max_s)


@dataclass(frozen=True)
class TranslationResult:
    """Translated texts for one batch, in fragment order.

    RULES:
    - texts has exactly one entry per fragment of the batch
    - fallback=True means texts are the untranslated source and error
      says why
    """

    batch_index: int
    texts: Tuple[str, ...]
    fallback: bool = False
    error: Optional[DriverError] = None


class RateLimiter:
    """Token bucket shared by every batch task of one run.

    WHY: The concurrency limit alone does not bound request *rate*: fast
    responses free slots immediately. Public translation endpoints
    enforce requests-per-window quotas, so requests are metered here.

    HOW: The bucket holds up to ``rate_limit`` tokens and refills
    continuously at rate_limit / window_s tokens per second. acquire()
    takes a token, or sleeps outside the lock until one will exist.

    RULES:
    - Must be created inside a running event loop
    - clock and sleep are injectable for tests
    """

    def __init__(
        self,
        rate_limit: int,
        window_s: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.capacity = float(rate_limit)
        self.rate = rate_limit / window_s
        self._clock = clock
        self._sleep = sleep
        self._tokens = self.capacity
        self._updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    async def acquire(self) -> None:
        while True:
            async with self._lock:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                wait = (1 - self._tokens) / self.rate
            await self._sleep(wait)


class TranslationDriver:
    """Runs batches against a TranslationBackend.

    WHY: Keeps all concurrency, retry and partial-failure handling in one
    place so backends stay simple request/response adapters and the
    pipeline stays a straight line.

    HOW: run() spawns one task per batch and waits for them together
    with the cancellation event. Each task loops over attempts with
    _attempt_batch() until it succeeds, hits a permanent error, or
    uses up its attempt budget.

    RULES:
    - The backend is used as-is; opening and closing it is the caller's job
    - TranslationBackendError never escapes; it becomes a DriverError
    """

    def __init__(
        self,
        backend: TranslationBackend,
        settings: DriverSettings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.settings = settings or DriverSettings()
        self._sleep = sleep

    async def run(
        self,
        batches: Sequence[Batch],
        target_language: str,
        source_language: str = "auto",
        cancel: asyncio.Event | None = None,
    ) -> List[TranslationResult]:
        """Translate every batch and return the results in batch order.

        Raises:
            DriverError: CANCELLED when ``cancel`` fires; in STRICT mode,
            the first batch failure.
        """
        batches = list(batches)
        if not batches:
            return []
        if cancel is not None and cancel.is_set():
            raise DriverError(DriverErrorKind.CANCELLED, "Translation run was cancelled")

        semaphore = asyncio.Semaphore(self.settings.concurrency)
        limiter = RateLimiter(self.settings.rate_limit, self.settings.rate_window_s)
        tasks = [
            asyncio.ensure_future(
                self._run_batch(batch, target_language, source_language, semaphore, limiter)
            )
            for batch in batches
        ]
        cancel_task = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        logger.info(
            "Translating %d batches (concurrency %d, %d requests per %.1fs)",
            len(batches),
            self.settings.concurrency,
            self.settings.rate_limit,
            self.settings.rate_window_s,
        )

        pending = set(tasks)
        try:
            while pending:
                waiting = (pending | {cancel_task}) if cancel_task is not None else pending
                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                if cancel_task is not None and cancel_task in done:
                    raise DriverError(DriverErrorKind.CANCELLED, "Translation run was cancelled")
                failure: BaseException | None = None
                for task in done:
                    pending.discard(task)
                    exc = task.exception()
                    if exc is not None and failure is None:
                        failure = exc
                if failure is not None:
                    # Only STRICT batches raise; abort the rest of the run.
                    raise failure
        finally:
            leftovers = [task for task in tasks if not task.done()]
            if cancel_task is not None:
                leftovers.append(cancel_task)
            for task in leftovers:
                task.cancel()
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)

        return [task.result() for task in tasks]

    async def _run_batch(
        self,
        batch: Batch,
        target_language: str,
        source_language: str,
        semaphore: asyncio.Semaphore,
        limiter: RateLimiter,
    ) -> TranslationResult:
        try:
            texts = await self._translate_with_retry(
                batch, target_language, source_language, semaphore, limiter
            )
        except DriverError as exc:
            if self.settings.policy is FailurePolicy.STRICT:
                raise
            logger.error("Keeping source text for batch %d: %s", batch.index, exc.message)
            return TranslationResult(batch.index, tuple(batch.texts), fallback=True, error=exc)
        return TranslationResult(batch.index, tuple(texts))

    async def _translate_with_retry(
        self,
        batch: Batch,
        target_language: str,
        source_language: str,
        semaphore: asyncio.Semaphore,
        limiter: RateLimiter,
    ) -> List[str]:
        max_attempts = self.settings.max_attempts
        reason = ""
        for attempt in range(1, max_attempts + 1):
            try:
                return await self._attempt_batch(
                    batch, attempt, target_language, source_language, semaphore, limiter
                )
            except asyncio.TimeoutError:
                reason = "timed out after {:g}s".format(self.settings.request_timeout_s)
            except TranslationBackendError as exc:
                if not exc.transient:
                    raise DriverError(
                        DriverErrorKind.BACKEND_REJECTED, exc.message, batch.index
                    ) from exc
                reason = exc.message

            if attempt < max_attempts:
                delay = self.settings.backoff_delay(attempt)
                logger.warning(
                    "Batch %d attempt %d/%d failed (%s), retrying in %.2fs",
                    batch.index,
                    attempt,
                    max_attempts,
                    reason,
                    delay,
                )
                await self._sleep(delay)

        raise DriverError(
            DriverErrorKind.RETRIES_EXHAUSTED,
            "gave up after {} attempts: {}".format(max_attempts, reason),
            batch.index,
        )

    async def _attempt_batch(
        self,
        batch: Batch,
        attempt: int,
        target_language: str,
        source_language: str,
        semaphore: asyncio.Semaphore,
        limiter: RateLimiter,
    ) -> List[str]:
        texts = batch.texts
        async with semaphore:
            await limiter.acquire()
            logger.debug(
                "Batch %d attempt %d: %d fragments, %d chars via %s",
                batch.index,
                attempt,
                len(texts),
                batch.size,
                self.backend.name,
            )
            translated = await asyncio.wait_for(
                self.backend.translate_batch(texts, target_language, source_language),
                timeout=self.settings.request_timeout_s,
            )
        if len(translated) != len(texts):
            raise DriverError(
                DriverErrorKind.FRAGMENT_COUNT_MISMATCH,
                "backend returned {} texts for {} fragments".format(len(translated), len(texts)),
                batch.index,
            )
        return list(translated)
