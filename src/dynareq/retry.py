"""Retry/backoff controller for data-store requests."""

from __future__ import annotations

import asyncio
import logging as py_logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from dynareq.classify import RetryClassifier
from dynareq.errors import DynaReqError, ExitCode, RetriesExhaustedError
from dynareq.executor import AsyncRequestExecutor, AttemptOutcome, RequestExecutor
from dynareq.request import RequestPayload, render_for_diagnostics

logger = py_logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_BASE_MS = 100
DEFAULT_BACKOFF_GROWTH = 4

RandomFactory = Callable[[], random.Random]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling (first attempt included) and backoff shape."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS
    backoff_growth: int = DEFAULT_BACKOFF_GROWTH

    def backoff_ceiling_ms(self, retry_index: int) -> int:
        """Exclusive upper bound of the delay before retry ``retry_index``."""
        return int(self.backoff_growth**retry_index) * self.backoff_base_ms


def seeded_random() -> random.Random:
    return random.Random(time.time_ns())


def backoff_delay_seconds(policy: RetryPolicy, retry_index: int, rng: random.Random) -> float:
    """Whole milliseconds drawn uniformly from ``[0, ceiling)``, returned in seconds."""
    upper = policy.backoff_ceiling_ms(retry_index)
    if upper <= 0:
        return 0.0
    return rng.randrange(upper) / 1000.0


@dataclass
class RetryState:
    attempt_index: int = 0
    last_outcome: AttemptOutcome | None = None

    def record(self, outcome: AttemptOutcome) -> AttemptOutcome:
        self.attempt_index += 1
        self.last_outcome = outcome
        return outcome


@dataclass(frozen=True)
class ExecutionResult:
    body: str
    status_code: int
    error: Exception | None = None
    operation: str = ""
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
        if not 200 <= self.status_code < 300:
            raise DynaReqError(
                f"{self.operation} was rejected (HTTP {self.status_code}).",
                code=ExitCode.REQUEST_REJECTED,
                hint=self.body,
            )


def _finished(operation: str, outcome: AttemptOutcome, state: RetryState) -> ExecutionResult:
    return ExecutionResult(
        body=outcome.body,
        status_code=outcome.status_code,
        error=outcome.error,
        operation=operation,
        attempts=state.attempt_index,
    )


def _exhausted(operation: str, request: RequestPayload, state: RetryState) -> ExecutionResult:
    last = state.last_outcome or AttemptOutcome()
    rendered = render_for_diagnostics(request, request_id=last.request_id)
    logger.error("Failed retries on %s after %d attempts", operation, state.attempt_index)
    error = RetriesExhaustedError(
        f"failed retries on {operation}: {rendered}",
        hint="The service kept returning transient failures; try again later.",
        operation=operation,
        request=rendered,
        attempts=state.attempt_index,
        last_status_code=last.status_code,
        last_error=last.error,
    )
    return ExecutionResult(body="", status_code=0, error=error, operation=operation, attempts=state.attempt_index)


def _log_sleep(operation: str, retry_index: int, delay: float, outcome: AttemptOutcome) -> None:
    logger.info(
        "Begin sleep %.3fs before retry %d of %s (code:%s) (reqid:%s)",
        delay,
        retry_index,
        operation,
        outcome.status_code,
        outcome.request_id,
    )


class RetryController:
    """Run a request through ``executor`` with jittered exponential backoff.

    Attempts are sequential and every call keeps its own state and random
    source, so one controller can serve concurrent callers.
    """

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        policy: RetryPolicy | None = None,
        classifier: RetryClassifier | None = None,
        sleep: Callable[[float], None] = time.sleep,
        random_factory: RandomFactory = seeded_random,
    ) -> None:
        self._executor = executor
        self.policy = policy or RetryPolicy()
        self.classifier = classifier or RetryClassifier()
        self._sleep = sleep
        self._random_factory = random_factory

    def execute(self, request: RequestPayload, operation: str) -> ExecutionResult:
        return self._run(request, operation)

    def execute_json(self, payload: bytes, operation: str) -> ExecutionResult:
        return self._run(bytes(payload), operation)

    def _run(self, request: RequestPayload, operation: str) -> ExecutionResult:
        state = RetryState()
        outcome = state.record(self._executor(request, operation))
        if not self.classifier.should_retry_first(outcome, request):
            return _finished(operation, outcome, state)

        rng = self._random_factory()
        for retry_index in range(1, self.policy.max_attempts):
            delay = backoff_delay_seconds(self.policy, retry_index, rng)
            _log_sleep(operation, retry_index, delay, outcome)
            self._sleep(delay)
            logger.debug("End sleep before retry %d of %s", retry_index, operation)

            outcome = state.record(self._executor(request, operation))
            if not self.classifier.should_retry_again(outcome):
                logger.info("Retry loop finished %s after %d attempts", operation, state.attempt_index)
                return _finished(operation, outcome, state)

        return _exhausted(operation, request, state)


class AsyncRetryController:
    """Event-loop flavour of :class:`RetryController`; the backoff is awaited."""

    def __init__(
        self,
        executor: AsyncRequestExecutor,
        *,
        policy: RetryPolicy | None = None,
        classifier: RetryClassifier | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        random_factory: RandomFactory = seeded_random,
    ) -> None:
        self._executor = executor
        self.policy = policy or RetryPolicy()
        self.classifier = classifier or RetryClassifier()
        self._sleep = sleep
        self._random_factory = random_factory

    async def execute(self, request: RequestPayload, operation: str) -> ExecutionResult:
        return await self._run(request, operation)

    async def execute_json(self, payload: bytes, operation: str) -> ExecutionResult:
        return await self._run(bytes(payload), operation)

    async def _run(self, request: RequestPayload, operation: str) -> ExecutionResult:
        state = RetryState()
        outcome = state.record(await self._executor(request, operation))
        if not self.classifier.should_retry_first(outcome, request):
            return _finished(operation, outcome, state)

        rng = self._random_factory()
        for retry_index in range(1, self.policy.max_attempts):
            delay = backoff_delay_seconds(self.policy, retry_index, rng)
            _log_sleep(operation, retry_index, delay, outcome)
            await self._sleep(delay)
            logger.debug("End sleep before retry %d of %s", retry_index, operation)

            outcome = state.record(await self._executor(request, operation))
            if not self.classifier.should_retry_again(outcome):
                logger.info("Retry loop finished %s after %d attempts", operation, state.attempt_index)
                return _finished(operation, outcome, state)

        return _exhausted(operation, request, state)
