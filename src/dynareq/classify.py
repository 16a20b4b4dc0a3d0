"""Retry classification for single-attempt outcomes."""

from __future__ import annotations

import logging as py_logging
from dataclasses import dataclass
from enum import Enum

from dynareq.executor import AttemptOutcome
from dynareq.request import RequestPayload, render_for_diagnostics

logger = py_logging.getLogger(__name__)

STATUS_BAD_REQUEST = 400
STATUS_SERVER_ERROR = 500

DEFAULT_THROUGHPUT_EXCEEDED_MARKER = "ProvisionedThroughputExceededException"
DEFAULT_UNRECOGNIZED_CLIENT_MARKER = "UnrecognizedClientException"
DEFAULT_THROTTLING_MARKER = "ThrottlingException"


class RetryPassMarkers(str, Enum):
    """Body markers honoured on attempts after the first.

    ``THROUGHPUT`` checks only the throughput-exceeded marker; ``ALL`` checks
    the same markers as the first attempt.
    """

    THROUGHPUT = "throughput"
    ALL = "all"


@dataclass(frozen=True)
class ThrottleMarkers:
    throughput_exceeded: str = DEFAULT_THROUGHPUT_EXCEEDED_MARKER
    unrecognized_client: str = DEFAULT_UNRECOGNIZED_CLIENT_MARKER
    throttling: str = DEFAULT_THROTTLING_MARKER

    def all(self) -> tuple[str, ...]:
        return tuple(
            marker
            for marker in (self.throughput_exceeded, self.unrecognized_client, self.throttling)
            if marker
        )


def _contains(body: str, marker: str) -> bool:
    return bool(marker) and marker in body


@dataclass(frozen=True)
class RetryClassifier:
    markers: ThrottleMarkers = ThrottleMarkers()
    retry_pass_markers: RetryPassMarkers = RetryPassMarkers.THROUGHPUT

    def should_retry_first(self, outcome: AttemptOutcome, request: RequestPayload) -> bool:
        """Full rule set applied to the first attempt. Only logs, never raises."""
        should_retry = False
        if outcome.error is not None:
            logger.warning(
                "Attempt 0 failed: %s (reqid:%s)",
                outcome.error,
                outcome.request_id,
            )
            should_retry = True

        if outcome.status_code >= STATUS_SERVER_ERROR:
            should_retry = True

        if outcome.status_code == STATUS_BAD_REQUEST:
            if any(_contains(outcome.body, marker) for marker in self.markers.all()):
                logger.warning("Throughput warning, retrying (reqid:%s)", outcome.request_id)
                should_retry = True
            elif not should_retry:
                logger.error(
                    "Un-retryable error: %s\n%s",
                    outcome.body,
                    render_for_diagnostics(request, request_id=outcome.request_id),
                )
        return should_retry

    def should_retry_again(self, outcome: AttemptOutcome) -> bool:
        """Reduced rule set applied to attempts after the first."""
        if outcome.error is not None:
            logger.warning(
                "Retry attempt failed: %s (reqid:%s)",
                outcome.error,
                outcome.request_id,
            )
            return True
        if outcome.status_code >= STATUS_SERVER_ERROR:
            return True
        if outcome.status_code != STATUS_BAD_REQUEST:
            return False

        if self.retry_pass_markers is RetryPassMarkers.ALL:
            markers = self.markers.all()
        else:
            markers = (self.markers.throughput_exceeded,)
        if any(_contains(outcome.body, marker) for marker in markers):
            logger.warning("Throughput warning, retrying (reqid:%s)", outcome.request_id)
            return True
        return False
