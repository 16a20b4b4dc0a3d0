from __future__ import annotations

import random

from hypothesis import given
from hypothesis import strategies as st

from dynareq.classify import RetryClassifier
from dynareq.executor import AttemptOutcome
from dynareq.retry import RetryController, RetryPolicy, backoff_delay_seconds

_CLASSIFIER = RetryClassifier()
_MARKERS = (
    "ProvisionedThroughputExceededException",
    "UnrecognizedClientException",
    "ThrottlingException",
)
_BODY_CHARS = st.characters(min_codepoint=32, max_codepoint=126)


@given(st.integers(min_value=1, max_value=3), st.integers(min_value=0, max_value=2**32))
def test_backoff_delay_stays_within_exponential_window(retry_index: int, seed: int) -> None:
    delay = backoff_delay_seconds(RetryPolicy(), retry_index, random.Random(seed))

    assert 0 <= delay < (4**retry_index * 100) / 1000


@given(st.integers(min_value=500, max_value=599), st.text(alphabet=_BODY_CHARS, max_size=60))
def test_server_errors_are_always_retryable(status: int, body: str) -> None:
    outcome = AttemptOutcome(body=body, status_code=status)

    assert _CLASSIFIER.should_retry_first(outcome, {}) is True
    assert _CLASSIFIER.should_retry_again(outcome) is True


@given(st.integers(min_value=200, max_value=299), st.sampled_from(_MARKERS), st.text(alphabet=_BODY_CHARS, max_size=30))
def test_success_statuses_are_never_retryable(status: int, marker: str, noise: str) -> None:
    outcome = AttemptOutcome(body=noise + marker, status_code=status)

    assert _CLASSIFIER.should_retry_first(outcome, {}) is False
    assert _CLASSIFIER.should_retry_again(outcome) is False


@given(
    st.sampled_from(_MARKERS),
    st.text(alphabet=_BODY_CHARS, max_size=30),
    st.text(alphabet=_BODY_CHARS, max_size=30),
)
def test_bad_request_with_any_marker_is_retryable_first(marker: str, prefix: str, suffix: str) -> None:
    outcome = AttemptOutcome(body=prefix + marker + suffix, status_code=400)

    assert _CLASSIFIER.should_retry_first(outcome, {}) is True


@given(
    st.lists(st.sampled_from([200, 400, 404, 500, 503]), min_size=1, max_size=12),
    st.integers(min_value=1, max_value=8),
)
def test_executor_calls_never_exceed_ceiling(statuses: list[int], ceiling: int) -> None:
    calls = {"count": 0}

    def executor(request: object, operation: str) -> AttemptOutcome:
        status = statuses[min(calls["count"], len(statuses) - 1)]
        calls["count"] += 1
        return AttemptOutcome(body="ThrottlingException", status_code=status)

    sleeps: list[float] = []
    result = RetryController(
        executor,
        policy=RetryPolicy(max_attempts=ceiling),
        sleep=sleeps.append,
        random_factory=lambda: random.Random(0),
    ).execute({}, "DynamoDB_20120810.GetItem")

    assert 1 <= calls["count"] <= ceiling
    assert len(sleeps) == calls["count"] - 1
    assert result.attempts == calls["count"]
