from __future__ import annotations

import random

import pytest

from dynareq.errors import RetriesExhaustedError, TransportError
from dynareq.executor import AttemptOutcome
from dynareq.retry import RetryController, RetryPolicy

THROUGHPUT = '{"__type":"com.amazonaws.dynamodb.v20120810#ProvisionedThroughputExceededException"}'
UNRECOGNIZED = '{"__type":"com.amazon.coral.service#UnrecognizedClientException"}'
VALIDATION = '{"__type":"com.amazon.coral.validate#ValidationException","message":"bad key"}'

OK = AttemptOutcome(body='{"Item":{}}', request_id="req-ok", status_code=200)
UNAVAILABLE = AttemptOutcome(body="", request_id="req-503", status_code=503)


def _controller(executor, sleeps: list[float], *, max_attempts: int = 5) -> RetryController:
    return RetryController(
        executor,
        policy=RetryPolicy(max_attempts=max_attempts),
        sleep=sleeps.append,
        random_factory=lambda: random.Random(7),
    )


def test_success_on_first_attempt_returns_without_sleeping(scripted_executor) -> None:
    executor = scripted_executor(OK)
    sleeps: list[float] = []

    result = _controller(executor, sleeps).execute({"TableName": "users"}, "DynamoDB_20120810.GetItem")

    assert result.body == '{"Item":{}}'
    assert result.status_code == 200
    assert result.error is None
    assert result.ok
    assert result.attempts == 1
    assert len(executor.calls) == 1
    assert sleeps == []


def test_persistent_server_errors_exhaust_every_attempt(scripted_executor) -> None:
    executor = scripted_executor(UNAVAILABLE)
    sleeps: list[float] = []

    result = _controller(executor, sleeps, max_attempts=4).execute(
        {"TableName": "users"},
        "DynamoDB_20120810.PutItem",
    )

    assert len(executor.calls) == 4
    assert len(sleeps) == 3
    assert result.body == ""
    assert result.status_code == 0
    assert isinstance(result.error, RetriesExhaustedError)
    assert result.error.operation == "DynamoDB_20120810.PutItem"
    assert result.error.attempts == 4
    assert "users" in result.error.request


def test_unrecognized_client_then_success_takes_two_attempts(scripted_executor) -> None:
    executor = scripted_executor(
        AttemptOutcome(body=UNRECOGNIZED, request_id="req-1", status_code=400),
        OK,
    )
    sleeps: list[float] = []

    result = _controller(executor, sleeps).execute({"TableName": "users"}, "DynamoDB_20120810.GetItem")

    assert result.status_code == 200
    assert result.error is None
    assert result.attempts == 2
    assert len(executor.calls) == 2
    assert len(sleeps) == 1


def test_unrecognized_bad_request_returns_immediately(scripted_executor) -> None:
    rejected = AttemptOutcome(body=VALIDATION, request_id="req-400", status_code=400)
    executor = scripted_executor(rejected, OK)
    sleeps: list[float] = []

    result = _controller(executor, sleeps).execute({"TableName": "users"}, "DynamoDB_20120810.GetItem")

    assert result.status_code == 400
    assert result.body == VALIDATION
    assert result.error is None
    assert not result.ok
    assert len(executor.calls) == 1
    assert sleeps == []


def test_transport_error_is_retried(scripted_executor) -> None:
    executor = scripted_executor(
        AttemptOutcome(error=TransportError("connection reset")),
        AttemptOutcome(error=TransportError("connection reset")),
        OK,
    )
    sleeps: list[float] = []

    result = _controller(executor, sleeps).execute({"TableName": "users"}, "DynamoDB_20120810.Query")

    assert result.status_code == 200
    assert len(executor.calls) == 3
    assert len(sleeps) == 2


def test_throughput_exceeded_is_retried_on_every_pass(scripted_executor) -> None:
    throttled = AttemptOutcome(body=THROUGHPUT, request_id="req-t", status_code=400)
    executor = scripted_executor(throttled, throttled, throttled, OK)
    sleeps: list[float] = []

    result = _controller(executor, sleeps).execute({"TableName": "users"}, "DynamoDB_20120810.Scan")

    assert result.status_code == 200
    assert len(executor.calls) == 4


def test_execute_json_passes_raw_payload_to_executor(scripted_executor) -> None:
    executor = scripted_executor(OK)
    payload = b'{"TableName":"users"}'

    _controller(executor, []).execute_json(bytearray(payload), "DynamoDB_20120810.GetItem")

    assert executor.calls == [(payload, "DynamoDB_20120810.GetItem")]


def test_sleep_delays_grow_within_exponential_bounds(scripted_executor) -> None:
    executor = scripted_executor(UNAVAILABLE)
    sleeps: list[float] = []

    _controller(executor, sleeps, max_attempts=4).execute({"TableName": "users"}, "DynamoDB_20120810.GetItem")

    for retry_index, delay in enumerate(sleeps, start=1):
        assert 0 <= delay < (4**retry_index * 100) / 1000


@pytest.mark.parametrize("status", [401, 403, 404, 409, 413])
def test_other_client_errors_are_not_retried(scripted_executor, status: int) -> None:
    executor = scripted_executor(AttemptOutcome(body=THROUGHPUT, status_code=status))

    result = _controller(executor, []).execute({"TableName": "users"}, "DynamoDB_20120810.GetItem")

    assert result.status_code == status
    assert len(executor.calls) == 1
