"""Configured entry points for sending retryable requests."""

from __future__ import annotations

import time
from collections.abc import Callable

from dynareq.config import RetryConfig, load_config
from dynareq.executor import HttpRequestExecutor, RequestExecutor, RequestSigner, operation_target
from dynareq.request import RequestPayload
from dynareq.retry import ExecutionResult, RetryController


def build_controller(
    config: RetryConfig | None = None,
    *,
    executor: RequestExecutor | None = None,
    signer: RequestSigner | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RetryController:
    cfg = config or load_config()
    if executor is None:
        executor = HttpRequestExecutor(
            cfg.endpoint_url,
            timeout_seconds=cfg.timeout_seconds,
            signer=signer,
        )
    return RetryController(
        executor,
        policy=cfg.to_policy(),
        classifier=cfg.to_classifier(),
        sleep=sleep,
    )


def retry_request(
    request: RequestPayload,
    operation: str,
    *,
    config: RetryConfig | None = None,
    executor: RequestExecutor | None = None,
) -> ExecutionResult:
    """Send a structured request descriptor with retries.

    ``operation`` is an action name (``GetItem``) or a fully qualified target.
    """
    cfg = config or load_config()
    controller = build_controller(cfg, executor=executor)
    return controller.execute(request, operation_target(cfg.target_prefix, operation))


def retry_request_json(
    payload: bytes,
    operation: str,
    *,
    config: RetryConfig | None = None,
    executor: RequestExecutor | None = None,
) -> ExecutionResult:
    """Send an already serialized JSON request with retries."""
    cfg = config or load_config()
    controller = build_controller(cfg, executor=executor)
    return controller.execute_json(payload, operation_target(cfg.target_prefix, operation))
