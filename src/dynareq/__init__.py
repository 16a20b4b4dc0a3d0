"""Retrying request executor for DynamoDB-style key-value store APIs."""

from .classify import RetryClassifier, RetryPassMarkers, ThrottleMarkers
from .client import build_controller, retry_request, retry_request_json
from .config import RetryConfig, load_config, load_config_strict
from .errors import ConfigError, DynaReqError, ExitCode, RetriesExhaustedError, TransportError
from .executor import AttemptOutcome, HttpRequestExecutor, RequestExecutor
from .request import encode_request, render_for_diagnostics
from .retry import (
    AsyncRetryController,
    ExecutionResult,
    RetryController,
    RetryPolicy,
    backoff_delay_seconds,
)

__all__ = [
    "AsyncRetryController",
    "AttemptOutcome",
    "backoff_delay_seconds",
    "build_controller",
    "ConfigError",
    "DynaReqError",
    "encode_request",
    "ExecutionResult",
    "ExitCode",
    "HttpRequestExecutor",
    "load_config",
    "load_config_strict",
    "render_for_diagnostics",
    "RequestExecutor",
    "RetriesExhaustedError",
    "RetryClassifier",
    "RetryConfig",
    "RetryController",
    "retry_request",
    "retry_request_json",
    "RetryPassMarkers",
    "RetryPolicy",
    "ThrottleMarkers",
    "TransportError",
]
