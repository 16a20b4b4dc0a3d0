"""XDG config loading for retry constants and the default endpoint."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from dynareq.classify import (
    DEFAULT_THROTTLING_MARKER,
    DEFAULT_THROUGHPUT_EXCEEDED_MARKER,
    DEFAULT_UNRECOGNIZED_CLIENT_MARKER,
    RetryClassifier,
    RetryPassMarkers,
    ThrottleMarkers,
)
from dynareq.errors import ConfigError
from dynareq.executor import DEFAULT_TIMEOUT_SECONDS, is_endpoint_url
from dynareq.retry import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_BACKOFF_GROWTH,
    DEFAULT_MAX_ATTEMPTS,
    RetryPolicy,
)

DEFAULT_CONFIG_PATH = Path("~/.config/dynareq/config.toml").expanduser()
DEFAULT_ENDPOINT_URL = "http://localhost:8000"
DEFAULT_TARGET_PREFIX = "DynamoDB_20120810"
ENDPOINT_ENV = "DYNAREQ_ENDPOINT"
RETRIES_ENV = "DYNAREQ_RETRIES"
MAX_RETRIES = 20

_VALID_RETRY_PASS_MARKERS = {item.value for item in RetryPassMarkers}
_MARKER_KEYS = (
    "throughput_exceeded_marker",
    "unrecognized_client_marker",
    "throttling_marker",
)


class RetryConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    retries: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1, le=MAX_RETRIES)
    throughput_exceeded_marker: str = DEFAULT_THROUGHPUT_EXCEEDED_MARKER
    unrecognized_client_marker: str = DEFAULT_UNRECOGNIZED_CLIENT_MARKER
    throttling_marker: str = DEFAULT_THROTTLING_MARKER
    retry_pass_markers: Literal["throughput", "all"] = "throughput"
    backoff_base_ms: int = Field(default=DEFAULT_BACKOFF_BASE_MS, ge=0)
    backoff_growth: int = Field(default=DEFAULT_BACKOFF_GROWTH, ge=1)
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    target_prefix: str = DEFAULT_TARGET_PREFIX

    @field_validator("retry_pass_markers")
    @classmethod
    def _validate_retry_pass_markers(cls, value: str) -> str:
        if value not in _VALID_RETRY_PASS_MARKERS:
            raise ValueError(f"Invalid retry pass markers: {value}")
        return value

    @field_validator("endpoint_url")
    @classmethod
    def _validate_endpoint(cls, value: str) -> str:
        if not is_endpoint_url(value):
            raise ValueError(f"Invalid endpoint URL: {value}")
        return value

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retries,
            backoff_base_ms=self.backoff_base_ms,
            backoff_growth=self.backoff_growth,
        )

    def to_markers(self) -> ThrottleMarkers:
        return ThrottleMarkers(
            throughput_exceeded=self.throughput_exceeded_marker,
            unrecognized_client=self.unrecognized_client_marker,
            throttling=self.throttling_marker,
        )

    def to_classifier(self) -> RetryClassifier:
        return RetryClassifier(
            markers=self.to_markers(),
            retry_pass_markers=RetryPassMarkers(self.retry_pass_markers),
        )


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _apply_env(cfg: RetryConfig) -> RetryConfig:
    env_endpoint = os.getenv(ENDPOINT_ENV, "").strip()
    if is_endpoint_url(env_endpoint):
        cfg.endpoint_url = env_endpoint

    env_retries = os.getenv(RETRIES_ENV, "").strip()
    if env_retries.isdigit() and 1 <= int(env_retries) <= MAX_RETRIES:
        cfg.retries = int(env_retries)
    return cfg


def _sanitize(raw: dict[str, object]) -> RetryConfig:
    cfg = RetryConfig()

    retries = raw.get("retries", cfg.retries)
    if _is_int(retries) and 1 <= cast(int, retries) <= MAX_RETRIES:
        cfg.retries = cast(int, retries)

    for key in _MARKER_KEYS:
        marker = raw.get(key)
        if isinstance(marker, str) and marker.strip():
            setattr(cfg, key, marker.strip())

    retry_pass_markers = raw.get("retry_pass_markers", cfg.retry_pass_markers)
    if isinstance(retry_pass_markers, str) and retry_pass_markers in _VALID_RETRY_PASS_MARKERS:
        cfg.retry_pass_markers = cast(Literal["throughput", "all"], retry_pass_markers)

    backoff_base_ms = raw.get("backoff_base_ms", cfg.backoff_base_ms)
    if _is_int(backoff_base_ms) and cast(int, backoff_base_ms) >= 0:
        cfg.backoff_base_ms = cast(int, backoff_base_ms)

    backoff_growth = raw.get("backoff_growth", cfg.backoff_growth)
    if _is_int(backoff_growth) and cast(int, backoff_growth) >= 1:
        cfg.backoff_growth = cast(int, backoff_growth)

    endpoint_url = raw.get("endpoint_url", cfg.endpoint_url)
    if isinstance(endpoint_url, str) and is_endpoint_url(endpoint_url):
        cfg.endpoint_url = endpoint_url

    timeout_seconds = raw.get("timeout_seconds", cfg.timeout_seconds)
    if isinstance(timeout_seconds, (int, float)) and not isinstance(timeout_seconds, bool):
        if timeout_seconds > 0:
            cfg.timeout_seconds = float(timeout_seconds)

    target_prefix = raw.get("target_prefix", cfg.target_prefix)
    if isinstance(target_prefix, str):
        cfg.target_prefix = target_prefix.strip()

    return cfg


def _read_toml(resolved: Path) -> dict[str, object] | None:
    if not resolved.exists():
        return None
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return None
    if not isinstance(raw, dict):
        return None
    return raw


def load_config(path: str | Path | None = None) -> RetryConfig:
    """Load config leniently: unreadable files and invalid keys fall back to defaults."""
    raw = _read_toml(get_config_path(path))
    if raw is None:
        return _apply_env(RetryConfig())
    return _apply_env(_sanitize(raw))


def load_config_strict(path: str | Path | None = None) -> RetryConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _apply_env(RetryConfig())
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise ConfigError(
            f"Config file could not be read: {resolved}",
            hint=str(exc),
        ) from exc
    try:
        cfg = RetryConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid config values in {resolved}",
            hint="; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            ),
        ) from exc
    return _apply_env(cfg)
