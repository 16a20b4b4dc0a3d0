"""Error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    TRANSPORT_ERROR = 5
    REQUEST_REJECTED = 6
    RETRIES_EXHAUSTED = 7


@dataclass
class DynaReqError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class TransportError(DynaReqError):
    """The executor could not complete a single attempt."""

    code: ExitCode = ExitCode.TRANSPORT_ERROR


@dataclass
class ConfigError(DynaReqError):
    code: ExitCode = ExitCode.CONFIG_ERROR


@dataclass
class RetriesExhaustedError(DynaReqError):
    """Terminal failure after every allowed attempt was classified transient.

    Carries the last underlying status and error separately so callers can tell
    exhaustion apart from the failure of any single attempt.
    """

    code: ExitCode = ExitCode.RETRIES_EXHAUSTED
    operation: str = ""
    request: str = ""
    attempts: int = 0
    last_status_code: int = 0
    last_error: Exception | None = None


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
