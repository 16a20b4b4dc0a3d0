"""Single-attempt request executors and their outcome type."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Awaitable
from dataclasses import dataclass
from http.client import HTTPException
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from dynareq.errors import DynaReqError, ExitCode, TransportError
from dynareq.request import RequestPayload, encode_request

logger = py_logging.getLogger(__name__)

CONTENT_TYPE = "application/x-amz-json-1.0"
REQUEST_ID_HEADERS = ("x-amzn-requestid", "x-amz-request-id")
DEFAULT_TIMEOUT_SECONDS = 20.0


@dataclass(frozen=True)
class AttemptOutcome:
    body: str = ""
    request_id: str = ""
    status_code: int = 0
    error: Exception | None = None


class RequestExecutor(Protocol):
    def __call__(self, request: RequestPayload, operation: str) -> AttemptOutcome: ...


class AsyncRequestExecutor(Protocol):
    def __call__(self, request: RequestPayload, operation: str) -> Awaitable[AttemptOutcome]: ...


HttpResponse = tuple[int, str, dict[str, str]]


class HttpRequester(Protocol):
    def __call__(
        self,
        url: str,
        headers: dict[str, str],
        body: bytes,
        timeout: float,
    ) -> HttpResponse: ...


class RequestSigner(Protocol):
    def __call__(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes,
    ) -> dict[str, str]: ...


def is_endpoint_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def validate_endpoint_url(url: str) -> str:
    if not is_endpoint_url(url):
        raise DynaReqError(
            f"Invalid endpoint URL: {url!r}",
            code=ExitCode.CONFIG_ERROR,
            hint="Use an http:// or https:// URL with a host, e.g. http://localhost:8000.",
        )
    return url.strip()


def operation_target(prefix: str, action: str) -> str:
    """Build the ``X-Amz-Target`` value for ``action``.

    Names that are already qualified (``Prefix.Action``) pass through unchanged.
    """
    action = action.strip()
    if "." in action or not prefix:
        return action
    return f"{prefix}.{action}"


def _default_requester(url: str, headers: dict[str, str], body: bytes, timeout: float) -> HttpResponse:
    request = Request(url, data=body, headers=headers, method="POST")
    try:
        with urlopen(request, timeout=timeout) as response:  # nosec B310
            status = int(getattr(response, "status", response.getcode()))
            payload = response.read().decode("utf-8", errors="replace")
            response_headers = {key.lower(): value for key, value in response.headers.items()}
            return status, payload, response_headers
    except HTTPError as exc:
        payload = ""
        if exc.fp is not None:
            payload = exc.read().decode("utf-8", errors="replace")
        response_headers = {key.lower(): value for key, value in (exc.headers.items() if exc.headers else [])}
        return exc.code, payload, response_headers


def _request_id(headers: dict[str, str]) -> str:
    header_map = {key.lower(): value for key, value in headers.items()}
    for name in REQUEST_ID_HEADERS:
        value = header_map.get(name, "")
        if value:
            return value
    return ""


class HttpRequestExecutor:
    """POST a JSON request to the data-store endpoint, one attempt per call.

    HTTP error statuses are returned as outcomes; only failures to complete the
    exchange (encoding, signing, connection, timeout, malformed HTTP) set ``error``.
    """

    def __init__(
        self,
        endpoint_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        signer: RequestSigner | None = None,
        requester: HttpRequester | None = None,
    ) -> None:
        self.endpoint_url = validate_endpoint_url(endpoint_url)
        self.timeout_seconds = timeout_seconds
        self._signer = signer
        self._requester = requester or _default_requester

    def __call__(self, request: RequestPayload, operation: str) -> AttemptOutcome:
        try:
            body = encode_request(request)
        except (TypeError, ValueError) as exc:
            logger.warning("Could not serialize request for %s: %s", operation, exc)
            return AttemptOutcome(
                error=TransportError(
                    f"Request for {operation} could not be serialized.",
                    hint=str(exc),
                )
            )

        headers = {
            "Content-Type": CONTENT_TYPE,
            "X-Amz-Target": operation,
        }
        try:
            if self._signer is not None:
                headers = self._signer("POST", self.endpoint_url, headers, body)
            status, payload, response_headers = self._requester(
                self.endpoint_url,
                headers,
                body,
                self.timeout_seconds,
            )
        except (URLError, OSError, HTTPException) as exc:
            reason = getattr(exc, "reason", exc)
            return AttemptOutcome(
                error=TransportError(
                    f"Request for {operation} did not complete.",
                    hint=str(reason) or "Check network access to the endpoint.",
                )
            )
        except DynaReqError as exc:
            return AttemptOutcome(error=exc)

        return AttemptOutcome(
            body=payload,
            request_id=_request_id(response_headers),
            status_code=status,
        )
