"""Command line entrypoint: send one JSON request with retries."""

from __future__ import annotations

import argparse
import logging as py_logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from .client import build_controller
from .config import MAX_RETRIES, load_config
from .errors import DynaReqError, ExitCode, user_facing_error
from .executor import RequestExecutor, operation_target, validate_endpoint_url
from .logging import configure_logging, default_log_path

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


def _retries_type(value: str) -> int:
    try:
        retries = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--retries must be an integer") from exc
    if retries < 1 or retries > MAX_RETRIES:
        raise argparse.ArgumentTypeError(f"--retries must be between 1 and {MAX_RETRIES}")
    return retries


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dynareq")
    parser.add_argument("--target", required=True, help="Operation name, e.g. GetItem")
    parser.add_argument("--request", required=True, help="JSON request file, or - for stdin")
    parser.add_argument("--endpoint", default=None)
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--retries", type=_retries_type, default=None)
    parser.add_argument("--log-level", type=_log_level_type, default="WARN")
    parser.add_argument(
        "--log-file",
        type=Path,
        nargs="?",
        const=default_log_path(),
        default=None,
        help="Also write DEBUG logs to this file (default location when no path is given)",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def read_request(source: str, stdin: TextIO | None = None) -> bytes:
    if source == "-":
        return (stdin or sys.stdin).read().encode("utf-8")
    try:
        return Path(source).expanduser().read_bytes()
    except OSError as exc:
        raise DynaReqError(
            f"Request file could not be read: {source}",
            code=ExitCode.INVALID_ARGS,
            hint=exc.strerror or "Check the --request path.",
        ) from exc


def run_request(
    namespace: argparse.Namespace,
    *,
    executor: RequestExecutor | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    config = load_config(namespace.config)
    if namespace.endpoint is not None:
        config.endpoint_url = validate_endpoint_url(namespace.endpoint)
    if namespace.retries is not None:
        config.retries = namespace.retries

    payload = read_request(namespace.request, stdin)
    controller = build_controller(config, executor=executor)
    result = controller.execute_json(payload, operation_target(config.target_prefix, namespace.target))

    if result.body:
        print(result.body, file=stdout or sys.stdout)
    result.raise_for_error()
    return int(ExitCode.SUCCESS)


def main(
    argv: Sequence[str] | None = None,
    *,
    executor: RequestExecutor | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    logger = configure_logging("WARN")
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    logger = configure_logging(level=namespace.log_level, log_file=namespace.log_file)

    try:
        logger.debug("Sending %s", namespace.target)
        return run_request(namespace, executor=executor, stdin=stdin, stdout=stdout)
    except DynaReqError as exc:
        logger.error(
            "Handled DynaReqError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        hint = "Re-run with --log-level DEBUG."
        if namespace.log_file is not None:
            hint = f"Inspect logs: {namespace.log_file}"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
