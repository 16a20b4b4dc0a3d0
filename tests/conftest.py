from __future__ import annotations

import logging as py_logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import pytest

from dynareq.executor import AttemptOutcome
from dynareq.logging import LOGGER_NAME
from dynareq.request import RequestPayload


class ScriptedExecutor:
    """Returns the scripted outcomes in order, repeating the last one."""

    def __init__(self, outcomes: Sequence[AttemptOutcome]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[tuple[RequestPayload, str]] = []

    def __call__(self, request: RequestPayload, operation: str) -> AttemptOutcome:
        self.calls.append((request, operation))
        index = min(len(self.calls), len(self._outcomes)) - 1
        return self._outcomes[index]


@pytest.fixture
def scripted_executor() -> Callable[..., ScriptedExecutor]:
    def factory(*outcomes: AttemptOutcome) -> ScriptedExecutor:
        return ScriptedExecutor(outcomes)

    return factory


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    yield
    logger = py_logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(py_logging.NOTSET)
    logger.propagate = True


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    del config
    for item in items:
        path = Path(str(item.path))
        if "integration" in path.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)
