"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from camunda_flow.client import ExternalTask
from camunda_flow.config import WorkerSettings


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> WorkerSettings:
    """Provide worker settings that ignore the local environment."""
    for name in (
        "CAMUNDA_LOCK_DURATION",
        "CAMUNDA_JSON_VALUE_TRANSIENT",
        "CAMUNDA_WORKER_ID",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CAMUNDA_BASE_URL", "http://engine.test/engine-rest")
    monkeypatch.setenv("CAMUNDA_WORKER_ID", "test-worker")
    return WorkerSettings(_env_file=None)


@pytest.fixture
def make_task() -> Callable[..., ExternalTask]:
    """Build an ExternalTask carrying the given (already decoded) variables."""

    def _make(topic: str = "quote.create", task_id: str = "task-1", **variables: Any) -> ExternalTask:
        return ExternalTask(
            id=task_id,
            topic_name=topic,
            worker_id="test-worker",
            variables=dict(variables),
        )

    return _make
