"""Configuration for the external task worker.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

import socket

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_worker_id() -> str:
    return f"camunda-flow-{socket.gethostname()}"


class WorkerSettings(BaseSettings):
    """Settings for the worker bridge.

    Environment variables:
    - CAMUNDA_BASE_URL                (required)
    - CAMUNDA_LOCK_DURATION           (optional, milliseconds)
    - CAMUNDA_JSON_VALUE_TRANSIENT    (optional)
    - CAMUNDA_ASYNC_RESPONSE_TIMEOUT  (optional, milliseconds)
    - CAMUNDA_WORKER_ID               (optional)
    - CAMUNDA_MAX_TASKS               (optional)
    - CAMUNDA_WORKER_THREADS          (optional)
    - CAMUNDA_BOOTSTRAP_RETRY_SECONDS (optional)
    - LOG_LEVEL                       (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkerSettings(_env_file=path_to_env)`.
    """

    base_url: str = Field(
        default="",
        validation_alias="CAMUNDA_BASE_URL",
        description="Engine REST base URL, e.g. http://localhost:8080/engine-rest",
    )
    lock_duration: int = Field(
        default=30_000,
        gt=0,
        validation_alias="CAMUNDA_LOCK_DURATION",
        description="Default lock duration (ms) for fetched tasks",
    )
    json_value_transient: bool = Field(
        default=True,
        validation_alias="CAMUNDA_JSON_VALUE_TRANSIENT",
        description=(
            "Whether JSON encoded results are sent as transient variables "
            "(not persisted by the engine past the task completion)."
        ),
    )
    async_response_timeout: int = Field(
        default=10_000,
        ge=0,
        validation_alias="CAMUNDA_ASYNC_RESPONSE_TIMEOUT",
        description="Long polling timeout (ms) for fetch-and-lock requests",
    )
    worker_id: str = Field(
        default_factory=_default_worker_id,
        validation_alias="CAMUNDA_WORKER_ID",
        description="Worker identity reported to the engine when locking tasks",
    )
    max_tasks: int = Field(
        default=10,
        gt=0,
        validation_alias="CAMUNDA_MAX_TASKS",
        description="Maximum number of tasks fetched per poll",
    )
    worker_threads: int = Field(
        default=8,
        gt=0,
        validation_alias="CAMUNDA_WORKER_THREADS",
        description="Size of the thread pool running task handlers",
    )
    bootstrap_retry_seconds: float = Field(
        default=5.0,
        gt=0,
        validation_alias="CAMUNDA_BOOTSTRAP_RETRY_SECONDS",
        description="Delay between broker reachability probes at startup",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _require_base_url(self) -> WorkerSettings:
        if not self.base_url.strip():
            raise ValueError("CAMUNDA_BASE_URL is required")
        self.base_url = self.base_url.strip().rstrip("/")
        return self
