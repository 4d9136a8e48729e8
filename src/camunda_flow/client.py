"""REST client for the engine's external task API.

This wraps the handful of endpoints a worker needs (fetch-and-lock, complete,
failure) behind a small class so dispatch code never builds HTTP requests and
tests can swap the client for a mock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

import requests

from camunda_flow.errors import BrokerError, BrokerUnreachableError
from camunda_flow.variables import TypedValue, to_wire, variables_from_wire

logger = logging.getLogger(__name__)

# Pause before polling again after a failed fetch.
POLL_ERROR_BACKOFF_SECONDS = 5.0
# Pause between polls when long polling is disabled and nothing was fetched.
IDLE_POLL_SECONDS = 1.0
# How often a poller blocked on busy workers rechecks for shutdown.
SLOT_WAIT_SECONDS = 0.5
PROBE_TIMEOUT_SECONDS = 10.0
REQUEST_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class ExternalTask:
    """A locked task as delivered by fetch-and-lock."""

    id: str
    topic_name: str
    worker_id: str
    variables: dict[str, Any] = field(default_factory=dict)
    process_instance_id: str | None = None
    process_definition_key: str | None = None
    activity_id: str | None = None
    business_key: str | None = None
    retries: int | None = None

    @staticmethod
    def from_json(obj: Mapping[str, Any]) -> ExternalTask:
        return ExternalTask(
            id=str(obj["id"]),
            topic_name=str(obj.get("topicName") or ""),
            worker_id=str(obj.get("workerId") or ""),
            variables=variables_from_wire(obj.get("variables")),
            process_instance_id=obj.get("processInstanceId"),
            process_definition_key=obj.get("processDefinitionKey"),
            activity_id=obj.get("activityId"),
            business_key=obj.get("businessKey"),
            retries=obj.get("retries"),
        )


class ExternalTaskService(Protocol):
    """The completion side of the broker, as seen by a task handler."""

    def complete(self, task: ExternalTask, variables: Mapping[str, TypedValue]) -> None: ...

    def handle_failure(
        self,
        task: ExternalTask,
        error_message: str,
        error_details: str,
        retries: int,
        retry_timeout: int,
    ) -> None: ...


TaskHandler = Callable[[ExternalTask, ExternalTaskService], None]


class TopicSubscription:
    """Polls one topic on a daemon thread and hands tasks to a thread pool."""

    def __init__(
        self,
        *,
        client: ExternalTaskClient,
        topic: str,
        lock_duration: int,
        handler: TaskHandler,
        executor: ThreadPoolExecutor,
        slots: threading.BoundedSemaphore,
    ) -> None:
        self.topic = topic
        self.lock_duration = lock_duration
        self._client = client
        self._handler = handler
        self._executor = executor
        self._slots = slots
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._poll,
            name=f"subscription-{topic}",
            daemon=True,
        )

    @property
    def is_open(self) -> bool:
        return self._thread.is_alive() and not self._stop.is_set()

    def open(self) -> TopicSubscription:
        self._thread.start()
        logger.info(
            "Subscription opened",
            extra={"topic": self.topic, "lock_duration": self.lock_duration},
        )
        return self

    def close(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _reserve_slots(self) -> int:
        """Block until a worker slot is free, then take as many as allowed."""

        while not self._stop.is_set():
            if self._slots.acquire(timeout=SLOT_WAIT_SECONDS):
                break
        else:
            return 0
        reserved = 1
        while reserved < self._client.max_tasks and self._slots.acquire(blocking=False):
            reserved += 1
        return reserved

    def _release_slots(self, count: int) -> None:
        for _ in range(count):
            self._slots.release()

    def _poll(self) -> None:
        while not self._stop.is_set():
            reserved = self._reserve_slots()
            if not reserved:
                break
            try:
                tasks = self._client.fetch_and_lock(
                    self.topic, self.lock_duration, max_tasks=reserved
                )
            except (requests.RequestException, BrokerError):
                self._release_slots(reserved)
                logger.warning(
                    "Fetch and lock failed, will poll again",
                    exc_info=True,
                    extra={"topic": self.topic},
                )
                self._stop.wait(POLL_ERROR_BACKOFF_SECONDS)
                continue

            # The engine never returns more than requested, but guard the count.
            tasks = tasks[:reserved]
            self._release_slots(reserved - len(tasks))
            submitted = 0
            try:
                for task in tasks:
                    self._executor.submit(self._run, task)
                    submitted += 1
            except RuntimeError:
                # Executor shut down underneath us; the locks simply expire.
                self._release_slots(len(tasks) - submitted)
                logger.warning("Task executor is closed, stopping", extra={"topic": self.topic})
                break
            if not tasks and self._client.async_response_timeout == 0:
                self._stop.wait(IDLE_POLL_SECONDS)

    def _run(self, task: ExternalTask) -> None:
        try:
            self._handler(task, self._client)
        except Exception:
            logger.exception(
                "Unhandled error in task handler",
                extra={"topic": self.topic, "task_id": task.id},
            )
        finally:
            self._slots.release()


class ExternalTaskClient:
    """Small wrapper around the external task REST endpoints."""

    def __init__(
        self,
        *,
        base_url: str,
        worker_id: str,
        async_response_timeout: int = 10_000,
        max_tasks: int = 10,
        worker_threads: int = 8,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Engine base URL is required")
        if not worker_id:
            raise ValueError("Worker id is required")

        self._base_url = base_url.rstrip("/")
        self.worker_id = worker_id
        self.async_response_timeout = async_response_timeout
        self.max_tasks = max_tasks
        self._worker_threads = worker_threads
        # One slot per worker thread; a task holds its slot from fetch until its handler returns.
        self._slots = threading.BoundedSemaphore(worker_threads)
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": "camunda-flow",
            }
        )
        self._executor: ThreadPoolExecutor | None = None
        self._subscriptions: list[TopicSubscription] = []
        self._lock = threading.Lock()

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def subscriptions(self) -> list[TopicSubscription]:
        return list(self._subscriptions)

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def _post(self, path: str, payload: dict[str, Any], *, timeout: float) -> requests.Response:
        try:
            resp = self._session.post(self._url(path), json=payload, timeout=timeout)
        except requests.ConnectionError as e:
            raise BrokerUnreachableError(f"Engine at {self._base_url} is not reachable") from e
        if resp.status_code >= 400:
            raise BrokerError(
                f"POST {path} failed with HTTP {resp.status_code}: {resp.text[:500]}",
                status_code=resp.status_code,
            )
        return resp

    def probe_reachable(self) -> bool:
        """Return whether the engine answers HTTP at all.

        Any HTTP status counts as reachable; only transport errors do not.
        """

        try:
            self._session.get(self._base_url, timeout=PROBE_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.debug("Engine probe failed: %s", e, extra={"base_url": self._base_url})
            return False
        return True

    def fetch_and_lock(
        self, topic: str, lock_duration: int, *, max_tasks: int | None = None
    ) -> list[ExternalTask]:
        payload = {
            "workerId": self.worker_id,
            "maxTasks": max_tasks or self.max_tasks,
            "usePriority": True,
            "asyncResponseTimeout": self.async_response_timeout,
            "topics": [{"topicName": topic, "lockDuration": lock_duration}],
        }
        # The engine holds the request open for up to asyncResponseTimeout.
        timeout = self.async_response_timeout / 1000 + REQUEST_TIMEOUT_SECONDS
        resp = self._post("external-task/fetchAndLock", payload, timeout=timeout)
        data = resp.json()
        if not isinstance(data, list):
            raise BrokerError("fetchAndLock returned an unexpected payload")
        tasks = [ExternalTask.from_json(item) for item in data]
        if tasks:
            logger.debug("Fetched %d task(s)", len(tasks), extra={"topic": topic})
        return tasks

    def complete(self, task: ExternalTask, variables: Mapping[str, TypedValue]) -> None:
        payload = {"workerId": self.worker_id, "variables": to_wire(variables)}
        self._post(f"external-task/{task.id}/complete", payload, timeout=REQUEST_TIMEOUT_SECONDS)
        logger.info("Task completed", extra={"topic": task.topic_name, "task_id": task.id})

    def handle_failure(
        self,
        task: ExternalTask,
        error_message: str,
        error_details: str,
        retries: int,
        retry_timeout: int,
    ) -> None:
        payload = {
            "workerId": self.worker_id,
            "errorMessage": error_message,
            "errorDetails": error_details,
            "retries": retries,
            "retryTimeout": retry_timeout,
        }
        self._post(f"external-task/{task.id}/failure", payload, timeout=REQUEST_TIMEOUT_SECONDS)
        logger.info(
            "Task failure reported",
            extra={"topic": task.topic_name, "task_id": task.id, "retries": retries},
        )

    def subscribe(self, topic: str, lock_duration: int, handler: TaskHandler) -> TopicSubscription:
        """Start polling `topic`; each fetched task is passed to `handler`."""

        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._worker_threads, thread_name_prefix="task"
                )
            subscription = TopicSubscription(
                client=self,
                topic=topic,
                lock_duration=lock_duration,
                handler=handler,
                executor=self._executor,
                slots=self._slots,
            )
            self._subscriptions.append(subscription)
        return subscription.open()

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
            executor, self._executor = self._executor, None
        for subscription in subscriptions:
            subscription.close(timeout=1.0)
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        self._session.close()
        logger.info("External task client closed")
