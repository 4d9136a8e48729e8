"""Route fetched tasks through declared handlers.

For every task delivered on a subscription the dispatcher runs, in order:

1. the qualifier check (a miss leaves the task untouched),
2. argument conversion,
3. the handler call,
4. optional projection of one property of the return value,
5. result encoding,
6. completion.

Each task yields one :class:`DispatchOutcome` and a single decision on that
outcome picks between ignoring, completing or failing the task. Failures are
reported with no retries left so the engine raises an incident instead of
rescheduling.
"""

from __future__ import annotations

import logging
import threading
import traceback
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from camunda_flow.client import (
    ExternalTask,
    ExternalTaskClient,
    ExternalTaskService,
    TopicSubscription,
)
from camunda_flow.config import WorkerSettings
from camunda_flow.conversion import convert_arguments
from camunda_flow.errors import HandlerInvocationError
from camunda_flow.qualifier import QualifierPredicate, evaluate, parse_qualifier
from camunda_flow.serialization import JsonCodec
from camunda_flow.subscription import SubscriptionDescriptor
from camunda_flow.variables import OutputVariables, encode_result, project_result

logger = logging.getLogger(__name__)

FAILURE_RETRIES = 0
FAILURE_RETRY_TIMEOUT = 0


@dataclass(frozen=True, slots=True)
class Skipped:
    """The qualifier did not match; the task is left for another worker."""

    qualifier: str


@dataclass(frozen=True, slots=True)
class Completed:
    variables: OutputVariables


@dataclass(frozen=True, slots=True)
class Failed:
    message: str
    details: str
    error: BaseException


DispatchOutcome = Skipped | Completed | Failed


@dataclass(frozen=True, slots=True)
class Registration:
    """A descriptor with its qualifier parsed once, ready to receive tasks."""

    descriptor: SubscriptionDescriptor
    predicate: QualifierPredicate | None
    lock_duration: int

    @property
    def topic(self) -> str:
        return self.descriptor.topic


def _failure_message(topic: str) -> str:
    return f"Task triggered by subscription to topic {topic} failed"


def _failure_details(error: BaseException) -> str:
    cause = error.__cause__ if isinstance(error, HandlerInvocationError) else None
    root = cause or error
    return "".join(traceback.format_exception(type(root), root, root.__traceback__)).strip()


class Dispatcher:
    """Owns the declared subscriptions and runs tasks through their handlers."""

    def __init__(
        self,
        client: ExternalTaskClient,
        descriptors: Iterable[SubscriptionDescriptor],
        settings: WorkerSettings,
        codec: JsonCodec | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._codec = codec or JsonCodec()
        self._registrations = tuple(self._prepare(d) for d in descriptors)
        self._subscriptions: list[TopicSubscription] = []
        self._registered = False
        self._lock = threading.Lock()

    def _prepare(self, descriptor: SubscriptionDescriptor) -> Registration:
        return Registration(
            descriptor=descriptor,
            predicate=parse_qualifier(descriptor.qualifier),
            lock_duration=descriptor.lock_duration or self._settings.lock_duration,
        )

    @property
    def registrations(self) -> tuple[Registration, ...]:
        return self._registrations

    @property
    def subscriptions(self) -> list[TopicSubscription]:
        return list(self._subscriptions)

    @property
    def is_registered(self) -> bool:
        return self._registered

    def register(self) -> list[TopicSubscription]:
        """Open one subscription per descriptor, in declaration order.

        Calling this more than once does not open duplicate subscriptions.
        """

        with self._lock:
            if self._registered:
                logger.warning("Subscriptions already registered, ignoring")
                return list(self._subscriptions)

            for registration in self._registrations:
                logger.debug(
                    "Subscribing handler %s",
                    registration.descriptor.name,
                    extra={"topic": registration.topic},
                )
                subscription = self._client.subscribe(
                    registration.topic,
                    registration.lock_duration,
                    self._callback(registration),
                )
                self._subscriptions.append(subscription)
            self._registered = True

        logger.info("Registered %d subscription(s)", len(self._subscriptions))
        return list(self._subscriptions)

    def close(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.close()

    def _callback(self, registration: Registration):
        def callback(task: ExternalTask, service: ExternalTaskService) -> None:
            self.handle(registration, task, service)

        return callback

    def process(self, registration: Registration, task: ExternalTask) -> DispatchOutcome:
        """Run the pipeline for one task without talking to the engine."""

        descriptor = registration.descriptor
        if not evaluate(registration.predicate, task.variables):
            return Skipped(qualifier=str(registration.predicate))

        try:
            args = convert_arguments(descriptor.arguments, task.variables, self._codec)
            result = self._invoke(descriptor, args)
            result = project_result(result, descriptor.return_value_property)
            variables = encode_result(
                result,
                descriptor.result,
                self._codec,
                json_transient=self._settings.json_value_transient,
            )
        except Exception as e:
            return Failed(
                message=_failure_message(descriptor.topic),
                details=_failure_details(e),
                error=e,
            )
        return Completed(variables=variables)

    def _invoke(self, descriptor: SubscriptionDescriptor, args: list[Any]) -> Any:
        try:
            return descriptor.handler(*args)
        except Exception as e:
            raise HandlerInvocationError(f"{descriptor.name} raised {type(e).__name__}: {e}") from e

    def handle(
        self, registration: Registration, task: ExternalTask, service: ExternalTaskService
    ) -> DispatchOutcome:
        """Process a task and report the outcome to the engine."""

        context = {"topic": registration.topic, "task_id": task.id}
        outcome = self.process(registration, task)

        if isinstance(outcome, Skipped):
            logger.debug(
                "Task ignored because qualifier %s does not match", outcome.qualifier, extra=context
            )
            return outcome

        if isinstance(outcome, Completed):
            try:
                service.complete(task, outcome.variables)
                return outcome
            except Exception as e:
                outcome = Failed(
                    message=_failure_message(registration.topic),
                    details=_failure_details(e),
                    error=e,
                )

        logger.error(outcome.message, exc_info=outcome.error, extra=context)
        service.handle_failure(
            task,
            outcome.message,
            outcome.details,
            FAILURE_RETRIES,
            FAILURE_RETRY_TIMEOUT,
        )
        return outcome
