"""Startup loop that waits for the engine before registering subscriptions.

The worker must come up on its own once the engine does, so an unreachable
engine is retried forever at a fixed interval. Registration happens once.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

from camunda_flow.client import ExternalTaskClient
from camunda_flow.dispatcher import Dispatcher

logger = logging.getLogger(__name__)

DEFAULT_RETRY_INTERVAL_SECONDS = 5.0


class BootstrapState(str, Enum):
    UNREGISTERED = "unregistered"
    PROBING = "probing"
    REGISTERED = "registered"


class Bootstrap:
    """Probe the engine until it answers, then register every subscription."""

    def __init__(
        self,
        client: ExternalTaskClient,
        dispatcher: Dispatcher,
        *,
        retry_interval: float = DEFAULT_RETRY_INTERVAL_SECONDS,
    ) -> None:
        if retry_interval <= 0:
            raise ValueError("retry_interval must be positive")
        self._client = client
        self._dispatcher = dispatcher
        self._retry_interval = retry_interval
        self._state = BootstrapState.UNREGISTERED
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.attempts = 0

    @property
    def state(self) -> BootstrapState:
        return self._state

    def run(self, stop_event: threading.Event | None = None) -> bool:
        """Block until subscriptions are registered.

        Returns True once registered, False if stopped first.
        """

        stop = stop_event or self._stop
        with self._lock:
            if self._state is BootstrapState.REGISTERED:
                return True
            self._state = BootstrapState.PROBING

        while not stop.is_set():
            self.attempts += 1
            if self._client.probe_reachable():
                logger.info(
                    "Engine %s is accessible, registering subscriptions",
                    self._client.base_url,
                    extra={"attempt": self.attempts},
                )
                self._dispatcher.register()
                self._state = BootstrapState.REGISTERED
                return True

            logger.warning(
                "Engine %s is not accessible, subscription initialization aborted, "
                "will retry in %.1fs",
                self._client.base_url,
                self._retry_interval,
                extra={"attempt": self.attempts},
            )
            stop.wait(self._retry_interval)

        logger.info("Bootstrap stopped before the engine became reachable")
        self._state = BootstrapState.UNREGISTERED
        return False

    def start(self) -> threading.Thread:
        """Run :meth:`run` on a daemon thread so startup is not blocked."""

        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self.run, name="bootstrap", daemon=True)
                self._thread.start()
            return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout)
