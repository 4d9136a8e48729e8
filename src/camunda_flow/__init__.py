"""Camunda Flow.

Bridges the engine's external task API to statically declared Python
handlers: qualifier routing, argument conversion, result encoding and a
bootstrap loop that waits for the engine to come up.
"""

__version__ = "0.1.0"

from camunda_flow.bootstrap import Bootstrap, BootstrapState
from camunda_flow.client import ExternalTask, ExternalTaskClient
from camunda_flow.config import WorkerSettings
from camunda_flow.dispatcher import Dispatcher
from camunda_flow.subscription import ArgumentParsingType, ArgumentSpec, SubscriptionDescriptor

__all__ = [
    "__version__",
    "ArgumentParsingType",
    "ArgumentSpec",
    "Bootstrap",
    "BootstrapState",
    "Dispatcher",
    "ExternalTask",
    "ExternalTaskClient",
    "SubscriptionDescriptor",
    "WorkerSettings",
]
