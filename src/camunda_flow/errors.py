"""Exception taxonomy for the worker bridge.

Only :class:`HandlerInvocationError`, :class:`ResultEncodingError` and
:class:`ConversionError` ever reach the broker (as task failures). The others
are recovered where they are raised and only show up in logs.
"""

from __future__ import annotations


class CamundaFlowError(Exception):
    """Base class for all errors raised by this package."""


class QualifierParseError(CamundaFlowError, ValueError):
    """A qualifier expression could not be parsed."""


class QualifierEvalError(CamundaFlowError):
    """A qualifier could not be evaluated against a task's variables."""


class ConversionError(CamundaFlowError):
    """A raw task variable could not be converted for a handler argument."""

    def __init__(self, argument: str, message: str) -> None:
        super().__init__(f"Argument '{argument}': {message}")
        self.argument = argument


class HandlerInvocationError(CamundaFlowError):
    """The handler raised while processing a task."""


class FieldProjectionError(CamundaFlowError):
    """A named property could not be read from a handler's return value."""


class ResultEncodingError(CamundaFlowError):
    """A handler's return value could not be encoded as a broker variable."""


class BrokerError(CamundaFlowError):
    """The broker rejected a request or returned an unexpected response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BrokerUnreachableError(BrokerError):
    """The broker could not be reached at all (transport level failure)."""
