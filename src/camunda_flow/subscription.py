"""Declarations binding a topic to a handler.

A :class:`SubscriptionDescriptor` is built once at wiring time (by hand, from
a config file, or by any other registration mechanism) and handed to the
:class:`~camunda_flow.dispatcher.Dispatcher`. Nothing here inspects the
handler; it only has to be callable with the converted arguments in order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ArgumentParsingType(str, Enum):
    """How a raw task variable is turned into a handler argument."""

    BYTES_TO_STRING = "bytes->string"
    BASE64_TO_STRING = "base64->string"
    BASE64_TO_BYTES = "base64->bytes"
    STRING_TO_POJO = "string->pojo"
    BYTES_TO_POJO = "bytes->pojo"
    NUMBER_TO_STRING = "number->string"
    DEFAULT = "default"

    @property
    def is_pojo(self) -> bool:
        return self in (ArgumentParsingType.STRING_TO_POJO, ArgumentParsingType.BYTES_TO_POJO)


@dataclass(frozen=True, slots=True)
class ArgumentSpec:
    """One positional handler argument, read from the task variable `name`."""

    name: str
    parsing_type: ArgumentParsingType = ArgumentParsingType.DEFAULT
    target_type: Any = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Argument name must not be empty")
        if not isinstance(self.parsing_type, ArgumentParsingType):
            object.__setattr__(self, "parsing_type", ArgumentParsingType(self.parsing_type))

    @classmethod
    def parse(cls, value: str, target_type: Any = None) -> ArgumentSpec:
        """Parse the compact ``name:rule`` notation, e.g. ``payload:string->pojo``.

        A bare ``name`` uses the default rule.
        """

        name, sep, rule = value.partition(":")
        name = name.strip()
        rule = rule.strip()
        if not sep or not rule:
            return cls(name=name, target_type=target_type)
        try:
            parsing_type = ArgumentParsingType(rule)
        except ValueError as e:
            raise ValueError(f"Unknown argument parsing rule '{rule}' for '{name}'") from e
        return cls(name=name, parsing_type=parsing_type, target_type=target_type)


def _normalise_arguments(arguments: Iterable[ArgumentSpec | str]) -> tuple[ArgumentSpec, ...]:
    specs: list[ArgumentSpec] = []
    for argument in arguments:
        if isinstance(argument, ArgumentSpec):
            specs.append(argument)
        elif isinstance(argument, str):
            specs.append(ArgumentSpec.parse(argument))
        else:
            raise TypeError(f"Unsupported argument declaration: {argument!r}")
    return tuple(specs)


@dataclass(frozen=True, slots=True)
class SubscriptionDescriptor:
    """A handler bound to a topic.

    Attributes:
        topic: Topic name the worker subscribes to.
        handler: Callable invoked with one positional argument per
            entry in ``arguments``.
        arguments: Argument declarations, in invocation order. Compact
            ``name:rule`` strings are accepted and normalised.
        result: Name of the output variable the return value is stored in.
        qualifier: Optional routing expression (``status=1,2`` or
            ``status!=3``); see :mod:`camunda_flow.qualifier`.
        return_value_property: Optional attribute/key of the return value
            to store instead of the whole value.
        lock_duration: Lock duration in milliseconds. ``None`` uses the
            configured default.
    """

    topic: str
    handler: Callable[..., Any]
    arguments: tuple[ArgumentSpec, ...] = field(default_factory=tuple)
    result: str = "result"
    qualifier: str | None = None
    return_value_property: str | None = None
    lock_duration: int | None = None

    def __post_init__(self) -> None:
        if not self.topic or not self.topic.strip():
            raise ValueError("Subscription topic must not be empty")
        if not self.result or not self.result.strip():
            raise ValueError("Result variable name must not be empty")
        if not callable(self.handler):
            raise TypeError(f"Handler for topic '{self.topic}' is not callable")
        if self.lock_duration is not None and self.lock_duration <= 0:
            raise ValueError("lock_duration must be a positive number of milliseconds")
        object.__setattr__(self, "arguments", _normalise_arguments(self.arguments))

    @property
    def name(self) -> str:
        """Human readable handler name used in logs."""

        return getattr(self.handler, "__qualname__", None) or repr(self.handler)
