"""Qualifier expressions that route tasks on a shared topic.

Several handlers may subscribe to the same topic and use a qualifier to pick
the tasks that belong to them::

    status=1,2          # fire when `status` is 1 or 2
    status!=2,3         # fire unless `status` is 2 or 3
    quote.state=null    # nested lookup; `null` stands for 0

The resolved variable is always compared as an integer. Missing, non-numeric
or unresolvable values count as 0, so qualifiers can key off status-code like
variables that are not set yet.

Both parsing and evaluation fail open: a malformed expression gives no
predicate (every task matches) and an evaluation error counts as a match.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from camunda_flow.errors import QualifierEvalError, QualifierParseError

logger = logging.getLogger(__name__)

NULL_LITERAL = "null"


class ComparisonMode(str, Enum):
    EQUALS = "="
    NOT_EQUALS = "!="


@dataclass(frozen=True, slots=True)
class QualifierPredicate:
    """A parsed qualifier: ``<path><mode><literal>[,<literal>...]``."""

    variable_path: tuple[str, ...]
    mode: ComparisonMode
    literals: tuple[str, ...]

    def __str__(self) -> str:
        return f"{'.'.join(self.variable_path)}{self.mode.value}{','.join(self.literals)}"

    def resolve(self, variables: Mapping[str, Any]) -> Any:
        """Look up the variable path, descending only through mappings."""

        head, *rest = self.variable_path
        value = variables.get(head)
        for segment in rest:
            if not isinstance(value, Mapping):
                return None
            value = value.get(segment)
        return value

    def matches(self, variables: Mapping[str, Any]) -> bool:
        """Evaluate against a task's variables. Errors count as a match."""

        try:
            return self._matches(variables)
        except Exception:
            logger.exception(
                "Error evaluating qualifier, treating task as a match",
                extra={"qualifier": str(self)},
            )
            return True

    def _matches(self, variables: Mapping[str, Any]) -> bool:
        actual = coerce_to_int(self.resolve(variables))
        expected = [literal_to_int(literal) for literal in self.literals]
        if self.mode is ComparisonMode.EQUALS:
            return any(value == actual for value in expected)
        return all(value != actual for value in expected)


def coerce_to_int(value: Any) -> int:
    """Coerce a task variable to an integer, defaulting to 0."""

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        try:
            whole = int(value)
        except (OverflowError, ValueError):
            # inf / nan
            return 0
        # Only integral values (2.0) count.
        return whole if whole == value else 0
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0


def literal_to_int(literal: str) -> int:
    if literal == NULL_LITERAL:
        return 0
    try:
        return int(literal)
    except ValueError as e:
        raise QualifierEvalError(f"Qualifier literal '{literal}' is not an integer") from e


def _split(expression: str) -> tuple[str, ComparisonMode, str]:
    if ComparisonMode.NOT_EQUALS.value in expression:
        path, _, values = expression.partition(ComparisonMode.NOT_EQUALS.value)
        return path, ComparisonMode.NOT_EQUALS, values
    path, sep, values = expression.partition(ComparisonMode.EQUALS.value)
    if not sep:
        raise QualifierParseError(f"Qualifier '{expression}' has no '=' or '!=' operator")
    return path, ComparisonMode.EQUALS, values


def parse_qualifier(expression: str | None) -> QualifierPredicate | None:
    """Parse a qualifier expression.

    Returns ``None`` for an empty expression, and also (after logging) for a
    malformed one; ``None`` is treated as "always match" by :func:`evaluate`.
    """

    if expression is None or not expression.strip():
        return None
    try:
        path, mode, values = _split(expression.strip())
        segments = tuple(segment.strip() for segment in path.split("."))
        if not all(segments):
            raise QualifierParseError(f"Qualifier '{expression}' has an empty variable path")
        literals = tuple(value.strip() for value in values.split(","))
        return QualifierPredicate(variable_path=segments, mode=mode, literals=literals)
    except QualifierParseError:
        logger.exception(
            "Error building qualifier, every task will match", extra={"qualifier": expression}
        )
        return None


def evaluate(predicate: QualifierPredicate | None, variables: Mapping[str, Any]) -> bool:
    """Return whether a task with `variables` should be handled."""

    if predicate is None:
        return True
    return predicate.matches(variables)
