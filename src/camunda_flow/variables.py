"""Typed broker variables.

Handlers return plain Python values; the engine wants typed variables. This
module maps in both directions:

* :func:`encode_result` turns a handler's return value into the output
  variable set sent with a task completion.
* :func:`from_wire` / :func:`to_wire` translate between the engine's REST
  representation (``{"value": ..., "type": ..., "valueInfo": {...}}``) and
  Python values.
"""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from camunda_flow.conversion import INT64_MAX, INT64_MIN
from camunda_flow.errors import ResultEncodingError
from camunda_flow.serialization import JsonCodec, get_field

logger = logging.getLogger(__name__)

JSON_DATA_FORMAT = "application/json"


class ValueType(str, Enum):
    NULL = "Null"
    BYTES = "Bytes"
    STRING = "String"
    LONG = "Long"
    JSON = "Json"


@dataclass(frozen=True, slots=True)
class TypedValue:
    value: Any
    type: ValueType
    transient: bool = False

    @classmethod
    def null(cls) -> TypedValue:
        return cls(value=None, type=ValueType.NULL)

    @classmethod
    def bytes_(cls, value: bytes) -> TypedValue:
        return cls(value=bytes(value), type=ValueType.BYTES)

    @classmethod
    def string(cls, value: str) -> TypedValue:
        return cls(value=value, type=ValueType.STRING)

    @classmethod
    def long(cls, value: int) -> TypedValue:
        return cls(value=value, type=ValueType.LONG)

    @classmethod
    def json(cls, value: str, *, transient: bool) -> TypedValue:
        return cls(value=value, type=ValueType.JSON, transient=transient)

    def to_wire(self) -> dict[str, Any]:
        """Render in the engine's REST variable format."""

        if self.type is ValueType.BYTES:
            value: Any = base64.b64encode(self.value).decode("ascii")
        else:
            value = self.value
        out: dict[str, Any] = {"value": value, "type": self.type.value}
        if self.transient:
            out["valueInfo"] = {"transient": True}
        return out


OutputVariables = dict[str, TypedValue]


def to_wire(variables: Mapping[str, TypedValue]) -> dict[str, dict[str, Any]]:
    return {name: typed.to_wire() for name, typed in variables.items()}


def _is_int64(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and INT64_MIN <= value <= INT64_MAX
    )


def encode_value(result: Any, codec: JsonCodec, *, json_transient: bool) -> TypedValue:
    """Pick the broker type for a single value."""

    if result is None:
        return TypedValue.null()
    if isinstance(result, (bytes, bytearray, memoryview)):
        return TypedValue.bytes_(bytes(result))
    if isinstance(result, str):
        return TypedValue.string(result)
    if _is_int64(result):
        return TypedValue.long(result)
    try:
        encoded = codec.encode(result)
    except Exception as e:
        raise ResultEncodingError(
            f"Cannot encode {type(result).__name__} result as JSON: {e}"
        ) from e
    return TypedValue.json(encoded, transient=json_transient)


def encode_result(
    result: Any,
    output_name: str,
    codec: JsonCodec | None = None,
    *,
    json_transient: bool = True,
) -> OutputVariables:
    """Build the output variable set for a handler return value.

    Raises:
        ResultEncodingError: If the value needs the JSON branch and cannot be
            serialised.
    """

    typed = encode_value(result, codec or JsonCodec(), json_transient=json_transient)
    return {output_name: typed}


def project_result(
    result: Any,
    property_name: str | None,
    accessor: Callable[[Any, str], Any] = get_field,
) -> Any:
    """Replace `result` with one of its fields when `property_name` is set.

    A failed lookup is logged and gives ``None``.
    """

    if not property_name:
        return result
    if result is None:
        logger.error("Cannot read '%s' from a None return value", property_name)
        return None
    try:
        return accessor(result, property_name)
    except Exception:
        logger.exception("Error while getting field value '%s'", property_name)
        return None


def _decode_json(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Variable declared as JSON does not parse; keeping raw text")
        return raw


def from_wire(variable: Mapping[str, Any]) -> Any:
    """Map one REST variable (``{"value", "type", "valueInfo"}``) to a Python value."""

    raw = variable.get("value")
    kind = str(variable.get("type") or "").lower()
    if raw is None or kind == "null":
        return None
    if kind in ("integer", "short", "long"):
        return int(raw)
    if kind == "double":
        return float(raw)
    if kind == "boolean":
        return bool(raw)
    if kind in ("bytes", "file") and isinstance(raw, str):
        return base64.b64decode(raw)
    if kind == "json":
        return _decode_json(raw)
    if kind == "object":
        info = variable.get("valueInfo") or {}
        if info.get("serializationDataFormat") == JSON_DATA_FORMAT:
            return _decode_json(raw)
    return raw


def variables_from_wire(variables: Mapping[str, Mapping[str, Any]] | None) -> dict[str, Any]:
    return {name: from_wire(variable) for name, variable in (variables or {}).items()}
