"""JSON encode/decode service and property accessor used by the dispatcher.

Decoding goes through pydantic ``TypeAdapter`` so any type pydantic can
validate (models, dataclasses, TypedDicts, builtin containers) can be used as
an argument target type.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import TypeAdapter

from camunda_flow.errors import FieldProjectionError

logger = logging.getLogger(__name__)

# Target type used when a *->pojo argument does not declare one.
GENERIC_MAP = dict[str, Any]


@functools.lru_cache(maxsize=256)
def _cached_adapter(target_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target_type)


def _adapter(target_type: Any) -> TypeAdapter[Any]:
    try:
        return _cached_adapter(target_type)
    except TypeError:
        # Unhashable type expressions cannot be cached.
        return TypeAdapter(target_type)


class JsonCodec:
    """Encode handler results to JSON and decode JSON payloads into types."""

    def decode(self, payload: str | bytes | bytearray, target_type: Any = GENERIC_MAP) -> Any:
        if isinstance(payload, bytearray):
            payload = bytes(payload)
        if not isinstance(payload, (str, bytes)):
            raise TypeError(f"Cannot decode JSON from {type(payload).__name__}")
        return _adapter(target_type).validate_json(payload)

    def encode(self, value: Any) -> str:
        return _adapter(Any).dump_json(value).decode("utf-8")


def get_field(obj: Any, field_name: str) -> Any:
    """Read `field_name` from an object attribute or a mapping key."""

    if isinstance(obj, Mapping):
        if field_name in obj:
            return obj[field_name]
        raise FieldProjectionError(f"Key '{field_name}' not found in mapping")
    try:
        return getattr(obj, field_name)
    except AttributeError as e:
        raise FieldProjectionError(
            f"{type(obj).__name__} has no field '{field_name}'"
        ) from e
