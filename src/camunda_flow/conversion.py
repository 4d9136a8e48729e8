"""Convert loosely typed task variables into handler arguments."""

from __future__ import annotations

import base64
import binascii
import logging
import math
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from camunda_flow.errors import ConversionError
from camunda_flow.serialization import GENERIC_MAP, JsonCodec
from camunda_flow.subscription import ArgumentParsingType, ArgumentSpec

logger = logging.getLogger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def is_number(value: Any) -> bool:
    """True for int/float/Decimal values; bools are not numbers here."""

    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _as_bytes(spec: ArgumentSpec, raw: Any) -> bytes:
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw)
    raise ConversionError(spec.name, f"expected bytes, got {type(raw).__name__}")


def _bytes_to_string(spec: ArgumentSpec, raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return _as_bytes(spec, raw).decode("utf-8")
    except UnicodeDecodeError as e:
        raise ConversionError(spec.name, f"bytes are not valid UTF-8: {e}") from e


def _base64_decode(spec: ArgumentSpec, raw: Any) -> bytes:
    if not isinstance(raw, (str, bytes, bytearray)):
        raise ConversionError(spec.name, f"expected base64 text, got {type(raw).__name__}")
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConversionError(spec.name, f"invalid base64 payload: {e}") from e


def _to_int64(spec: ArgumentSpec, raw: int | float | Decimal) -> int:
    if isinstance(raw, Decimal):
        finite = raw.is_finite()
    else:
        finite = not isinstance(raw, float) or math.isfinite(raw)
    if not finite:
        raise ConversionError(spec.name, f"{raw} cannot be represented as an integer")
    value = int(raw)
    if not INT64_MIN <= value <= INT64_MAX:
        raise ConversionError(spec.name, f"{value} is outside the signed 64-bit range")
    return value


def _deserialize(spec: ArgumentSpec, raw: Any, codec: JsonCodec) -> Any:
    target_type = spec.target_type
    if target_type is None:
        logger.warning(
            "(%s) No target type declared for argument %s, assuming it's a map",
            spec.parsing_type.value,
            spec.name,
        )
        target_type = GENERIC_MAP
    try:
        return codec.decode(raw, target_type)
    except (ValidationError, TypeError, ValueError):
        logger.exception(
            "Error while converting %s to object for %s",
            spec.parsing_type.value,
            spec.name,
            extra={"argument": spec.name},
        )
        return None


def convert_argument(spec: ArgumentSpec, raw: Any, codec: JsonCodec | None = None) -> Any:
    """Convert one raw task variable according to `spec`.

    Raises:
        ConversionError: If a non-POJO rule cannot be applied to `raw`.
            POJO decode failures are logged and give ``None`` instead.
    """

    rule = spec.parsing_type

    if rule is ArgumentParsingType.BYTES_TO_STRING:
        return _bytes_to_string(spec, raw)
    if rule is ArgumentParsingType.BASE64_TO_BYTES:
        return _base64_decode(spec, raw)
    if rule is ArgumentParsingType.BASE64_TO_STRING:
        decoded = _base64_decode(spec, raw)
        try:
            return decoded.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConversionError(spec.name, f"decoded base64 is not valid UTF-8: {e}") from e
    if rule.is_pojo:
        return _deserialize(spec, raw, codec or JsonCodec())
    if rule is ArgumentParsingType.NUMBER_TO_STRING:
        if raw is None:
            return None
        return str(raw)

    if is_number(raw):
        logger.debug(
            "No conversion declared for argument %s, but it is a number: widening to int",
            spec.name,
        )
        return _to_int64(spec, raw)
    logger.debug("Argument %s has no conversion, passing through", spec.name)
    return raw


def convert_arguments(
    specs: Sequence[ArgumentSpec],
    variables: Mapping[str, Any],
    codec: JsonCodec | None = None,
) -> list[Any]:
    """Build the positional argument list for a handler, in declaration order."""

    codec = codec or JsonCodec()
    converted: list[Any] = []
    for spec in specs:
        raw = variables.get(spec.name)
        logger.debug(
            "Converting argument %s (present=%s)",
            spec.name,
            spec.name in variables,
            extra={"argument": spec.name, "rule": spec.parsing_type.value},
        )
        converted.append(convert_argument(spec, raw, codec))
    return converted
