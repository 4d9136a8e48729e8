"""Unit tests for argument conversion."""

from __future__ import annotations

import base64
import logging
from decimal import Decimal

import pytest
from pydantic import BaseModel

from camunda_flow.conversion import convert_argument, convert_arguments
from camunda_flow.errors import ConversionError
from camunda_flow.subscription import ArgumentParsingType, ArgumentSpec


class Quote(BaseModel):
    id: int
    supplierreference: str | None = None


def _spec(rule: ArgumentParsingType, target_type: object = None) -> ArgumentSpec:
    return ArgumentSpec(name="arg", parsing_type=rule, target_type=target_type)


def test_base64_to_string() -> None:
    assert convert_argument(_spec(ArgumentParsingType.BASE64_TO_STRING), "SGVsbG8=") == "Hello"


def test_base64_to_bytes() -> None:
    raw = base64.b64encode(b"\x00\x01binary").decode("ascii")

    assert convert_argument(_spec(ArgumentParsingType.BASE64_TO_BYTES), raw) == b"\x00\x01binary"


def test_invalid_base64_raises() -> None:
    with pytest.raises(ConversionError, match="arg"):
        convert_argument(_spec(ArgumentParsingType.BASE64_TO_STRING), "not base64!")


def test_bytes_to_string() -> None:
    text = "Grüße"

    assert convert_argument(_spec(ArgumentParsingType.BYTES_TO_STRING), text.encode()) == text


def test_bytes_to_string_rejects_numbers() -> None:
    with pytest.raises(ConversionError):
        convert_argument(_spec(ArgumentParsingType.BYTES_TO_STRING), 12)


def test_number_to_string() -> None:
    spec = _spec(ArgumentParsingType.NUMBER_TO_STRING)

    assert convert_argument(spec, 42) == "42"
    assert convert_argument(spec, Decimal("1.50")) == "1.50"
    assert convert_argument(spec, None) is None


def test_string_to_pojo_with_target_type() -> None:
    spec = _spec(ArgumentParsingType.STRING_TO_POJO, Quote)

    quote = convert_argument(spec, '{"id": 34013, "supplierreference": "239473847289"}')

    assert quote == Quote(id=34013, supplierreference="239473847289")


def test_bytes_to_pojo_with_target_type() -> None:
    spec = _spec(ArgumentParsingType.BYTES_TO_POJO, Quote)

    assert convert_argument(spec, b'{"id": 1}') == Quote(id=1)


def test_pojo_without_target_type_falls_back_to_map(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="camunda_flow.conversion"):
        value = convert_argument(_spec(ArgumentParsingType.STRING_TO_POJO), '{"id": 1}')

    assert value == {"id": 1}
    assert "assuming it's a map" in caplog.text


@pytest.mark.parametrize("raw", ['{"id": "not-a-number"}', "{broken", None, 5])
def test_pojo_decode_failure_gives_none(raw: object) -> None:
    assert convert_argument(_spec(ArgumentParsingType.STRING_TO_POJO, Quote), raw) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(7, 7), (7.9, 7), (-7.9, -7), (Decimal("12"), 12)],
)
def test_default_widens_numbers_to_int(raw: object, expected: int) -> None:
    value = convert_argument(_spec(ArgumentParsingType.DEFAULT), raw)

    assert value == expected
    assert type(value) is int


@pytest.mark.parametrize("raw", ["text", None, True, {"a": 1}, b"bytes"])
def test_default_passes_non_numbers_through(raw: object) -> None:
    assert convert_argument(_spec(ArgumentParsingType.DEFAULT), raw) is raw


@pytest.mark.parametrize("raw", [Decimal("NaN"), Decimal("Infinity"), float("inf")])
def test_default_rejects_non_finite_numbers(raw: object) -> None:
    with pytest.raises(ConversionError, match="cannot be represented"):
        convert_argument(_spec(ArgumentParsingType.DEFAULT), raw)


def test_default_rejects_values_outside_int64() -> None:
    with pytest.raises(ConversionError, match="64-bit"):
        convert_argument(_spec(ArgumentParsingType.DEFAULT), 2**70)


def test_convert_arguments_keeps_declaration_order() -> None:
    specs = (
        ArgumentSpec.parse("payload:string->pojo", target_type=Quote),
        ArgumentSpec.parse("greeting:base64->string"),
        ArgumentSpec.parse("count"),
        ArgumentSpec.parse("missing"),
    )
    variables = {"count": 3.0, "greeting": "SGVsbG8=", "payload": '{"id": 1}'}

    args = convert_arguments(specs, variables)

    assert args == [Quote(id=1), "Hello", 3, None]
