"""Unit tests for result encoding and the wire variable format."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import pytest
from pydantic import BaseModel

from camunda_flow.errors import ResultEncodingError
from camunda_flow.serialization import JsonCodec
from camunda_flow.variables import (
    TypedValue,
    ValueType,
    encode_result,
    from_wire,
    project_result,
    to_wire,
    variables_from_wire,
)


class Quote(BaseModel):
    id: int
    tags: list[str] = []
    created_on: datetime | None = None


@dataclass
class Totals:
    net: int
    gross: int


def test_none_encodes_as_null() -> None:
    assert encode_result(None, "result") == {"result": TypedValue.null()}


def test_bytes_encode_as_binary() -> None:
    out = encode_result(bytearray(b"\x01\x02"), "result")

    assert out["result"].type is ValueType.BYTES
    assert out["result"].value == b"\x01\x02"


def test_text_encodes_as_string() -> None:
    assert encode_result("done", "status") == {"status": TypedValue.string("done")}


def test_int_encodes_as_long() -> None:
    assert encode_result(42, "count") == {"count": TypedValue.long(42)}


@pytest.mark.parametrize("value", [True, 1.5, ["a"]])
def test_non_long_scalars_take_the_json_branch(value: object) -> None:
    typed = encode_result(value, "result")["result"]

    assert typed.type is ValueType.JSON


def test_objects_encode_as_json_with_transient_flag() -> None:
    out = encode_result(Quote(id=1), "result", json_transient=True)

    assert out["result"].type is ValueType.JSON
    assert out["result"].transient is True
    assert JsonCodec().decode(out["result"].value) == {"id": 1, "tags": [], "created_on": None}

    persistent = encode_result(Quote(id=1), "result", json_transient=False)
    assert persistent["result"].transient is False


def test_unserialisable_result_raises() -> None:
    with pytest.raises(ResultEncodingError):
        encode_result(object(), "result")


@pytest.mark.parametrize(
    ("value", "target_type"),
    [
        (Quote(id=7, tags=["a", "b"], created_on=datetime(2023, 10, 20, 17, 53, tzinfo=UTC)), Quote),
        (Totals(net=10, gross=12), Totals),
        ({"nested": {"list": [1, 2, {"k": "v"}]}, "flag": False}, dict),
        ([1, "two", None, 3.5], list),
    ],
)
def test_json_branch_round_trips_through_codec(value: object, target_type: type) -> None:
    codec = JsonCodec()
    typed = encode_result(value, "result", codec)["result"]

    assert codec.decode(typed.value, target_type) == value


def test_project_result_reads_attribute_and_key() -> None:
    assert project_result(Quote(id=3), "id") == 3
    assert project_result({"number": "Q-1"}, "number") == "Q-1"
    assert project_result(Quote(id=3), None) == Quote(id=3)


def test_project_result_failure_gives_none(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="camunda_flow.variables"):
        assert project_result(Quote(id=3), "missing") is None
        assert project_result(None, "id") is None

    assert "missing" in caplog.text


def test_project_result_swallows_accessor_errors() -> None:
    class Pending:
        @property
        def id(self) -> int:
            raise ValueError("not computed yet")

    assert project_result(Pending(), "id") is None


def test_to_wire() -> None:
    wire = to_wire(
        {
            "a": TypedValue.null(),
            "b": TypedValue.bytes_(b"Hello"),
            "c": TypedValue.long(5),
            "d": TypedValue.json('{"x":1}', transient=True),
        }
    )

    assert wire == {
        "a": {"value": None, "type": "Null"},
        "b": {"value": "SGVsbG8=", "type": "Bytes"},
        "c": {"value": 5, "type": "Long"},
        "d": {"value": '{"x":1}', "type": "Json", "valueInfo": {"transient": True}},
    }


def test_from_wire_maps_engine_types() -> None:
    variables = variables_from_wire(
        {
            "status": {"type": "Integer", "value": 2, "valueInfo": {}},
            "amount": {"type": "Double", "value": 1.5, "valueInfo": {}},
            "name": {"type": "String", "value": "x", "valueInfo": {}},
            "flag": {"type": "Boolean", "value": True, "valueInfo": {}},
            "blob": {"type": "Bytes", "value": "SGVsbG8=", "valueInfo": {}},
            "doc": {"type": "Json", "value": '{"state": 3}', "valueInfo": {}},
            "obj": {
                "type": "Object",
                "value": '{"a": 1}',
                "valueInfo": {"serializationDataFormat": "application/json"},
            },
            "empty": {"type": "Null", "value": None, "valueInfo": {}},
        }
    )

    assert variables == {
        "status": 2,
        "amount": 1.5,
        "name": "x",
        "flag": True,
        "blob": b"Hello",
        "doc": {"state": 3},
        "obj": {"a": 1},
        "empty": None,
    }


def test_from_wire_keeps_unparseable_json_as_text() -> None:
    assert from_wire({"type": "Json", "value": "{oops"}) == "{oops"
