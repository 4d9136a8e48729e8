"""Unit tests for qualifier parsing and evaluation."""

from __future__ import annotations

import logging
from decimal import Decimal

import pytest

from camunda_flow.qualifier import (
    ComparisonMode,
    QualifierPredicate,
    coerce_to_int,
    evaluate,
    parse_qualifier,
)


def test_parse_equals() -> None:
    predicate = parse_qualifier("status=1,2")

    assert predicate == QualifierPredicate(
        variable_path=("status",), mode=ComparisonMode.EQUALS, literals=("1", "2")
    )


def test_parse_not_equals_with_nested_path() -> None:
    predicate = parse_qualifier("quote.state!=2,null")

    assert predicate is not None
    assert predicate.variable_path == ("quote", "state")
    assert predicate.mode is ComparisonMode.NOT_EQUALS
    assert predicate.literals == ("2", "null")
    assert str(predicate) == "quote.state!=2,null"


@pytest.mark.parametrize("expression", [None, "", "   "])
def test_empty_expression_means_no_predicate(expression: str | None) -> None:
    assert parse_qualifier(expression) is None


@pytest.mark.parametrize("expression", ["status", "=1", "a..b=1"])
def test_malformed_expression_logs_and_matches_everything(
    expression: str, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.ERROR, logger="camunda_flow.qualifier"):
        predicate = parse_qualifier(expression)

    assert predicate is None
    assert "Error building qualifier" in caplog.text
    assert evaluate(predicate, {"status": 5}) is True


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1, True), (2, True), (3, False), (0, False)],
)
def test_equals_is_a_disjunction(value: int, expected: bool) -> None:
    assert evaluate(parse_qualifier("status=1,2"), {"status": value}) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1, True), (2, False), (3, False), (4, True)],
)
def test_not_equals_excludes_every_literal(value: int, expected: bool) -> None:
    assert evaluate(parse_qualifier("status!=2,3"), {"status": value}) is expected


def test_missing_variable_resolves_to_zero() -> None:
    assert evaluate(parse_qualifier("status=null"), {}) is True
    assert evaluate(parse_qualifier("status=0"), {}) is True
    assert evaluate(parse_qualifier("status!=null"), {}) is False


def test_non_numeric_variable_resolves_to_zero() -> None:
    assert evaluate(parse_qualifier("status=0"), {"status": "pending"}) is True
    assert evaluate(parse_qualifier("status=1"), {"status": "pending"}) is False


def test_numeric_strings_and_floats_are_coerced() -> None:
    assert evaluate(parse_qualifier("status=2"), {"status": "2"}) is True
    assert evaluate(parse_qualifier("status=2"), {"status": 2.0}) is True


def test_non_integral_float_resolves_to_zero() -> None:
    assert evaluate(parse_qualifier("status=0"), {"status": 2.9}) is True
    assert evaluate(parse_qualifier("status=2"), {"status": 2.9}) is False


def test_nested_path_walks_mappings() -> None:
    variables = {"quote": {"state": {"code": 7}}}

    assert evaluate(parse_qualifier("quote.state.code=7"), variables) is True
    assert evaluate(parse_qualifier("quote.state.code!=7"), variables) is False


def test_nested_path_degrades_to_zero_on_non_mapping() -> None:
    predicate = parse_qualifier("quote.state.code=null")
    assert predicate is not None

    assert predicate.resolve({"quote": {"state": 5}}) is None
    assert evaluate(predicate, {"quote": {"state": 5}}) is True
    assert evaluate(predicate, {"quote": "not-a-map"}) is True


def test_invalid_literal_fails_open(caplog: pytest.LogCaptureFixture) -> None:
    predicate = parse_qualifier("status=abc")

    with caplog.at_level(logging.ERROR, logger="camunda_flow.qualifier"):
        assert evaluate(predicate, {"status": 1}) is True

    assert "Error evaluating qualifier" in caplog.text


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, 0),
        (True, 0),
        (42, 42),
        (-3, -3),
        (2.9, 0),
        (Decimal("3"), 3),
        (Decimal("3.5"), 0),
        (float("nan"), 0),
        (" 12 ", 12),
        ("1.5", 0),
        (b"9", 9),
        ({"a": 1}, 0),
    ],
)
def test_coerce_to_int(value: object, expected: int) -> None:
    assert coerce_to_int(value) == expected
