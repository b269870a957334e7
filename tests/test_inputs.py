"""Tests for building contexts from user-supplied values."""

import pytest

from pluraal._errors import DecodeError, InputParseError
from pluraal._expr import Input, Literal, LiteralKind, Reference, Scope
from pluraal._inputs import context_from_raw, context_from_values, parse_raw_input


class TestParseRawInput:
    """Tests for parsing raw strings by declared type."""

    def test_string_passthrough(self) -> None:
        assert parse_raw_input("s", " spaced ", LiteralKind.STRING) == Literal(" spaced ")

    @pytest.mark.parametrize(("raw", "expected"), [("30", 30.0), ("-2.5", -2.5), ("1e3", 1000.0), (" 7 ", 7.0)])
    def test_number(self, raw: str, expected: float) -> None:
        assert parse_raw_input("n", raw, LiteralKind.NUMBER) == Literal(expected)

    @pytest.mark.parametrize("raw", ["thirty", "", "nan", "inf", "1_000"])
    def test_invalid_number(self, raw: str) -> None:
        with pytest.raises(InputParseError) as exc_info:
            parse_raw_input("n", raw, LiteralKind.NUMBER)
        assert exc_info.value.name == "n"
        assert exc_info.value.input_type is LiteralKind.NUMBER

    @pytest.mark.parametrize(("raw", "expected"), [("true", True), ("TRUE", True), ("False", False)])
    def test_bool(self, raw: str, expected: bool) -> None:
        assert parse_raw_input("b", raw, LiteralKind.BOOL) == Literal(expected)

    @pytest.mark.parametrize("raw", ["yes", "1", ""])
    def test_invalid_bool(self, raw: str) -> None:
        with pytest.raises(InputParseError, match="as bool for input b"):
            parse_raw_input("b", raw, LiteralKind.BOOL)


class TestContextBuilders:
    """Tests for context construction helpers."""

    def test_context_from_raw_uses_declared_types(self) -> None:
        scope = Scope(inputs=(Input("age", LiteralKind.NUMBER), Input("member", LiteralKind.BOOL)))
        context = context_from_raw(scope, {"age": "30", "member": "true", "note": "42"})
        assert context == {"age": Literal(30), "member": Literal(True), "note": Literal("42")}

    def test_context_from_raw_propagates_parse_errors(self) -> None:
        scope = Scope(inputs=(Input("age", LiteralKind.NUMBER),))
        with pytest.raises(InputParseError):
            context_from_raw(scope, {"age": "old"})

    def test_context_from_values(self) -> None:
        context = context_from_values({"n": 3, "s": "x", "b": False, "r": {"ref": "n"}})
        assert context == {"n": Literal(3), "s": Literal("x"), "b": Literal(False), "r": Reference("n")}

    def test_context_from_values_rejects_bad_shapes(self) -> None:
        with pytest.raises(DecodeError) as exc_info:
            context_from_values({"items": [1, 2]})
        assert exc_info.value.path == "$.items"
