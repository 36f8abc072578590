"""
Unit tests for JSON helpers.

Tests cover:
- Serialization and parsing of exact decimals
- Type classification
- Structural equality
- Containment rules
"""

from decimal import Decimal

import pytest

from dbaas.docstore_server.json_util import (
    json_contains,
    json_equal,
    json_type_name,
    read_json_string,
    sql_json_contains,
    sql_json_equal,
    to_json_string,
)


class TestSerialization:
    """Tests for to_json_string()."""

    def test_compact_and_unescaped(self):
        assert to_json_string({"a": [1, "ü"]}) == '{"a":[1,"ü"]}'

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            to_json_string(float("nan"))

    def test_decimal_nan_rejected(self):
        with pytest.raises(ValueError):
            to_json_string({"a": [Decimal("NaN")]})


class TestParsing:
    """Tests for read_json_string()."""

    def test_decimals_kept_exact(self):
        """Fractions and exponents are neither rounded nor widened."""
        text = '{"price":0.10000000000000000000001,"big":1E+400,"n":3}'
        value = read_json_string(text)
        assert value["price"] == Decimal("0.10000000000000000000001")
        assert value["big"] == Decimal("1E+400")
        assert isinstance(value["n"], int)
        assert to_json_string(value) == text

    @pytest.mark.parametrize("text", ["NaN", '{"a": Infinity}', "[-Infinity]"])
    def test_non_finite_constants_rejected(self, text):
        with pytest.raises(ValueError, match="invalid JSON constant"):
            read_json_string(text)

    def test_malformed_text(self):
        with pytest.raises(ValueError):
            read_json_string("{")


class TestJsonTypeName:
    """Tests for json_type_name()."""

    def test_types(self):
        assert json_type_name(None) == "null"
        assert json_type_name(True) == "boolean"
        assert json_type_name(1) == "number"
        assert json_type_name(1.5) == "number"
        assert json_type_name("x") == "string"
        assert json_type_name([]) == "array"
        assert json_type_name({}) == "object"

    def test_non_json_value(self):
        with pytest.raises(TypeError):
            json_type_name(object())


class TestJsonEqual:
    """Tests for json_equal()."""

    def test_key_order_ignored(self):
        assert json_equal({"a": 1, "b": [1, 2]}, {"b": [1, 2], "a": 1})

    def test_array_order_significant(self):
        assert not json_equal([1, 2], [2, 1])

    def test_boolean_is_not_number(self):
        assert not json_equal(True, 1)
        assert not json_equal({"a": 0}, {"a": False})

    def test_int_equals_float(self):
        assert json_equal(1, 1.0)

    def test_numbers_compared_by_decimal_value(self):
        assert json_equal(Decimal("1.0"), 1)
        assert json_equal(0.1, Decimal("0.1"))
        assert not json_equal(Decimal("0.10000000000000000000001"), 0.1)
        assert not json_equal(2**64 + 1, float(2**64 + 1))

    def test_non_finite_number_is_not_json(self):
        with pytest.raises(TypeError):
            json_equal(Decimal("NaN"), Decimal("NaN"))

    def test_missing_key(self):
        assert not json_equal({"a": 1}, {"a": 1, "b": None})


class TestJsonContains:
    """Tests for json_contains()."""

    def test_object_subset(self):
        target = {"a": {"b": 1, "c": 2}, "d": "x"}
        assert json_contains(target, {"a": {"b": 1}})
        assert json_contains(target, {})
        assert not json_contains(target, {"a": {"b": 2}})
        assert not json_contains(target, {"e": None})

    def test_array_ignores_order_and_duplicates(self):
        assert json_contains([1, 2, 3], [3, 1, 1])
        assert not json_contains([1, 2], [4])

    def test_array_elements_contain_objects(self):
        target = {"items": [{"id": 1, "n": "a"}, {"id": 2}]}
        assert json_contains(target, {"items": [{"id": 2}]})

    def test_top_level_array_contains_scalar(self):
        assert json_contains(["a", "b"], "a")
        assert not json_contains({"x": ["a"]}, {"x": "a"})

    def test_scalar_types_must_match(self):
        assert not json_contains({"a": 1}, {"a": "1"})
        assert not json_contains({"a": True}, {"a": 1})
        assert json_contains({"a": None}, {"a": None})

    def test_sql_adapter(self):
        assert sql_json_contains('{"a":[1,2]}', '{"a":[2]}') == 1
        assert sql_json_contains('{"a":1}', '{"a":2}') == 0
        assert sql_json_contains(None, "{}") is None

    def test_sql_equal_adapter(self):
        assert sql_json_equal('{"x":1,"y":2.0}', '{"y":2,"x":1}') == 1
        assert sql_json_equal("[1,2]", "[2,1]") == 0
        assert sql_json_equal("1", "{}") == 0
        assert sql_json_equal(None, "{}") is None
