"""
Test cases for argument coercion.
"""

import pytest

from relaykit.assistant.tools.coercion import (
    coerce_arguments, coerce_heuristically, coerce_to_schema, extract_number, parse_boolean
)


class TestExtractNumber:
    """Test cases for numeric token extraction."""

    def test_plain_integer(self):
        assert extract_number("42", integer=True) == 42

    def test_first_token_in_text(self):
        assert extract_number("page 3 of 7", integer=True) == 3

    def test_integer_truncates_decimal(self):
        assert extract_number("12.9", integer=True) == 12

    def test_float(self):
        assert extract_number("ratio -0.5", integer=False) == -0.5

    def test_no_number(self):
        assert extract_number("none here", integer=True) is None


class TestParseBoolean:
    """Test cases for boolean literals."""

    @pytest.mark.parametrize("text", ["true", "TRUE", " yes ", "1", "on"])
    def test_truthy(self, text):
        assert parse_boolean(text) is True

    @pytest.mark.parametrize("text", ["false", "No", "0", "off"])
    def test_falsy(self, text):
        assert parse_boolean(text) is False

    def test_unknown(self):
        assert parse_boolean("maybe") is None


class TestCoerceToSchema:
    """Test cases for schema-driven coercion."""

    def test_declared_types(self):
        args = {"count": "42", "ratio": "0.25", "draft": "yes", "title": 7, "flag": True}
        types = {
            "count": "integer",
            "ratio": "number",
            "draft": "boolean",
            "title": "string",
            "flag": "string",
        }

        result = coerce_to_schema(args, types)

        assert result == {"count": 42, "ratio": 0.25, "draft": True, "title": "7", "flag": "true"}

    def test_unconvertible_values_pass_through(self):
        args = {"count": "many", "draft": "perhaps"}
        result = coerce_to_schema(args, {"count": "integer", "draft": "boolean"})
        assert result == args

    def test_does_not_add_keys(self):
        result = coerce_to_schema({"a": "1"}, {"a": "integer", "b": "integer"})
        assert result == {"a": 1}

    def test_input_not_mutated(self):
        args = {"a": "1"}
        coerce_to_schema(args, {"a": "integer"})
        assert args == {"a": "1"}


class TestCoerceHeuristically:
    """Test cases for name-based coercion without a schema."""

    def test_known_numeric_keys(self):
        args = {"project_id": "123", "page": "2", "merge_request_iid": "#45"}
        assert coerce_heuristically(args) == {"project_id": 123, "page": 2, "merge_request_iid": 45}

    def test_numeric_suffixes(self):
        args = {"issue_number": "7", "retry_count": "3", "user_iid": "9"}
        assert coerce_heuristically(args) == {"issue_number": 7, "retry_count": 3, "user_iid": 9}

    def test_boolean_literals(self):
        assert coerce_heuristically({"confirm": "TRUE", "dry": "false"}) == {"confirm": True, "dry": False}

    def test_other_strings_untouched(self):
        args = {"name": "42", "note": "yes"}
        assert coerce_heuristically(args) == args


class TestCoerceArguments:
    """Test cases for the coercion entry point."""

    def test_uses_schema_when_available(self):
        assert coerce_arguments({"name": "42"}, {"name": "integer"}) == {"name": 42}

    def test_falls_back_to_heuristics(self):
        assert coerce_arguments({"id": "5"}, None) == {"id": 5}
        assert coerce_arguments({"id": "5"}, {}) == {"id": 5}

    def test_idempotent(self):
        types = {"count": "integer", "draft": "boolean", "title": "string"}
        once = coerce_arguments({"count": "3 items", "draft": "no", "title": 12}, types)
        assert coerce_arguments(once, types) == once
