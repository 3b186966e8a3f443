"""Tests for the transition expression parser and evaluator.

Covers the grammar, the coercion policy (numeric vs. string literals,
missing inputs) and the never-raise behavior of evaluate_expression.
"""

import logging

import pytest

from onboarding.spec.expressions import (
    Comparison,
    ExpressionSyntaxError,
    Operator,
    ValueKind,
    classify_value,
    evaluate_expression,
    parse_expression,
    to_number,
)


# ============================================================================
# Parsing
# ============================================================================


class TestParseExpression:
    """Tests for parse_expression."""

    def test_parses_numeric_comparison(self):
        """A bare number literal is parsed as a float."""
        comparison = parse_expression("risk_score > 70")

        assert comparison.left == "risk_score"
        assert comparison.op is Operator.GT
        assert comparison.right == 70.0
        assert comparison.literal_is_number

    @pytest.mark.parametrize("text", ["status == 'approved'", 'status == "approved"'])
    def test_parses_quoted_strings(self, text):
        """Single and double quotes both produce a string literal."""
        comparison = parse_expression(text)

        assert comparison.right == "approved"
        assert not comparison.literal_is_number

    def test_quoted_number_stays_a_string(self):
        """'70' in quotes is a string literal, not a number."""
        comparison = parse_expression("code == '70'")

        assert comparison.right == "70"
        assert not comparison.literal_is_number

    @pytest.mark.parametrize("op", ["==", "!=", ">", ">=", "<", "<="])
    def test_all_operators(self, op):
        """Every supported operator parses without surrounding whitespace."""
        comparison = parse_expression(f"x{op}1")

        assert comparison.op.value == op

    def test_negative_and_decimal_numbers(self):
        assert parse_expression("delta >= -1.5").right == -1.5
        assert parse_expression("ratio < .25").right == 0.25

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "risk_score",
            "risk_score > ",
            "> 70",
            "a > 1 && b < 2",
            "a > 1 and b < 2",
            "len(name) > 3",
            "a > b",
            "1abc > 2",
            "a => 2",
        ],
    )
    def test_rejects_malformed(self, text):
        """Anything outside `<identifier> <op> <literal>` is a syntax error."""
        with pytest.raises(ExpressionSyntaxError):
            parse_expression(text)

    def test_parse_is_memoised(self):
        """The same text returns the same Comparison instance."""
        assert parse_expression("risk > 5") is parse_expression("risk > 5")


# ============================================================================
# Value Model
# ============================================================================


class TestValueModel:
    """Tests for classify_value and to_number."""

    def test_classify(self):
        assert classify_value("x") is ValueKind.STRING
        assert classify_value(3) is ValueKind.NUMBER
        assert classify_value(2.5) is ValueKind.NUMBER
        assert classify_value(True) is ValueKind.BOOL
        assert classify_value(["a"]) is ValueKind.LIST
        assert classify_value(None) is ValueKind.MISSING

    def test_classify_rejects_mappings(self):
        """Values outside the closed set classify as None."""
        assert classify_value({"a": 1}) is None
        assert classify_value(object()) is None

    def test_to_number(self):
        assert to_number(5) == 5.0
        assert to_number(" 42 ") == 42.0
        assert to_number("abc") is None
        assert to_number(True) is None
        assert to_number([1]) is None
        assert to_number("nan") is None


# ============================================================================
# Evaluation
# ============================================================================


class TestEvaluateNumeric:
    """Number literals compare numerically."""

    @pytest.mark.parametrize(
        "expression, value, expected",
        [
            ("risk > 70", 80, True),
            ("risk > 70", 70, False),
            ("risk >= 70", 70, True),
            ("risk < 70", 50, True),
            ("risk <= 70", 71, False),
            ("risk == 70", 70.0, True),
            ("risk != 70", 71, True),
        ],
    )
    def test_number_inputs(self, expression, value, expected):
        assert evaluate_expression(expression, {"risk": value}) is expected

    def test_numeric_string_input_is_coerced(self):
        """Form values often arrive as strings."""
        assert evaluate_expression("risk > 70", {"risk": "80"}) is True
        assert evaluate_expression("risk == 70", {"risk": "70"}) is True

    def test_non_numeric_string_is_false(self):
        assert evaluate_expression("risk > 70", {"risk": "high"}) is False
        assert evaluate_expression("risk != 70", {"risk": "high"}) is False

    def test_bool_and_list_are_not_numbers(self):
        assert evaluate_expression("flag == 1", {"flag": True}) is False
        assert evaluate_expression("items > 0", {"items": [1, 2]}) is False


class TestEvaluateString:
    """String literals compare exactly for equality and numerically for ordering."""

    def test_exact_equality(self):
        assert evaluate_expression("status == 'approved'", {"status": "approved"}) is True
        assert evaluate_expression("status == 'approved'", {"status": "Approved"}) is False

    def test_inequality(self):
        assert evaluate_expression("status != 'approved'", {"status": "pending"}) is True
        assert evaluate_expression("status != 'approved'", {"status": "approved"}) is False

    def test_no_loose_equality(self):
        """A number input never equals a string literal, even if it looks the same."""
        assert evaluate_expression("code == '70'", {"code": 70}) is False
        assert evaluate_expression("code != '70'", {"code": 70}) is True

    def test_ordering_against_string_literal_coerces(self):
        assert evaluate_expression("score > '10'", {"score": 11}) is True
        assert evaluate_expression("score > 'ten'", {"score": 11}) is False


class TestEvaluateMissing:
    """Missing or null inputs are false for every operator."""

    @pytest.mark.parametrize(
        "expression",
        ["risk > 70", "risk < 70", "risk == 0", "risk != 70", "status != 'x'"],
    )
    def test_missing_key(self, expression):
        assert evaluate_expression(expression, {}) is False

    def test_null_value(self):
        assert evaluate_expression("risk != 70", {"risk": None}) is False

    def test_unsupported_value_type(self):
        assert evaluate_expression("risk > 1", {"risk": {"nested": 2}}) is False


class TestMalformedEvaluation:
    """Malformed expressions evaluate to False and are logged."""

    def test_returns_false_and_logs(self, caplog):
        with caplog.at_level(logging.WARNING, logger="onboarding.spec.expressions"):
            result = evaluate_expression("risk >>> 70", {"risk": 100})

        assert result is False
        assert "treated as false" in caplog.text

    def test_comparison_evaluate_is_deterministic(self):
        """Repeated evaluation of one Comparison gives the same answer."""
        comparison = Comparison(left="risk", op=Operator.GT, right=70.0)
        inputs = {"risk": 71}

        assert all(comparison.evaluate(inputs) for _ in range(10))
