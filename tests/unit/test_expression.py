"""Tests for aegis.policy.expression.

Covers:
- Tokenizer: operator priority, literals, positions, bad characters
- Parser: precedence (&& over ||), bare words, leftovers, empty input
- Identifier allowlist enforced at parse time (even in short-circuited terms)
- Type-strict comparisons
"""
from __future__ import annotations

import pytest

from aegis.errors import (
    ExpressionError,
    ExpressionParseError,
    SignalInputError,
    TokenizeError,
    UnknownIdentifierError,
)
from aegis.policy.expression import evaluate, parse, tokenize
from aegis.policy.signals import SignalVector


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _signals(clean_signals, **overrides) -> SignalVector:
    data = dict(clean_signals)
    data.update(overrides)
    return SignalVector.from_dict(data)


# ---------------------------------------------------------------------------
# Tests: Tokenizer
# ---------------------------------------------------------------------------

class TestTokenize:

    def test_two_char_operators_win_over_single(self):
        kinds = [(t.kind, t.text) for t in tokenize("canary.latency_delta >= 10")]
        assert kinds == [("IDENT", "canary.latency_delta"), ("CMP", ">="), ("NUMBER", "10")]

    def test_literal_values(self):
        tokens = tokenize('ci.status == "suc\\"cess" && change.auth != false || x < -1.5')
        values = [t.value for t in tokens if t.kind in ("STRING", "BOOL", "NUMBER")]
        assert values == ['suc"cess', False, -1.5]

    def test_positions_are_character_offsets(self):
        tokens = tokenize('  ci.status == "failure"')
        assert [t.position for t in tokens] == [2, 12, 15]

    def test_true_prefix_is_identifier(self):
        tokens = tokenize("trueish")
        assert tokens[0].kind == "IDENT"

    def test_unexpected_character_reports_position(self):
        with pytest.raises(TokenizeError) as exc:
            tokenize("ci.status = 1")
        assert exc.value.position == 10

    def test_unterminated_string(self):
        with pytest.raises(TokenizeError):
            tokenize('ci.status == "failure')

    @pytest.mark.parametrize("expression,position", [
        ("security.high_count > 5.", 23),
        ("security.high_count > .5", 22),
        ("security.high_count > -.5", 22),
    ])
    def test_decimal_point_needs_digits_on_both_sides(self, expression, position):
        with pytest.raises(TokenizeError) as exc:
            tokenize(expression)
        assert exc.value.position == position


# ---------------------------------------------------------------------------
# Tests: Parser
# ---------------------------------------------------------------------------

class TestParse:

    def test_and_binds_tighter_than_or(self):
        expr = parse(
            'ci.status == "failure" || security.high_count > 0 && change.auth == true'
        )
        assert len(expr.terms) == 2
        assert len(expr.terms[1].factors) == 2

    def test_identifiers_in_order(self):
        expr = parse("change.infra == true && change.db_migration == true")
        assert expr.identifiers == ["change.infra", "change.db_migration"]

    def test_bare_word_literal_rejected(self):
        with pytest.raises(ExpressionParseError) as exc:
            parse("ci.status == failure")
        assert exc.value.position == 13
        assert "Bare word" in exc.value.message

    def test_empty_expression(self):
        with pytest.raises(ExpressionParseError):
            parse("   ")

    def test_leftover_tokens(self):
        with pytest.raises(ExpressionParseError) as exc:
            parse('ci.status == "success" "extra"')
        assert exc.value.position == 23

    def test_missing_literal(self):
        with pytest.raises(ExpressionParseError):
            parse("security.high_count >")

    def test_literal_on_left_rejected(self):
        with pytest.raises(ExpressionParseError):
            parse("0 < security.high_count")

    def test_dangling_logic_operator(self):
        with pytest.raises(ExpressionParseError):
            parse("change.auth == true &&")

    def test_unknown_identifier(self):
        with pytest.raises(UnknownIdentifierError) as exc:
            parse("ci.coverage > 80")
        assert exc.value.position == 0

    def test_errors_share_base_class(self):
        with pytest.raises(ExpressionError):
            parse("ci.status ==")


# ---------------------------------------------------------------------------
# Tests: Evaluation
# ---------------------------------------------------------------------------

class TestEvaluate:

    def test_quoted_string_equality(self, clean_signals):
        assert evaluate('ci.status == "success"', _signals(clean_signals)) is True
        assert evaluate('ci.status == "failure"', _signals(clean_signals)) is False

    def test_accepts_mapping(self, clean_signals):
        assert evaluate("security.critical_count == 0", clean_signals) is True

    def test_incomplete_mapping_rejected(self, clean_signals):
        del clean_signals["canary_error_rate"]
        with pytest.raises(SignalInputError):
            evaluate("security.critical_count == 0", clean_signals)

    def test_numeric_comparisons(self, clean_signals):
        sv = _signals(clean_signals, security_high_count=3, canary_error_rate=0.05)
        assert evaluate("security.high_count >= 3", sv)
        assert evaluate("security.high_count < 4", sv)
        assert evaluate("canary.error_rate > 0.02", sv)
        assert not evaluate("canary.error_rate <= 0.02", sv)

    def test_int_equals_float_literal(self, clean_signals):
        assert evaluate("security.high_count == 0.0", _signals(clean_signals))

    def test_or_and_precedence(self, clean_signals):
        sv = _signals(clean_signals, auth_change=True)
        # (success) || (high>0 && auth)
        assert evaluate(
            'ci.status == "success" || security.high_count > 0 && change.auth == true', sv
        )
        # (failure && auth) || (high > 0)
        assert not evaluate(
            'ci.status == "failure" && change.auth == true || security.high_count > 0', sv
        )

    def test_bool_never_equals_number(self, clean_signals):
        sv = _signals(clean_signals, infra_change=True)
        assert evaluate("change.infra == 1", sv) is False
        assert evaluate("change.infra != 1", sv) is True

    def test_mismatched_relational_is_false(self, clean_signals):
        sv = _signals(clean_signals)
        assert evaluate('security.high_count > "0"', sv) is False
        assert evaluate('ci.status < 5', sv) is False

    def test_unknown_identifier_in_short_circuited_operand(self, clean_signals):
        with pytest.raises(UnknownIdentifierError):
            evaluate('ci.status == "success" || ci.flaky == true', clean_signals)
        with pytest.raises(UnknownIdentifierError):
            evaluate('ci.status == "failure" && ci.flaky == true', clean_signals)
