"""Policy condition language.

A ``when`` string is a flat boolean expression over the signal vector::

    expr   := term ('||' term)*
    term   := factor ('&&' factor)*
    factor := identifier operator literal

``&&`` binds tighter than ``||``; there is no grouping. Literals are
double-quoted strings (JSON escapes), ``true``/``false`` or numbers
(``-?digits[.digits]``, so ``5.`` and ``.5`` are rejected). An unquoted
word on the literal side is rejected rather than read as a string.

Usage:
    evaluate('ci.status == "failure" || security.critical_count > 0', signals)
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Tuple, Union

from ..errors import ExpressionParseError, TokenizeError, UnknownIdentifierError
from ..logger import get_logger
from .signals import ALLOWED_IDENTIFIERS, SignalVector

logger = get_logger(__name__)

WS = "WS"
CMP = "CMP"
LOGIC = "LOGIC"
STRING = "STRING"
BOOL = "BOOL"
NUMBER = "NUMBER"
IDENT = "IDENT"

# order matters: first match wins
_TOKEN_PATTERNS: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    (WS, re.compile(r"\s+")),
    (CMP, re.compile(r"==|!=|>=|<=")),
    (CMP, re.compile(r"[><]")),
    (LOGIC, re.compile(r"&&|\|\|")),
    (STRING, re.compile(r'"(?:[^"\\]|\\.)*"')),
    (BOOL, re.compile(r"(?:true|false)(?![A-Za-z0-9_.])")),
    (NUMBER, re.compile(r"-?\d+(?:\.\d+)?")),
    (IDENT, re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")),
)

_LITERAL_KINDS = (STRING, BOOL, NUMBER)

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
}

Literal = Union[str, float, bool]


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int
    value: Any = None


def tokenize(expression: str) -> List[Token]:
    """Split an expression into tokens (whitespace dropped).

    Raises:
        TokenizeError: on any character sequence no token pattern accepts
    """
    tokens: List[Token] = []
    pos = 0
    while pos < len(expression):
        for kind, pattern in _TOKEN_PATTERNS:
            m = pattern.match(expression, pos)
            if m:
                break
        else:
            raise TokenizeError(
                f"Unexpected character {expression[pos]!r}", expression, pos
            )

        text = m.group(0)
        if kind != WS:
            tokens.append(Token(kind, text, pos, _literal_value(kind, text, expression, pos)))
        pos = m.end()
    return tokens


def _literal_value(kind: str, text: str, expression: str, pos: int) -> Any:
    if kind == STRING:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise TokenizeError(f"Invalid string literal ({e.msg})", expression, pos) from e
    if kind == BOOL:
        return text == "true"
    if kind == NUMBER:
        return float(text)
    return None


@dataclass(frozen=True)
class Comparison:
    identifier: str
    operator: str
    literal: Literal
    position: int

    def evaluate(self, signals: SignalVector) -> bool:
        return _compare(signals.resolve(self.identifier), self.operator, self.literal)


@dataclass(frozen=True)
class Conjunction:
    factors: Tuple[Comparison, ...]

    def evaluate(self, signals: SignalVector) -> bool:
        return all(f.evaluate(signals) for f in self.factors)


@dataclass(frozen=True)
class Expression:
    """Parsed condition: a disjunction of conjunctions."""
    source: str
    terms: Tuple[Conjunction, ...]

    def evaluate(self, signals: SignalVector) -> bool:
        return any(t.evaluate(signals) for t in self.terms)

    @property
    def identifiers(self) -> List[str]:
        return [f.identifier for t in self.terms for f in t.factors]


class _Parser:
    def __init__(self, expression: str, tokens: List[Token], allowed: frozenset):
        self.expression = expression
        self.tokens = tokens
        self.allowed = allowed
        self.index = 0

    def _peek(self):
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _next(self, expected: str) -> Token:
        tok = self._peek()
        if tok is None:
            raise ExpressionParseError(
                f"Unexpected end of expression, expected {expected}",
                self.expression,
                len(self.expression),
            )
        self.index += 1
        return tok

    def parse(self) -> Expression:
        if not self.tokens:
            raise ExpressionParseError("Empty expression", self.expression, 0)
        terms = [self._term()]
        while self._at_logic("||"):
            self.index += 1
            terms.append(self._term())

        leftover = self._peek()
        if leftover is not None:
            raise ExpressionParseError(
                f"Unexpected token {leftover.text!r}", self.expression, leftover.position
            )
        return Expression(self.expression, tuple(terms))

    def _at_logic(self, op: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == LOGIC and tok.text == op

    def _term(self) -> Conjunction:
        factors = [self._factor()]
        while self._at_logic("&&"):
            self.index += 1
            factors.append(self._factor())
        return Conjunction(tuple(factors))

    def _factor(self) -> Comparison:
        ident = self._next("identifier")
        if ident.kind != IDENT:
            raise ExpressionParseError(
                f"Expected identifier, got {ident.text!r}", self.expression, ident.position
            )
        if ident.text not in self.allowed:
            raise UnknownIdentifierError(
                f"Unknown identifier {ident.text!r}", self.expression, ident.position
            )

        op = self._next("comparison operator")
        if op.kind != CMP:
            raise ExpressionParseError(
                f"Expected comparison operator, got {op.text!r}", self.expression, op.position
            )

        lit = self._next("literal")
        if lit.kind == IDENT:
            raise ExpressionParseError(
                f"Bare word {lit.text!r} is not a literal (quote strings)",
                self.expression,
                lit.position,
            )
        if lit.kind not in _LITERAL_KINDS:
            raise ExpressionParseError(
                f"Expected literal, got {lit.text!r}", self.expression, lit.position
            )
        return Comparison(ident.text, op.text, lit.value, ident.position)


def parse(expression: str, allowed: frozenset = ALLOWED_IDENTIFIERS) -> Expression:
    """Tokenize and parse an expression, checking identifiers as they appear."""
    return _Parser(expression, tokenize(expression), allowed).parse()


def evaluate(expression: str, signals: Union[SignalVector, Mapping[str, Any]]) -> bool:
    """Evaluate a condition string against a signal vector.

    Args:
        expression: ``when`` condition
        signals: SignalVector, or a mapping that passes the completeness check

    Returns:
        Truth value of the expression

    Raises:
        TokenizeError, ExpressionParseError, UnknownIdentifierError,
        SignalInputError
    """
    if not isinstance(signals, SignalVector):
        signals = SignalVector.from_dict(signals)
    result = parse(expression).evaluate(signals)
    logger.debug("Expression %r -> %s", expression, result)
    return result


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def _compare(left: Any, operator: str, right: Any) -> bool:
    # mismatched types: never equal, never ordered
    if _kind(left) != _kind(right):
        return operator == "!="
    return _OPERATORS[operator](left, right)
