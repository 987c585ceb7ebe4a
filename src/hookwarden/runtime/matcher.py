"""Matcher expression language.

Selects which operation contexts a hook applies to, e.g.::

    tool == 'Bash' && (command matches '^git push' || command contains '--force')

Pipeline: :class:`Tokenizer` -> :class:`Parser` -> :class:`Evaluator`. The
:func:`match` facade contains every failure and answers ``False`` for a broken
expression, so a malformed rule never fires.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from hookwarden.exceptions import MatchExpressionError

logger = logging.getLogger(__name__)


class TokenType(str, Enum):
    IDENTIFIER = "IDENTIFIER"
    STRING = "STRING"
    OPERATOR = "OPERATOR"
    LOGICAL = "LOGICAL"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    EOF = "EOF"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str | None


@dataclass(frozen=True)
class Comparison:
    left: str
    operator: str
    right: str


@dataclass(frozen=True)
class And:
    left: Node
    right: Node


@dataclass(frozen=True)
class Or:
    left: Node
    right: Node


@dataclass(frozen=True)
class Not:
    operand: Node


Node = Union[Comparison, And, Or, Not]

# Word operators only count on a word boundary so `index` or `contains_x`
# stay identifiers.
_OPERATOR_RE = re.compile(r"==|!=|!matches\b|matches\b|startsWith\b|endsWith\b|contains\b|in\b")
_LOGICAL_RE = re.compile(r"&&|\|\||!")
_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*")

# Operators before logicals: `!=` and `!matches` must win over `!`.
_TOKEN_PATTERNS = (
    (TokenType.OPERATOR, _OPERATOR_RE),
    (TokenType.LOGICAL, _LOGICAL_RE),
    (TokenType.IDENTIFIER, _IDENTIFIER_RE),
)


@dataclass(frozen=True)
class MatcherValidation:
    valid: bool
    error: str | None = None


class Tokenizer:
    """Lenient scanner: characters it does not recognise are skipped."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        text = self.text
        while self.pos < len(text):
            char = text[self.pos]
            if char.isspace():
                self.pos += 1
                continue

            if char == "(":
                tokens.append(Token(TokenType.LPAREN, "("))
                self.pos += 1
            elif char == ")":
                tokens.append(Token(TokenType.RPAREN, ")"))
                self.pos += 1
            elif char in ("'", '"'):
                tokens.append(self._read_string(char))
            else:
                token = self._read_pattern()
                if token is None:
                    self.pos += 1
                else:
                    tokens.append(token)

        tokens.append(Token(TokenType.EOF, None))
        return tokens

    def _read_pattern(self) -> Token | None:
        for token_type, pattern in _TOKEN_PATTERNS:
            found = pattern.match(self.text, self.pos)
            if found:
                self.pos = found.end()
                return Token(token_type, found.group())
        return None

    def _read_string(self, quote: str) -> Token:
        text = self.text
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(text) and text[self.pos] != quote:
            if text[self.pos] == "\\" and self.pos + 1 < len(text):
                self.pos += 1
            chars.append(text[self.pos])
            self.pos += 1
        self.pos += 1  # closing quote (or past the end when unterminated)
        return Token(TokenType.STRING, "".join(chars))


class Parser:
    """Recursive-descent parser.

    Precedence, lowest first: ``||``, ``&&``, unary ``!``. Parentheses
    override. The whole token stream must be consumed.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def parse(self) -> Node:
        node = self._parse_or()
        self._consume(TokenType.EOF)
        return node

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _consume(self, token_type: TokenType) -> Token:
        token = self._current()
        if token.type != token_type:
            raise MatchExpressionError(
                f"Expected {token_type.value}, got {token.type.value}",
                expected=token_type.value,
                actual=token.type.value,
            )
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def _at_logical(self, value: str) -> bool:
        token = self._current()
        return token.type == TokenType.LOGICAL and token.value == value

    def _parse_or(self) -> Node:
        node = self._parse_and()
        while self._at_logical("||"):
            self._consume(TokenType.LOGICAL)
            node = Or(node, self._parse_and())
        return node

    def _parse_and(self) -> Node:
        node = self._parse_unary()
        while self._at_logical("&&"):
            self._consume(TokenType.LOGICAL)
            node = And(node, self._parse_unary())
        return node

    def _parse_unary(self) -> Node:
        if self._at_logical("!"):
            self._consume(TokenType.LOGICAL)
            return Not(self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Node:
        if self._current().type == TokenType.LPAREN:
            self._consume(TokenType.LPAREN)
            node = self._parse_or()
            self._consume(TokenType.RPAREN)
            return node
        return self._parse_comparison()

    def _parse_comparison(self) -> Comparison:
        left = self._consume(TokenType.IDENTIFIER)
        operator = self._consume(TokenType.OPERATOR)
        if self._current().type == TokenType.STRING:
            right = self._consume(TokenType.STRING)
        else:
            right = self._consume(TokenType.IDENTIFIER)
        return Comparison(left=left.value or "", operator=operator.value or "", right=right.value or "")


class Evaluator:
    """Reduces an AST to a bool against a context mapping."""

    def __init__(self, context: Mapping[str, Any]) -> None:
        self.context = context

    def evaluate(self, node: Node) -> bool:
        if isinstance(node, And):
            return self.evaluate(node.left) and self.evaluate(node.right)
        if isinstance(node, Or):
            return self.evaluate(node.left) or self.evaluate(node.right)
        if isinstance(node, Not):
            return not self.evaluate(node.operand)
        if isinstance(node, Comparison):
            return self._compare(node)
        raise MatchExpressionError(f"Unknown AST node: {type(node).__name__}")

    def resolve_value(self, path: str) -> Any:
        value: Any = self.context
        for part in path.split("."):
            if not isinstance(value, Mapping):
                return None
            value = value.get(part)
        return value

    def _compare(self, node: Comparison) -> bool:
        left = self.resolve_value(node.left)
        right = node.right
        op = node.operator

        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op == "matches":
            return _regex_matches(left, right)
        if op == "!matches":
            return not _regex_matches(left, right)
        if op == "startsWith":
            return isinstance(left, str) and left.startswith(right)
        if op == "endsWith":
            return isinstance(left, str) and left.endswith(right)
        if op == "contains":
            return isinstance(left, str) and right in left
        if op == "in":
            if left is None:
                return False
            members = [item.strip() for item in right.split(",")]
            return _stringify(left) in members
        raise MatchExpressionError(f"Unknown operator: {op}")


def _regex_matches(value: Any, pattern: str) -> bool:
    if not isinstance(value, str):
        return False
    try:
        return re.search(pattern, value) is not None
    except re.error:
        return pattern in value


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compile_expression(expression: str) -> Node:
    """Tokenize and parse; raises :class:`MatchExpressionError`."""
    try:
        return Parser(Tokenizer(expression).tokenize()).parse()
    except RecursionError as exc:
        raise MatchExpressionError("Expression is nested too deeply") from exc


def match(expression: str | None, context: Mapping[str, Any]) -> bool:
    """True when ``context`` satisfies ``expression``.

    An empty expression matches everything. Any failure is logged and treated
    as a non-match.
    """
    if not expression or not expression.strip():
        return True
    try:
        return Evaluator(context).evaluate(compile_expression(expression))
    except Exception as exc:  # noqa: BLE001
        logger.debug("Matcher error for %r: %s", expression, exc)
        return False


def validate(expression: str | None) -> MatcherValidation:
    """Static syntax check, no context needed."""
    if not expression or not expression.strip():
        return MatcherValidation(valid=True)
    try:
        compile_expression(expression)
    except MatchExpressionError as exc:
        return MatcherValidation(valid=False, error=str(exc))
    return MatcherValidation(valid=True)
