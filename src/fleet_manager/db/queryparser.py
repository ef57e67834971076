"""Search expression parser for Kafka list queries.

Turns a user-supplied expression such as::

    name = my-kafka and (status <> ready) or region in (us-east-1, eu-west-1)

into a parameterized SQL predicate. Only whitelisted columns may appear, and
every value is passed as a bind parameter, never interpolated.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

SEARCHABLE_COLUMNS = frozenset(
    {
        "id",
        "name",
        "owner",
        "region",
        "cloud_provider",
        "status",
        "organisation_id",
        "cluster_id",
        "created_at",
        "updated_at",
    }
)

_TOKEN_PATTERN = re.compile(
    r"""\s*(?:
        (?P<quoted>'(?:[^'\\]|\\.)*')
      | (?P<op><>|!=|=)
      | (?P<punct>[(),])
      | (?P<word>[^\s'(),=<>!]+)
    )""",
    re.VERBOSE,
)

_JOINERS = frozenset({"and", "or"})


class QueryParseError(ValueError):
    """Raised for a malformed search expression."""


@dataclass
class DBQuery:
    query: str
    values: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Token:
    kind: str
    text: str
    pos: int

    @property
    def lowered(self) -> str:
        return self.text.lower()


def _tokenize(search: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    end = len(search.rstrip())
    while pos < end:
        match = _TOKEN_PATTERN.match(search, pos)
        if match is None or match.end() == pos:
            msg = f"unexpected character at position {pos}: {search[pos:pos + 10]!r}"
            raise QueryParseError(msg)
        kind = match.lastgroup
        assert kind is not None
        tokens.append(_Token(kind, match.group(kind), match.start(kind)))
        pos = match.end()
    return tokens


def _unquote(token: _Token) -> str:
    if token.kind == "quoted":
        return re.sub(r"\\(.)", r"\1", token.text[1:-1])
    return token.text


class QueryParser:
    """Recursive-descent parser over the token stream."""

    def __init__(self) -> None:
        self._tokens: list[_Token] = []
        self._index = 0
        self._values: dict[str, Any] = {}

    def parse(self, search: str) -> DBQuery:
        if not search or not search.strip():
            msg = "empty search expression"
            raise QueryParseError(msg)
        self._tokens = _tokenize(search)
        self._index = 0
        self._values = {}
        query = self._expression()
        if self._peek() is not None:
            token = self._peek()
            assert token is not None
            msg = f"unexpected token {token.text!r} at position {token.pos}"
            raise QueryParseError(msg)
        return DBQuery(query=query, values=self._values)

    # -- token helpers ---------------------------------------------------------

    def _peek(self) -> _Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _next(self, expected: str) -> _Token:
        token = self._peek()
        if token is None:
            msg = f"unexpected end of expression, expected {expected}"
            raise QueryParseError(msg)
        self._index += 1
        return token

    def _expect_punct(self, char: str) -> None:
        token = self._next(f"'{char}'")
        if token.kind != "punct" or token.text != char:
            msg = f"expected '{char}' at position {token.pos}, got {token.text!r}"
            raise QueryParseError(msg)

    def _bind(self, value: str) -> str:
        name = f"p{len(self._values)}"
        self._values[name] = value
        return f":{name}"

    # -- grammar ---------------------------------------------------------------

    def _expression(self) -> str:
        parts = [self._term()]
        while (token := self._peek()) is not None and token.lowered in _JOINERS:
            self._index += 1
            parts.append(token.lowered)
            parts.append(self._term())
        return " ".join(parts)

    def _term(self) -> str:
        token = self._peek()
        if token is not None and token.kind == "punct" and token.text == "(":
            self._index += 1
            inner = self._expression()
            self._expect_punct(")")
            return f"({inner})"
        return self._comparison()

    def _comparison(self) -> str:
        column_token = self._next("a column name")
        column = column_token.lowered
        if column_token.kind != "word" or column not in SEARCHABLE_COLUMNS:
            msg = f"unsupported column name for search: {column_token.text!r}"
            raise QueryParseError(msg)

        op_token = self._next("an operator")
        op = op_token.lowered
        if op_token.kind == "op":
            value = self._value()
            sql_op = "<>" if op == "!=" else op
            return f"{column} {sql_op} {self._bind(value)}"
        if op == "like":
            return f"{column} like {self._bind(self._value())}"
        if op == "ilike":
            return f"lower({column}) like lower({self._bind(self._value())})"
        if op == "in":
            return f"{column} in ({self._value_list()})"
        if op == "not":
            in_token = self._next("'in'")
            if in_token.lowered != "in":
                msg = f"expected 'in' after 'not' at position {in_token.pos}"
                raise QueryParseError(msg)
            return f"{column} not in ({self._value_list()})"
        msg = f"unsupported operator {op_token.text!r} at position {op_token.pos}"
        raise QueryParseError(msg)

    def _value(self) -> str:
        token = self._next("a value")
        if token.kind not in ("word", "quoted"):
            msg = f"expected a value at position {token.pos}, got {token.text!r}"
            raise QueryParseError(msg)
        return _unquote(token)

    def _value_list(self) -> str:
        self._expect_punct("(")
        params = [self._bind(self._value())]
        while (token := self._peek()) is not None and token.text == ",":
            self._index += 1
            params.append(self._bind(self._value()))
        self._expect_punct(")")
        return ", ".join(params)


def parse_search(search: str) -> DBQuery:
    return QueryParser().parse(search)
