"""Grammar for template marker invocations.

A marker looks like a function call inside template text::

    CDN('/css/site.css')
    CDN(['/js/a.js', '/js/b.js'], {'async': true, 'class': 'x'})

Grammar of the argument list::

    arguments  := assets [ "," attributes ]
    assets     := STRING | "[" STRING { "," STRING } "]"
    attributes := "{" [ pair { "," pair } ] "}"
    pair       := ( STRING | IDENT ) ":" scalar
    scalar     := STRING | NUMBER | "true" | "false"

Strings may use single or double quotes.  Anything outside the grammar is a
``TemplateParseError``; nothing is silently skipped.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import ValidationError

from cdnforge.core.errors import TemplateParseError
from cdnforge.models.assets import ScannedMarker, reference_from_literal

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<number>-?\d+(?:\.\d+)?)
    |(?P<ident>[A-Za-z_$][\w$-]*)
    |(?P<punct>[\[\]{}:,])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


def marker_pattern(name: str = "CDN") -> re.Pattern[str]:
    """Regex matching ``name(...)`` with one level of nested parentheses."""
    return re.compile(
        r"(?<![\w$.])" + re.escape(name) + r"\(((?:[^()]|\([^()]*\))*)\)"
    )


def _unquote(token: str) -> str:
    body = token[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body, flags=re.DOTALL)


class _Parser:
    """Recursive-descent parser over the marker token stream."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens: list[tuple[str, str, int]] = []
        position = 0
        while position < len(text):
            match = _TOKEN_RE.match(text, position)
            if match is None:
                self.fail(f"unexpected character {text[position]!r}", position)
            kind = match.lastgroup or ""
            if kind != "ws":
                self.tokens.append((kind, match.group(kind), position))
            position = match.end()
        self.index = 0

    def fail(self, message: str, position: int | None = None) -> None:
        if position is None:
            position = self.tokens[self.index][2] if self.index < len(self.tokens) else len(self.text)
        raise TemplateParseError(message, source=self.text, position=position)

    def peek(self) -> tuple[str, str, int] | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def take(self, value: str | None = None) -> tuple[str, str, int]:
        token = self.peek()
        if token is None:
            self.fail("unexpected end of marker arguments" + (f", expected {value!r}" if value else ""))
        if value is not None and token[1] != value:
            self.fail(f"expected {value!r}, found {token[1]!r}")
        self.index += 1
        return token

    # -- productions ----------------------------------------------------

    def arguments(self) -> list[Any]:
        values = [self.value()]
        while self.peek() is not None:
            self.take(",")
            values.append(self.value())
        return values

    def value(self) -> Any:
        token = self.peek()
        if token is None:
            self.fail("expected a value")
        kind, text, _ = token
        if kind == "string":
            self.index += 1
            return _unquote(text)
        if kind == "number":
            self.index += 1
            return float(text) if "." in text else int(text)
        if kind == "ident" and text in ("true", "false"):
            self.index += 1
            return text == "true"
        if text == "[":
            return self.array()
        if text == "{":
            return self.object()
        self.fail(f"unexpected token {text!r}")

    def array(self) -> list[Any]:
        self.take("[")
        items: list[Any] = []
        if self.peek() is not None and self.peek()[1] == "]":
            self.take("]")
            return items
        items.append(self.value())
        while self.peek() is not None and self.peek()[1] == ",":
            self.take(",")
            items.append(self.value())
        self.take("]")
        return items

    def object(self) -> dict[str, Any]:
        self.take("{")
        pairs: dict[str, Any] = {}
        if self.peek() is not None and self.peek()[1] == "}":
            self.take("}")
            return pairs
        while True:
            kind, text, position = self.take()
            if kind == "string":
                key = _unquote(text)
            elif kind == "ident":
                key = text
            else:
                self.fail(f"expected an attribute name, found {text!r}", position)
            self.take(":")
            pairs[key] = self.value()
            if self.peek() is not None and self.peek()[1] == ",":
                self.take(",")
                continue
            self.take("}")
            return pairs


def parse_marker_arguments(text: str) -> ScannedMarker:
    """Parse the text between a marker's parentheses.

    Raises ``TemplateParseError`` for anything outside the grammar, including
    asset values that are not a string or a non-empty list of strings and
    attribute values that are not scalars.
    """
    parser = _Parser(text)
    if not parser.tokens:
        raise TemplateParseError("marker has no arguments", source=text)
    values = parser.arguments()
    if len(values) > 2:
        raise TemplateParseError(
            f"marker takes at most 2 arguments, got {len(values)}", source=text
        )

    try:
        reference = reference_from_literal(values[0])
    except (TypeError, ValidationError) as exc:
        raise TemplateParseError(f"invalid assets argument: {exc}", source=text) from exc

    attributes: dict[str, Any] = {}
    if len(values) == 2:
        attributes = values[1]
        if not isinstance(attributes, dict):
            raise TemplateParseError("attributes argument must be an object", source=text)
        for key, value in attributes.items():
            if not isinstance(value, (str, bool, int, float)):
                raise TemplateParseError(
                    f"attribute {key!r} must be a string, number or boolean", source=text
                )
    return ScannedMarker(reference=reference, attributes=attributes)
