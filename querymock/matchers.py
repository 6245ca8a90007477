"""Matcher variants: acceptance predicates, specificity scores and descriptions."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import re
from typing import Any, Optional, Union

from querymock.calls import NormalizedCall, Operation, normalize_sql, params_equal

logger = logging.getLogger(__name__)

_QUALIFIER_RE = re.compile(r'(?:"[^"]+"|\b[A-Za-z_][A-Za-z0-9_]*)\.(?=["A-Za-z_])')
_LITERAL_RE = re.compile(r"'(?:[^']|'')*'")
_PLACEHOLDER_RE = re.compile(r"\$\d+|%\([^)]+\)s|%s|(?<![:\w]):[A-Za-z_][A-Za-z0-9_]*")


def _strip_unquoted(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = _QUALIFIER_RE.sub("", text)
    return text


def strip_qualifiers(text: str) -> str:
    """Drop table/alias prefixes: ``"users"."id"`` -> ``"id"``, ``users.id`` -> ``id``.

    String literals such as ``'a.b@x.com'`` are left untouched.
    """
    pieces: list[str] = []
    last = 0
    for literal in _LITERAL_RE.finditer(text):
        pieces.append(_strip_unquoted(text[last : literal.start()]))
        pieces.append(literal.group())
        last = literal.end()
    pieces.append(_strip_unquoted(text[last:]))
    return "".join(pieces)


def normalize_fragment_text(text: str, strip: bool = True) -> str:
    """Canonical form used when searching for a fragment inside call text."""
    normalized = normalize_sql(text)
    if strip:
        normalized = strip_qualifiers(normalized)
    return _PLACEHOLDER_RE.sub("?", normalized)


def _render_params(parameters: tuple[Any, ...]) -> str:
    return json.dumps(list(parameters), default=repr)


@dataclass(frozen=True)
class Fragment:
    """A sub-expression and its own parameters."""

    normalized_text: str
    parameters: tuple[Any, ...] = ()

    @classmethod
    def from_sql(cls, text: str, parameters: tuple[Any, ...] = (), strip: bool = True) -> "Fragment":
        return cls(normalize_fragment_text(text, strip), tuple(parameters))

    def found_in(self, call: NormalizedCall, strip: bool = True) -> bool:
        haystack = normalize_fragment_text(call.text, strip)
        boundary = r"(?<!\w)" if re.match(r"\w", self.normalized_text) else ""
        needle = re.compile(boundary + re.escape(self.normalized_text))
        for match in needle.finditer(haystack):
            if not self.parameters:
                return True
            offset = haystack.count("?", 0, match.start())
            actual = call.parameters[offset : offset + len(self.parameters)]
            if params_equal(self.parameters, actual):
                return True
        return False


@dataclass(frozen=True)
class _TextMatcher:
    parameters: Optional[tuple[Any, ...]]

    def _params_accept(self, call: NormalizedCall) -> bool:
        if self.parameters is None:
            return True
        return params_equal(self.parameters, call.parameters)

    def _params_suffix(self) -> str:
        if self.parameters is None:
            return ""
        return f" params: {_render_params(self.parameters)}"


@dataclass(frozen=True)
class ExactTextMatcher(_TextMatcher):
    text: str
    kind = "exact"

    def accepts(self, call: NormalizedCall) -> bool:
        return call.text == normalize_sql(self.text) and self._params_accept(call)

    def specificity(self) -> float:
        return 5 if self.parameters is not None else 4

    def describe(self) -> str:
        return f'exact: "{self.text}"{self._params_suffix()}'


@dataclass(frozen=True)
class PrefixTextMatcher(_TextMatcher):
    text: str
    kind = "partial"

    def accepts(self, call: NormalizedCall) -> bool:
        return call.text.startswith(normalize_sql(self.text)) and self._params_accept(call)

    def specificity(self) -> float:
        return 3 if self.parameters is not None else 2

    def describe(self) -> str:
        return f'partial: "{self.text}"{self._params_suffix()}'


@dataclass(frozen=True)
class PatternTextMatcher(_TextMatcher):
    pattern: re.Pattern[str]
    kind = "pattern"

    def accepts(self, call: NormalizedCall) -> bool:
        return self.pattern.search(call.text) is not None and self._params_accept(call)

    def specificity(self) -> float:
        return 1

    def describe(self) -> str:
        return f"pattern: /{self.pattern.pattern}/{self._params_suffix()}"


@dataclass(frozen=True)
class SubstringTextMatcher(_TextMatcher):
    substring: str
    kind = "contains"

    def accepts(self, call: NormalizedCall) -> bool:
        return self.substring in call.text and self._params_accept(call)

    def specificity(self) -> float:
        return 1

    def describe(self) -> str:
        return f'contains: "{self.substring}"{self._params_suffix()}'


@dataclass(frozen=True)
class StructuralMatcher:
    """Matches on operation, entity and field keys captured by the binding."""

    operation: Operation
    entity_name: str
    entity_schema: Optional[str] = None
    field_keys: Optional[frozenset[str]] = None
    sql_fragments: Optional[tuple[Fragment, ...]] = None
    strip_qualifiers: bool = True
    kind = "structural"

    def accepts(self, call: NormalizedCall) -> bool:
        shape = call.descriptor
        if shape is None:
            return False
        if shape.operation != self.operation:
            return False
        if shape.entity_name != self.entity_name or shape.entity_schema != self.entity_schema:
            return False
        if self.field_keys is not None and not self.field_keys <= shape.field_keys:
            return False
        if self.sql_fragments is not None:
            return all(fragment.found_in(call, self.strip_qualifiers) for fragment in self.sql_fragments)
        return True

    def specificity(self) -> float:
        if self.sql_fragments is not None:
            return 1.75
        return 1.5 if self.field_keys is not None else 1.25

    def describe(self) -> str:
        line = f'structural: {Operation(self.operation).value} on "{self.entity_name}"'
        if self.entity_schema is not None:
            line = f'structural: {Operation(self.operation).value} on "{self.entity_schema}.{self.entity_name}"'
        if self.field_keys is not None:
            line += f" columns: [{', '.join(sorted(self.field_keys))}]"
        if self.sql_fragments is not None:
            line += " containing: " + "; ".join(
                f'"{fragment.normalized_text}" {_render_params(fragment.parameters)}'
                for fragment in self.sql_fragments
            )
        return line


TextMatcher = Union[ExactTextMatcher, PrefixTextMatcher, PatternTextMatcher, SubstringTextMatcher]
Matcher = Union[TextMatcher, StructuralMatcher]
