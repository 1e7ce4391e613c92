"""Query matcher.

Filter dicts are parsed once into a closed set of clause and operator
variants, then evaluated against documents. Unknown operator keys are kept as
an explicit ``RawNestedFallback`` variant: the resolved field value is treated
as a nested document and the key as a further field path.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Union

from quarry.store.paths import MISSING, get_path
from quarry.store.values import compare, values_equal


_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}
ORDER_OPERATORS = frozenset({"$gt", "$gte", "$lt", "$lte"})


@dataclass(frozen=True, slots=True)
class Compare:
    op: str
    value: Any

    def test(self, actual: Any) -> bool:
        return compare(actual, self.value, self.op)


@dataclass(frozen=True, slots=True)
class InSet:
    values: Any

    def test(self, actual: Any) -> bool:
        if not isinstance(self.values, (list, tuple, set, frozenset)):
            return False
        return any(values_equal(actual, candidate) for candidate in self.values)


@dataclass(frozen=True, slots=True)
class NotInSet:
    values: Any

    def test(self, actual: Any) -> bool:
        if not isinstance(self.values, (list, tuple, set, frozenset)):
            return False
        return not any(values_equal(actual, candidate) for candidate in self.values)


@dataclass(frozen=True, slots=True)
class Equal:
    value: Any

    def test(self, actual: Any) -> bool:
        return values_equal(actual, self.value)


@dataclass(frozen=True, slots=True)
class NotEqual:
    value: Any

    def test(self, actual: Any) -> bool:
        return not values_equal(actual, self.value)


@dataclass(frozen=True, slots=True)
class Regex:
    pattern: re.Pattern[str]

    def test(self, actual: Any) -> bool:
        return isinstance(actual, str) and self.pattern.search(actual) is not None


@dataclass(frozen=True, slots=True)
class Exists:
    expected: bool

    def test(self, actual: Any) -> bool:
        present = actual is not MISSING and actual is not None
        return present == self.expected


@dataclass(frozen=True, slots=True)
class OptionsMarker:
    """``$options`` only feeds ``$regex``; on its own it always holds."""

    value: Any

    def test(self, actual: Any) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class RawNestedFallback:
    key: str
    nested: "Filter"

    def test(self, actual: Any) -> bool:
        target = actual if isinstance(actual, (dict, list)) else {}
        return self.nested.matches(target)


FieldOperator = Union[Compare, InSet, NotInSet, Equal, NotEqual, Regex, Exists, OptionsMarker, RawNestedFallback]


@dataclass(frozen=True, slots=True)
class FieldEquals:
    path: str
    value: Any

    def matches(self, doc: Any) -> bool:
        return values_equal(get_path(doc, self.path), self.value)


@dataclass(frozen=True, slots=True)
class FieldCondition:
    path: str
    operators: tuple[FieldOperator, ...]

    def matches(self, doc: Any) -> bool:
        actual = get_path(doc, self.path)
        return all(operator.test(actual) for operator in self.operators)


@dataclass(frozen=True, slots=True)
class OrClause:
    clauses: tuple["Filter", ...]

    def matches(self, doc: Any) -> bool:
        return any(clause.matches(doc) for clause in self.clauses)


@dataclass(frozen=True, slots=True)
class AndClause:
    clauses: tuple["Filter", ...]

    def matches(self, doc: Any) -> bool:
        return all(clause.matches(doc) for clause in self.clauses)


Clause = Union[FieldEquals, FieldCondition, OrClause, AndClause]


@dataclass(frozen=True, slots=True)
class Filter:
    clauses: tuple[Clause, ...] = ()

    def matches(self, doc: Any) -> bool:
        return all(clause.matches(doc) for clause in self.clauses)

    def equality_fields(self) -> dict[str, Any]:
        """Plain ``field: value`` pairs, used to seed upserted documents."""
        return {
            clause.path: clause.value
            for clause in self.clauses
            if isinstance(clause, FieldEquals) and not clause.path.startswith("$")
        }


MATCH_ALL = Filter()


def _compile_regex(value: Any, options: Any) -> re.Pattern[str]:
    if isinstance(value, re.Pattern):
        return value
    flags = 0
    for letter in str(options or ""):
        flags |= _REGEX_FLAGS.get(letter, 0)
    pattern = str(value)
    try:
        return re.compile(pattern, flags)
    except re.error:
        return re.compile(re.escape(pattern), flags)


def _parse_operators(spec: dict[str, Any]) -> tuple[FieldOperator, ...]:
    operators: list[FieldOperator] = []
    for key, value in spec.items():
        if key in ORDER_OPERATORS:
            operators.append(Compare(op=key, value=value))
        elif key == "$in":
            operators.append(InSet(values=value))
        elif key == "$nin":
            operators.append(NotInSet(values=value))
        elif key == "$eq":
            operators.append(Equal(value=value))
        elif key == "$ne":
            operators.append(NotEqual(value=value))
        elif key == "$regex":
            operators.append(Regex(pattern=_compile_regex(value, spec.get("$options"))))
        elif key == "$options":
            operators.append(OptionsMarker(value=value))
        elif key == "$exists":
            operators.append(Exists(expected=bool(value)))
        else:
            operators.append(RawNestedFallback(key=key, nested=parse_filter({key: value})))
    return tuple(operators)


def _parse_sub_filters(items: list[Any]) -> tuple[Filter, ...]:
    return tuple(parse_filter(item) for item in items)


def parse_filter(spec: Any) -> Filter:
    if isinstance(spec, Filter):
        return spec
    if not spec:
        return MATCH_ALL
    if not isinstance(spec, dict):
        raise TypeError(f"filter must be a dict or Filter, not {type(spec).__name__}")
    clauses: list[Clause] = []
    for key, expected in spec.items():
        if key == "$or" and isinstance(expected, list):
            clauses.append(OrClause(clauses=_parse_sub_filters(expected)))
        elif key == "$and" and isinstance(expected, list):
            clauses.append(AndClause(clauses=_parse_sub_filters(expected)))
        elif isinstance(expected, dict):
            clauses.append(FieldCondition(path=key, operators=_parse_operators(expected)))
        else:
            clauses.append(FieldEquals(path=key, value=expected))
    return Filter(clauses=tuple(clauses))


def matches(doc: Any, spec: Any) -> bool:
    return parse_filter(spec).matches(doc)
