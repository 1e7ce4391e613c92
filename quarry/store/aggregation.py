"""Aggregation pipeline evaluator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import json
import math
from typing import Any, Union

from quarry.store.errors import UnsupportedStageError
from quarry.store.filters import Filter, parse_filter
from quarry.store.paths import MISSING, get_path
from quarry.store.projection import Projection, apply_projection
from quarry.store.values import is_number, normalize_deep, sort_documents, to_datetime, to_json_safe, values_equal


def _field_value(doc: Any, reference: str) -> Any:
    value = get_path(doc, reference[1:])
    return None if value is MISSING else value


def evaluate_expression(doc: Any, expression: Any) -> Any:
    """Evaluate literals, ``"$path"`` references and ``$cond``."""
    if isinstance(expression, str) and expression.startswith("$"):
        return _field_value(doc, expression)
    if isinstance(expression, dict):
        if "$cond" in expression:
            condition, if_true, if_false = _cond_branches(expression["$cond"])
            chosen = if_true if evaluate_condition(doc, condition) else if_false
            return evaluate_expression(doc, chosen)
        return None
    if isinstance(expression, list):
        return None
    return expression


def _cond_branches(spec: Any) -> tuple[Any, Any, Any]:
    if isinstance(spec, dict):
        return spec.get("if"), spec.get("then"), spec.get("else")
    if isinstance(spec, (list, tuple)) and len(spec) == 3:
        return spec[0], spec[1], spec[2]
    return None, None, None


def evaluate_condition(doc: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and "$eq" in condition:
        operands = condition["$eq"]
        if isinstance(operands, (list, tuple)) and len(operands) == 2:
            left = evaluate_expression(doc, operands[0])
            right = evaluate_expression(doc, operands[1])
            return values_equal([left], [right])
        return False
    return bool(evaluate_expression(doc, condition))


def format_date(value: datetime | date, fmt: str) -> str:
    moment = to_datetime(value)
    if moment is None:
        return ""
    return (
        fmt.replace("%Y", f"{moment.year:04d}")
        .replace("%m", f"{moment.month:02d}")
        .replace("%d", f"{moment.day:02d}")
    )


def resolve_group_key(doc: Any, key_spec: Any) -> Any:
    if key_spec is None:
        return None
    if isinstance(key_spec, str) and key_spec.startswith("$"):
        return _field_value(doc, key_spec)
    if not isinstance(key_spec, dict):
        return key_spec
    if "$dateToString" in key_spec:
        spec = key_spec["$dateToString"] or {}
        reference = str(spec.get("date", ""))
        value = _field_value(doc, reference) if reference.startswith("$") else None
        if not isinstance(value, (datetime, date)):
            return None
        return format_date(value, str(spec.get("format") or "%Y-%m-%d"))
    return {name: resolve_group_key(doc, sub_spec) for name, sub_spec in key_spec.items()}


def _numeric_results(docs: list[dict[str, Any]], expression: Any) -> list[int | float]:
    values = [evaluate_expression(doc, expression) for doc in docs]
    return [value for value in values if is_number(value)]


@dataclass(frozen=True, slots=True)
class Accumulator:
    kind: str
    expression: Any

    def compute(self, docs: list[dict[str, Any]]) -> Any:
        if self.kind == "$sum":
            if is_number(self.expression):
                return self.expression * len(docs)
            return sum(_numeric_results(docs, self.expression))
        if self.kind == "$avg":
            values = _numeric_results(docs, self.expression)
            return sum(values) / len(values) if values else 0
        if self.kind == "$max":
            values = _numeric_results(docs, self.expression)
            return max(values) if values else None
        if self.kind == "$min":
            values = _numeric_results(docs, self.expression)
            return min(values) if values else None
        if self.kind == "$count":
            return len(docs)
        if self.kind == "$first":
            return evaluate_expression(docs[0], self.expression) if docs else None
        if self.kind == "literal":
            return self.expression
        return None


_ACCUMULATOR_ORDER = ("$sum", "$avg", "$max", "$min", "$count", "$first")


def parse_accumulator(spec: Any) -> Accumulator:
    if not isinstance(spec, dict):
        return Accumulator(kind="literal", expression=spec)
    for kind in _ACCUMULATOR_ORDER:
        if kind in spec:
            return Accumulator(kind=kind, expression=spec[kind])
    return Accumulator(kind="unknown", expression=None)


@dataclass(frozen=True, slots=True)
class MatchStage:
    filter: Filter

    def run(self, docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [doc for doc in docs if self.filter.matches(doc)]


@dataclass(frozen=True, slots=True)
class GroupStage:
    key: Any
    accumulators: dict[str, Accumulator] = field(default_factory=dict)

    def run(self, docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        groups: dict[str, tuple[Any, list[dict[str, Any]]]] = {}
        for doc in docs:
            key_value = resolve_group_key(doc, self.key)
            fingerprint = json.dumps(to_json_safe(normalize_deep(key_value)), default=str)
            if fingerprint not in groups:
                groups[fingerprint] = (key_value, [])
            groups[fingerprint][1].append(doc)

        results: list[dict[str, Any]] = []
        for key_value, members in groups.values():
            row: dict[str, Any] = {"_id": key_value}
            for name, accumulator in self.accumulators.items():
                row[name] = accumulator.compute(members)
            results.append(row)
        return results


@dataclass(frozen=True, slots=True)
class SortStage:
    spec: Any

    def run(self, docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return sort_documents(docs, self.spec)


@dataclass(frozen=True, slots=True)
class LimitStage:
    count: int

    def run(self, docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return docs[: self.count]


@dataclass(frozen=True, slots=True)
class ProjectStage:
    projection: Projection
    identity_field: str = "_id"

    def run(self, docs: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [apply_projection(doc, self.projection, identity_field=self.identity_field) for doc in docs]


Stage = Union[MatchStage, GroupStage, SortStage, LimitStage, ProjectStage]


def _coerce_limit(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number)


def parse_stage(stage: dict[str, Any], *, identity_field: str = "_id") -> Stage:
    if not isinstance(stage, dict) or not stage:
        raise UnsupportedStageError(repr(stage))
    operator = next(iter(stage))
    value = stage[operator]
    if operator == "$match":
        return MatchStage(filter=parse_filter(value))
    if operator == "$group":
        spec = dict(value or {})
        return GroupStage(
            key=spec.get("_id"),
            accumulators={name: parse_accumulator(item) for name, item in spec.items() if name != "_id"},
        )
    if operator == "$sort":
        return SortStage(spec=value)
    if operator == "$limit":
        return LimitStage(count=_coerce_limit(value))
    if operator == "$project":
        return ProjectStage(projection=value, identity_field=identity_field)
    raise UnsupportedStageError(str(operator))


def parse_pipeline(pipeline: list[dict[str, Any]], *, identity_field: str = "_id") -> list[Stage]:
    return [parse_stage(stage, identity_field=identity_field) for stage in pipeline or []]


def run_pipeline(
    docs: list[dict[str, Any]],
    pipeline: list[dict[str, Any]],
    *,
    identity_field: str = "_id",
) -> list[dict[str, Any]]:
    results = list(docs)
    for stage in parse_pipeline(pipeline, identity_field=identity_field):
        results = stage.run(results)
    return results
