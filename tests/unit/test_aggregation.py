from datetime import UTC, datetime

import pytest

from quarry.store.aggregation import (
    GroupStage,
    LimitStage,
    MatchStage,
    evaluate_expression,
    format_date,
    parse_pipeline,
    resolve_group_key,
    run_pipeline,
)
from quarry.store.errors import UnsupportedStageError


TRANSACTIONS = [
    {"_id": "t1", "userId": "u1", "type": "deposit", "amount": 100, "at": datetime(2024, 1, 1, 9, tzinfo=UTC)},
    {"_id": "t2", "userId": "u1", "type": "earn", "amount": 12.5, "at": datetime(2024, 1, 1, 18, tzinfo=UTC)},
    {"_id": "t3", "userId": "u2", "type": "deposit", "amount": 50, "at": datetime(2024, 1, 2, 9, tzinfo=UTC)},
    {"_id": "t4", "userId": "u2", "type": "withdraw", "amount": "n/a", "at": datetime(2024, 1, 3, tzinfo=UTC)},
    {"_id": "t5", "userId": "u3", "type": "deposit", "amount": 300, "at": None},
]


def test_parse_pipeline_builds_typed_stages() -> None:
    stages = parse_pipeline([{"$match": {}}, {"$group": {"_id": "$userId"}}, {"$limit": 2}])
    assert [type(stage) for stage in stages] == [MatchStage, GroupStage, LimitStage]


def test_unknown_stage_raises_before_running() -> None:
    with pytest.raises(UnsupportedStageError) as raised:
        run_pipeline(TRANSACTIONS, [{"$match": {}}, {"$lookup": {"from": "users"}}])
    assert raised.value.stage == "$lookup"


def test_group_totals_match_manual_computation() -> None:
    results = run_pipeline(
        TRANSACTIONS,
        [
            {
                "$group": {
                    "_id": "$userId",
                    "total": {"$sum": "$amount"},
                    "average": {"$avg": "$amount"},
                    "count": {"$sum": 1},
                    "rows": {"$count": {}},
                    "largest": {"$max": "$amount"},
                    "smallest": {"$min": "$amount"},
                    "firstType": {"$first": "$type"},
                }
            }
        ],
    )
    by_user = {row["_id"]: row for row in results}
    assert [row["_id"] for row in results] == ["u1", "u2", "u3"]
    assert by_user["u1"]["total"] == 112.5
    assert by_user["u1"]["average"] == 56.25
    assert by_user["u1"]["count"] == 2
    assert by_user["u2"]["total"] == 50
    assert by_user["u2"]["average"] == 50
    assert by_user["u2"]["rows"] == 2
    assert by_user["u2"]["largest"] == 50
    assert by_user["u3"]["smallest"] == 300
    assert by_user["u1"]["firstType"] == "deposit"


def test_group_with_null_key_collapses_everything() -> None:
    results = run_pipeline(TRANSACTIONS, [{"$group": {"_id": None, "total": {"$sum": "$amount"}}}])
    assert results == [{"_id": None, "total": 462.5}]


def test_empty_numeric_accumulators() -> None:
    results = run_pipeline(
        [{"v": "x"}],
        [{"$group": {"_id": None, "avg": {"$avg": "$v"}, "max": {"$max": "$v"}, "min": {"$min": "$v"}}}],
    )
    assert results == [{"_id": None, "avg": 0, "max": None, "min": None}]


def test_group_by_date_to_string_and_compound_key() -> None:
    results = run_pipeline(
        TRANSACTIONS,
        [
            {"$match": {"type": "deposit"}},
            {
                "$group": {
                    "_id": {
                        "day": {"$dateToString": {"format": "%Y-%m-%d", "date": "$at"}},
                        "type": "$type",
                    },
                    "total": {"$sum": "$amount"},
                }
            },
        ],
    )
    assert results == [
        {"_id": {"day": "2024-01-01", "type": "deposit"}, "total": 100},
        {"_id": {"day": "2024-01-02", "type": "deposit"}, "total": 50},
        {"_id": {"day": None, "type": "deposit"}, "total": 300},
    ]


def test_sort_then_limit_returns_top_n() -> None:
    results = run_pipeline(
        TRANSACTIONS,
        [
            {"$group": {"_id": "$userId", "total": {"$sum": "$amount"}}},
            {"$sort": {"total": -1}},
            {"$limit": 2},
        ],
    )
    assert [row["_id"] for row in results] == ["u3", "u1"]


@pytest.mark.parametrize(("raw", "expected"), [("2", 2), (1.9, 1), ("many", 0), (None, 0)])
def test_limit_coercion(raw: object, expected: int) -> None:
    assert len(run_pipeline(TRANSACTIONS, [{"$limit": raw}])) == expected


def test_project_stage_reshapes_rows() -> None:
    results = run_pipeline(TRANSACTIONS, [{"$match": {"_id": "t1"}}, {"$project": {"amount": 1, "_id": 0}}])
    assert results == [{"amount": 100}]


def test_cond_expression_in_sum() -> None:
    results = run_pipeline(
        TRANSACTIONS,
        [
            {
                "$group": {
                    "_id": None,
                    "deposits": {"$sum": {"$cond": [{"$eq": ["$type", "deposit"]}, "$amount", 0]}},
                    "depositCount": {
                        "$sum": {"$cond": {"if": {"$eq": ["$type", "deposit"]}, "then": 1, "else": 0}}
                    },
                }
            }
        ],
    )
    assert results == [{"_id": None, "deposits": 450, "depositCount": 3}]


def test_pipeline_does_not_mutate_input() -> None:
    docs = [{"a": 1}]
    run_pipeline(docs, [{"$project": {"a": 0}}])
    assert docs == [{"a": 1}]


def test_expression_helpers() -> None:
    doc = {"a": {"b": 2}}
    assert evaluate_expression(doc, "$a.b") == 2
    assert evaluate_expression(doc, "$missing") is None
    assert evaluate_expression(doc, 7) == 7
    assert resolve_group_key(doc, "literal") == "literal"
    assert format_date(datetime(2024, 2, 3, tzinfo=UTC), "%d/%m/%Y") == "03/02/2024"
