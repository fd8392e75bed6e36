# tests/test_predicates.py

from datetime import date

import pytest

from todolist.domain.models import TaskFilters
from todolist.errors import ValidationError
from todolist.query.predicates import Predicate, build_task_predicates, escape_like


def test_owner_clause_is_always_first_and_alone_without_filters() -> None:
    predicate = build_task_predicates(7)

    where, params = predicate.where_clause()
    assert len(predicate) == 1
    assert where == "(t.user_id = %s)"
    assert params == (7,)


def test_all_filters_render_in_order_with_bound_values() -> None:
    filters = TaskFilters(
        completed="false",
        category="3",
        priority="HIGH",
        due_date="2030-05-01",
        search="Report",
        tags="4,5",
    )

    where, params = build_task_predicates(1, filters).where_clause()

    assert where.startswith("(t.user_id = %s) AND (t.completed = %s)")
    assert "t.category_id = %s" in where
    assert "t.priority = %s" in where
    assert "t.due_date = %s" in where
    assert "LOWER(t.title) LIKE %s" in where
    assert "tt.tag_id IN (%s, %s)" in where
    assert params == (1, False, 3, "high", "2030-05-01", "%report%", "%report%", 4, 5)


def test_search_text_never_reaches_clause_text() -> None:
    where, params = build_task_predicates(
        1, TaskFilters(search="x'; DROP TABLE tasks; --")
    ).where_clause()

    assert "DROP" not in where
    assert params[1] == "%x'; drop table tasks; --%"


def test_like_wildcards_in_search_are_escaped() -> None:
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"

    _, params = build_task_predicates(1, TaskFilters(search="50%")).where_clause()
    assert params[1] == "%50\\%%"


def test_empty_values_add_no_clause() -> None:
    predicate = build_task_predicates(1, TaskFilters(completed="", search="   ", tags=""))
    assert len(predicate) == 1


def test_predicate_renders_params_in_clause_order() -> None:
    predicate = Predicate().add("a = %s", 1).add("b IN (%s, %s)", 2, 3)
    assert predicate.where_clause() == ("(a = %s) AND (b IN (%s, %s))", (1, 2, 3))


@pytest.mark.parametrize(
    "args",
    [
        {"priority": "urgent"},
        {"completed": "maybe"},
        {"category": "0"},
        {"category": "abc"},
        {"due_date": "31/12/2030"},
        {"tags": "1,x"},
        {"tags": "1,,2"},
        {"search": "a" * 101},
    ],
)
def test_malformed_filter_values_are_rejected(args) -> None:
    with pytest.raises(ValidationError):
        TaskFilters.from_mapping(args)


def test_filters_normalise_query_strings() -> None:
    filters = TaskFilters.from_mapping(
        {"completed": "TRUE", "due_date": "2030-01-02T10:00:00Z", "tags": "3, 3, 8"}
    )
    assert filters.completed is True
    assert filters.due_date == date(2030, 1, 2)
    assert filters.tags == [3, 8]
