# tests/test_statistics.py

from datetime import date, datetime, timedelta, timezone

import pytest

from todolist.domain.models import timestamp
from todolist.service.statistics_service import completed_percentage

from conftest import OTHER_USER_ID, USER_ID


@pytest.mark.parametrize(
    "completed, total, expected",
    [(0, 0, 0), (3, 5, 60), (1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 200, 1), (5, 5, 100)],
)
def test_completed_percentage_rounds_half_up(completed, total, expected) -> None:
    assert completed_percentage(completed, total) == expected


def test_empty_statistics(statistics_service) -> None:
    stats = statistics_service.get_statistics(USER_ID)

    assert stats["summary"] == {
        "total_tasks": 0,
        "completed_tasks": 0,
        "pending_tasks": 0,
        "overdue_tasks": 0,
        "upcoming_tasks": 0,
        "completed_percentage": 0,
    }
    assert stats["by_priority"] == []
    assert stats["by_category"] == []
    assert stats["recent_productivity"] == []
    assert stats["popular_tags"] == []


def test_three_of_five_completed(statistics_service, task_service) -> None:
    ids = [task_service.create_task(USER_ID, {"title": f"t{i}"})["id"] for i in range(5)]
    for task_id in ids[:3]:
        task_service.set_completed(USER_ID, task_id, True)
    task_service.create_task(OTHER_USER_ID, {"title": "not counted"})

    stats = statistics_service.get_statistics(USER_ID)

    assert stats["summary"]["total_tasks"] == 5
    assert stats["summary"]["completed_tasks"] == 3
    assert stats["summary"]["pending_tasks"] == 2
    assert stats["summary"]["completed_percentage"] == 60
    assert stats["recent_productivity"] == [
        {"date": datetime.now(timezone.utc).date().isoformat(), "completed_tasks": 3}
    ]


def test_overdue_and_upcoming_exclude_completed(statistics_service, task_service, repository) -> None:
    today = date.today()
    overdue = task_service.create_task(USER_ID, {"title": "overdue"})
    done_overdue = task_service.create_task(USER_ID, {"title": "done overdue"})
    task_service.create_task(
        USER_ID, {"title": "soon", "due_date": (today + timedelta(days=3)).isoformat()}
    )
    task_service.create_task(
        USER_ID, {"title": "far", "due_date": (today + timedelta(days=30)).isoformat()}
    )
    done_soon = task_service.create_task(
        USER_ID, {"title": "done soon", "due_date": (today + timedelta(days=2)).isoformat()}
    )
    task_service.set_completed(USER_ID, done_soon["id"], True)
    task_service.set_completed(USER_ID, done_overdue["id"], True)

    # Due dates in the past can only come from data that aged
    with repository.transaction() as conn:
        for task_id in (overdue["id"], done_overdue["id"]):
            repository.update_task_fields(
                conn, task_id, USER_ID, {"due_date": today - timedelta(days=2)}, timestamp()
            )

    summary = statistics_service.get_statistics(USER_ID)["summary"]

    assert summary["overdue_tasks"] == 1
    assert summary["upcoming_tasks"] == 1


def test_priority_and_category_breakdowns(
    statistics_service, task_service, category_service
) -> None:
    work = category_service.create_category(USER_ID, {"name": "Work"})["id"]
    home = category_service.create_category(USER_ID, {"name": "Home"})["id"]
    category_service.create_category(USER_ID, {"name": "Empty"})

    specs = [
        ("low", work, True),
        ("high", work, False),
        ("high", work, True),
        ("medium", home, False),
        ("medium", None, False),
    ]
    for index, (priority, category_id, done) in enumerate(specs):
        task = task_service.create_task(
            USER_ID, {"title": f"t{index}", "priority": priority, "category_id": category_id}
        )
        if done:
            task_service.set_completed(USER_ID, task["id"], True)

    stats = statistics_service.get_statistics(USER_ID)

    assert [(p["priority"], p["total"], p["completed"], p["completed_percentage"]) for p in stats["by_priority"]] == [
        ("high", 2, 1, 50),
        ("medium", 2, 0, 0),
        ("low", 1, 1, 100),
    ]

    by_category = [
        (c["category_name"], c["total_tasks"], c["completed_tasks"]) for c in stats["by_category"]
    ]
    assert by_category[0] == ("Work", 3, 2)
    assert ("Uncategorized", 1, 0) in by_category
    assert ("Home", 1, 0) in by_category
    assert by_category[-1] == ("Empty", 0, 0)
    uncategorized = next(c for c in stats["by_category"] if c["category_id"] is None)
    assert uncategorized["category_color"] is None


def test_popular_tags_in_statistics(statistics_service, task_service, tag_service) -> None:
    tag = tag_service.create_tag(USER_ID, {"name": "focus"})["id"]
    task_service.create_task(USER_ID, {"title": "deep work", "tags": [tag]})

    popular = statistics_service.get_statistics(USER_ID)["popular_tags"]

    assert [(t["name"], t["usage_count"]) for t in popular] == [("focus", 1)]
