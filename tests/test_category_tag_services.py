# tests/test_category_tag_services.py

import pytest

from todolist.domain.models import COLOR_PALETTE, timestamp
from todolist.errors import ConflictError, NotFoundError, ValidationError

from conftest import OTHER_USER_ID, USER_ID


def test_category_crud(category_service) -> None:
    created = category_service.create_category(
        USER_ID, {"name": " Work ", "description": "Office", "color": "#FF0000"}
    )
    assert created["name"] == "Work"
    assert created["color"] == "#FF0000"

    updated = category_service.update_category(USER_ID, created["id"], {"description": None})
    assert updated["description"] is None
    assert updated["name"] == "Work"

    assert [c["name"] for c in category_service.list_categories(USER_ID)] == ["Work"]
    assert category_service.list_categories(OTHER_USER_ID) == []


def test_category_color_defaults_to_palette(category_service) -> None:
    created = category_service.create_category(USER_ID, {"name": "Misc"})
    assert created["color"] in COLOR_PALETTE


@pytest.mark.parametrize(
    "payload",
    [{}, {"name": ""}, {"name": "x" * 101}, {"name": "ok", "color": "red"}, {"name": "ok", "color": "#12345"}],
)
def test_category_validation(category_service, payload) -> None:
    with pytest.raises(ValidationError):
        category_service.create_category(USER_ID, payload)


def test_category_names_are_unique_per_user(category_service) -> None:
    category_service.create_category(USER_ID, {"name": "Work"})
    other = category_service.create_category(USER_ID, {"name": "Home"})

    with pytest.raises(ConflictError):
        category_service.create_category(USER_ID, {"name": "Work"})
    with pytest.raises(ConflictError):
        category_service.update_category(USER_ID, other["id"], {"name": "Work"})

    # Same name for a different user is fine
    category_service.create_category(OTHER_USER_ID, {"name": "Work"})


def test_category_update_errors(category_service) -> None:
    created = category_service.create_category(USER_ID, {"name": "Work"})

    with pytest.raises(NotFoundError):
        category_service.update_category(OTHER_USER_ID, created["id"], {"name": "Mine"})
    with pytest.raises(ValidationError, match="No data to update"):
        category_service.update_category(USER_ID, created["id"], {})


def test_empty_category_delete(category_service) -> None:
    created = category_service.create_category(USER_ID, {"name": "Empty"})

    assert category_service.delete_category(USER_ID, created["id"]) == 0
    with pytest.raises(NotFoundError):
        category_service.get_category(USER_ID, created["id"])


def test_referenced_category_delete_requires_force(category_service, task_service) -> None:
    category = category_service.create_category(USER_ID, {"name": "Busy"})
    task = task_service.create_task(USER_ID, {"title": "Linked", "category_id": category["id"]})

    with pytest.raises(ConflictError):
        category_service.delete_category(USER_ID, category["id"])
    assert task_service.get_task(USER_ID, task["id"])["category_id"] == category["id"]

    assert category_service.delete_category(USER_ID, category["id"], force=True) == 1
    assert task_service.get_task(USER_ID, task["id"])["category"] is None
    with pytest.raises(NotFoundError):
        category_service.get_category(USER_ID, category["id"])


def test_category_delete_is_scoped_to_owner(category_service) -> None:
    created = category_service.create_category(USER_ID, {"name": "Mine"})
    with pytest.raises(NotFoundError):
        category_service.delete_category(OTHER_USER_ID, created["id"], force=True)


def test_category_stats(category_service, task_service) -> None:
    category = category_service.create_category(USER_ID, {"name": "Stats"})
    for title in ("a", "b", "c"):
        task = task_service.create_task(USER_ID, {"title": title, "category_id": category["id"]})
    task_service.set_completed(USER_ID, task["id"], True)

    stats = category_service.category_stats(USER_ID, category["id"])

    assert stats["category"]["name"] == "Stats"
    assert stats["total_tasks"] == 3
    assert stats["completed_tasks"] == 1
    assert stats["pending_tasks"] == 2
    assert stats["completed_percentage"] == 33


def test_tag_crud_and_usage(tag_service, task_service) -> None:
    urgent = tag_service.create_tag(USER_ID, {"name": "urgent", "color": "#F00"})
    assert urgent["usage_count"] == 0

    task_service.create_task(USER_ID, {"title": "Hot", "tags": [urgent["id"]]})

    renamed = tag_service.update_tag(USER_ID, urgent["id"], {"name": "asap"})
    assert renamed["name"] == "asap"
    assert renamed["usage_count"] == 1
    assert [(t["name"], t["usage_count"]) for t in tag_service.list_tags(USER_ID)] == [("asap", 1)]


def test_tag_names_are_unique_per_user(tag_service) -> None:
    tag_service.create_tag(USER_ID, {"name": "urgent"})
    with pytest.raises(ConflictError):
        tag_service.create_tag(USER_ID, {"name": "urgent"})
    with pytest.raises(ValidationError):
        tag_service.create_tag(USER_ID, {"name": "x" * 51})


def test_used_tag_delete_requires_force(tag_service, task_service) -> None:
    tag = tag_service.create_tag(USER_ID, {"name": "urgent"})
    task = task_service.create_task(USER_ID, {"title": "Hot", "tags": [tag["id"]]})

    with pytest.raises(ConflictError):
        tag_service.delete_tag(USER_ID, tag["id"])

    assert tag_service.delete_tag(USER_ID, tag["id"], force=True) == 1
    assert task_service.get_task(USER_ID, task["id"])["tags"] == []
    with pytest.raises(NotFoundError):
        tag_service.get_tag(USER_ID, tag["id"])


def test_popular_tags(tag_service, task_service) -> None:
    a = tag_service.create_tag(USER_ID, {"name": "a"})["id"]
    b = tag_service.create_tag(USER_ID, {"name": "b"})["id"]
    tag_service.create_tag(USER_ID, {"name": "unused"})
    task_service.create_task(USER_ID, {"title": "1", "tags": [a, b]})
    task_service.create_task(USER_ID, {"title": "2", "tags": [b]})

    popular = tag_service.popular_tags(USER_ID)
    assert [(t["name"], t["usage_count"]) for t in popular] == [("b", 2), ("a", 1)]
    assert len(tag_service.popular_tags(USER_ID, limit="1")) == 1


def test_integrity_errors_are_translated(repository) -> None:
    with repository.transaction() as conn:
        repository.insert_category(conn, USER_ID, "Dup", None, "#000000", timestamp())

    with pytest.raises(ConflictError):
        with repository.transaction() as conn:
            repository.insert_category(conn, USER_ID, "Dup", None, "#000000", timestamp())

    with pytest.raises(ValidationError):
        with repository.transaction() as conn:
            repository.insert_tag(conn, 999, "orphan", "#000000", timestamp())
