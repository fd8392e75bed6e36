import os
import random
from datetime import date, timedelta

from main import build_repository
from todolist.config import load_settings
from todolist.domain.models import timestamp
from todolist.logging_setup import setup_logging
from todolist.service.category_service import CategoryService
from todolist.service.tag_service import TagService
from todolist.service.task_service import TaskService

CATEGORIES = [
    ("Work", "Projects and meetings", "#3B82F6"),
    ("Personal", "Errands and appointments", "#10B981"),
    ("Learning", "Courses and reading", "#8B5CF6"),
]

TAGS = [
    ("urgent", "#EF4444"),
    ("quick", "#F59E0B"),
    ("waiting", "#6B7280"),
    ("review", "#14B8A6"),
]

TASKS_BY_CATEGORY = {
    "Work": [
        "Prepare sprint demo",
        "Review pull requests",
        "Write quarterly report",
        "Plan database migration",
    ],
    "Personal": [
        "Renew passport",
        "Book dentist appointment",
        "Pay electricity bill",
    ],
    "Learning": [
        "Finish SQL course module",
        "Read chapter on indexing",
        "Practice Flask testing",
    ],
}


def _clear_user_data(repository, user_id):
    with repository.transaction() as conn:
        repository._execute(
            conn,
            "DELETE FROM task_tags WHERE task_id IN (SELECT id FROM tasks WHERE user_id = %s)",
            (user_id,),
        )
        repository._execute(conn, "DELETE FROM tasks WHERE user_id = %s", (user_id,))
        repository._execute(conn, "DELETE FROM tags WHERE user_id = %s", (user_id,))
        repository._execute(conn, "DELETE FROM categories WHERE user_id = %s", (user_id,))


def seed_db():
    settings = load_settings()
    setup_logging(settings.log_level)
    seed_user_id = int(os.getenv("SEED_USER_ID", "1"))
    seed_user_email = os.getenv("SEED_USER_EMAIL", "seed@todolist.local")

    random.seed(42)
    repository = build_repository(settings)
    repository.init_db()
    with repository.transaction() as conn:
        repository.ensure_user(conn, seed_user_id, seed_user_email, "Seed User", timestamp())

    # Start from a clean slate so the seed is deterministic.
    _clear_user_data(repository, seed_user_id)

    categories = CategoryService(repository)
    tags = TagService(repository)
    tasks = TaskService(repository)

    category_ids = {}
    for name, description, color in CATEGORIES:
        category = categories.create_category(
            seed_user_id, {"name": name, "description": description, "color": color}
        )
        category_ids[name] = category["id"]

    tag_ids = [
        tags.create_tag(seed_user_id, {"name": name, "color": color})["id"]
        for name, color in TAGS
    ]

    today = date.today()
    created = 0
    for category_name, titles in TASKS_BY_CATEGORY.items():
        for title in titles:
            due_in = random.choice([None, 1, 3, 7, 14, 30])
            task = tasks.create_task(
                seed_user_id,
                {
                    "title": title,
                    "category_id": category_ids[category_name],
                    "priority": random.choice(["low", "medium", "high"]),
                    "due_date": (today + timedelta(days=due_in)).isoformat() if due_in else None,
                    "tags": random.sample(tag_ids, random.randint(0, 2)),
                },
            )
            if random.random() < 0.4:
                tasks.set_completed(seed_user_id, task["id"], True)
            created += 1

    tasks.create_task(seed_user_id, {"title": "Sort out the garage", "priority": "low"})
    repository.close()
    return created + 1


if __name__ == "__main__":
    count = seed_db()
    print(f"Seeded {count} tasks.")
