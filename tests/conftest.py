# tests/conftest.py

from datetime import date, timedelta

import pytest

from main import create_app
from todolist.auth.jwt import create_access_token
from todolist.config import Settings
from todolist.domain.models import timestamp
from todolist.repository.sqlite_repository import SQLiteTaskRepository
from todolist.service.category_service import CategoryService
from todolist.service.statistics_service import StatisticsService
from todolist.service.tag_service import TagService
from todolist.service.task_service import TaskService

USER_ID = 1
OTHER_USER_ID = 2
JWT_SECRET = "test-secret"


@pytest.fixture()
def repository(tmp_path):
    """
    Real SQLite repository per test, with two users already present.

    Ownership rules are enforced in SQL, so the store itself is under test.
    """
    repo = SQLiteTaskRepository(tmp_path / "todolist.sqlite3")
    repo.init_db()
    with repo.transaction() as conn:
        repo.ensure_user(conn, USER_ID, "alice@example.com", "Alice", timestamp())
        repo.ensure_user(conn, OTHER_USER_ID, "bob@example.com", "Bob", timestamp())
    return repo


@pytest.fixture()
def task_service(repository):
    return TaskService(repository, default_page_size=20, max_page_size=100)


@pytest.fixture()
def category_service(repository):
    return CategoryService(repository)


@pytest.fixture()
def tag_service(repository):
    return TagService(repository)


@pytest.fixture()
def statistics_service(repository):
    return StatisticsService(repository)


@pytest.fixture()
def tomorrow():
    return date.today() + timedelta(days=1)


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url="",
        sqlite_path=str(tmp_path / "todolist.sqlite3"),
        auth_jwt_secret=JWT_SECRET,
        skip_auth=False,
        dev_user_id=USER_ID,
    )


@pytest.fixture()
def app(settings, repository):
    app = create_app(settings, repository)
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers():
    token = create_access_token(USER_ID, "alice@example.com", JWT_SECRET)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def other_auth_headers():
    token = create_access_token(OTHER_USER_ID, "bob@example.com", JWT_SECRET)
    return {"Authorization": f"Bearer {token}"}
