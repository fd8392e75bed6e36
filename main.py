import logging

from flask import Flask

from todolist.auth_client import init_auth
from todolist.config import load_settings
from todolist.logging_setup import setup_logging
from todolist.presentation.errors import register_error_handlers
from todolist.presentation.routes import register_routes
from todolist.repository.postgres_repository import PostgresTaskRepository
from todolist.repository.sqlite_repository import SQLiteTaskRepository
from todolist.service.category_service import CategoryService
from todolist.service.statistics_service import StatisticsService
from todolist.service.tag_service import TagService
from todolist.service.task_service import TaskService

logger = logging.getLogger(__name__)


def build_repository(settings):
    if settings.database_url:
        return PostgresTaskRepository(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
    return SQLiteTaskRepository(settings.sqlite_path)


def create_app(settings=None, repository=None):
    settings = settings or load_settings()
    repository = repository or build_repository(settings)
    repository.init_db()

    app = Flask(__name__)
    app.config.update(settings.to_flask_config())

    task_service = TaskService(
        repository,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    init_auth(app, repository)
    register_error_handlers(app)
    register_routes(
        app,
        task_service,
        CategoryService(repository),
        TagService(repository),
        StatisticsService(repository),
    )
    logger.info(
        "application ready",
        extra={"repository": type(repository).__name__, "skip_auth": settings.skip_auth},
    )
    return app


if __name__ == "__main__":
    settings = load_settings()
    setup_logging(settings.log_level)
    create_app(settings).run(host="0.0.0.0", port=5000, debug=True)
