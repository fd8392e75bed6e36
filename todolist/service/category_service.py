import logging

from todolist.domain.models import (
    CATEGORY_DESCRIPTION_MAX_LENGTH,
    CATEGORY_NAME_MAX_LENGTH,
    parse_color,
    parse_text,
    random_color,
    timestamp,
)
from todolist.errors import ConflictError, NotFoundError, ValidationError
from todolist.service.statistics_service import completed_percentage

logger = logging.getLogger(__name__)


class CategoryService:
    def __init__(self, repository):
        self.repository = repository

    def list_categories(self, user_id):
        with self.repository.connection() as conn:
            return self.repository.fetch_categories(conn, user_id)

    def get_category(self, user_id, category_id):
        with self.repository.connection() as conn:
            category = self.repository.fetch_category(conn, category_id, user_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def create_category(self, user_id, payload):
        payload = payload or {}
        name = parse_text(payload.get("name"), "name", CATEGORY_NAME_MAX_LENGTH, required=True)
        description = parse_text(
            payload.get("description"), "description", CATEGORY_DESCRIPTION_MAX_LENGTH
        ) or None
        color = parse_color(payload.get("color")) or random_color()

        with self.repository.transaction() as conn:
            if self.repository.category_name_taken(conn, user_id, name):
                raise ConflictError("A category with this name already exists")
            category_id = self.repository.insert_category(
                conn, user_id, name, description, color, timestamp()
            )

        logger.info("category created", extra={"user_id": user_id, "category_id": category_id})
        return self.get_category(user_id, category_id)

    def update_category(self, user_id, category_id, payload):
        payload = payload or {}
        changes = {}
        if "name" in payload:
            changes["name"] = parse_text(
                payload["name"], "name", CATEGORY_NAME_MAX_LENGTH, required=True
            )
        if "description" in payload:
            changes["description"] = parse_text(
                payload["description"], "description", CATEGORY_DESCRIPTION_MAX_LENGTH
            ) or None
        if "color" in payload:
            color = parse_color(payload["color"])
            if color is None:
                raise ValidationError("color cannot be empty", field="color")
            changes["color"] = color

        with self.repository.transaction() as conn:
            if self.repository.fetch_category(conn, category_id, user_id) is None:
                raise NotFoundError("Category not found")
            if not changes:
                raise ValidationError("No data to update")
            if "name" in changes and self.repository.category_name_taken(
                conn, user_id, changes["name"], exclude_id=category_id
            ):
                raise ConflictError("A category with this name already exists")
            self.repository.update_category_fields(
                conn, category_id, user_id, changes, timestamp()
            )

        logger.info(
            "category updated",
            extra={"user_id": user_id, "category_id": category_id, "fields": sorted(changes)},
        )
        return self.get_category(user_id, category_id)

    def delete_category(self, user_id, category_id, force=False):
        """Delete a category.

        While tasks still reference the category the delete is refused unless
        ``force`` is set, in which case those tasks are moved to no category
        first. Returns the number of tasks that were detached.
        """
        with self.repository.transaction() as conn:
            if self.repository.fetch_category(conn, category_id, user_id) is None:
                raise NotFoundError("Category not found")
            task_count = self.repository.count_category_tasks(conn, category_id, user_id)
            if task_count and not force:
                raise ConflictError(
                    f"Category has {task_count} associated task(s); "
                    "use force to move them to no category"
                )
            detached = 0
            if task_count:
                detached = self.repository.detach_category_tasks(
                    conn, category_id, user_id, timestamp()
                )
            self.repository.delete_category(conn, category_id, user_id)

        logger.info(
            "category deleted",
            extra={"user_id": user_id, "category_id": category_id, "detached_tasks": detached},
        )
        return detached

    def category_stats(self, user_id, category_id):
        with self.repository.connection() as conn:
            category = self.repository.fetch_category(conn, category_id, user_id)
            if category is None:
                raise NotFoundError("Category not found")
            counts = self.repository.fetch_category_task_counts(conn, category_id, user_id)
        return {
            "category": category,
            **counts,
            "completed_percentage": completed_percentage(
                counts["completed_tasks"], counts["total_tasks"]
            ),
        }
