import logging
from datetime import date

from todolist.domain.models import TaskDraft, TaskFilters, TaskPatch, timestamp
from todolist.errors import NotFoundError, ValidationError
from todolist.query.paging import build_pagination, resolve_page, resolve_sort
from todolist.query.predicates import build_task_predicates

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, repository, default_page_size=20, max_page_size=100, today=None):
        self.repository = repository
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self._today = today or date.today

    def list_tasks(self, user_id, filters=None, sort=None, page=None):
        """Return one page of hydrated tasks and its pagination metadata.

        ``filters`` is a :class:`TaskFilters` or a mapping of raw query
        values; ``sort`` and ``page`` are mappings holding
        ``sort_by``/``sort_direction`` and ``page``/``limit``.
        """
        if not isinstance(filters, TaskFilters):
            filters = TaskFilters.from_mapping(filters or {})
        sort = sort or {}
        page = page or {}

        sort_order = resolve_sort(sort.get("sort_by"), sort.get("sort_direction"))
        page_request = resolve_page(
            page.get("page"),
            page.get("limit"),
            default_page_size=self.default_page_size,
            max_page_size=self.max_page_size,
        )
        predicate = build_task_predicates(user_id, filters)

        with self.repository.connection() as conn:
            rows = self.repository.fetch_tasks_page(
                conn, predicate, sort_order, page_request.limit, page_request.offset
            )
            total = self.repository.count_tasks(conn, predicate)
            tags_map = self.repository.fetch_task_tags_map(conn, [row["id"] for row in rows])

        tasks = [self._hydrate(row, tags_map) for row in rows]
        return tasks, build_pagination(page_request, total)

    def get_task(self, user_id, task_id):
        with self.repository.connection() as conn:
            task = self.repository.fetch_task(conn, task_id, user_id)
            if task is None:
                raise NotFoundError("Task not found")
            tags_map = self.repository.fetch_task_tags_map(conn, [task["id"]])
        return self._hydrate(task, tags_map)

    def create_task(self, user_id, draft):
        if not isinstance(draft, TaskDraft):
            draft = TaskDraft.from_mapping(draft or {})
        self._validate_due_date(draft.due_date)

        with self.repository.transaction() as conn:
            self._validate_references(conn, user_id, draft.category_id, draft.tags)
            now = timestamp()
            task_id = self.repository.insert_task(conn, user_id, draft, now)
            self.repository.add_tags_to_task(conn, task_id, draft.tags, now)

        logger.info(
            "task created",
            extra={"user_id": user_id, "task_id": task_id, "tag_count": len(draft.tags)},
        )
        return self.get_task(user_id, task_id)

    def update_task(self, user_id, task_id, patch):
        if not isinstance(patch, TaskPatch):
            patch = TaskPatch.from_mapping(patch or {})

        with self.repository.transaction() as conn:
            if not self.repository.task_exists(conn, task_id, user_id):
                raise NotFoundError("Task not found")
            if patch.is_empty():
                raise ValidationError("No data to update")
            if "due_date" in patch:
                self._validate_due_date(patch.get("due_date"))
            self._validate_references(conn, user_id, patch.get("category_id"), patch.tags)

            now = timestamp()
            self.repository.update_task_fields(conn, task_id, user_id, patch.changes, now)
            if patch.tags is not None:
                self.repository.delete_task_tags(conn, task_id)
                self.repository.add_tags_to_task(conn, task_id, patch.tags, now)

        logger.info(
            "task updated",
            extra={
                "user_id": user_id,
                "task_id": task_id,
                "fields": sorted(patch.changes),
                "tags_replaced": patch.tags is not None,
            },
        )
        return self.get_task(user_id, task_id)

    def set_completed(self, user_id, task_id, completed):
        return self.update_task(user_id, task_id, TaskPatch(completed=completed))

    def delete_task(self, user_id, task_id):
        with self.repository.transaction() as conn:
            deleted = self.repository.delete_task(conn, task_id, user_id)
            if deleted == 0:
                raise NotFoundError("Task not found")
        logger.info("task deleted", extra={"user_id": user_id, "task_id": task_id})

    def _validate_due_date(self, due_date):
        if due_date is not None and due_date <= self._today():
            logger.warning("rejected due date", extra={"due_date": due_date.isoformat()})
            raise ValidationError("Due date must be in the future", field="due_date")

    def _validate_references(self, conn, user_id, category_id, tag_ids):
        if category_id is not None and not self.repository.category_belongs_to_user(
            conn, category_id, user_id
        ):
            raise ValidationError(
                "Category not found or does not belong to user", field="category_id"
            )
        if tag_ids:
            owned = self.repository.count_owned_tags(conn, tag_ids, user_id)
            if owned != len(tag_ids):
                raise ValidationError("One or more tags do not belong to user", field="tags")

    @staticmethod
    def _hydrate(task, tags_map):
        task = dict(task)
        category_name = task.pop("category_name", None)
        category_color = task.pop("category_color", None)
        task["completed"] = bool(task["completed"])
        task["category"] = (
            {"id": task["category_id"], "name": category_name, "color": category_color}
            if task["category_id"] is not None
            else None
        )
        task["tags"] = tags_map.get(task["id"], [])
        return task
