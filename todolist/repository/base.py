import logging
from contextlib import contextmanager

from todolist.errors import ConflictError, ValidationError
from todolist.query.paging import order_by_clause
from todolist.query.predicates import placeholders

logger = logging.getLogger(__name__)

TASK_COLUMNS = """
    t.id, t.user_id, t.category_id, t.title, t.description,
    t.completed, t.priority, t.due_date, t.completed_at,
    t.created_at, t.updated_at
"""

TASK_UPDATE_COLUMNS = ("title", "description", "category_id", "priority", "due_date", "completed")
CATEGORY_UPDATE_COLUMNS = ("name", "description", "color")
TAG_UPDATE_COLUMNS = ("name", "color")

INDEX_STATEMENTS = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_id ON tasks (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_completed ON tasks (user_id, completed)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_category ON tasks (user_id, category_id)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_due_date ON tasks (user_id, due_date)",
    "CREATE INDEX IF NOT EXISTS idx_categories_user_id ON categories (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_tags_user_id ON tags (user_id)",
    "CREATE INDEX IF NOT EXISTS idx_task_tags_tag_id ON task_tags (tag_id)",
]


class SQLTaskRepository:
    """SQL shared by the PostgreSQL and SQLite task repositories.

    Every data method takes an explicit connection. Callers obtain one from
    :meth:`connection` (reads) or :meth:`transaction` (writes), both of which
    release it when the block exits. Statements are written with ``%s``
    placeholders; dialects that need another style rewrite them in
    :meth:`_execute`.
    """

    integrity_errors = ()
    schema_statements = []

    @contextmanager
    def connection(self):
        raise NotImplementedError

    @contextmanager
    def _transaction(self):
        raise NotImplementedError

    @contextmanager
    def transaction(self):
        """Run a unit of work: commit on success, roll back on any error."""
        try:
            with self._transaction() as conn:
                yield conn
        except self.integrity_errors as exc:
            logger.warning("transaction rejected by constraint", extra={"error": str(exc)})
            raise self.translate_integrity_error(exc) from exc

    def close(self):
        pass

    def _integrity_kind(self, exc):
        raise NotImplementedError

    def translate_integrity_error(self, exc):
        kind = self._integrity_kind(exc)
        if kind == "unique":
            return ConflictError("Resource already exists with these values")
        if kind == "foreign_key":
            return ValidationError("Referenced resource does not exist")
        if kind == "not_null":
            return ValidationError("A required field is missing")
        return ValidationError("Data validation failed")

    def _execute(self, conn, sql, params=()):
        return conn.execute(sql, tuple(params))

    def _insert(self, conn, sql, params):
        raise NotImplementedError

    def _fetchall(self, conn, sql, params=()):
        return [dict(row) for row in self._execute(conn, sql, params).fetchall()]

    def _fetchone(self, conn, sql, params=()):
        row = self._execute(conn, sql, params).fetchone()
        return dict(row) if row is not None else None

    def _update_owned(self, conn, table, allowed, row_id, user_id, changes, updated_at, extra=()):
        assignments = []
        params = []
        for column, value in changes.items():
            if column not in allowed:
                raise ValueError(f"Column {column!r} cannot be updated on {table}")
            assignments.append(f"{column} = %s")
            params.append(value)
        for assignment, assignment_params in extra:
            assignments.append(assignment)
            params.extend(assignment_params)
        assignments.append("updated_at = %s")
        params.append(updated_at)
        params.extend([int(row_id), int(user_id)])
        cursor = self._execute(
            conn,
            f"UPDATE {table} SET {', '.join(assignments)} WHERE id = %s AND user_id = %s",
            params,
        )
        return cursor.rowcount

    def init_db(self):
        with self.transaction() as conn:
            for statement in self.schema_statements + INDEX_STATEMENTS:
                self._execute(conn, statement)
        logger.info("database schema ready", extra={"repository": type(self).__name__})

    # users

    def ensure_user(self, conn, user_id, email, name, created_at):
        self._execute(
            conn,
            """
            INSERT INTO users (id, email, name, active, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT DO NOTHING
            """,
            (int(user_id), email, name, True, created_at, created_at),
        )
        return int(user_id)

    def fetch_user(self, conn, user_id):
        return self._fetchone(
            conn,
            "SELECT id, email, name, active, created_at, updated_at FROM users WHERE id = %s",
            (int(user_id),),
        )

    def deactivate_user(self, conn, user_id, updated_at):
        cursor = self._execute(
            conn,
            "UPDATE users SET active = %s, updated_at = %s WHERE id = %s",
            (False, updated_at, int(user_id)),
        )
        return cursor.rowcount

    # tasks: reads

    def fetch_tasks_page(self, conn, predicate, sort_order, limit, offset):
        where, params = predicate.where_clause()
        return self._fetchall(
            conn,
            f"""
            SELECT {TASK_COLUMNS},
                   c.name AS category_name, c.color AS category_color
            FROM tasks t
            LEFT JOIN categories c ON c.id = t.category_id
            WHERE {where}
            ORDER BY {order_by_clause(sort_order)}
            LIMIT %s OFFSET %s
            """,
            params + (int(limit), int(offset)),
        )

    def count_tasks(self, conn, predicate):
        where, params = predicate.where_clause()
        row = self._fetchone(
            conn,
            f"SELECT COUNT(*) AS total FROM tasks t WHERE {where}",
            params,
        )
        return int(row["total"]) if row else 0

    def fetch_task(self, conn, task_id, user_id):
        return self._fetchone(
            conn,
            f"""
            SELECT {TASK_COLUMNS},
                   c.name AS category_name, c.color AS category_color
            FROM tasks t
            LEFT JOIN categories c ON c.id = t.category_id
            WHERE t.id = %s AND t.user_id = %s
            """,
            (int(task_id), int(user_id)),
        )

    def fetch_task_tags_map(self, conn, task_ids):
        if not task_ids:
            return {}
        rows = self._fetchall(
            conn,
            f"""
            SELECT tt.task_id, g.id, g.name, g.color
            FROM task_tags tt
            JOIN tags g ON g.id = tt.tag_id
            WHERE tt.task_id IN ({placeholders(len(task_ids))})
            ORDER BY g.name ASC
            """,
            tuple(task_ids),
        )
        tags_map = {}
        for row in rows:
            tags_map.setdefault(row["task_id"], []).append(
                {"id": row["id"], "name": row["name"], "color": row["color"]}
            )
        return tags_map

    def task_exists(self, conn, task_id, user_id):
        row = self._fetchone(
            conn,
            "SELECT id FROM tasks WHERE id = %s AND user_id = %s",
            (int(task_id), int(user_id)),
        )
        return row is not None

    def category_belongs_to_user(self, conn, category_id, user_id):
        row = self._fetchone(
            conn,
            "SELECT id FROM categories WHERE id = %s AND user_id = %s",
            (int(category_id), int(user_id)),
        )
        return row is not None

    def count_owned_tags(self, conn, tag_ids, user_id):
        if not tag_ids:
            return 0
        row = self._fetchone(
            conn,
            f"""
            SELECT COUNT(*) AS total FROM tags
            WHERE id IN ({placeholders(len(tag_ids))}) AND user_id = %s
            """,
            tuple(tag_ids) + (int(user_id),),
        )
        return int(row["total"])

    # tasks: writes

    def insert_task(self, conn, user_id, draft, created_at):
        return self._insert(
            conn,
            """
            INSERT INTO tasks (
                user_id, category_id, title, description, completed,
                priority, due_date, completed_at, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                int(user_id),
                draft.category_id,
                draft.title,
                draft.description,
                False,
                draft.priority,
                draft.due_date.isoformat() if draft.due_date else None,
                None,
                created_at,
                created_at,
            ),
        )

    def update_task_fields(self, conn, task_id, user_id, changes, updated_at):
        """Apply a partial update; ``completed_at`` follows ``completed``."""
        changes = dict(changes)
        if changes.get("due_date") is not None:
            changes["due_date"] = changes["due_date"].isoformat()
        extra = []
        if "completed" in changes:
            if changes["completed"]:
                extra.append(("completed_at = COALESCE(completed_at, %s)", (updated_at,)))
            else:
                extra.append(("completed_at = NULL", ()))
        return self._update_owned(
            conn, "tasks", TASK_UPDATE_COLUMNS, task_id, user_id, changes, updated_at, extra
        )

    def add_tags_to_task(self, conn, task_id, tag_ids, created_at):
        for tag_id in tag_ids:
            self._execute(
                conn,
                "INSERT INTO task_tags (task_id, tag_id, created_at) VALUES (%s, %s, %s)",
                (int(task_id), int(tag_id), created_at),
            )

    def delete_task_tags(self, conn, task_id):
        cursor = self._execute(
            conn, "DELETE FROM task_tags WHERE task_id = %s", (int(task_id),)
        )
        return cursor.rowcount

    def delete_task(self, conn, task_id, user_id):
        self._execute(
            conn,
            """
            DELETE FROM task_tags
            WHERE task_id IN (SELECT id FROM tasks WHERE id = %s AND user_id = %s)
            """,
            (int(task_id), int(user_id)),
        )
        cursor = self._execute(
            conn,
            "DELETE FROM tasks WHERE id = %s AND user_id = %s",
            (int(task_id), int(user_id)),
        )
        return cursor.rowcount

    # categories

    def fetch_categories(self, conn, user_id):
        return self._fetchall(
            conn,
            """
            SELECT id, user_id, name, description, color, created_at, updated_at
            FROM categories
            WHERE user_id = %s
            ORDER BY name ASC
            """,
            (int(user_id),),
        )

    def fetch_category(self, conn, category_id, user_id):
        return self._fetchone(
            conn,
            """
            SELECT id, user_id, name, description, color, created_at, updated_at
            FROM categories
            WHERE id = %s AND user_id = %s
            """,
            (int(category_id), int(user_id)),
        )

    def category_name_taken(self, conn, user_id, name, exclude_id=None):
        sql = "SELECT id FROM categories WHERE user_id = %s AND name = %s"
        params = [int(user_id), name]
        if exclude_id is not None:
            sql += " AND id != %s"
            params.append(int(exclude_id))
        return self._fetchone(conn, sql, params) is not None

    def insert_category(self, conn, user_id, name, description, color, created_at):
        return self._insert(
            conn,
            """
            INSERT INTO categories (user_id, name, description, color, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            """,
            (int(user_id), name, description, color, created_at, created_at),
        )

    def update_category_fields(self, conn, category_id, user_id, changes, updated_at):
        return self._update_owned(
            conn, "categories", CATEGORY_UPDATE_COLUMNS, category_id, user_id, changes, updated_at
        )

    def count_category_tasks(self, conn, category_id, user_id):
        row = self._fetchone(
            conn,
            "SELECT COUNT(*) AS total FROM tasks WHERE category_id = %s AND user_id = %s",
            (int(category_id), int(user_id)),
        )
        return int(row["total"])

    def fetch_category_task_counts(self, conn, category_id, user_id):
        row = self._fetchone(
            conn,
            """
            SELECT COUNT(*) AS total_tasks,
                   COALESCE(SUM(CASE WHEN completed THEN 1 ELSE 0 END), 0) AS completed_tasks,
                   COALESCE(SUM(CASE WHEN completed THEN 0 ELSE 1 END), 0) AS pending_tasks
            FROM tasks
            WHERE category_id = %s AND user_id = %s
            """,
            (int(category_id), int(user_id)),
        )
        return {key: int(value) for key, value in row.items()}

    def detach_category_tasks(self, conn, category_id, user_id, updated_at):
        cursor = self._execute(
            conn,
            """
            UPDATE tasks SET category_id = NULL, updated_at = %s
            WHERE category_id = %s AND user_id = %s
            """,
            (updated_at, int(category_id), int(user_id)),
        )
        return cursor.rowcount

    def delete_category(self, conn, category_id, user_id):
        cursor = self._execute(
            conn,
            "DELETE FROM categories WHERE id = %s AND user_id = %s",
            (int(category_id), int(user_id)),
        )
        return cursor.rowcount

    # tags

    def fetch_tags(self, conn, user_id):
        return self._fetchall(
            conn,
            """
            SELECT g.id, g.user_id, g.name, g.color, g.created_at, g.updated_at,
                   COUNT(tt.task_id) AS usage_count
            FROM tags g
            LEFT JOIN task_tags tt ON tt.tag_id = g.id
            WHERE g.user_id = %s
            GROUP BY g.id, g.user_id, g.name, g.color, g.created_at, g.updated_at
            ORDER BY g.name ASC
            """,
            (int(user_id),),
        )

    def fetch_tag(self, conn, tag_id, user_id):
        return self._fetchone(
            conn,
            """
            SELECT g.id, g.user_id, g.name, g.color, g.created_at, g.updated_at,
                   COUNT(tt.task_id) AS usage_count
            FROM tags g
            LEFT JOIN task_tags tt ON tt.tag_id = g.id
            WHERE g.id = %s AND g.user_id = %s
            GROUP BY g.id, g.user_id, g.name, g.color, g.created_at, g.updated_at
            """,
            (int(tag_id), int(user_id)),
        )

    def tag_name_taken(self, conn, user_id, name, exclude_id=None):
        sql = "SELECT id FROM tags WHERE user_id = %s AND name = %s"
        params = [int(user_id), name]
        if exclude_id is not None:
            sql += " AND id != %s"
            params.append(int(exclude_id))
        return self._fetchone(conn, sql, params) is not None

    def insert_tag(self, conn, user_id, name, color, created_at):
        return self._insert(
            conn,
            """
            INSERT INTO tags (user_id, name, color, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (int(user_id), name, color, created_at, created_at),
        )

    def update_tag_fields(self, conn, tag_id, user_id, changes, updated_at):
        return self._update_owned(
            conn, "tags", TAG_UPDATE_COLUMNS, tag_id, user_id, changes, updated_at
        )

    def count_tag_tasks(self, conn, tag_id, user_id):
        row = self._fetchone(
            conn,
            """
            SELECT COUNT(DISTINCT tt.task_id) AS total
            FROM task_tags tt
            JOIN tasks t ON t.id = tt.task_id
            WHERE tt.tag_id = %s AND t.user_id = %s
            """,
            (int(tag_id), int(user_id)),
        )
        return int(row["total"])

    def delete_tag_associations(self, conn, tag_id, user_id):
        cursor = self._execute(
            conn,
            """
            DELETE FROM task_tags
            WHERE tag_id IN (SELECT id FROM tags WHERE id = %s AND user_id = %s)
            """,
            (int(tag_id), int(user_id)),
        )
        return cursor.rowcount

    def delete_tag(self, conn, tag_id, user_id):
        cursor = self._execute(
            conn,
            "DELETE FROM tags WHERE id = %s AND user_id = %s",
            (int(tag_id), int(user_id)),
        )
        return cursor.rowcount

    def fetch_popular_tags(self, conn, user_id, limit=10):
        return self._fetchall(
            conn,
            """
            SELECT g.id, g.name, g.color, COUNT(tt.task_id) AS usage_count
            FROM tags g
            JOIN task_tags tt ON tt.tag_id = g.id
            JOIN tasks t ON t.id = tt.task_id
            WHERE g.user_id = %s AND t.user_id = %s
            GROUP BY g.id, g.name, g.color
            ORDER BY usage_count DESC, g.name ASC
            LIMIT %s
            """,
            (int(user_id), int(user_id), int(limit)),
        )

    # statistics

    def fetch_task_summary(self, conn, user_id, today, upcoming_until):
        return self._fetchone(
            conn,
            """
            SELECT
                COUNT(*) AS total_tasks,
                COALESCE(SUM(CASE WHEN completed THEN 1 ELSE 0 END), 0) AS completed_tasks,
                COALESCE(SUM(CASE WHEN completed THEN 0 ELSE 1 END), 0) AS pending_tasks,
                COALESCE(SUM(CASE
                    WHEN due_date < %s AND NOT completed THEN 1 ELSE 0
                END), 0) AS overdue_tasks,
                COALESCE(SUM(CASE
                    WHEN due_date >= %s AND due_date <= %s AND NOT completed THEN 1 ELSE 0
                END), 0) AS upcoming_tasks
            FROM tasks
            WHERE user_id = %s
            """,
            (today, today, upcoming_until, int(user_id)),
        )

    def fetch_priority_breakdown(self, conn, user_id):
        return self._fetchall(
            conn,
            """
            SELECT priority,
                   COUNT(*) AS total,
                   COALESCE(SUM(CASE WHEN completed THEN 1 ELSE 0 END), 0) AS completed,
                   COALESCE(SUM(CASE WHEN completed THEN 0 ELSE 1 END), 0) AS pending
            FROM tasks
            WHERE user_id = %s
            GROUP BY priority
            ORDER BY CASE priority WHEN 'high' THEN 1 WHEN 'medium' THEN 2 WHEN 'low' THEN 3 END
            """,
            (int(user_id),),
        )

    def fetch_category_breakdown(self, conn, user_id):
        return self._fetchall(
            conn,
            """
            SELECT c.id AS category_id, c.name AS category_name, c.color AS category_color,
                   COUNT(t.id) AS total_tasks,
                   COALESCE(SUM(CASE WHEN t.completed THEN 1 ELSE 0 END), 0) AS completed_tasks,
                   COALESCE(SUM(CASE WHEN t.id IS NOT NULL AND NOT t.completed THEN 1 ELSE 0 END), 0)
                       AS pending_tasks
            FROM categories c
            LEFT JOIN tasks t ON t.category_id = c.id AND t.user_id = %s
            WHERE c.user_id = %s
            GROUP BY c.id, c.name, c.color
            """,
            (int(user_id), int(user_id)),
        )

    def fetch_uncategorized_counts(self, conn, user_id):
        return self._fetchone(
            conn,
            """
            SELECT COUNT(*) AS total_tasks,
                   COALESCE(SUM(CASE WHEN completed THEN 1 ELSE 0 END), 0) AS completed_tasks,
                   COALESCE(SUM(CASE WHEN completed THEN 0 ELSE 1 END), 0) AS pending_tasks
            FROM tasks
            WHERE user_id = %s AND category_id IS NULL
            """,
            (int(user_id),),
        )

    def fetch_daily_completions(self, conn, user_id, since):
        return self._fetchall(
            conn,
            """
            SELECT SUBSTR(completed_at, 1, 10) AS date, COUNT(*) AS completed_tasks
            FROM tasks
            WHERE user_id = %s AND completed AND completed_at >= %s
            GROUP BY SUBSTR(completed_at, 1, 10)
            ORDER BY date DESC
            """,
            (int(user_id), since),
        )
