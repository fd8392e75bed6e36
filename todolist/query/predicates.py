"""Filter -> parameterised WHERE clause for task queries.

The page query and the count query render the same :class:`Predicate`, so the
pagination total always describes the rows that can actually be paged
through. Clause text only ever holds column names and ``%s`` placeholders;
every user supplied value travels in ``params``.
"""

from todolist.domain.models import TaskFilters


class Predicate:
    def __init__(self):
        self.clauses = []

    def add(self, clause, *params):
        self.clauses.append((clause, tuple(params)))
        return self

    def where_clause(self):
        text = " AND ".join(f"({clause})" for clause, _ in self.clauses)
        params = tuple(param for _, clause_params in self.clauses for param in clause_params)
        return text, params

    def __len__(self):
        return len(self.clauses)


def escape_like(value):
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def placeholders(count):
    return ", ".join(["%s"] * count)


def build_task_predicates(user_id, filters=None):
    filters = filters or TaskFilters()
    predicate = Predicate()
    predicate.add("t.user_id = %s", int(user_id))

    if filters.completed is not None:
        predicate.add("t.completed = %s", filters.completed)

    if filters.category is not None:
        predicate.add("t.category_id = %s", filters.category)

    if filters.priority is not None:
        predicate.add("t.priority = %s", filters.priority)

    if filters.due_date is not None:
        predicate.add("t.due_date = %s", filters.due_date.isoformat())

    if filters.search:
        pattern = f"%{escape_like(filters.search.lower())}%"
        predicate.add(
            "LOWER(t.title) LIKE %s ESCAPE '\\' "
            "OR LOWER(COALESCE(t.description, '')) LIKE %s ESCAPE '\\'",
            pattern,
            pattern,
        )

    if filters.tags:
        predicate.add(
            "t.id IN (SELECT tt.task_id FROM task_tags tt "
            f"WHERE tt.tag_id IN ({placeholders(len(filters.tags))}))",
            *filters.tags,
        )

    return predicate
