import math
from collections import namedtuple

SORT_FIELDS = ("created_at", "due_date", "priority", "title")
DEFAULT_SORT_FIELD = "created_at"
# undated tasks sort after dated ones in either direction
NULLABLE_SORT_FIELDS = ("due_date",)

PRIORITY_ORDER_SQL = (
    "CASE t.priority WHEN 'high' THEN 3 WHEN 'medium' THEN 2 WHEN 'low' THEN 1 END"
)

SortOrder = namedtuple("SortOrder", ["field", "direction"])
PageRequest = namedtuple("PageRequest", ["page", "limit", "offset"])


def resolve_sort(sort_by=None, sort_direction=None):
    field = sort_by if sort_by in SORT_FIELDS else DEFAULT_SORT_FIELD
    direction = "ASC" if str(sort_direction or "").strip().lower() == "asc" else "DESC"
    return SortOrder(field, direction)


def order_by_clause(sort_order):
    if sort_order.field == "priority":
        expression = PRIORITY_ORDER_SQL
    else:
        expression = f"t.{sort_order.field}"
    nulls = " NULLS LAST" if sort_order.field in NULLABLE_SORT_FIELDS else ""
    return f"{expression} {sort_order.direction}{nulls}, t.id {sort_order.direction}"


def _to_int(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def resolve_page(page=None, limit=None, default_page_size=20, max_page_size=100):
    page_number = _to_int(page)
    if page_number is None or page_number < 1:
        page_number = 1

    page_size = _to_int(limit)
    if page_size is None or page_size < 1:
        page_size = default_page_size
    page_size = min(page_size, max_page_size)

    return PageRequest(page_number, page_size, (page_number - 1) * page_size)


def build_pagination(page_request, total):
    total_pages = math.ceil(total / page_request.limit) if page_request.limit else 0
    return {
        "page": page_request.page,
        "limit": page_request.limit,
        "total": total,
        "totalPages": total_pages,
        "hasNext": page_request.page < total_pages,
        "hasPrev": page_request.page > 1,
    }
