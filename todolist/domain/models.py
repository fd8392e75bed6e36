import random
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from todolist.errors import ValidationError

PRIORITIES = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1000
SEARCH_MAX_LENGTH = 100
CATEGORY_NAME_MAX_LENGTH = 100
CATEGORY_DESCRIPTION_MAX_LENGTH = 500
TAG_NAME_MAX_LENGTH = 50

COLOR_PATTERN = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")

COLOR_PALETTE = (
    "#3B82F6",
    "#EF4444",
    "#10B981",
    "#F59E0B",
    "#8B5CF6",
    "#EC4899",
    "#14B8A6",
    "#F97316",
    "#6366F1",
    "#84CC16",
)

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


def utcnow():
    return datetime.now(timezone.utc)


def timestamp(value=None):
    """ISO-8601 text used for every stored timestamp column."""
    value = value or utcnow()
    return value.isoformat(timespec="microseconds")


def _is_blank(value):
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_bool(value, field_name):
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ValidationError(f"{field_name} must be true or false", field=field_name)


def parse_positive_int(value, field_name):
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field_name} must be a positive integer", field=field_name
        ) from None
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
    if number < 1:
        raise ValidationError(f"{field_name} must be a positive integer", field=field_name)
    return number


def parse_priority(value, field_name="priority"):
    if _is_blank(value):
        return None
    normalized = str(value).strip().lower()
    if normalized not in PRIORITIES:
        raise ValidationError(
            f"{field_name} must be one of: {', '.join(PRIORITIES)}", field=field_name
        )
    return normalized


def parse_date(value, field_name):
    """Accept a date, a datetime or an ISO-8601 string; time of day is dropped."""
    if _is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be a valid ISO 8601 date", field=field_name)


def parse_tag_ids(value, field_name="tags"):
    """Parse a comma separated string or a list into distinct positive ids."""
    if value is None:
        return None
    if isinstance(value, str):
        if value.strip() == "":
            return None
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        raise ValidationError(
            f"{field_name} must be a list of positive integer ids", field=field_name
        )

    tag_ids = []
    for part in parts:
        if _is_blank(part):
            raise ValidationError(
                f"{field_name} must be a list of positive integer ids", field=field_name
            )
        tag_id = parse_positive_int(part, field_name)
        if tag_id not in tag_ids:
            tag_ids.append(tag_id)
    return tag_ids


def parse_text(value, field_name, max_length, required=False):
    if value is None:
        if required:
            raise ValidationError(f"{field_name} is required", field=field_name)
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string", field=field_name)
    text = value.strip()
    if required and not text:
        raise ValidationError(f"{field_name} is required", field=field_name)
    if len(text) > max_length:
        raise ValidationError(
            f"{field_name} must be at most {max_length} characters", field=field_name
        )
    return text


def parse_color(value, field_name="color"):
    if _is_blank(value):
        return None
    color = str(value).strip()
    if not COLOR_PATTERN.match(color):
        raise ValidationError(
            f"{field_name} must be a hexadecimal color code (e.g. #FF0000)",
            field=field_name,
        )
    return color


def random_color():
    return random.choice(COLOR_PALETTE)


@dataclass
class TaskFilters:
    completed: Optional[bool] = None
    category: Optional[int] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None
    search: Optional[str] = None
    tags: Optional[List[int]] = None

    def __post_init__(self):
        self.completed = parse_bool(self.completed, "completed")
        self.category = parse_positive_int(self.category, "category")
        self.priority = parse_priority(self.priority)
        self.due_date = parse_date(self.due_date, "due_date")
        search = parse_text(self.search, "search", SEARCH_MAX_LENGTH)
        self.search = search or None
        self.tags = parse_tag_ids(self.tags) or None

    @classmethod
    def from_mapping(cls, args):
        return cls(
            completed=args.get("completed"),
            category=args.get("category"),
            priority=args.get("priority"),
            due_date=args.get("due_date"),
            search=args.get("search"),
            tags=args.get("tags"),
        )


@dataclass
class TaskDraft:
    title: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    priority: str = DEFAULT_PRIORITY
    due_date: Optional[date] = None
    tags: List[int] = field(default_factory=list)

    def __post_init__(self):
        self.title = parse_text(self.title, "title", TITLE_MAX_LENGTH, required=True)
        self.description = parse_text(self.description, "description", DESCRIPTION_MAX_LENGTH) or None
        self.category_id = parse_positive_int(self.category_id, "category_id")
        self.priority = parse_priority(self.priority) or DEFAULT_PRIORITY
        self.due_date = parse_date(self.due_date, "due_date")
        self.tags = parse_tag_ids(self.tags) or []

    @classmethod
    def from_mapping(cls, payload):
        return cls(
            title=payload.get("title"),
            description=payload.get("description"),
            category_id=payload.get("category_id"),
            priority=payload.get("priority"),
            due_date=payload.get("due_date"),
            tags=payload.get("tags"),
        )


class TaskPatch:
    """Partial task update.

    Only the keys passed in are part of the patch. ``tags=None`` means the
    association set is left alone, ``tags=[]`` clears it.
    """

    FIELDS = ("title", "description", "category_id", "priority", "due_date", "completed")

    def __init__(self, tags=None, **changes):
        unknown = set(changes) - set(self.FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown task field(s): {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )
        self.changes = {}
        for name, value in changes.items():
            self.changes[name] = self._parse_field(name, value)
        self.tags = None if tags is None else parse_tag_ids(tags) or []

    @staticmethod
    def _parse_field(name, value):
        if name == "title":
            return parse_text(value, "title", TITLE_MAX_LENGTH, required=True)
        if name == "description":
            return parse_text(value, "description", DESCRIPTION_MAX_LENGTH) or None
        if name == "category_id":
            return parse_positive_int(value, "category_id")
        if name == "due_date":
            return parse_date(value, "due_date")
        if name == "priority":
            priority = parse_priority(value)
            if priority is None:
                raise ValidationError("priority cannot be empty", field="priority")
            return priority
        completed = parse_bool(value, "completed")
        if completed is None:
            raise ValidationError("completed must be true or false", field="completed")
        return completed

    @classmethod
    def from_mapping(cls, payload):
        changes = {name: payload[name] for name in cls.FIELDS if name in payload}
        tags = None
        if "tags" in payload:
            if not isinstance(payload["tags"], (list, tuple)):
                raise ValidationError(
                    "tags must be a list of positive integer ids", field="tags"
                )
            tags = payload["tags"]
        return cls(tags=tags, **changes)

    def is_empty(self):
        return not self.changes and self.tags is None

    def __contains__(self, name):
        return name in self.changes

    def get(self, name, default=None):
        return self.changes.get(name, default)
