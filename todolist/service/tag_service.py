import logging

from todolist.domain.models import TAG_NAME_MAX_LENGTH, parse_color, parse_text, random_color, timestamp
from todolist.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

POPULAR_TAGS_DEFAULT = 10
POPULAR_TAGS_MAX = 50


def _with_usage(tag):
    tag = dict(tag)
    tag["usage_count"] = int(tag.get("usage_count") or 0)
    return tag


class TagService:
    def __init__(self, repository):
        self.repository = repository

    def list_tags(self, user_id):
        with self.repository.connection() as conn:
            tags = self.repository.fetch_tags(conn, user_id)
        return [_with_usage(tag) for tag in tags]

    def get_tag(self, user_id, tag_id):
        with self.repository.connection() as conn:
            tag = self.repository.fetch_tag(conn, tag_id, user_id)
        if tag is None:
            raise NotFoundError("Tag not found")
        return _with_usage(tag)

    def create_tag(self, user_id, payload):
        payload = payload or {}
        name = parse_text(payload.get("name"), "name", TAG_NAME_MAX_LENGTH, required=True)
        color = parse_color(payload.get("color")) or random_color()

        with self.repository.transaction() as conn:
            if self.repository.tag_name_taken(conn, user_id, name):
                raise ConflictError("A tag with this name already exists")
            tag_id = self.repository.insert_tag(conn, user_id, name, color, timestamp())

        logger.info("tag created", extra={"user_id": user_id, "tag_id": tag_id})
        return self.get_tag(user_id, tag_id)

    def update_tag(self, user_id, tag_id, payload):
        payload = payload or {}
        changes = {}
        if "name" in payload:
            changes["name"] = parse_text(payload["name"], "name", TAG_NAME_MAX_LENGTH, required=True)
        if "color" in payload:
            color = parse_color(payload["color"])
            if color is None:
                raise ValidationError("color cannot be empty", field="color")
            changes["color"] = color

        with self.repository.transaction() as conn:
            if self.repository.fetch_tag(conn, tag_id, user_id) is None:
                raise NotFoundError("Tag not found")
            if not changes:
                raise ValidationError("No data to update")
            if "name" in changes and self.repository.tag_name_taken(
                conn, user_id, changes["name"], exclude_id=tag_id
            ):
                raise ConflictError("A tag with this name already exists")
            self.repository.update_tag_fields(conn, tag_id, user_id, changes, timestamp())

        logger.info(
            "tag updated",
            extra={"user_id": user_id, "tag_id": tag_id, "fields": sorted(changes)},
        )
        return self.get_tag(user_id, tag_id)

    def delete_tag(self, user_id, tag_id, force=False):
        """Delete a tag, refusing while tasks use it unless ``force`` is set.

        Returns the number of task associations that were removed.
        """
        with self.repository.transaction() as conn:
            if self.repository.fetch_tag(conn, tag_id, user_id) is None:
                raise NotFoundError("Tag not found")
            usage = self.repository.count_tag_tasks(conn, tag_id, user_id)
            if usage and not force:
                raise ConflictError(
                    f"Tag is used by {usage} task(s); use force to remove it from them"
                )
            removed = 0
            if usage:
                removed = self.repository.delete_tag_associations(conn, tag_id, user_id)
            self.repository.delete_tag(conn, tag_id, user_id)

        logger.info(
            "tag deleted",
            extra={"user_id": user_id, "tag_id": tag_id, "removed_associations": removed},
        )
        return removed

    def popular_tags(self, user_id, limit=None):
        try:
            limit = int(limit) if limit is not None else POPULAR_TAGS_DEFAULT
        except (TypeError, ValueError):
            limit = POPULAR_TAGS_DEFAULT
        limit = max(1, min(limit, POPULAR_TAGS_MAX))
        with self.repository.connection() as conn:
            tags = self.repository.fetch_popular_tags(conn, user_id, limit)
        return [_with_usage(tag) for tag in tags]
