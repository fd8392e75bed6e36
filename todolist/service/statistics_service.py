import logging
import math
from datetime import date, datetime, time, timedelta, timezone

from todolist.domain.models import timestamp

logger = logging.getLogger(__name__)

UPCOMING_WINDOW_DAYS = 7
PRODUCTIVITY_WINDOW_DAYS = 7
POPULAR_TAG_LIMIT = 10
UNCATEGORIZED_LABEL = "Uncategorized"


def completed_percentage(completed, total):
    """Whole-number percentage, halves rounded up; 0 when there is nothing to complete."""
    if not total:
        return 0
    return int(math.floor(completed * 100 / total + 0.5))


def _counts(row):
    return {key: int(row[key] or 0) for key in ("total_tasks", "completed_tasks", "pending_tasks")}


class StatisticsService:
    def __init__(self, repository, today=None):
        self.repository = repository
        self._today = today or date.today

    def get_statistics(self, user_id):
        today = self._today()
        upcoming_until = today + timedelta(days=UPCOMING_WINDOW_DAYS)
        window_start = today - timedelta(days=PRODUCTIVITY_WINDOW_DAYS - 1)
        since = timestamp(datetime.combine(window_start, time.min, tzinfo=timezone.utc))

        with self.repository.connection() as conn:
            summary = self.repository.fetch_task_summary(
                conn, user_id, today.isoformat(), upcoming_until.isoformat()
            )
            priorities = self.repository.fetch_priority_breakdown(conn, user_id)
            categories = self.repository.fetch_category_breakdown(conn, user_id)
            uncategorized = self.repository.fetch_uncategorized_counts(conn, user_id)
            daily = self.repository.fetch_daily_completions(conn, user_id, since)
            popular = self.repository.fetch_popular_tags(conn, user_id, POPULAR_TAG_LIMIT)

        total = int(summary["total_tasks"] or 0)
        completed = int(summary["completed_tasks"] or 0)
        statistics = {
            "summary": {
                "total_tasks": total,
                "completed_tasks": completed,
                "pending_tasks": int(summary["pending_tasks"] or 0),
                "overdue_tasks": int(summary["overdue_tasks"] or 0),
                "upcoming_tasks": int(summary["upcoming_tasks"] or 0),
                "completed_percentage": completed_percentage(completed, total),
            },
            "by_priority": [self._priority_entry(row) for row in priorities],
            "by_category": self._category_entries(categories, uncategorized),
            "recent_productivity": [
                {"date": row["date"], "completed_tasks": int(row["completed_tasks"])}
                for row in daily
            ],
            "popular_tags": [
                {**row, "usage_count": int(row["usage_count"])} for row in popular
            ],
        }
        logger.debug(
            "statistics computed", extra={"user_id": user_id, "total_tasks": total}
        )
        return statistics

    @staticmethod
    def _priority_entry(row):
        total = int(row["total"])
        completed = int(row["completed"] or 0)
        return {
            "priority": row["priority"],
            "total": total,
            "completed": completed,
            "pending": int(row["pending"] or 0),
            "completed_percentage": completed_percentage(completed, total),
        }

    @staticmethod
    def _category_entries(categories, uncategorized):
        entries = []
        for row in categories:
            counts = _counts(row)
            entries.append(
                {
                    "category_id": row["category_id"],
                    "category_name": row["category_name"],
                    "category_color": row["category_color"],
                    **counts,
                    "completed_percentage": completed_percentage(
                        counts["completed_tasks"], counts["total_tasks"]
                    ),
                }
            )
        if uncategorized and int(uncategorized["total_tasks"] or 0) > 0:
            counts = _counts(uncategorized)
            entries.append(
                {
                    "category_id": None,
                    "category_name": UNCATEGORIZED_LABEL,
                    "category_color": None,
                    **counts,
                    "completed_percentage": completed_percentage(
                        counts["completed_tasks"], counts["total_tasks"]
                    ),
                }
            )
        entries.sort(key=lambda entry: (-entry["total_tasks"], entry["category_name"]))
        return entries
