"""
Assignment Manager Module - School Portal

Assignments posted by admins. Listing sorts by due date (soonest first) and
supports the ``upcoming`` and ``overdue`` filters. Overdue status is worked
out against the clock on every render, so an assignment flips from upcoming
to overdue between two renders without any invalidation.
"""

from datetime import datetime
from typing import Any, Dict, List

from .content_manager import ContentManager
from .exceptions import ValidationError
from .models import Assignment, ASSIGNMENTS, parse_datetime, utc_now_iso

FILTER_ALL = 'all'
FILTER_UPCOMING = 'upcoming'
FILTER_OVERDUE = 'overdue'


class AssignmentManager(ContentManager):
    """
    Create, list and delete assignments.
    """

    collection_name = ASSIGNMENTS
    kind = 'assignment'
    model = Assignment
    required_fields = ('title', 'description', 'due_date')
    filters = (FILTER_ALL, FILTER_UPCOMING, FILTER_OVERDUE)

    def validate(self, fields):
        try:
            parse_datetime(fields['due_date'])
        except ValueError:
            raise ValidationError('Please enter a valid due date')

    def build_record(self, fields: Dict[str, Any], record_id: str,
                     author_email: str) -> Dict[str, Any]:
        now = utc_now_iso()
        return Assignment(
            id=record_id,
            title=fields['title'],
            description=fields['description'],
            due_date=fields['due_date'],
            author_email=author_email,
            created_at=now,
            timestamp=now
        ).to_record()

    def passes_filter(self, item: Assignment, filter: str, now: datetime) -> bool:
        if filter == FILTER_UPCOMING:
            return not self._is_overdue(item, now)
        if filter == FILTER_OVERDUE:
            return self._is_overdue(item, now)
        return True

    def sort(self, items: List[Assignment]) -> List[Assignment]:
        return sorted(items, key=self._due_key)

    def statuses(self, items: List[Assignment], now: datetime) -> Dict[str, str]:
        return {item.id: (FILTER_OVERDUE if self._is_overdue(item, now) else FILTER_UPCOMING)
                for item in items}

    def get_overdue_count(self) -> int:
        now = self.clock()
        return sum(1 for item in self._load() if self._is_overdue(item, now))

    def _is_overdue(self, item: Assignment, now: datetime) -> bool:
        try:
            return item.is_overdue(now)
        except ValueError:
            self.logger.warning(f"Assignment {item.id} has an unreadable due date: {item.due_date}")
            return False

    @staticmethod
    def _due_key(item: Assignment) -> datetime:
        try:
            return parse_datetime(item.due_date)
        except ValueError:
            return datetime.max
