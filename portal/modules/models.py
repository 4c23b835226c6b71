"""
Models Module - School Portal

Record types stored in the portal collections, together with the id
generators and the date helpers they rely on. Records travel through the
Record Store as plain dictionaries; these dataclasses are the typed view the
managers hand back to their callers.
"""

import secrets
import string
import time
from dataclasses import dataclass, asdict, fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Collection names
USERS = 'users'
ASSIGNMENTS = 'assignments'
NEWS = 'news'
ATTENDANCE_RECORDS = 'attendanceRecords'
ATTENDANCE_SESSIONS = 'attendanceSessions'

COLLECTIONS = (USERS, ASSIGNMENTS, NEWS, ATTENDANCE_RECORDS, ATTENDANCE_SESSIONS)

# Roles
ROLE_STUDENT = 'student'
ROLE_ADMIN = 'admin'

STATUS_PRESENT = 'present'

BASE36_ALPHABET = string.digits + string.ascii_lowercase


def _random_base36(length: int) -> str:
    return ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_record_id() -> str:
    """
    Generate a record id: millisecond clock followed by a random suffix.

    Returns:
        str: Opaque id such as ``1760601234567k3j9x0q2a``
    """
    return f"{int(time.time() * 1000)}{_random_base36(9)}"


def generate_session_id() -> str:
    """Generate an attendance session id, e.g. ``SESS_K3J9X0Q2A``."""
    return 'SESS_' + _random_base36(9).upper()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_datetime(value: Any) -> datetime:
    """
    Parse an ISO date or datetime into a naive local datetime.

    Date-only values ("2099-01-01") resolve to local midnight. Aware values
    are converted to local time before the offset is dropped so they compare
    against ``datetime.now()``.

    Raises:
        ValueError: If the value is not a date/datetime or ISO string
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Not a date: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def sort_key_timestamp(value: Any) -> datetime:
    # Records with unreadable timestamps sort as the oldest
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        return datetime.min


class RecordMixin:
    """Conversion between dataclass instances and stored dictionaries."""

    @classmethod
    def from_record(cls, record: Dict[str, Any]):
        names = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in record.items() if key in names})

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class User(RecordMixin):
    id: str
    name: str
    email: str
    role: str = ROLE_STUDENT
    created_at: Optional[str] = None
    password_hash: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def public_dict(self) -> Dict[str, Any]:
        """User fields safe to keep in the session slot or send to clients."""
        data = self.to_record()
        data.pop('password_hash', None)
        return data


@dataclass
class Assignment(RecordMixin):
    id: str
    title: str
    description: str
    due_date: str
    author_email: str
    created_at: Optional[str] = None
    timestamp: Optional[str] = None

    def is_overdue(self, now: datetime) -> bool:
        return parse_datetime(self.due_date) < now


@dataclass
class News(RecordMixin):
    id: str
    title: str
    description: str
    author_email: str
    timestamp: Optional[str] = None
    file_url: Optional[str] = None


@dataclass
class AttendanceSession(RecordMixin):
    session_id: str
    course_id: str
    created_by: str
    expires_at: str
    start_time: Optional[str] = None
    active: bool = True

    def is_expired(self, now: datetime) -> bool:
        return parse_datetime(self.expires_at) <= now


@dataclass
class AttendanceRecord(RecordMixin):
    session_id: str
    course_id: str
    student_id: str
    student_email: str
    timestamp: Optional[str] = None
    status: str = STATUS_PRESENT
