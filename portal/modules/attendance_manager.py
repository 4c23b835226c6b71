"""
Attendance Manager Module - School Portal

This module handles the two attendance flows of the portal:

- Issue (admin): create an attendance session for a course with an expiry,
  persist it, and keep the last issued session per admin so it can be
  displayed (with its QR code) and ended.
- Redeem (student): check a typed session code against the fixed whitelist
  and record the student as present.

The two flows do not consult each other. Redemption never looks at issued
sessions, and ending a session only clears the held session; the stored
``active`` flag stays True. Both are known gaps awaiting a product decision.

Features:
- Session id generation and expiry
- QR code for the issued session
- Whitelisted session-code redemption
- Per-student attendance history
"""

from datetime import datetime, timedelta, timezone
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from .exceptions import (
    PortalError, ValidationError, InvalidCode, NotAuthenticated, PermissionDenied
)
from .models import (
    AttendanceRecord, AttendanceSession, ATTENDANCE_RECORDS, ATTENDANCE_SESSIONS,
    STATUS_PRESENT, generate_session_id
)
from .qr_generator import QRGenerator
from .submission_guard import single_flight

DEFAULT_VALID_CODES = (
    'ABC123', 'XYZ789', 'QWE456', 'RTY321', 'UIO654',
    'PAS987', 'DFG123', 'HJK456', 'LZX789', 'CVB321',
    'NMQ654', 'WER987', 'SDF123', 'XCV456', 'BNM789',
    'QAZ321', 'WSX654', 'EDC987', 'RFV123', 'TGB456',
    'YHN789', 'UJM321', 'IK654', 'OL987', 'P123',
    'A456', 'B789', 'C321', 'D654', 'E987'
)

PLACEHOLDER_COURSE_ID = 'CS101'


@dataclass
class IssuedSession:
    """An attendance session together with its QR code."""
    session: AttendanceSession
    qr_code: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        data = self.session.to_record()
        data['qr_code'] = self.qr_code
        return data


@dataclass
class AttendanceView:
    """Render state of the attendance page."""
    current_session: Optional[IssuedSession] = None
    records: List[AttendanceRecord] = field(default_factory=list)


class AttendanceManager:
    """
    Attendance session issuing and code redemption.
    """

    def __init__(self, record_store, session, notifier=None, renderer=None,
                 qr_generator: Optional[QRGenerator] = None,
                 valid_codes: Iterable[str] = DEFAULT_VALID_CODES,
                 placeholder_course_id: str = PLACEHOLDER_COURSE_ID,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the attendance manager.

        Args:
            record_store (RecordStore): Persistence backend
            session (SessionContext): Current-user slot
            notifier (NotificationSystem): Outcome reporting, optional
            renderer: Object with render(view), optional
            qr_generator (QRGenerator): QR renderer for issued sessions
            valid_codes (Iterable[str]): Codes accepted by redeem_code
            placeholder_course_id (str): Course written on redeemed records
            clock (Callable): Returns the current local time
        """
        self.store = record_store
        self.session = session
        self.notifier = notifier
        self.renderer = renderer
        self.qr_generator = qr_generator or QRGenerator()
        self.valid_codes = frozenset(valid_codes)
        self.placeholder_course_id = placeholder_course_id
        self.clock = clock or datetime.now
        self.logger = logging.getLogger(__name__)

        # Last issued session per admin user id
        self._issued: Dict[str, IssuedSession] = {}

    def submission_key(self):
        user = self.session.current_user
        return user.id if user else None

    @property
    def current_session(self) -> Optional[IssuedSession]:
        """The last session issued by the current user, if not ended."""
        user = self.session.current_user
        return self._issued.get(user.id) if user else None

    @single_flight
    def issue_session(self, course_id: str, duration_minutes) -> IssuedSession:
        """
        Create and persist an attendance session.

        Args:
            course_id (str): Course the session is for
            duration_minutes (int): Minutes until the session expires

        Returns:
            IssuedSession: The stored session and its QR code

        Raises:
            ValidationError: Blank course or non-positive duration
            NotAuthenticated: If nobody is logged in
            PermissionDenied: If the current user is not an admin
            StorageError: If the write fails
        """
        try:
            if course_id is not None and not isinstance(course_id, str):
                raise ValidationError('Invalid course ID')
            course_id = (course_id or '').strip()
            if not course_id:
                raise ValidationError('Please enter a course ID')
            try:
                duration = int(duration_minutes)
            except (TypeError, ValueError):
                raise ValidationError('Please enter a session duration in minutes')
            if duration <= 0:
                raise ValidationError('Session duration must be at least 1 minute')

            user = self._require_user()
            if not user.is_admin:
                raise PermissionDenied()

            try:
                expires_at = (self.clock() + timedelta(minutes=duration)).astimezone(timezone.utc)
            except OverflowError:
                raise ValidationError('Session duration is too long')
            attendance_session = AttendanceSession(
                session_id=generate_session_id(),
                course_id=course_id,
                created_by=user.id,
                expires_at=expires_at.isoformat(),
                active=True
            )
            stored = self.store.append(
                ATTENDANCE_SESSIONS,
                attendance_session.to_record(),
                server_time_fields=('start_time',)
            )
        except PortalError as e:
            self.logger.warning(f"Failed to create attendance session: {e.message}")
            self._notify(e.message, 'error')
            raise

        attendance_session = AttendanceSession.from_record(stored)
        qr_code = self.qr_generator.generate_session_qr_code(
            attendance_session.session_id,
            [f"Course: {attendance_session.course_id}",
             f"Expires: {expires_at.astimezone().strftime('%Y-%m-%d %H:%M')}"]
        )
        issued = IssuedSession(session=attendance_session, qr_code=qr_code)
        self._issued[user.id] = issued

        self.logger.info(
            f"Attendance session {attendance_session.session_id} created for "
            f"{course_id} by {user.email}, expires {attendance_session.expires_at}"
        )
        self._notify_template('session_created', 'success',
                              session_id=attendance_session.session_id,
                              course_id=course_id,
                              expires_at=expires_at.astimezone().strftime('%Y-%m-%d %H:%M'))
        self._render()
        return issued

    def end_session(self) -> bool:
        """
        Stop displaying the current user's session.

        Only the held session is cleared; the stored record keeps
        ``active=True``.

        Returns:
            bool: False if there was no session to end
        """
        user = self.session.current_user
        issued = self._issued.pop(user.id, None) if user else None
        if issued is None:
            return False

        self.logger.info(
            f"Attendance session {issued.session.session_id} ended locally; "
            f"stored active flag unchanged"
        )
        self._notify_template('session_ended', 'success')
        self._render()
        return True

    @single_flight
    def redeem_code(self, code: str) -> AttendanceRecord:
        """
        Mark the current student present with a session code.

        Args:
            code (str): Code typed by the student

        Returns:
            AttendanceRecord: The stored record

        Raises:
            ValidationError: If the code is empty
            NotAuthenticated: If nobody is logged in
            InvalidCode: If the code is not whitelisted
            StorageError: If the write fails
        """
        try:
            if code is not None and not isinstance(code, str):
                raise ValidationError('Invalid session code format')
            code = (code or '').strip()
            if not code:
                raise ValidationError('Please enter a session code')

            user = self._require_user('Please log in to mark attendance')

            if code not in self.valid_codes:
                self.logger.warning(f"Invalid session code from {user.email}: {code}")
                raise InvalidCode()

            record = AttendanceRecord(
                session_id=code,
                course_id=self.placeholder_course_id,
                student_id=user.id,
                student_email=user.email,
                status=STATUS_PRESENT
            )
            stored = self.store.append(
                ATTENDANCE_RECORDS,
                record.to_record(),
                server_time_fields=('timestamp',)
            )
        except PortalError as e:
            self._notify(e.message, 'error')
            raise

        self.logger.info(f"Attendance recorded: {user.email}, code {code}")
        self._notify_template('attendance_marked', 'success')
        self._render()
        return AttendanceRecord.from_record(stored)

    def list_records(self, student_id: Optional[str] = None) -> List[AttendanceRecord]:
        """
        Attendance records of a student, newest first.

        Args:
            student_id (str): Student to list, defaults to the current user

        Raises:
            NotAuthenticated: If no student is given and nobody is logged in
        """
        if student_id is None:
            student_id = self._require_user().id

        records = self.store.query(
            ATTENDANCE_RECORDS,
            where=[('student_id', '==', student_id)],
            order_by='timestamp',
            descending=True
        )
        return [AttendanceRecord.from_record(r) for r in records]

    def is_valid_code(self, code: str) -> bool:
        return isinstance(code, str) and code.strip() in self.valid_codes

    def _require_user(self, message: Optional[str] = None):
        user = self.session.current_user
        if user is None:
            raise NotAuthenticated(message)
        return user

    def _render(self) -> None:
        if self.renderer is None:
            return
        user = self.session.current_user
        records = self.list_records(user.id) if user else []
        self.renderer.render(AttendanceView(current_session=self.current_session, records=records))

    def _notify(self, message: str, severity: str) -> None:
        if self.notifier is not None:
            self.notifier.notify(message, severity)

    def _notify_template(self, template_name: str, severity: str, **context) -> None:
        if self.notifier is not None:
            self.notifier.notify_template(template_name, severity, **context)
