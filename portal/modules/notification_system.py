"""
Notification System Module - School Portal

This module reports the outcome of every portal command to the user. A
notification is either a toast, which expires on its own after a few seconds,
or a blocking alert, which stays until it is acknowledged.

Features:
- Severity levels (success, error, info, warning)
- Auto-expiring toasts backed by cancelable timers
- Blocking alerts with explicit acknowledgement
- Jinja2 message templates for manager outcomes
- Listener hooks so a UI layer can collect messages as they are raised
"""

import logging
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from jinja2 import Template


@dataclass
class NotificationData:
    """Data structure for a single user-facing message."""
    id: str
    message: str
    severity: str
    blocking: bool
    created_at: str
    expires_at: Optional[str] = None


class NotificationSystem:
    """
    Toast and alert surface shared by all managers.
    """

    SEVERITY_LEVELS = ('success', 'error', 'info', 'warning')

    def __init__(self, default_duration: float = 3.0):
        """
        Initialize the notification system.

        Args:
            default_duration (float): Seconds a toast stays visible
        """
        self.logger = logging.getLogger(__name__)
        self.default_duration = default_duration

        self.active_notifications: Dict[str, NotificationData] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._listeners: List[Callable[[NotificationData], None]] = []
        self._lock = threading.RLock()

        self.templates = {
            'item_created': Template("{{ kind|capitalize }} added successfully!"),
            'item_deleted': Template("{{ kind|capitalize }} deleted successfully"),
            'item_delete_failed': Template("Failed to delete {{ kind }}"),
            'login_success': Template("Login successful! Welcome back, {{ name }}."),
            'register_success': Template("Registration successful! Welcome, {{ name }}."),
            'logout_success': Template("Logged out successfully"),
            'session_created': Template(
                "Session {{ session_id }} created for {{ course_id }}, "
                "expires at {{ expires_at }}"
            ),
            'session_ended': Template("Session ended"),
            'attendance_marked': Template("Attendance marked successfully!"),
        }

    def notify(self, message: str, severity: str = 'info', blocking: bool = False,
               duration: Optional[float] = None) -> NotificationData:
        """
        Show a message to the user.

        Args:
            message (str): Message text
            severity (str): One of SEVERITY_LEVELS
            blocking (bool): Keep the message until acknowledged
            duration (float): Toast lifetime in seconds, defaults to default_duration

        Returns:
            NotificationData: The notification that was shown

        Raises:
            ValueError: On an unknown severity
        """
        if severity not in self.SEVERITY_LEVELS:
            raise ValueError(f"Unknown severity: {severity}")

        now = datetime.now()
        lifetime = self.default_duration if duration is None else duration
        notification = NotificationData(
            id=uuid4().hex,
            message=message,
            severity=severity,
            blocking=blocking,
            created_at=now.isoformat(),
            expires_at=None if blocking else (now + timedelta(seconds=lifetime)).isoformat()
        )

        with self._lock:
            self.active_notifications[notification.id] = notification
            if not blocking:
                timer = threading.Timer(lifetime, self.dismiss, args=(notification.id,))
                timer.daemon = True
                self._timers[notification.id] = timer
                timer.start()

        log = self.logger.warning if severity == 'error' else self.logger.info
        log(f"Notification [{severity}]: {message}")

        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception as e:
                self.logger.error(f"Notification listener failed: {str(e)}")

        return notification

    def notify_template(self, template_name: str, severity: str = 'info',
                        blocking: bool = False, **context: Any) -> NotificationData:
        """Render one of the message templates and show it."""
        message = self.templates[template_name].render(**context)
        return self.notify(message, severity, blocking=blocking)

    def add_listener(self, callback: Callable[[NotificationData], None]) -> Callable[[], None]:
        """
        Register a callback invoked synchronously for every notification.

        Returns:
            Callable: Function that removes the listener
        """
        self._listeners.append(callback)

        def remove():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def dismiss(self, notification_id: str) -> bool:
        """Remove a notification and cancel its expiry timer."""
        with self._lock:
            timer = self._timers.pop(notification_id, None)
            if timer is not None:
                timer.cancel()
            return self.active_notifications.pop(notification_id, None) is not None

    def acknowledge(self, notification_id: str) -> bool:
        """Close a blocking alert."""
        with self._lock:
            notification = self.active_notifications.get(notification_id)
            if notification is None or not notification.blocking:
                return False
        return self.dismiss(notification_id)

    def get_active_notifications(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [asdict(n) for n in self.active_notifications.values()]

    def shutdown(self) -> None:
        """Cancel every pending expiry timer and drop all notifications."""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self.active_notifications.clear()
        self.logger.info("Notification system shut down")
