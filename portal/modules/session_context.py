"""
Session Context Module - School Portal

Holds the single "current user" slot and publishes a change event on every
identity transition. The slot lives in any key/value store: the local durable
store for standalone use, or the Flask session cookie in the web app. The
stored copy never includes the password hash.
"""

import json
import logging
from typing import Callable, List, Optional

from .models import User, ROLE_ADMIN

SessionListener = Callable[[Optional[User]], None]


class SessionContext:
    """
    Current-user slot with publish/subscribe change notification.
    """

    SLOT_KEY = 'currentUser'

    def __init__(self, slot_store):
        """
        Args:
            slot_store: Object with get(key), set(key, value) and remove(key)
        """
        self.slot_store = slot_store
        self.logger = logging.getLogger(__name__)
        self._subscribers: List[SessionListener] = []

    @property
    def current_user(self) -> Optional[User]:
        raw = self.slot_store.get(self.SLOT_KEY)
        if raw is None:
            return None
        try:
            return User.from_record(json.loads(raw))
        except (ValueError, TypeError) as e:
            self.logger.error(f"Discarding unreadable session slot: {str(e)}")
            self.slot_store.remove(self.SLOT_KEY)
            return None

    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def is_admin(self) -> bool:
        user = self.current_user
        return user is not None and user.role == ROLE_ADMIN

    def set_user(self, user: User) -> None:
        """Overwrite the slot with ``user`` and publish the change."""
        self.slot_store.set(self.SLOT_KEY, json.dumps(user.public_dict()))
        self.logger.debug(f"Session user set: {user.email}")
        self._publish()

    def clear(self) -> None:
        """Empty the slot and publish the change. Safe to call when already empty."""
        self.slot_store.remove(self.SLOT_KEY)
        self._publish()

    def subscribe(self, callback: SessionListener) -> Callable[[], None]:
        """
        Register a listener called with the current user on every change.

        Returns:
            Callable: Function that removes the listener
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        user = self.current_user
        for callback in list(self._subscribers):
            callback(user)
