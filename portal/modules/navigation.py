"""
Navigation Module - School Portal

Keeps navigation visibility (login link, user menu, admin link) in step with
the session. Pages gate admin-only sections on this state, so it is pushed to
the renderer on every session transition.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .models import User


@dataclass
class NavigationState:
    show_login_link: bool
    show_user_menu: bool
    show_admin_link: bool
    user_name: Optional[str] = None

    @classmethod
    def for_user(cls, user: Optional[User]) -> 'NavigationState':
        if user is None:
            return cls(show_login_link=True, show_user_menu=False, show_admin_link=False)
        return cls(
            show_login_link=False,
            show_user_menu=True,
            show_admin_link=user.is_admin,
            user_name=user.name
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NavigationSync:
    """
    Subscribes to a SessionContext and re-renders navigation on each change.
    """

    def __init__(self, session, renderer=None, render_initial: bool = True):
        """
        Args:
            session (SessionContext): Session to follow
            renderer: Object with render(state), or None to only track state
            render_initial (bool): Read the session and render once right away.
                Disable when the session slot is only readable per request.
        """
        self.session = session
        self.renderer = renderer
        self.logger = logging.getLogger(__name__)
        self.state = NavigationState.for_user(None)
        self._unsubscribe = session.subscribe(self.sync)
        if render_initial:
            self.sync(session.current_user)

    def sync(self, user: Optional[User]) -> NavigationState:
        self.state = NavigationState.for_user(user)
        self.logger.debug(f"Navigation synced: {self.state}")
        self._render()
        return self.state

    def _render(self):
        if self.renderer is not None:
            self.renderer.render(self.state)

    def close(self):
        """Stop following the session."""
        self._unsubscribe()
