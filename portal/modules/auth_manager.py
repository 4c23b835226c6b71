"""
Authentication Manager Module - School Portal

This module handles registration, login and logout for the portal. Identity
lives in an injected SessionContext; every transition publishes a change
event so navigation and admin-only sections follow the session.

Passwords are stored as salted werkzeug hashes. The external contract is the
same as a plain comparison: a login succeeds iff the email matches exactly and
the password is the one given at registration.

Features:
- Student self-registration with field validation
- Login with exact, case-sensitive email match
- Idempotent logout
- Role checks (student, admin)
- Admin bootstrap for the deployment CLI
- Security logging of failed attempts
"""

from werkzeug.security import generate_password_hash, check_password_hash
from typing import Any, Dict, List, Optional
import logging

from .exceptions import (
    PortalError, ValidationError, PasswordMismatch, WeakPassword,
    DuplicateEmail, InvalidCredentials, NotAuthenticated, PermissionDenied
)
from .models import User, USERS, ROLE_STUDENT, ROLE_ADMIN, generate_record_id, utc_now_iso
from .submission_guard import single_flight


def _email_key(self, *args, **kwargs):
    # register(name, email, ...) and create_admin(name, email, ...)
    email = kwargs.get('email', args[1] if len(args) > 1 else None)
    return email.strip() if isinstance(email, str) else None


def _require_strings(**values):
    for name, value in values.items():
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"Invalid value for {name}")


class AuthManager:
    """
    Registration, login and role checks over the ``users`` collection.
    """

    def __init__(self, record_store, session, notifier=None, password_min_length: int = 6):
        """
        Initialize the authentication manager.

        Args:
            record_store (RecordStore): Store holding the users collection
            session (SessionContext): Current-user slot
            notifier (NotificationSystem): Outcome reporting, optional
            password_min_length (int): Shortest accepted password
        """
        self.store = record_store
        self.session = session
        self.notifier = notifier
        self.password_min_length = password_min_length
        self.logger = logging.getLogger(__name__)

        self.logger.info("Authentication manager initialized")

    @property
    def current_user(self) -> Optional[User]:
        return self.session.current_user

    def is_authenticated(self) -> bool:
        return self.session.is_authenticated()

    def is_admin(self) -> bool:
        return self.session.is_admin()

    def require_user(self) -> User:
        """
        Return the current user.

        Raises:
            NotAuthenticated: If nobody is logged in
        """
        user = self.session.current_user
        if user is None:
            raise NotAuthenticated()
        return user

    def require_admin(self) -> User:
        """
        Return the current user if it is an admin.

        Raises:
            NotAuthenticated: If nobody is logged in
            PermissionDenied: If the user is not an admin
        """
        user = self.require_user()
        if user.role != ROLE_ADMIN:
            raise PermissionDenied()
        return user

    @single_flight(key=_email_key)
    def register(self, name: str, email: str, password: str, confirm_password: str) -> User:
        """
        Register a new student and log them in.

        Args:
            name (str): Display name
            email (str): Email address, unique among users
            password (str): Password
            confirm_password (str): Must equal password

        Returns:
            User: The created user

        Raises:
            ValidationError, PasswordMismatch, WeakPassword, DuplicateEmail, StorageError
        """
        try:
            _require_strings(name=name, email=email, password=password,
                             confirm_password=confirm_password)
            name = (name or '').strip()
            email = (email or '').strip()

            if not name or not email or not password or not confirm_password:
                raise ValidationError('Please fill in all fields')
            self._validate_password(password, confirm_password)
            if self._find_by_email(email):
                raise DuplicateEmail()

            user = self._build_user(name, email, password, ROLE_STUDENT)
            self.store.append(USERS, user.to_record())
            self._sign_in(user)

            self.logger.info(f"User registered: {email} (ID: {user.id})")
            self._notify_template('register_success', 'success', name=user.name)
            return user

        except PortalError as e:
            self.logger.warning(f"Registration failed for {email}: {e.message}")
            self._notify(e.message, 'error')
            raise

    def login(self, email: str, password: str) -> User:
        """
        Log in with email and password. Surrounding whitespace in the email
        is ignored, as at registration; the match is otherwise exact.

        Returns:
            User: The authenticated user

        Raises:
            ValidationError: If a field is empty
            InvalidCredentials: If no user matches both fields
        """
        try:
            _require_strings(email=email, password=password)
            email = (email or '').strip()
            if not email or not password:
                raise ValidationError('Please fill in all fields')

            record = self._find_by_email(email)
            if not record or not check_password_hash(record.get('password_hash') or '', password):
                self.logger.warning(f"Authentication failed for {email}")
                raise InvalidCredentials()

            user = User.from_record(record)
            self._sign_in(user)

            self.logger.info(f"User authenticated successfully: {email}")
            self._notify_template('login_success', 'success', name=user.name)
            return user

        except PortalError as e:
            self._notify(e.message, 'error')
            raise

    def logout(self) -> None:
        """Clear the current user. Safe to call when nobody is logged in."""
        user = self.session.current_user
        self.session.clear()
        self.store.on_sign_out()
        if user is not None:
            self.logger.info(f"User {user.email} logged out")
        self._notify_template('logout_success', 'success')

    @single_flight(key=_email_key)
    def create_admin(self, name: str, email: str, password: str) -> User:
        """
        Create an admin account without touching the session.

        Raises:
            ValidationError, WeakPassword, DuplicateEmail, StorageError
        """
        _require_strings(name=name, email=email, password=password)
        name = (name or '').strip()
        email = (email or '').strip()
        if not name or not email or not password:
            raise ValidationError('Please fill in all fields')
        self._validate_password(password, password)
        if self._find_by_email(email):
            raise DuplicateEmail()

        user = self._build_user(name, email, password, ROLE_ADMIN)
        self.store.append(USERS, user.to_record())
        self.logger.info(f"Admin account created: {email}")
        return user

    def get_all_users(self) -> List[Dict[str, Any]]:
        """All users without their password hashes."""
        return [User.from_record(r).public_dict() for r in self.store.list(USERS)]

    def _validate_password(self, password: str, confirm_password: str) -> None:
        if password != confirm_password:
            raise PasswordMismatch()
        if len(password) < self.password_min_length:
            raise WeakPassword(f"Password must be at least {self.password_min_length} characters")

    def _find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for record in self.store.list(USERS):
            if record.get('email') == email:
                return record
        return None

    def _build_user(self, name: str, email: str, password: str, role: str) -> User:
        return User(
            id=generate_record_id(),
            name=name,
            email=email,
            role=role,
            created_at=utc_now_iso(),
            password_hash=generate_password_hash(password)
        )

    def _sign_in(self, user: User) -> None:
        self.session.set_user(user)
        self.store.on_sign_in(user.public_dict())

    def _notify(self, message: str, severity: str) -> None:
        if self.notifier is not None:
            self.notifier.notify(message, severity)

    def _notify_template(self, template_name: str, severity: str, **context) -> None:
        if self.notifier is not None:
            self.notifier.notify_template(template_name, severity, **context)
