"""
Exceptions Module - School Portal

Error taxonomy shared by every manager. Each error carries the message that
is shown to the user; the web layer maps each class to an HTTP status code.
"""


class PortalError(Exception):
    """Base class for all recoverable portal errors."""

    default_message = 'An error occurred'
    status_code = 400

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PortalError):
    default_message = 'Please fill in all fields'


class PasswordMismatch(PortalError):
    default_message = 'Passwords do not match'


class WeakPassword(PortalError):
    default_message = 'Password must be at least 6 characters'


class DuplicateEmail(PortalError):
    default_message = 'Email already registered'
    status_code = 409


class InvalidCredentials(PortalError):
    default_message = 'Invalid email or password'
    status_code = 401


class InvalidCode(PortalError):
    default_message = 'Invalid session code'


class NotAuthenticated(PortalError):
    default_message = 'Please log in to continue'
    status_code = 401


class PermissionDenied(PortalError):
    default_message = 'Admin privileges required'
    status_code = 403


class SubmissionInProgress(PortalError):
    default_message = 'Your previous request is still being processed'
    status_code = 409


class StorageError(PortalError):
    """Local quota exceeded or remote call failed."""

    default_message = 'Could not save your changes. Please try again.'
    status_code = 503
