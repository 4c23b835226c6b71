"""
Submission Guard Module - School Portal

Command handlers must not run twice for the same control while a call is in
flight. ``single_flight`` rejects the re-entrant call with
SubmissionInProgress instead of queueing it, and reports the rejection through
the handler's notifier like any other failed command.
"""

import logging
import threading
from functools import wraps

from .exceptions import SubmissionInProgress

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()


def single_flight(method=None, *, key=None):
    """
    Decorator for manager command handlers.

    The guard is scoped per instance, per method and per submitter. The
    submitter is ``key(self, *args, **kwargs)`` when given, otherwise the
    instance's ``submission_key()`` (the current user id for managers), so
    two users never block each other. Only calls still running are tracked.

    Args:
        method: Command handler being wrapped
        key: Optional callable deriving the submitter from the call arguments
    """
    if method is None:
        return lambda m: single_flight(m, key=key)

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        if key is not None:
            submitter = key(self, *args, **kwargs)
        else:
            key_func = getattr(self, 'submission_key', None)
            submitter = key_func() if key_func else None
        guard_key = (method.__name__, submitter)

        with _registry_lock:
            in_flight = self.__dict__.setdefault('_in_flight', set())
            rejected = guard_key in in_flight
            if not rejected:
                in_flight.add(guard_key)

        if rejected:
            logger.warning(f"Rejected duplicate submission of {type(self).__name__}.{method.__name__}")
            error = SubmissionInProgress()
            notify = getattr(self, '_notify', None)
            if notify is not None:
                notify(error.message, 'error')
            raise error
        try:
            return method(self, *args, **kwargs)
        finally:
            with _registry_lock:
                in_flight.discard(guard_key)

    return wrapper
