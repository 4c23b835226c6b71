"""
Content Manager Module - School Portal

Shared controller logic for the admin-posted content kinds (assignments and
news). A content manager lists, searches, filters, sorts, creates and deletes
records of one kind through the Record Store and hands the resulting view to
a renderer. Subclasses describe the kind: collection, model, required fields,
filters and ordering.

Features:
- Create with required-field validation and id/author/timestamp stamping
- Case-insensitive search over title and description
- Kind-specific filters and ordering
- Empty-state distinction (empty collection vs. no matches)
- Confirmed delete by id
- Re-render after every change
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .exceptions import PortalError, StorageError, ValidationError
from .models import generate_record_id
from .submission_guard import single_flight

EMPTY_COLLECTION = 'empty_collection'
NO_MATCHES = 'no_matches'


@dataclass
class ListView:
    """Render state of a content list."""
    kind: str
    items: List[Any]
    search_term: str = ''
    filter: str = 'all'
    empty_reason: Optional[str] = None
    statuses: Dict[str, str] = field(default_factory=dict)
    rendered_at: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> Dict[str, Any]:
        items = []
        for item in self.items:
            data = asdict(item)
            if item.id in self.statuses:
                data['status'] = self.statuses[item.id]
            items.append(data)
        return {
            'kind': self.kind,
            'items': items,
            'search_term': self.search_term,
            'filter': self.filter,
            'empty_reason': self.empty_reason,
            'rendered_at': self.rendered_at,
        }


class ContentManager:
    """
    Base controller for one content kind.
    """

    collection_name: str = ''
    kind: str = 'item'
    model = None
    required_fields = ('title', 'description')
    optional_fields = ()
    filters = ('all',)
    list_limit: Optional[int] = None

    def __init__(self, record_store, session, notifier=None, renderer=None,
                 clock: Optional[Callable[[], datetime]] = None,
                 fallback_author_email: str = 'admin@shc.com'):
        """
        Initialize the content manager.

        Args:
            record_store (RecordStore): Persistence backend
            session (SessionContext): Current-user slot, used for author stamping
            notifier (NotificationSystem): Outcome reporting, optional
            renderer: Object with render(view), optional
            clock (Callable): Returns the current local time, defaults to datetime.now
            fallback_author_email (str): Author used when nobody is logged in
        """
        self.store = record_store
        self.session = session
        self.notifier = notifier
        self.renderer = renderer
        self.clock = clock or datetime.now
        self.fallback_author_email = fallback_author_email
        self.logger = logging.getLogger(__name__)

        self._last_search = ''
        self._last_filter = 'all'

    def submission_key(self):
        user = self.session.current_user
        return user.id if user else None

    @single_flight
    def create(self, fields: Dict[str, Any]):
        """
        Create a record from submitted form fields.

        Args:
            fields (Dict[str, Any]): Submitted values

        Returns:
            The created entity

        Raises:
            ValidationError: If a required field is blank or malformed
            StorageError: If the write fails
        """
        try:
            cleaned = self._clean_fields(fields or {})
            self.validate(cleaned)
            record = self.build_record(cleaned, generate_record_id(), self._author_email())
            stored = self.store.append(self.collection_name, record)
        except PortalError as e:
            self.logger.warning(f"Failed to create {self.kind}: {e.message}")
            self._notify(e.message, 'error')
            raise

        entity = self.model.from_record(stored)
        self.logger.info(f"Created {self.kind} {entity.id} by {entity.author_email}")
        self._notify_template('item_created', 'success', kind=self.kind)
        self.refresh()
        return entity

    def list(self, search_term: Optional[str] = None, filter: str = 'all') -> ListView:
        """
        Load, search, filter and sort the collection, then render it.

        Args:
            search_term (str): Case-insensitive substring of title or description
            filter (str): One of the manager's filters

        Returns:
            ListView: Render state

        Raises:
            ValidationError: On an unknown filter
            StorageError: If the collection cannot be read
        """
        search_term = (search_term or '').strip()
        filter = filter or 'all'
        if filter not in self.filters:
            error = ValidationError(f"Unknown filter: {filter}")
            self._notify(error.message, 'error')
            raise error

        try:
            items = self._load()
        except StorageError as e:
            self.logger.error(f"Failed to load {self.kind} list: {e.message}")
            self._notify(e.message, 'error')
            raise

        self._last_search = search_term
        self._last_filter = filter

        now = self.clock()
        view = ListView(kind=self.kind, items=[], search_term=search_term,
                        filter=filter, rendered_at=now.isoformat())

        if not items:
            view.empty_reason = EMPTY_COLLECTION
        else:
            matched = [item for item in items
                       if self._matches_search(item, search_term)
                       and self.passes_filter(item, filter, now)]
            matched = self.sort(matched)
            if self.list_limit:
                matched = matched[:self.list_limit]
            view.items = matched
            view.statuses = self.statuses(matched, now)
            if not matched:
                view.empty_reason = NO_MATCHES

        self._render(view)
        return view

    @single_flight
    def delete(self, record_id: str, confirm=None) -> bool:
        """
        Delete one record by id after confirmation.

        Storage failures are logged and reported, never raised.

        Args:
            record_id (str): Id of the record to delete
            confirm: Callable returning True to proceed, or a boolean

        Returns:
            bool: True if the record was removed
        """
        confirmed = confirm() if callable(confirm) else bool(confirm)
        if not confirmed:
            self.logger.info(f"Delete of {self.kind} {record_id} not confirmed")
            return False

        try:
            removed = self.store.remove(self.collection_name, record_id)
        except StorageError as e:
            self.logger.error(f"Failed to delete {self.kind} {record_id}: {e.message}")
            self._notify_template('item_delete_failed', 'error', kind=self.kind)
            return False

        if not removed:
            self.logger.warning(f"{self.kind.capitalize()} {record_id} not found for delete")
            self._notify_template('item_delete_failed', 'error', kind=self.kind)
            return False

        self.logger.info(f"Deleted {self.kind} {record_id}")
        self._notify_template('item_deleted', 'success', kind=self.kind)
        self.refresh()
        return True

    def refresh(self) -> Optional[ListView]:
        """Re-render with the last search term and filter."""
        if self.renderer is None:
            return None
        try:
            return self.list(self._last_search, self._last_filter)
        except PortalError:
            return None

    # Hooks for subclasses

    def validate(self, fields: Dict[str, Any]) -> None:
        """Kind-specific validation of cleaned fields."""

    def build_record(self, fields: Dict[str, Any], record_id: str,
                     author_email: str) -> Dict[str, Any]:
        raise NotImplementedError

    def passes_filter(self, item, filter: str, now: datetime) -> bool:
        return True

    def sort(self, items: List[Any]) -> List[Any]:
        return items

    def statuses(self, items: List[Any], now: datetime) -> Dict[str, str]:
        return {}

    # Helpers

    def _clean_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {}
        for name in self.required_fields + tuple(self.optional_fields):
            value = fields.get(name)
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"Invalid value for {name}")
            if value is not None:
                value = value.strip()
            cleaned[name] = value or None

        missing = [name for name in self.required_fields if not cleaned[name]]
        if missing:
            raise ValidationError('Please fill in all required fields')
        return cleaned

    def _load(self) -> List[Any]:
        items = []
        for record in self.store.list(self.collection_name):
            try:
                items.append(self.model.from_record(record))
            except TypeError as e:
                self.logger.warning(f"Skipping malformed {self.kind} record: {str(e)}")
        return items

    def _matches_search(self, item, search_term: str) -> bool:
        if not search_term:
            return True
        term = search_term.lower()
        return term in str(item.title or '').lower() or term in str(item.description or '').lower()

    def _author_email(self) -> str:
        user = self.session.current_user
        return user.email if user else self.fallback_author_email

    def _render(self, view: ListView) -> None:
        if self.renderer is not None:
            self.renderer.render(view)

    def _notify(self, message: str, severity: str) -> None:
        if self.notifier is not None:
            self.notifier.notify(message, severity)

    def _notify_template(self, template_name: str, severity: str, **context) -> None:
        if self.notifier is not None:
            self.notifier.notify_template(template_name, severity, **context)
