"""
Shared fixtures for the portal tests: an in-memory document database for the
remote Record Store, recording renderers and notifiers, and a fixed clock.
"""
from datetime import datetime, timezone
import itertools

from portal.modules.document_database import (
    DocumentDatabase, build_filter, resolve_server_timestamps, serialize
)
from portal.modules.exceptions import StorageError
from portal.modules.key_value_store import SQLiteKeyValueStore
from portal.modules.database_manager import LocalRecordStore
from portal.modules.session_context import SessionContext
from portal.modules.models import User, ROLE_ADMIN, ROLE_STUDENT


_MONGO_COMPARE = {
    '$eq': lambda a, b: a == b,
    '$ne': lambda a, b: a != b,
    '$lt': lambda a, b: a < b,
    '$lte': lambda a, b: a <= b,
    '$gt': lambda a, b: a > b,
    '$gte': lambda a, b: a >= b,
}


class InMemoryDocumentDatabase(DocumentDatabase):
    """DocumentDatabase keeping documents in dictionaries. Set ``fail`` to simulate outages."""

    def __init__(self):
        super().__init__()
        self.collections = {}
        self.fail = False
        self.calls = []
        self._ids = itertools.count(1)

    def _check(self, operation):
        self.calls.append(operation)
        if self.fail:
            raise StorageError()

    def _docs(self, collection_name):
        return self.collections.setdefault(collection_name, [])

    def add_record(self, collection_name, fields):
        self._check('add')
        doc = resolve_server_timestamps(fields, datetime.now(timezone.utc))
        doc['_id'] = f"oid{next(self._ids)}"
        self._docs(collection_name).append(doc)
        return doc['_id']

    def query_records(self, collection_name, order_by=None, direction='asc',
                      where=(), limit=None):
        self._check('query')
        filt = build_filter(where)
        docs = [d for d in self._docs(collection_name) if self._matches(d, filt)]
        records = [serialize(d) for d in docs]
        if order_by:
            records.sort(key=lambda r: r.get(order_by) or '', reverse=direction == 'desc')
        if limit:
            records = records[:limit]
        return records

    def get_by_id(self, collection_name, record_id):
        self._check('get')
        for doc in self._docs(collection_name):
            if doc.get('id') == record_id:
                return serialize(doc)
        return None

    def get_inserted(self, collection_name, inserted_id):
        self._check('get')
        for doc in self._docs(collection_name):
            if doc['_id'] == inserted_id:
                return serialize(doc)
        return None

    def delete_record(self, collection_name, record_id):
        self._check('delete')
        docs = self._docs(collection_name)
        for doc in docs:
            if doc.get('id') == record_id:
                docs.remove(doc)
                return 1
        return 0

    def update_record(self, collection_name, record_id, changes):
        self._check('update')
        for doc in self._docs(collection_name):
            if doc.get('id') == record_id:
                doc.update(resolve_server_timestamps(changes, datetime.now(timezone.utc)))
                return 1
        return 0

    @staticmethod
    def _matches(doc, filt):
        for field, conditions in filt.items():
            if field not in doc:
                return False
            for op, value in conditions.items():
                if not _MONGO_COMPARE[op](doc[field], value):
                    return False
        return True


class RecordingRenderer:
    """Renderer that keeps every view it is asked to render."""

    def __init__(self):
        self.views = []

    def render(self, view):
        self.views.append(view)

    @property
    def last(self):
        return self.views[-1] if self.views else None


class RecordingNotifier:
    """Notifier double capturing (message, severity) pairs."""

    def __init__(self):
        self.messages = []

    def notify(self, message, severity='info', blocking=False, duration=None):
        self.messages.append((message, severity))

    def notify_template(self, template_name, severity='info', blocking=False, **context):
        self.messages.append((template_name, severity))

    @property
    def severities(self):
        return [severity for _, severity in self.messages]


class FixedClock:
    """Callable clock returning a settable local time."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def make_local_store(quota_bytes=None):
    return LocalRecordStore(SQLiteKeyValueStore(':memory:', quota_bytes=quota_bytes))


def make_session():
    return SessionContext(SQLiteKeyValueStore(':memory:'))


def make_user(role=ROLE_STUDENT, user_id='u1', name='Ana', email='ana@shc.com'):
    return User(id=user_id, name=name, email=email, role=role)


def make_admin(user_id='a1', name='Admin', email='admin@shc.com'):
    return make_user(ROLE_ADMIN, user_id, name, email)


def local_now():
    return datetime(2026, 3, 10, 9, 0, 0)
