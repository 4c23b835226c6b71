"""
Document Database Module - School Portal

Narrow façade over the remote document database used by the remote Record
Store backend. The core depends only on the ``DocumentDatabase`` surface:
add, query, get, delete and update records, the auth-state listener hooks,
and the ``SERVER_TIMESTAMP`` sentinel that is resolved at write commit.

``MongoDocumentDatabase`` implements the façade over MongoDB with pymongo.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from .exceptions import StorageError


class _ServerTimestamp:
    """Sentinel field value replaced by the server time when the write commits."""

    def __repr__(self):
        return 'SERVER_TIMESTAMP'


SERVER_TIMESTAMP = _ServerTimestamp()

WHERE_OPERATORS = {
    '==': '$eq',
    '!=': '$ne',
    '<': '$lt',
    '<=': '$lte',
    '>': '$gt',
    '>=': '$gte',
}

WhereClause = Tuple[str, str, Any]


def resolve_server_timestamps(fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Return a copy of ``fields`` with every SERVER_TIMESTAMP replaced by ``now``."""
    return {key: (now if value is SERVER_TIMESTAMP else value) for key, value in fields.items()}


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert a stored document into a plain record."""
    if doc is None:
        return doc
    d = dict(doc)
    if '_id' in d:
        object_id = str(d.pop('_id'))
        d.setdefault('id', object_id)
    for k, v in list(d.items()):
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            d[k] = v.isoformat()
    return d


class DocumentDatabase:
    """
    Interface of the remote document database façade.

    Subclasses implement the record operations; the auth-state listener
    registry is shared.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.current_auth_user: Optional[Dict[str, Any]] = None
        self._auth_listeners: List[Callable] = []

    def add_record(self, collection_name: str, fields: Dict[str, Any]) -> str:
        raise NotImplementedError

    def query_records(self, collection_name: str, order_by: Optional[str] = None,
                      direction: str = 'asc', where: Iterable[WhereClause] = (),
                      limit: Optional[int] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def get_by_id(self, collection_name: str, record_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def get_inserted(self, collection_name: str, inserted_id: str) -> Optional[Dict[str, Any]]:
        """Read back a document by the id ``add_record`` returned."""
        raise NotImplementedError

    def delete_record(self, collection_name: str, record_id: str) -> int:
        raise NotImplementedError

    def update_record(self, collection_name: str, record_id: str,
                      changes: Dict[str, Any]) -> int:
        raise NotImplementedError

    def auth_state_changed(self, callback: Callable) -> Callable[[], None]:
        """
        Register a listener for sign-in/sign-out transitions.

        The callback is invoked immediately with the current auth user and
        again on every change.

        Returns:
            Callable: Function that removes the listener
        """
        self._auth_listeners.append(callback)
        callback(self.current_auth_user)

        def unsubscribe():
            if callback in self._auth_listeners:
                self._auth_listeners.remove(callback)

        return unsubscribe

    def set_auth_user(self, user: Optional[Dict[str, Any]]) -> None:
        self.current_auth_user = user
        for listener in list(self._auth_listeners):
            listener(user)

    def sign_out(self) -> None:
        self.set_auth_user(None)


class MongoDocumentDatabase(DocumentDatabase):
    """
    Document database façade over MongoDB.
    """

    def __init__(self, database_url: str, database_name: str, client=None,
                 timeout_ms: int = 5000):
        """
        Connect to MongoDB.

        Args:
            database_url (str): MongoDB connection URL
            database_name (str): Database name
            client: Existing MongoClient to reuse
            timeout_ms (int): Server selection timeout in milliseconds
        """
        super().__init__()
        self.client = client or MongoClient(
            database_url,
            serverSelectionTimeoutMS=timeout_ms,
            tz_aware=True
        )
        self.db = self.client[database_name]
        self.logger.info(f"Document database configured: {database_name}")

    @contextmanager
    def _remote_call(self, operation: str, collection_name: str):
        try:
            yield
        except PyMongoError as e:
            self.logger.error(f"Remote {operation} on '{collection_name}' failed: {str(e)}")
            raise StorageError() from e

    def add_record(self, collection_name, fields):
        doc = resolve_server_timestamps(fields, datetime.now(timezone.utc))
        with self._remote_call('insert', collection_name):
            result = self.db[collection_name].insert_one(doc)
        return str(result.inserted_id)

    def query_records(self, collection_name, order_by=None, direction='asc',
                      where=(), limit=None):
        filt = build_filter(where)
        with self._remote_call('query', collection_name):
            cursor = self.db[collection_name].find(filt)
            if order_by:
                cursor = cursor.sort(order_by, DESCENDING if direction == 'desc' else ASCENDING)
            if limit:
                cursor = cursor.limit(limit)
            return [serialize(doc) for doc in cursor]

    def get_by_id(self, collection_name, record_id):
        with self._remote_call('get', collection_name):
            return serialize(self.db[collection_name].find_one({'id': record_id}))

    def get_inserted(self, collection_name, inserted_id):
        with self._remote_call('get', collection_name):
            return serialize(self.db[collection_name].find_one({'_id': ObjectId(inserted_id)}))

    def delete_record(self, collection_name, record_id):
        with self._remote_call('delete', collection_name):
            result = self.db[collection_name].delete_one({'id': record_id})
        return result.deleted_count

    def update_record(self, collection_name, record_id, changes):
        update = resolve_server_timestamps(changes, datetime.now(timezone.utc))
        with self._remote_call('update', collection_name):
            result = self.db[collection_name].update_one({'id': record_id}, {'$set': update})
        return result.matched_count


def build_filter(where: Iterable[WhereClause]) -> Dict[str, Any]:
    """
    Translate ``(field, operator, value)`` clauses into a MongoDB filter.

    Raises:
        ValueError: On an unsupported operator
    """
    f: Dict[str, Any] = {}
    for field, operator, value in where:
        if operator not in WHERE_OPERATORS:
            raise ValueError(f"Unsupported where operator: {operator}")
        f.setdefault(field, {})[WHERE_OPERATORS[operator]] = value
    return f
