"""
Database Manager Module - School Portal

This module provides the Record Store: persistence for the portal's named
collections (users, assignments, news, attendanceRecords,
attendanceSessions). Two backends share the same contract:

- LocalRecordStore keeps each collection as one JSON-encoded list in the
  local key/value store. Every write rewrites the whole list.
- RemoteRecordStore goes through the document database façade and issues
  targeted per-record operations.

Neither backend locks around read-modify-write. Concurrent writers to the same
collection resolve as last-writer-wins.

Features:
- list / append / replace over a whole collection
- Per-id remove and update
- In-memory or remote filtered queries with ordering and limit
- Server-assigned timestamps at write commit
- Sign-in/sign-out forwarding to the remote auth listeners
"""

import json
import logging
import operator
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .document_database import (
    DocumentDatabase, MongoDocumentDatabase, SERVER_TIMESTAMP
)
from .exceptions import StorageError
from .key_value_store import KeyValueStore, SQLiteKeyValueStore
from .models import utc_now_iso

WhereClause = Tuple[str, str, Any]

_OPERATORS = {
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


def _matches(record: Dict[str, Any], where: Iterable[WhereClause]) -> bool:
    for field, op, value in where:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported where operator: {op}")
        if field not in record:
            return False
        try:
            if not _OPERATORS[op](record[field], value):
                return False
        except TypeError:
            return False
    return True


class RecordStore:
    """
    Record Store contract. ``query`` has an in-memory default built on
    ``list``; backends with native querying override it.
    """

    def list(self, collection_name: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def append(self, collection_name: str, record: Dict[str, Any],
               server_time_fields: Iterable[str] = ()) -> Dict[str, Any]:
        raise NotImplementedError

    def replace(self, collection_name: str,
                predicate: Callable[[Dict[str, Any]], bool]) -> int:
        raise NotImplementedError

    def remove(self, collection_name: str, record_id: str) -> bool:
        raise NotImplementedError

    def update(self, collection_name: str, record_id: str,
               changes: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def query(self, collection_name: str, where: Iterable[WhereClause] = (),
              order_by: Optional[str] = None, descending: bool = False,
              limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Filter, order and cap a collection.

        Args:
            collection_name (str): Collection to read
            where (Iterable[WhereClause]): ``(field, operator, value)`` clauses
            order_by (str): Field to sort on
            descending (bool): Sort direction
            limit (int): Maximum number of records

        Returns:
            List[Dict[str, Any]]: Matching records
        """
        where = list(where)
        records = [r for r in self.list(collection_name) if _matches(r, where)]
        if order_by:
            # Ordered fields are ISO strings; missing values sort first
            records.sort(key=lambda r: r.get(order_by) or '', reverse=descending)
        if limit:
            records = records[:limit]
        return records

    def on_sign_in(self, user: Dict[str, Any]) -> None:
        """Hook called after a successful login or registration."""

    def on_sign_out(self) -> None:
        """Hook called after logout."""


class LocalRecordStore(RecordStore):
    """
    Record Store backed by the local key/value store. Synchronous. Reads of
    an unreadable collection return an empty list; writes refuse to replace
    it and raise StorageError, as they do when the key/value store refuses a
    write.
    """

    def __init__(self, kv_store: KeyValueStore, key_prefix: str = ''):
        self.kv_store = kv_store
        self.key_prefix = key_prefix
        self.logger = logging.getLogger(__name__)

    def _key(self, collection_name: str) -> str:
        return f"{self.key_prefix}{collection_name}"

    def list(self, collection_name):
        try:
            return self._load(collection_name)
        except StorageError:
            return []

    def _load(self, collection_name: str) -> List[Dict[str, Any]]:
        """
        Strict read used before every write.

        Raises:
            StorageError: If the stored collection is not a JSON list
        """
        raw = self.kv_store.get(self._key(collection_name))
        if raw is None:
            return []
        try:
            records = json.loads(raw)
        except ValueError as e:
            self.logger.error(f"Collection '{collection_name}' is not valid JSON: {str(e)}")
            raise StorageError(f"Stored {collection_name} data is unreadable") from e
        if not isinstance(records, list):
            self.logger.error(f"Collection '{collection_name}' is not a list")
            raise StorageError(f"Stored {collection_name} data is unreadable")
        return records

    def _write(self, collection_name: str, records: List[Dict[str, Any]]) -> None:
        self.kv_store.set(self._key(collection_name), json.dumps(records))

    def append(self, collection_name, record, server_time_fields=()):
        records = self._load(collection_name)
        stored = dict(record)
        now = utc_now_iso()
        for field in server_time_fields:
            stored[field] = now
        records.append(stored)
        self._write(collection_name, records)
        self.logger.debug(f"Appended record to '{collection_name}' ({len(records)} total)")
        return dict(stored)

    def replace(self, collection_name, predicate):
        records = self._load(collection_name)
        kept = [r for r in records if not predicate(r)]
        self._write(collection_name, kept)
        return len(records) - len(kept)

    def remove(self, collection_name, record_id):
        return self.replace(collection_name, lambda r: r.get('id') == record_id) > 0

    def update(self, collection_name, record_id, changes):
        records = self._load(collection_name)
        now = utc_now_iso()
        found = False
        for record in records:
            if record.get('id') == record_id:
                record.update({k: (now if v is SERVER_TIMESTAMP else v)
                               for k, v in changes.items()})
                found = True
        if found:
            self._write(collection_name, records)
        return found


class RemoteRecordStore(RecordStore):
    """
    Record Store backed by the remote document database façade. Every call
    may raise StorageError on network or auth failure.
    """

    def __init__(self, database: DocumentDatabase):
        self.database = database
        self.logger = logging.getLogger(__name__)

    def list(self, collection_name):
        return self.database.query_records(collection_name)

    def append(self, collection_name, record, server_time_fields=()):
        fields = dict(record)
        for field in server_time_fields:
            fields[field] = SERVER_TIMESTAMP
        inserted_id = self.database.add_record(collection_name, fields)

        if 'id' in record:
            record_id = record['id']
            stored = self.database.get_by_id(collection_name, record_id)
        else:
            record_id = inserted_id
            stored = self.database.get_inserted(collection_name, inserted_id)
        if stored is None:
            stored = {k: v for k, v in fields.items() if v is not SERVER_TIMESTAMP}
            stored.setdefault('id', record_id)
        return stored

    def replace(self, collection_name, predicate):
        removed = 0
        for record in self.list(collection_name):
            if predicate(record):
                removed += self.database.delete_record(collection_name, record['id'])
        return removed

    def remove(self, collection_name, record_id):
        return self.database.delete_record(collection_name, record_id) > 0

    def update(self, collection_name, record_id, changes):
        return self.database.update_record(collection_name, record_id, changes) > 0

    def query(self, collection_name, where=(), order_by=None, descending=False, limit=None):
        return self.database.query_records(
            collection_name,
            order_by=order_by,
            direction='desc' if descending else 'asc',
            where=list(where),
            limit=limit
        )

    def on_sign_in(self, user):
        self.database.set_auth_user(user)

    def on_sign_out(self):
        self.database.sign_out()


def create_record_store(config) -> RecordStore:
    """
    Build the Record Store selected by ``config.STORAGE_BACKEND``.

    Args:
        config: Configuration class (see config.py)

    Returns:
        RecordStore: Local or remote store

    Raises:
        ValueError: On an unknown backend name
    """
    backend = getattr(config, 'STORAGE_BACKEND', 'local')
    logger = logging.getLogger(__name__)

    if backend == 'local':
        kv_store = SQLiteKeyValueStore(
            config.LOCAL_STORAGE_PATH,
            quota_bytes=getattr(config, 'LOCAL_STORAGE_QUOTA_BYTES', None)
        )
        logger.info(f"Using local record store at {config.LOCAL_STORAGE_PATH}")
        return LocalRecordStore(kv_store)

    if backend == 'remote':
        database = MongoDocumentDatabase(
            config.DATABASE_URL,
            config.DATABASE_NAME,
            timeout_ms=int(getattr(config, 'DATABASE_TIMEOUT_SECONDS', 5) * 1000)
        )
        logger.info(f"Using remote record store '{config.DATABASE_NAME}'")
        return RemoteRecordStore(database)

    raise ValueError(f"Unknown storage backend: {backend}")


__all__ = [
    'RecordStore', 'LocalRecordStore', 'RemoteRecordStore', 'create_record_store',
    'StorageError', 'SERVER_TIMESTAMP',
]
