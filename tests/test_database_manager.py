"""
Tests for the Record Store over the local and remote backends.
"""
import json
import unittest

from portal.modules.database_manager import (
    LocalRecordStore, RemoteRecordStore, create_record_store
)
from portal.modules.document_database import SERVER_TIMESTAMP, build_filter, serialize
from portal.modules.exceptions import StorageError
from portal.modules.key_value_store import SQLiteKeyValueStore
from tests.helpers import InMemoryDocumentDatabase, make_local_store


class LocalRecordStoreTest(unittest.TestCase):

    def setUp(self):
        self.kv = SQLiteKeyValueStore(':memory:')
        self.store = LocalRecordStore(self.kv)

    def test_list_missing_collection_is_empty(self):
        self.assertEqual(self.store.list('news'), [])

    def test_list_corrupt_collection_is_empty(self):
        self.kv.set('news', '{not json')
        self.assertEqual(self.store.list('news'), [])

    def test_list_non_list_collection_is_empty(self):
        self.kv.set('news', '{"id": "1"}')
        self.assertEqual(self.store.list('news'), [])

    def test_writes_refuse_to_overwrite_unreadable_collection(self):
        truncated = '[{"id": "a1", "title": "keep"}'
        self.kv.set('assignments', truncated)
        with self.assertRaises(StorageError):
            self.store.append('assignments', {'id': 'a2'})
        with self.assertRaises(StorageError):
            self.store.remove('assignments', 'a1')
        with self.assertRaises(StorageError):
            self.store.update('assignments', 'a1', {'title': 'changed'})
        with self.assertRaises(StorageError):
            self.store.replace('assignments', lambda record: True)
        self.assertEqual(self.kv.get('assignments'), truncated)
        self.assertEqual(self.store.list('assignments'), [])

    def test_append_keeps_insertion_order(self):
        self.store.append('news', {'id': '1'})
        self.store.append('news', {'id': '2'})
        self.assertEqual([r['id'] for r in self.store.list('news')], ['1', '2'])

    def test_append_persists_json_list(self):
        self.store.append('users', {'id': 'u1', 'email': 'a@b.c'})
        self.assertEqual(json.loads(self.kv.get('users')), [{'id': 'u1', 'email': 'a@b.c'}])

    def test_append_stamps_server_time_fields(self):
        stored = self.store.append('attendanceRecords', {'student_id': 'u1'},
                                   server_time_fields=('timestamp',))
        self.assertIn('timestamp', stored)
        self.assertEqual(self.store.list('attendanceRecords')[0]['timestamp'], stored['timestamp'])

    def test_replace_removes_matching_records(self):
        for i in range(3):
            self.store.append('news', {'id': str(i)})
        removed = self.store.replace('news', lambda r: r['id'] != '1')
        self.assertEqual(removed, 2)
        self.assertEqual(self.store.list('news'), [{'id': '1'}])

    def test_remove_by_id(self):
        self.store.append('news', {'id': 'a'})
        self.assertTrue(self.store.remove('news', 'a'))
        self.assertFalse(self.store.remove('news', 'a'))

    def test_update_by_id(self):
        self.store.append('attendanceSessions', {'id': 's1', 'active': True})
        self.assertTrue(self.store.update('attendanceSessions', 's1', {'active': False}))
        self.assertFalse(self.store.list('attendanceSessions')[0]['active'])
        self.assertFalse(self.store.update('attendanceSessions', 'missing', {'active': False}))

    def test_update_resolves_server_timestamp(self):
        self.store.append('news', {'id': 'n1'})
        self.store.update('news', 'n1', {'timestamp': SERVER_TIMESTAMP})
        self.assertIsInstance(self.store.list('news')[0]['timestamp'], str)

    def test_query_filters_orders_and_limits(self):
        self.store.append('attendanceRecords', {'student_id': 'u1', 'timestamp': '2026-01-01'})
        self.store.append('attendanceRecords', {'student_id': 'u2', 'timestamp': '2026-01-02'})
        self.store.append('attendanceRecords', {'student_id': 'u1', 'timestamp': '2026-01-03'})
        records = self.store.query('attendanceRecords', where=[('student_id', '==', 'u1')],
                                   order_by='timestamp', descending=True)
        self.assertEqual([r['timestamp'] for r in records], ['2026-01-03', '2026-01-01'])

        limited = self.store.query('attendanceRecords', order_by='timestamp', limit=1)
        self.assertEqual(limited[0]['timestamp'], '2026-01-01')

    def test_query_rejects_unknown_operator(self):
        self.store.append('news', {'id': '1'})
        with self.assertRaises(ValueError):
            self.store.query('news', where=[('id', 'like', '1')])

    def test_quota_failure_propagates(self):
        store = make_local_store(quota_bytes=40)
        store.append('news', {'id': '1'})
        with self.assertRaises(StorageError):
            store.append('news', {'id': '2', 'title': 'x' * 100})
        self.assertEqual(len(store.list('news')), 1)

    def test_key_prefix(self):
        store = LocalRecordStore(self.kv, key_prefix='portal:')
        store.append('news', {'id': '1'})
        self.assertIsNotNone(self.kv.get('portal:news'))
        self.assertIsNone(self.kv.get('news'))


class RemoteRecordStoreTest(unittest.TestCase):

    def setUp(self):
        self.database = InMemoryDocumentDatabase()
        self.store = RemoteRecordStore(self.database)

    def test_append_and_list(self):
        self.store.append('news', {'id': 'n1', 'title': 'Hello'})
        self.assertEqual(self.store.list('news'), [{'id': 'n1', 'title': 'Hello'}])

    def test_append_without_id_uses_document_id(self):
        stored = self.store.append('attendanceRecords', {'student_id': 'u1'})
        self.assertEqual(stored['id'], 'oid1')

    def test_append_resolves_server_time(self):
        stored = self.store.append('attendanceSessions', {'id': 's1'},
                                   server_time_fields=('start_time',))
        self.assertIsInstance(stored['start_time'], str)
        self.assertTrue(stored['start_time'].endswith('+00:00'))

    def test_append_without_id_returns_server_time(self):
        stored = self.store.append('attendanceRecords', {'student_id': 'u1'},
                                   server_time_fields=('timestamp',))
        self.assertEqual(stored['id'], 'oid1')
        self.assertTrue(stored['timestamp'].endswith('+00:00'))
        self.assertEqual(self.store.list('attendanceRecords')[0]['timestamp'], stored['timestamp'])

    def test_remove_and_update_target_single_record(self):
        self.store.append('news', {'id': 'a'})
        self.store.append('news', {'id': 'b'})
        self.assertTrue(self.store.update('news', 'b', {'title': 'B'}))
        self.assertTrue(self.store.remove('news', 'a'))
        self.assertEqual(self.store.list('news'), [{'id': 'b', 'title': 'B'}])

    def test_replace_deletes_per_record(self):
        for record_id in ('a', 'b', 'c'):
            self.store.append('news', {'id': record_id})
        self.assertEqual(self.store.replace('news', lambda r: r['id'] != 'b'), 2)
        self.assertEqual(self.database.calls.count('delete'), 2)

    def test_query_delegates_to_database(self):
        self.store.append('attendanceRecords', {'id': '1', 'student_id': 'u1', 'timestamp': 'b'})
        self.store.append('attendanceRecords', {'id': '2', 'student_id': 'u1', 'timestamp': 'c'})
        self.store.append('attendanceRecords', {'id': '3', 'student_id': 'u2', 'timestamp': 'a'})
        records = self.store.query('attendanceRecords', where=[('student_id', '==', 'u1')],
                                   order_by='timestamp', descending=True)
        self.assertEqual([r['id'] for r in records], ['2', '1'])

    def test_failures_raise_storage_error(self):
        self.database.fail = True
        with self.assertRaises(StorageError):
            self.store.list('news')
        with self.assertRaises(StorageError):
            self.store.append('news', {'id': 'x'})

    def test_sign_in_and_out_reach_auth_listeners(self):
        seen = []
        unsubscribe = self.database.auth_state_changed(seen.append)
        self.store.on_sign_in({'id': 'u1'})
        self.store.on_sign_out()
        unsubscribe()
        self.store.on_sign_in({'id': 'u2'})
        self.assertEqual(seen, [None, {'id': 'u1'}, None])


class DocumentHelpersTest(unittest.TestCase):

    def test_build_filter(self):
        self.assertEqual(
            build_filter([('student_id', '==', 'u1'), ('timestamp', '>=', 'a')]),
            {'student_id': {'$eq': 'u1'}, 'timestamp': {'$gte': 'a'}}
        )

    def test_build_filter_rejects_unknown_operator(self):
        with self.assertRaises(ValueError):
            build_filter([('a', '~', 1)])

    def test_serialize_keeps_own_id(self):
        self.assertEqual(serialize({'_id': 'oid', 'id': 'mine'}), {'id': 'mine'})
        self.assertEqual(serialize({'_id': 'oid'}), {'id': 'oid'})
        self.assertIsNone(serialize(None))


class CreateRecordStoreTest(unittest.TestCase):

    def test_local_backend(self):
        class Settings:
            STORAGE_BACKEND = 'local'
            LOCAL_STORAGE_PATH = ':memory:'
            LOCAL_STORAGE_QUOTA_BYTES = None

        self.assertIsInstance(create_record_store(Settings), LocalRecordStore)

    def test_unknown_backend(self):
        class Settings:
            STORAGE_BACKEND = 'cloud'

        with self.assertRaises(ValueError):
            create_record_store(Settings)


if __name__ == '__main__':
    unittest.main()
