# School Portal - Core Package
"""
Core package of the school portal: registration and login, admin-posted
assignments and news, and the attendance-session flow.
"""

__version__ = "1.0.0"
__author__ = "School Portal Team"
__description__ = "Record store, identity and content managers behind the school portal"

# Import core components for easy access
from .modules.database_manager import (
    RecordStore, LocalRecordStore, RemoteRecordStore, create_record_store
)
from .modules.key_value_store import SQLiteKeyValueStore
from .modules.document_database import MongoDocumentDatabase, SERVER_TIMESTAMP
from .modules.session_context import SessionContext
from .modules.auth_manager import AuthManager
from .modules.navigation import NavigationSync, NavigationState
from .modules.assignment_manager import AssignmentManager
from .modules.news_manager import NewsManager
from .modules.attendance_manager import AttendanceManager
from .modules.notification_system import NotificationSystem
from .modules.qr_generator import QRGenerator

__all__ = [
    'RecordStore',
    'LocalRecordStore',
    'RemoteRecordStore',
    'create_record_store',
    'SQLiteKeyValueStore',
    'MongoDocumentDatabase',
    'SERVER_TIMESTAMP',
    'SessionContext',
    'AuthManager',
    'NavigationSync',
    'NavigationState',
    'AssignmentManager',
    'NewsManager',
    'AttendanceManager',
    'NotificationSystem',
    'QRGenerator',
]
