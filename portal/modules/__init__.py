# School Portal - Modules Package
"""
Business logic modules of the school portal.
"""

__version__ = "1.0.0"
__description__ = "Core modules for school portal functionality"

# Module descriptions
MODULES = {
    'exceptions': 'Error taxonomy shared by all managers',
    'models': 'Record types, collection names and id generators',
    'key_value_store': 'Local durable key/value storage with quota',
    'document_database': 'Remote document database façade (MongoDB)',
    'database_manager': 'Record Store over local or remote backends',
    'session_context': 'Current-user slot with change notification',
    'auth_manager': 'Registration, login, logout and role checks',
    'navigation': 'Navigation visibility synced to the session',
    'content_manager': 'Shared list/create/delete controller logic',
    'assignment_manager': 'Assignments with due-date filters',
    'news_manager': 'News items, newest first',
    'attendance_manager': 'Attendance session issuing and code redemption',
    'qr_generator': 'QR codes for attendance sessions',
    'notification_system': 'Toasts and blocking alerts',
    'submission_guard': 'Duplicate-submission guard for command handlers',
}

def get_module_info():
    """Get information about available modules"""
    return MODULES
