"""
School Portal - Main Application

This module serves as the main entry point for the school portal. It builds
the Flask application, wires the portal managers to the configured Record
Store, and exposes them as a JSON API. The current user is kept in the Flask
session cookie; every response carries the notifications raised while
handling the request.

Features:
- Student registration, login and logout
- Assignment and news listing, posting and deletion (admin)
- Attendance session issuing with QR code (admin)
- Attendance code redemption and history (student)
- Admin bootstrap command (``flask --app app create-admin``)
"""

from flask import Flask, request, jsonify, session, g, has_request_context
from werkzeug.exceptions import HTTPException
from functools import wraps
import atexit
import logging
import weakref

import click

from config import init_config
from portal.modules.database_manager import create_record_store
from portal.modules.exceptions import PortalError, ValidationError
from portal.modules.session_context import SessionContext
from portal.modules.auth_manager import AuthManager
from portal.modules.navigation import NavigationSync, NavigationState
from portal.modules.assignment_manager import AssignmentManager
from portal.modules.news_manager import NewsManager
from portal.modules.attendance_manager import AttendanceManager
from portal.modules.notification_system import NotificationSystem
from portal.modules.qr_generator import QRGenerator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

# Notification systems of every live app, shut down once at process exit
_notification_systems = weakref.WeakSet()


@atexit.register
def shutdown_notifications():
    for notification_system in list(_notification_systems):
        notification_system.shutdown()


class FlaskSessionStore:
    """Session slot kept in the Flask session cookie."""

    def get(self, key):
        return session.get(key)

    def set(self, key, value):
        session[key] = value

    def remove(self, key):
        session.pop(key, None)


class RequestNavigationRenderer:
    """Attaches the synced navigation state to the current response."""

    def render(self, state):
        if has_request_context():
            g.navigation = state.to_dict()


def respond(success, message='', data=None, status=200):
    """Build the JSON envelope shared by every endpoint."""
    payload = {
        'success': success,
        'message': message,
        'data': data,
        'notifications': g.get('notifications', []),
    }
    if 'navigation' in g:
        payload['navigation'] = g.navigation
    return jsonify(payload), status


def request_data():
    """Submitted fields from a JSON object body or a form post."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def is_confirmed():
    value = request.args.get('confirm') or str(request_data().get('confirm', ''))
    return value.lower() in ('1', 'true', 'yes', 'on')


def create_app(config_name=None, record_store=None):
    """
    Create the Flask application.

    Args:
        config_name (str): Key of the configuration dictionary in config.py
        record_store (RecordStore): Store to use instead of the configured one

    Returns:
        Flask: The configured application
    """
    app = Flask(__name__)
    config_class = init_config(app, config_name)
    logging.getLogger().setLevel(config_class.LOG_LEVEL)

    # Initialize system components
    store = record_store or create_record_store(config_class)
    notification_system = NotificationSystem(
        default_duration=config_class.NOTIFICATION_DURATION_SECONDS
    )
    session_context = SessionContext(FlaskSessionStore())
    auth_manager = AuthManager(
        store, session_context, notification_system,
        password_min_length=config_class.PASSWORD_MIN_LENGTH
    )
    navigation = NavigationSync(
        session_context, renderer=RequestNavigationRenderer(), render_initial=False
    )
    assignment_manager = AssignmentManager(
        store, session_context, notification_system,
        fallback_author_email=config_class.FALLBACK_AUTHOR_EMAIL
    )
    news_manager = NewsManager(
        store, session_context, notification_system,
        fallback_author_email=config_class.FALLBACK_AUTHOR_EMAIL,
        list_limit=config_class.NEWS_LIST_LIMIT
    )
    attendance_manager = AttendanceManager(
        store, session_context, notification_system,
        qr_generator=QRGenerator(config_class.QR_CODE_BOX_SIZE, config_class.QR_CODE_BORDER),
        valid_codes=config_class.ATTENDANCE_VALID_CODES,
        placeholder_course_id=config_class.ATTENDANCE_PLACEHOLDER_COURSE_ID
    )

    app.extensions['portal'] = {
        'store': store,
        'notifications': notification_system,
        'session': session_context,
        'auth': auth_manager,
        'navigation': navigation,
        'assignments': assignment_manager,
        'news': news_manager,
        'attendance': attendance_manager,
    }

    def collect_notification(notification):
        if has_request_context():
            g.setdefault('notifications', []).append({
                'message': notification.message,
                'severity': notification.severity,
                'blocking': notification.blocking,
            })

    notification_system.add_listener(collect_notification)
    _notification_systems.add(notification_system)

    def login_required(f):
        """Decorator to require login for protected routes"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth_manager.require_user()
            return f(*args, **kwargs)
        return decorated_function

    def admin_required(f):
        """Decorator to require admin privileges for protected routes"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth_manager.require_admin()
            return f(*args, **kwargs)
        return decorated_function

    @app.errorhandler(PortalError)
    def handle_portal_error(e):
        return respond(False, e.message, status=e.status_code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        if isinstance(e, HTTPException):
            return respond(False, e.description, status=e.code)
        logger.error(f"Unexpected error on {request.method} {request.path}: {str(e)}")
        return respond(False, 'An unexpected error occurred. Please try again.', status=500)

    @app.route('/')
    def index():
        """API status"""
        return respond(True, 'School Portal API', {'status': 'ok', 'storage': config_class.STORAGE_BACKEND})

    # ----- Auth -----

    @app.route('/api/auth/register', methods=['POST'])
    def register():
        data = request_data()
        user = auth_manager.register(
            data.get('name', ''),
            data.get('email', ''),
            data.get('password', ''),
            data.get('confirm_password', '')
        )
        return respond(True, 'Registration successful!', user.public_dict(), 201)

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        data = request_data()
        user = auth_manager.login(data.get('email', ''), data.get('password', ''))
        return respond(True, 'Login successful!', user.public_dict())

    @app.route('/api/auth/logout', methods=['POST'])
    def logout():
        auth_manager.logout()
        return respond(True, 'Logged out successfully')

    @app.route('/api/session')
    def current_session():
        user = auth_manager.current_user
        g.navigation = NavigationState.for_user(user).to_dict()
        return respond(True, data={'user': user.public_dict() if user else None})

    # ----- Assignments -----

    @app.route('/api/assignments')
    def list_assignments():
        view = assignment_manager.list(request.args.get('search'), request.args.get('filter', 'all'))
        return respond(True, data=view.to_dict())

    @app.route('/api/assignments', methods=['POST'])
    @admin_required
    def create_assignment():
        assignment = assignment_manager.create(request_data())
        return respond(True, 'Assignment added successfully!', assignment.to_record(), 201)

    @app.route('/api/assignments/<record_id>', methods=['DELETE'])
    @admin_required
    def delete_assignment(record_id):
        if not is_confirmed():
            raise ValidationError('Please confirm the deletion')
        if not assignment_manager.delete(record_id, confirm=True):
            return respond(False, 'Failed to delete assignment', status=404)
        return respond(True, 'Assignment deleted successfully')

    # ----- News -----

    @app.route('/api/news')
    def list_news():
        view = news_manager.list(request.args.get('search'))
        return respond(True, data=view.to_dict())

    @app.route('/api/news', methods=['POST'])
    @admin_required
    def create_news():
        news = news_manager.create(request_data())
        return respond(True, 'News published successfully!', news.to_record(), 201)

    @app.route('/api/news/<record_id>', methods=['DELETE'])
    @admin_required
    def delete_news(record_id):
        if not is_confirmed():
            raise ValidationError('Please confirm the deletion')
        if not news_manager.delete(record_id, confirm=True):
            return respond(False, 'Failed to delete news', status=404)
        return respond(True, 'News deleted successfully')

    # ----- Attendance -----

    @app.route('/api/attendance/sessions', methods=['POST'])
    @admin_required
    def issue_attendance_session():
        data = request_data()
        issued = attendance_manager.issue_session(
            data.get('course_id', ''),
            data.get('duration_minutes')
        )
        return respond(True, 'Session created successfully!', issued.to_dict(), 201)

    @app.route('/api/attendance/sessions/current')
    @admin_required
    def get_attendance_session():
        issued = attendance_manager.current_session
        return respond(True, data=issued.to_dict() if issued else None)

    @app.route('/api/attendance/sessions/current', methods=['DELETE'])
    @admin_required
    def end_attendance_session():
        if not attendance_manager.end_session():
            return respond(False, 'No active session', status=404)
        return respond(True, 'Session ended')

    @app.route('/api/attendance/redeem', methods=['POST'])
    def redeem_attendance_code():
        record = attendance_manager.redeem_code(request_data().get('code', ''))
        return respond(True, 'Attendance marked successfully!', record.to_record(), 201)

    @app.route('/api/attendance/records')
    @login_required
    def list_attendance_records():
        records = attendance_manager.list_records()
        return respond(True, data=[r.to_record() for r in records])

    # ----- CLI -----

    @app.cli.command('create-admin')
    @click.argument('name')
    @click.argument('email')
    @click.argument('password')
    def create_admin_command(name, email, password):
        """Create an admin account."""
        try:
            user = auth_manager.create_admin(name, email, password)
        except PortalError as e:
            raise click.ClickException(e.message)
        click.echo(f"Admin account created: {user.email}")

    logger.info(f"School portal initialized ({config_class.STORAGE_BACKEND} storage)")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=5000)
