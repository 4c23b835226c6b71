# School Portal Configuration

import os
from datetime import timedelta
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


def _env_flag(name, default='False'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'school-portal-secret-key-2026'
    JSON_SORT_KEYS = False

    # Storage Configuration
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND') or 'local'  # 'local' or 'remote'
    LOCAL_STORAGE_PATH = BASE_DIR / 'database' / 'portal.db'
    LOCAL_STORAGE_QUOTA_BYTES = 5 * 1024 * 1024  # 5MB, same as browser local storage

    # Remote document database (MongoDB)
    DATABASE_URL = os.environ.get('DATABASE_URL') or 'mongodb://localhost:27017'
    DATABASE_NAME = os.environ.get('DATABASE_NAME') or 'school_portal'
    DATABASE_TIMEOUT_SECONDS = 5

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Security Configuration
    PASSWORD_MIN_LENGTH = 6

    # Content Configuration
    FALLBACK_AUTHOR_EMAIL = 'admin@shc.com'
    NEWS_LIST_LIMIT = 50

    # Attendance Configuration
    ATTENDANCE_VALID_CODES = (
        'ABC123', 'XYZ789', 'QWE456', 'RTY321', 'UIO654',
        'PAS987', 'DFG123', 'HJK456', 'LZX789', 'CVB321',
        'NMQ654', 'WER987', 'SDF123', 'XCV456', 'BNM789',
        'QAZ321', 'WSX654', 'EDC987', 'RFV123', 'TGB456',
        'YHN789', 'UJM321', 'IK654', 'OL987', 'P123',
        'A456', 'B789', 'C321', 'D654', 'E987'
    )
    ATTENDANCE_PLACEHOLDER_COURSE_ID = 'CS101'
    QR_CODE_BOX_SIZE = 10
    QR_CODE_BORDER = 4

    # Notification Configuration
    NOTIFICATION_DURATION_SECONDS = 3

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FORMAT = '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
    LOG_FILE = BASE_DIR / 'logs' / 'portal.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = _env_flag('DEBUG')
    TESTING = False

    @staticmethod
    def init_app(app):
        """Initialize application configuration"""
        directories = [Config.LOG_FILE.parent]
        if Config.STORAGE_BACKEND == 'local':
            directories.append(Config.LOCAL_STORAGE_PATH.parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    LOCAL_STORAGE_PATH = BASE_DIR / 'database' / 'portal_dev.db'

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory storage for testing
    STORAGE_BACKEND = 'local'
    LOCAL_STORAGE_PATH = ':memory:'

    NOTIFICATION_DURATION_SECONDS = 0.05

    @staticmethod
    def init_app(app):
        pass


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Enhanced security for production
    SESSION_COOKIE_SECURE = True  # Requires HTTPS

    LOCAL_STORAGE_PATH = BASE_DIR / 'database' / 'portal_prod.db'

    # Production logging
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        # Production-specific initialization
        import logging
        from logging.handlers import RotatingFileHandler

        # Setup file logging
        if not app.debug:
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(cls.LOG_FORMAT))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('School portal startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Get configuration class by name, defaulting to the PORTAL_CONFIG environment variable"""
    if config_name is None:
        config_name = os.environ.get('PORTAL_CONFIG', 'default')
    return config.get(config_name, DevelopmentConfig)


# Validation functions
def validate_config(config_class):
    """Validate configuration settings"""
    errors = []

    if config_class.STORAGE_BACKEND not in ('local', 'remote'):
        errors.append(f"Unknown STORAGE_BACKEND: {config_class.STORAGE_BACKEND}")

    if config_class.STORAGE_BACKEND == 'remote':
        if not config_class.DATABASE_URL:
            errors.append("DATABASE_URL is required for the remote storage backend")
        if not config_class.DATABASE_NAME:
            errors.append("DATABASE_NAME is required for the remote storage backend")

    if config_class.PASSWORD_MIN_LENGTH < 1:
        errors.append("PASSWORD_MIN_LENGTH must be positive")

    if not config_class.ATTENDANCE_VALID_CODES:
        errors.append("ATTENDANCE_VALID_CODES must not be empty")

    return errors


# Initialize configuration
def init_config(app, config_name=None):
    """Initialize application with configuration"""
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    config_class.init_app(app)

    # Validate configuration
    errors = validate_config(config_class)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class
