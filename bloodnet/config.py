import os


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration, overridable through environment variables"""

    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', 'mysql+pymysql://root:@localhost/bloodnet'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Background jobs (expiry sweep, expiring-soon check, weekday report)
    SCHEDULER_ENABLED = _env_flag('SCHEDULER_ENABLED', True)
    SCHEDULER_API_ENABLED = False
    SCHEDULER_TIMEZONE = 'UTC'

    # Notification delivery
    REQUEST_NOTIFICATIONS_ENABLED = _env_flag('REQUEST_NOTIFICATIONS_ENABLED', True)
    SMS_ENABLED = _env_flag('SMS_ENABLED')
    AT_USERNAME = os.environ.get('AT_USERNAME', 'sandbox')
    AT_API_KEY = os.environ.get('AT_API_KEY', '')
    NOTIFICATION_WEBHOOK_URL = os.environ.get('NOTIFICATION_WEBHOOK_URL')
    NOTIFICATION_WEBHOOK_TIMEOUT = 5

    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 25))
    MAIL_USE_TLS = _env_flag('MAIL_USE_TLS')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'noreply@bloodnet.local')

    # Matching and inventory policy
    EXPIRY_WARNING_DAYS = 3
    CRITICAL_DONOR_RADIUS_KM = 20
    DEFAULT_DONOR_RADIUS_KM = 50
    BLOOD_BANK_RADIUS_KM = 100
    MAX_NOTIFIED_DONORS = 100
    MAX_NOTIFIED_BLOOD_BANKS = 20


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///bloodnet.db')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_SECRET_KEY = 'testing-secret-key-with-enough-length'
    SCHEDULER_ENABLED = False
    SMS_ENABLED = False
    NOTIFICATION_WEBHOOK_URL = None
    MAIL_SUPPRESS_SEND = True
