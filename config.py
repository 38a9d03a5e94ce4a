# Visitor Pass Configuration

import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'visitor-pass-secret-key-change-me'
    MAX_CONTENT_LENGTH = 8 * 1024 * 1024  # 8MB max upload (scanned frames)

    # Email Configuration
    EMAIL_BACKEND = (os.environ.get('EMAIL_BACKEND') or 'resend').lower()  # resend | smtp
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY')
    RESEND_API_URL = os.environ.get('RESEND_API_URL') or 'https://api.resend.com/emails'
    FROM_EMAIL = os.environ.get('FROM_EMAIL')
    INVITATION_FROM_EMAIL = FROM_EMAIL or 'onboarding@resend.dev'
    CONFIRMATION_FROM_EMAIL = FROM_EMAIL or 'noreply@yourdomain.com'

    MAIL_SERVER = os.environ.get('MAIL_SERVER')
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = _env_flag('MAIL_USE_TLS', 'true')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')

    # Automation Webhooks
    CHECKIN_WEBHOOK_URL = os.environ.get('CHECKIN_WEBHOOK_URL')
    QR_WEBHOOK_URL = os.environ.get('QR_WEBHOOK_URL')
    INVITATION_CHANNEL = (os.environ.get('INVITATION_CHANNEL') or 'email').lower()  # email | webhook
    CHECKIN_CHANNEL = (os.environ.get('CHECKIN_CHANNEL') or 'email').lower()
    HTTP_TIMEOUT = float(os.environ.get('HTTP_TIMEOUT') or 10)  # seconds

    # QR Code Configuration
    QR_CODE_SIZE = 300  # pixels, square
    QR_CODE_MARGIN = 2  # modules
    QR_CODE_ERROR_CORRECT = 'H'  # High error correction
    QR_CODE_FILL_COLOR = '#000000'
    QR_CODE_BACK_COLOR = '#FFFFFF'

    # Duplicate suppression for invitation emails
    DUPLICATE_WINDOW_SECONDS = 60

    # Scanner Configuration
    CAMERA_INDEX = int(os.environ.get('CAMERA_INDEX') or 0)
    SCANNER_FPS = 10
    SCANNER_DETECTION_BOX = 250  # pixels
    SCANNER_TIMEOUT_SECONDS = None

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'visitor_pass.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = _env_flag('DEBUG', 'False')
    TESTING = False

    @staticmethod
    def init_app(app):
        """Initialize application configuration"""
        app.config.update({
            'SECRET_KEY': Config.SECRET_KEY,
            'MAX_CONTENT_LENGTH': Config.MAX_CONTENT_LENGTH,
        })


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    # More verbose logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'DEBUG'

    # MailHog default port when SMTP is used locally
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 1025)
    MAIL_USE_TLS = _env_flag('MAIL_USE_TLS', 'false')


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Never talk to real collaborators from tests
    EMAIL_BACKEND = 'resend'
    RESEND_API_KEY = None
    MAIL_SERVER = None
    CHECKIN_WEBHOOK_URL = None
    QR_WEBHOOK_URL = None
    INVITATION_CHANNEL = 'email'
    CHECKIN_CHANNEL = 'email'

    SCANNER_TIMEOUT_SECONDS = 1


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Production logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'WARNING'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        # Production-specific initialization
        import logging
        from logging.handlers import RotatingFileHandler

        # Setup file logging
        if not app.debug:
            cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            logging.getLogger().addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Visitor Pass startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


# Environment-specific configurations
def get_config():
    """Get configuration based on environment variable"""
    return config.get(os.environ.get('FLASK_ENV', 'default'), DevelopmentConfig)


# Validation functions
def validate_config(config_class=Config):
    """Validate configuration settings"""
    errors = []

    if config_class.EMAIL_BACKEND not in ('resend', 'smtp'):
        errors.append(f"EMAIL_BACKEND must be 'resend' or 'smtp', got '{config_class.EMAIL_BACKEND}'")

    for name in ('INVITATION_CHANNEL', 'CHECKIN_CHANNEL'):
        value = getattr(config_class, name)
        if value not in ('email', 'webhook'):
            errors.append(f"{name} must be 'email' or 'webhook', got '{value}'")

    if config_class.QR_CODE_ERROR_CORRECT not in ('L', 'M', 'Q', 'H'):
        errors.append(f"Unknown QR code error correction level: {config_class.QR_CODE_ERROR_CORRECT}")

    if config_class.QR_CODE_SIZE <= 0 or config_class.QR_CODE_MARGIN < 0:
        errors.append("QR code size must be positive and margin non-negative")

    if config_class.HTTP_TIMEOUT <= 0:
        errors.append("HTTP_TIMEOUT must be positive")

    return errors


def missing_collaborators(config_class=Config):
    """Collaborators that are selected but not configured. Requests needing them fail with a configuration error."""
    warnings = []

    if config_class.EMAIL_BACKEND == 'resend' and not config_class.RESEND_API_KEY:
        warnings.append("RESEND_API_KEY is not set, email delivery is disabled")
    if config_class.EMAIL_BACKEND == 'smtp' and not config_class.MAIL_SERVER:
        warnings.append("MAIL_SERVER is not set, email delivery is disabled")
    if config_class.INVITATION_CHANNEL == 'webhook' and not config_class.QR_WEBHOOK_URL:
        warnings.append("INVITATION_CHANNEL is 'webhook' but QR_WEBHOOK_URL is not set")
    if config_class.CHECKIN_CHANNEL == 'webhook' and not config_class.CHECKIN_WEBHOOK_URL:
        warnings.append("CHECKIN_CHANNEL is 'webhook' but CHECKIN_WEBHOOK_URL is not set")

    return warnings


# Initialize configuration
def init_config(app, config_name=None):
    """Initialize application with configuration"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')

    config_class = config.get(config_name, DevelopmentConfig)
    app.config.from_object(config_class)
    config_class.init_app(app)

    # Validate configuration
    errors = validate_config(config_class)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    for warning in missing_collaborators(config_class):
        app.logger.warning(f"Configuration warning: {warning}")

    return config_class
