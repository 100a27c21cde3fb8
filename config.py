"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _database_url():
    """Resolve the store connection string.

    Priority: DATABASE_URL > DB_* > POSTGRES_*. The DB_* form is only used
    when a host is given explicitly, so a missing store fails at startup.
    """
    url = os.getenv('DATABASE_URL')
    if url:
        return url

    host = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST')
    if not host:
        return None

    port = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
    name = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'restopos')
    user = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'restopos')
    password = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'restopos')
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Database
    DATABASE_URL = _database_url()
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Stripe
    STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY')
    STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET')

    # Checkout
    # Redirect origin used when the request carries no Origin header
    APP_BASE_URL = os.getenv('APP_BASE_URL', 'http://localhost:3000')
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'thb')
    CHECKOUT_PAYMENT_METHODS = ['card', 'promptpay']

    # Orders
    # When enabled, PATCH /orders/<id> only follows the intended status graph
    STRICT_ORDER_TRANSITIONS = os.getenv('STRICT_ORDER_TRANSITIONS', 'false').lower() == 'true'

    # Observability
    SENTRY_DSN = os.getenv('SENTRY_DSN')

    # Keys whose absence must stop the process at startup
    REQUIRED_SETTINGS = ('SQLALCHEMY_DATABASE_URI', 'STRIPE_SECRET_KEY', 'STRIPE_WEBHOOK_SECRET')


class TestingConfig(Config):
    """Configuration used by the test suite (in-memory SQLite, dummy Stripe keys)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    WTF_CSRF_ENABLED = False

    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False

    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_secret'

    APP_BASE_URL = 'http://pos.test'
    STRICT_ORDER_TRANSITIONS = False
    SENTRY_DSN = None
