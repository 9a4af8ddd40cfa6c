"""Test settings for the Sojourn reservation service.

Runs Celery tasks inline, uses a fast password hasher and keeps the
payment collaborator on the local sandbox.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

PAYMENT_GATEWAY = 'sandbox'
SANDBOX_GATEWAY_SECRET = 'test-sandbox-secret'
ENCRYPTION_KEY = 'test-encryption-key'

RESERVATION_ENGINE = {
    **RESERVATION_ENGINE,  # noqa: F405
    'TRANSIENT_RETRY_BACKOFF': 0,
}

LOGGING["root"]["level"] = "CRITICAL"  # noqa: F405
LOGGING["loggers"]["apps"]["level"] = "CRITICAL"  # noqa: F405

if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':  # noqa: F405
    # Shared-cache memory databases fail on table locks instead of waiting; threaded tests need a file.
    DATABASES['default']['TEST'] = {'NAME': BASE_DIR / 'test_db.sqlite3'}  # noqa: F405
