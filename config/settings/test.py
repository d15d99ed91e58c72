"""Test settings.

A file-backed SQLite database unless DB_ENGINE points elsewhere. Every
atomic block opens with BEGIN IMMEDIATE, so concurrent writers in the
threaded tests wait for each other the way row locks make them wait on
PostgreSQL. Fast password hashing and no retry sleeps.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':  # noqa: F405
    DATABASES['default']['TEST'] = {'NAME': BASE_DIR / 'test_db.sqlite3'}  # noqa: F405
    DATABASES['default']['OPTIONS'] = {  # noqa: F405
        'transaction_mode': 'IMMEDIATE',
        'timeout': 20,
    }

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

TIME_ZONE = 'America/Lima'

TRANSACTION_RETRY_BACKOFF_SECONDS = 0
