"""Production settings for the tourism booking core.

This module extends the base settings with production specific
configuration. Sensitive values must come from environment variables and
the database must be PostgreSQL, where row locks serialize concurrent
bookings.
"""

from .base import *  # noqa: F401,F403

# Never run with debug enabled in production
DEBUG = False

SECRET_KEY = get_env('DJANGO_SECRET_KEY', required=True)  # noqa: F405

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = get_env('DJANGO_ALLOWED_HOSTS', required=True).split(',')  # noqa: F405

DATABASES['default']['ENGINE'] = get_env(  # noqa: F405
    'DB_ENGINE', 'django.db.backends.postgresql'
)

# Configure secure proxies and cookies
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True
