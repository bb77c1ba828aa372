import os


# sqlite and a throwaway redis url unless the environment says otherwise
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("SALT_KEY", "123467890asdfghjkl")

from .base import *


SECRET_KEY = "test"  # nosec

STATIC_ROOT = base_dir_join("staticfiles")
STATIC_URL = "/static/"

MEDIA_ROOT = base_dir_join("mediafiles")
MEDIA_URL = "/media/"

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Speed up password hashing
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Celery
CELERY_BROKER_URL = "memory://"
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

SITE_DOMAIN = "test-booking.example.com"
SALT_KEY = "123467890asdfghjkl"

GOOGLE_CLIENT_ID = "test-google-client-id"
GOOGLE_CLIENT_SECRET = "test-google-client-secret"  # noqa: S105
MS_CLIENT_ID = "test-ms-client-id"
MS_CLIENT_SECRET = "test-ms-client-secret"  # noqa: S105
MERCADOPAGO_ACCESS_TOKEN = "TEST-mercadopago-token"  # noqa: S105

BUSY_TIMES_CACHE_TTL_SECONDS = 30
BUSY_TIMES_MAX_CONCURRENCY = 2
