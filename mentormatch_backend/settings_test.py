import os

os.environ.setdefault("MONGODB_DB_NAME", "mentormatch_test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from .settings import *  # noqa: F401,F403


PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

ALLOWED_HOSTS = [*ALLOWED_HOSTS, "testserver"]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

MONGODB_DB_NAME = "mentormatch_test"
