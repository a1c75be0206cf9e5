# config/settings/test.py
from .base import *  # noqa

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# tests use the in-memory idempotency store unless a test opts in
COMMON_IDEMPOTENCY_USE_DB = False

FS_DEFAULT_TAX_RATE = Decimal("0.0825")
FS_QUOTE_VALID_DAYS = 30
FS_INVOICE_DUE_DAYS = 30

LOGGING["loggers"]["fs_core"]["level"] = "DEBUG"
# let pytest's caplog see fs_core records
LOGGING["loggers"]["fs_core"]["propagate"] = True
