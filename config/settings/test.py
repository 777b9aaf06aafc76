# config/settings/test.py
from .base import *  # noqa

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

COMMON_IDEMPOTENCY_USE_DB = False

DX_NOTIFIER = "dx_core.alerts.integrations.EventBusNotifier"
DX_BARCODE_PREFIX = "SMP"
DX_CRITICAL_AUTODETECT = True

# domain logs go to the root logger only, where pytest's caplog sees them
LOGGING["loggers"]["dx_core"]["propagate"] = True
LOGGING["loggers"]["dx_core"]["handlers"] = []
