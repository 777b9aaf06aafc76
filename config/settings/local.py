# config/settings/local.py
from .base import *  # noqa

DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

# in-process idempotency store is enough for a single dev server
COMMON_IDEMPOTENCY_USE_DB = os.getenv("COMMON_IDEMPOTENCY_USE_DB", "0") == "1"

DX_NOTIFIER = os.getenv("DX_NOTIFIER", "dx_core.alerts.integrations.LoggingNotifier")
