# dx_core/samples/barcodes.py
from __future__ import annotations

from datetime import datetime

from django.conf import settings

DEFAULT_PREFIX = "SMP"


def barcode_prefix() -> str:
    return (getattr(settings, "DX_BARCODE_PREFIX", None) or DEFAULT_PREFIX).strip().upper()


def derive_barcode(order, collected_at: datetime) -> str:
    """
    <prefix>-<first 12 hex chars of the order id>-<YYYYMMDDHHMMSS>

    Stable for a given (order, collection time) pair.
    """
    return f"{barcode_prefix()}-{order.id.hex[:12].upper()}-{collected_at:%Y%m%d%H%M%S}"
