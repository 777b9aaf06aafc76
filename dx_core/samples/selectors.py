# dx_core/samples/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from dx_core.samples.models import CustodyEntry, SampleRecord


def custody_log(*, order_id: UUID) -> QuerySet[CustodyEntry]:
    return CustodyEntry.objects.filter(sample__order_id=order_id).order_by("sequence")


def find_active_by_barcode(*, barcode: str) -> SampleRecord | None:
    return (
        SampleRecord.objects.select_related("order")
        .filter(barcode=barcode.strip().upper(), is_active=True)
        .first()
    )
