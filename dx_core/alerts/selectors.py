from __future__ import annotations

from django.db.models import QuerySet

from dx_core.alerts.models import EscalationTicket


def escalations_qs(*, open_only: bool = False, clinician_ref: str | None = None, order_id=None) -> QuerySet[EscalationTicket]:
    qs = EscalationTicket.objects.select_related("order")
    if open_only:
        qs = qs.filter(acknowledged_at__isnull=True)
    if clinician_ref:
        qs = qs.filter(ordering_clinician_ref=clinician_ref)
    if order_id:
        qs = qs.filter(order_id=order_id)
    return qs.order_by("-raised_at")
