# dx_core/audit/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from dx_core.audit.models import AuditEntry


def order_audit_trail(*, order_id: UUID) -> QuerySet[AuditEntry]:
    return AuditEntry.objects.filter(order_id=order_id).order_by("sequence")


def latest_transition_entry(*, order_id: UUID) -> AuditEntry | None:
    """
    Most recent state-changing entry (informational notes are skipped).
    """
    return (
        AuditEntry.objects.filter(order_id=order_id)
        .exclude(transition="note")
        .order_by("-sequence")
        .first()
    )


def list_audit_entries(
    *,
    order_id: UUID | None = None,
    transition: str | None = None,
    actor_ref: str | None = None,
) -> QuerySet[AuditEntry]:
    qs = AuditEntry.objects.all()

    if order_id:
        qs = qs.filter(order_id=order_id)
    if transition:
        qs = qs.filter(transition=transition)
    if actor_ref:
        qs = qs.filter(actor_ref=actor_ref)

    return qs.order_by("-occurred_at", "-sequence")
