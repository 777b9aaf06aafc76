# dx_core/orders/selectors.py
from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import Count, OuterRef, Q, QuerySet, Subquery

from dx_core.audit.models import AuditEntry
from dx_core.orders.exceptions import OrderNotFound
from dx_core.orders.models import DiagnosticOrder, OrderKind, OrderState
from dx_core.orders.workflow import Transition


def _base_qs() -> QuerySet[DiagnosticOrder]:
    return DiagnosticOrder.objects.select_related(
        "active_result",
        "approval",
        "lab_details",
        "imaging_details",
        "sample",
    )


def get_order(*, order_id: UUID) -> DiagnosticOrder:
    try:
        return _base_qs().get(id=order_id)
    except (DiagnosticOrder.DoesNotExist, DjangoValidationError, ValueError):
        raise OrderNotFound(details={"order_id": str(order_id)})


def list_orders() -> QuerySet[DiagnosticOrder]:
    return _base_qs().order_by("-created_at")


def average_turnaround_hours() -> Dict[str, float | None]:
    """
    Mean hours from order creation to approval, per kind, over COMPLETED orders.
    None for a kind with no completed orders.
    """
    approved_at = (
        AuditEntry.objects.filter(order_id=OuterRef("pk"), transition=Transition.APPROVE)
        .order_by("-sequence")
        .values("occurred_at")[:1]
    )
    rows = (
        DiagnosticOrder.objects.filter(state=OrderState.COMPLETED)
        .annotate(completed_at=Subquery(approved_at))
        .values_list("kind", "created_at", "completed_at")
    )

    hours: Dict[str, list] = {kind: [] for kind in OrderKind.values}
    for kind, created_at, completed_at in rows:
        if completed_at is not None:
            hours[kind].append((completed_at - created_at).total_seconds() / 3600)

    return {kind: (round(sum(v) / len(v), 2) if v else None) for kind, v in hours.items()}


def order_state_counts() -> Dict[str, Any]:
    """
    Dashboard counters: orders per state, per kind, critical ones still open,
    and average turnaround.
    """
    per_state = {
        row["state"]: row["n"]
        for row in DiagnosticOrder.objects.values("state").annotate(n=Count("id")).order_by()
    }
    per_kind = {
        row["kind"]: row["n"]
        for row in DiagnosticOrder.objects.values("kind").annotate(n=Count("id")).order_by()
    }
    open_critical = DiagnosticOrder.objects.filter(
        Q(is_critical=True) & ~Q(state__in=[OrderState.COMPLETED, OrderState.CANCELLED])
    ).count()

    return {
        "total": sum(per_state.values()),
        "by_state": {state: per_state.get(state, 0) for state in OrderState.values},
        "by_kind": per_kind,
        "critical_open": open_critical,
        "avg_turnaround_hours": average_turnaround_hours(),
    }
