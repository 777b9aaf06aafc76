# dx_core/orders/store.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from dx_core.audit.models import AuditEntry
from dx_core.audit.services import AuditService
from dx_core.orders.exceptions import ConcurrentModification, OrderNotFound
from dx_core.orders.models import DiagnosticOrder

logger = logging.getLogger(__name__)


class OrderStore:
    """
    Repository over the relational store for DiagnosticOrder.

    - load(): fresh snapshot with its detail rows
    - commit(): conditional UPDATE ... WHERE id=? AND version=?
    - append_audit(): one immutable AuditEntry

    commit() and append_audit() must run inside the caller's transaction.atomic() block.
    """

    @staticmethod
    def load(order_id) -> DiagnosticOrder:
        try:
            return (
                DiagnosticOrder.objects.select_related(
                    "active_result",
                    "approval",
                    "lab_details",
                    "imaging_details",
                ).get(id=order_id)
            )
        except (DiagnosticOrder.DoesNotExist, DjangoValidationError, ValueError):
            raise OrderNotFound(details={"order_id": str(order_id)})

    @staticmethod
    def current_version(order_id) -> int | None:
        return DiagnosticOrder.objects.filter(id=order_id).values_list("version", flat=True).first()

    @staticmethod
    def commit(order: DiagnosticOrder, *, expected_version: int) -> DiagnosticOrder:
        """
        Persist the mutable fields of `order` only if nobody committed since
        `expected_version` was read. On success, order.version is advanced in place.
        """
        now = timezone.now()
        updated = DiagnosticOrder.objects.filter(id=order.id, version=expected_version).update(
            state=order.state,
            is_critical=order.is_critical,
            active_result=order.active_result,
            approval=order.approval,
            version=expected_version + 1,
            updated_at=now,
        )
        if updated != 1:
            logger.warning(
                "Stale commit on order %s (expected version %s, store has %s)",
                order.id,
                expected_version,
                OrderStore.current_version(order.id),
            )
            raise ConcurrentModification(
                details={"order_id": str(order.id), "expected_version": expected_version}
            )

        order.version = expected_version + 1
        order.updated_at = now
        return order

    @staticmethod
    def append_audit(
        order: DiagnosticOrder,
        *,
        actor_ref: str,
        from_state: str,
        to_state: str,
        transition: str,
        note: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        occurred_at=None,
    ) -> AuditEntry:
        return AuditService.append(
            order=order,
            actor_ref=actor_ref,
            from_state=from_state,
            to_state=to_state,
            transition=transition,
            note=note,
            metadata=metadata,
            occurred_at=occurred_at,
        )
