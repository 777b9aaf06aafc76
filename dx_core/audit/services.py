# dx_core/audit/services.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from django.db.models import Max
from django.utils import timezone

from dx_core.audit.models import AuditEntry


class AuditService:
    """
    Central audit writer. Append-only: there is no update or delete path.

    Called inside the caller's transaction; the (order, sequence) unique
    constraint rejects a concurrent writer that computed the same sequence.
    """

    @staticmethod
    def next_sequence(order_id) -> int:
        current = AuditEntry.objects.filter(order_id=order_id).aggregate(m=Max("sequence"))["m"]
        return (current or 0) + 1

    @staticmethod
    def append(
        *,
        order,
        actor_ref: str,
        from_state: str,
        to_state: str,
        transition: str,
        note: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        occurred_at: datetime | None = None,
    ) -> AuditEntry:
        return AuditEntry.objects.create(
            order=order,
            sequence=AuditService.next_sequence(order.pk),
            occurred_at=occurred_at or timezone.now(),
            actor_ref=actor_ref,
            from_state=from_state,
            to_state=to_state,
            transition=transition,
            note=note or "",
            metadata=metadata or {},
        )
