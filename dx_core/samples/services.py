# dx_core/samples/services.py
from __future__ import annotations

import logging
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from dx_core.common.permissions import Actor
from dx_core.orders.exceptions import (
    ConcurrentModification,
    InvalidPayload,
    InvalidTransition,
    TransitionNotPermitted,
)
from dx_core.orders.models import DiagnosticOrder
from dx_core.orders.store import OrderStore
from dx_core.orders.workflow import CUSTODY_ROLES, Transition
from dx_core.samples.models import CustodyEntry, SampleRecord

logger = logging.getLogger(__name__)


class SampleLedger:
    """
    Write-model operations for samples:
    - collect (through the state machine, so it is audited)
    - custody appends (serialized with transitions through the order version)
    - barcode binding release on terminal states
    """

    @staticmethod
    def collect_sample(*, order_id, sample_input: Any, actor: Actor) -> SampleRecord:
        from dx_core.orders.state_machine import OrderStateMachine

        order = OrderStateMachine.request_transition(
            order_id=order_id,
            transition=Transition.COLLECT_SAMPLE,
            actor=actor,
            payload=sample_input,
        )
        return SampleRecord.objects.get(order_id=order.id)

    @staticmethod
    def append_custody(*, order_id, note: str, actor: Actor, location: str | None = None) -> CustodyEntry:
        text = (note or "").strip()
        if not text:
            raise InvalidPayload("Custody note must not be empty", details={"field": "note"})

        order = OrderStore.load(order_id)

        if order.is_terminal:
            raise InvalidTransition(
                f"Custody log is closed for {order.state} orders",
                details={"order_id": str(order.id), "state": order.state},
            )

        sample = SampleRecord.objects.filter(order_id=order.id).first()
        if sample is None:
            raise InvalidTransition(
                "No sample has been collected for this order",
                details={"order_id": str(order.id), "state": order.state},
            )

        if not actor.has_any(CUSTODY_ROLES.get(order.kind, set())):
            raise TransitionNotPermitted(
                "Actor may not record custody for this order",
                details={"kind": order.kind},
            )

        expected_version = order.version
        now = timezone.now()

        try:
            with transaction.atomic():
                # version bump only: custody appends serialize with transitions
                OrderStore.commit(order, expected_version=expected_version)

                current = sample.custody_entries.aggregate(m=Max("sequence"))["m"] or 0
                entry = CustodyEntry.objects.create(
                    sample=sample,
                    sequence=current + 1,
                    actor_ref=actor.ref,
                    recorded_at=now,
                    note=text[:255],
                    location=(location or "").strip(),
                )
                if location:
                    sample.location = location.strip()
                    sample.save(update_fields=["location", "updated_at"])
        except IntegrityError:
            raise ConcurrentModification(details={"order_id": str(order.id)})

        logger.info("Custody #%s recorded for sample %s by %s", entry.sequence, sample.barcode, actor.ref)
        return entry

    @staticmethod
    def release_binding(order: DiagnosticOrder) -> int:
        """
        Frees the order's barcode for reuse. Called inside the terminal transition's transaction.
        """
        released = SampleRecord.objects.filter(order_id=order.id, is_active=True).update(
            is_active=False,
            updated_at=timezone.now(),
        )
        if released:
            logger.info("Barcode binding released for order %s", order.id)
        return released
