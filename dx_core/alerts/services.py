# dx_core/alerts/services.py
from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from dx_core.alerts.models import EscalationTicket, TicketPriority
from dx_core.common.events import ESCALATION_ACKNOWLEDGED, publish
from dx_core.common.permissions import Actor
from dx_core.orders.exceptions import AlreadyAcknowledged, TicketNotFound, TransitionNotPermitted
from dx_core.orders.models import DiagnosticOrder, OrderUrgency
from dx_core.orders.workflow import ACKNOWLEDGE_ROLES

logger = logging.getLogger(__name__)

DEFAULT_NOTIFIER = "dx_core.alerts.integrations.EventBusNotifier"

_IMMEDIATE = {OrderUrgency.EMERGENCY, OrderUrgency.STAT}


def get_notifier():
    return import_string(getattr(settings, "DX_NOTIFIER", None) or DEFAULT_NOTIFIER)()


def _notify(ticket: EscalationTicket) -> None:
    # fire-and-forget: a failing notifier must not undo a committed escalation
    try:
        get_notifier().notify(ticket)
    except Exception:
        logger.exception("Notifier failed for escalation ticket %s", ticket.id)


class CriticalValueEscalator:

    @staticmethod
    def open_ticket_for(order_id) -> EscalationTicket | None:
        return EscalationTicket.objects.filter(order_id=order_id, acknowledged_at__isnull=True).first()

    @staticmethod
    def escalate(order: DiagnosticOrder) -> EscalationTicket:
        """
        Raise (or return the already open) critical-value ticket for the order.
        The notifier runs once the surrounding transaction commits.
        """
        result = order.active_result
        existing = CriticalValueEscalator.open_ticket_for(order.id)
        if existing is not None:
            # keep the open ticket pointing at the active critical result
            if result is not None and existing.result_id != result.id:
                existing.result = result
                existing.critical_details = result.critical_details or existing.critical_details
                existing.save(update_fields=["result", "critical_details", "updated_at"])
            logger.info("Open escalation %s reused for order %s", existing.id, order.id)
            return existing

        try:
            with transaction.atomic():
                ticket = EscalationTicket.objects.create(
                    order=order,
                    result=result,
                    patient_ref=order.patient_ref,
                    ordering_clinician_ref=order.ordering_clinician_ref,
                    priority=TicketPriority.IMMEDIATE if order.urgency in _IMMEDIATE else TicketPriority.HIGH,
                    critical_details=getattr(result, "critical_details", "") or "",
                    raised_at=timezone.now(),
                    meta={"accession_number": order.accession_number, "kind": order.kind},
                )
        except IntegrityError:
            # a concurrent escalation opened it first
            existing = CriticalValueEscalator.open_ticket_for(order.id)
            if existing is None:
                raise
            return existing

        logger.warning(
            "Critical value escalated for order %s (ticket %s, %s)",
            order.accession_number,
            ticket.id,
            ticket.priority,
        )
        transaction.on_commit(lambda: _notify(ticket))
        return ticket

    @staticmethod
    def acknowledge(*, ticket_id, actor: Actor) -> EscalationTicket:
        if not actor.has_any(ACKNOWLEDGE_ROLES):
            raise TransitionNotPermitted(
                "Actor may not acknowledge critical values",
                details={"allowed_roles": sorted(ACKNOWLEDGE_ROLES)},
            )

        now = timezone.now()
        try:
            updated = EscalationTicket.objects.filter(id=ticket_id, acknowledged_at__isnull=True).update(
                acknowledged_at=now,
                acknowledged_by=actor.ref,
                updated_at=now,
            )
            ticket = EscalationTicket.objects.get(id=ticket_id)
        except (EscalationTicket.DoesNotExist, DjangoValidationError, ValueError):
            raise TicketNotFound(details={"ticket_id": str(ticket_id)})

        if not updated:
            raise AlreadyAcknowledged(
                details={
                    "ticket_id": str(ticket.id),
                    "acknowledged_by": ticket.acknowledged_by,
                    "acknowledged_at": ticket.acknowledged_at.isoformat(),
                }
            )

        logger.info("Escalation %s acknowledged by %s", ticket.id, actor.ref)
        publish(
            ESCALATION_ACKNOWLEDGED,
            {"ticket_id": str(ticket.id), "order_id": str(ticket.order_id), "acknowledged_by": actor.ref},
        )
        return ticket
