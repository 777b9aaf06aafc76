# dx_core/alerts/integrations.py
"""
Notifier collaborators. Any object with notify(ticket) can be configured
through settings.DX_NOTIFIER (dotted path to a class).
"""
from __future__ import annotations

import logging

from dx_core.common.events import CRITICAL_ESCALATED, publish

logger = logging.getLogger(__name__)


def ticket_payload(ticket) -> dict:
    return {
        "ticket_id": str(ticket.id),
        "order_id": str(ticket.order_id),
        "patient_ref": ticket.patient_ref,
        "ordering_clinician_ref": ticket.ordering_clinician_ref,
        "priority": ticket.priority,
        "critical_details": ticket.critical_details,
        "raised_at": ticket.raised_at.isoformat(),
    }


class EventBusNotifier:
    """Default: publish on the in-process event bus; delivery happens elsewhere."""

    def notify(self, ticket) -> None:
        publish(CRITICAL_ESCALATED, ticket_payload(ticket))


class LoggingNotifier:
    """Development notifier: writes the call-back request to the log."""

    def notify(self, ticket) -> None:
        logger.warning(
            "CRITICAL VALUE for patient %s: call %s (%s) - %s",
            ticket.patient_ref,
            ticket.ordering_clinician_ref,
            ticket.priority,
            ticket.critical_details,
        )
