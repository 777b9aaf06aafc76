from __future__ import annotations

from django.db import models
from django.db.models import Q

from dx_core.common.models import UUIDModel


class TicketPriority(models.TextChoices):
    HIGH = "HIGH", "High"
    IMMEDIATE = "IMMEDIATE", "Immediate"


class EscalationTicket(UUIDModel):
    """
    Critical-value call-back ticket for the ordering clinician.
    At most one open (unacknowledged) ticket per order.
    """
    order = models.ForeignKey("orders.DiagnosticOrder", on_delete=models.CASCADE, related_name="escalations")
    result = models.ForeignKey(
        "results.ResultRecord",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="escalations",
    )

    patient_ref = models.CharField(max_length=128, db_index=True)
    ordering_clinician_ref = models.CharField(max_length=128, db_index=True)
    priority = models.CharField(max_length=16, choices=TicketPriority.choices, default=TicketPriority.HIGH)
    critical_details = models.TextField()

    raised_at = models.DateTimeField(db_index=True)
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    acknowledged_by = models.CharField(max_length=128, blank=True, default="")

    meta = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "alerts_escalation_ticket"
        ordering = ["-raised_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(acknowledged_at__isnull=True),
                name="uq_open_escalation_per_order",
            ),
        ]
        indexes = [
            models.Index(fields=["ordering_clinician_ref", "acknowledged_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} {self.priority} ({'acked' if self.is_acknowledged else 'open'})"

    @property
    def is_acknowledged(self) -> bool:
        return self.acknowledged_at is not None
