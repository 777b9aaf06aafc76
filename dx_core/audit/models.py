# dx_core/audit/models.py
from django.core.exceptions import PermissionDenied
from django.db import models

from dx_core.common.models import UUIDModel


class AuditEntry(UUIDModel):
    """
    Immutable audit record of one order.
    Ordered by `sequence`, the entries reconstruct the full state history.
    """
    order = models.ForeignKey(
        "orders.DiagnosticOrder",
        on_delete=models.PROTECT,
        related_name="audit_trail",
    )
    sequence = models.PositiveIntegerField()

    occurred_at = models.DateTimeField(db_index=True)
    actor_ref = models.CharField(max_length=128, db_index=True)

    from_state = models.CharField(max_length=24)
    to_state = models.CharField(max_length=24)
    transition = models.CharField(max_length=32, db_index=True)

    note = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "audit_audit_entry"
        ordering = ["order_id", "sequence"]
        constraints = [
            models.UniqueConstraint(fields=["order", "sequence"], name="uq_audit_entry_order_sequence"),
        ]
        indexes = [
            models.Index(fields=["order", "occurred_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.order_id}#{self.sequence} {self.transition} {self.from_state}->{self.to_state}"

    @property
    def timestamp(self):
        return self.occurred_at

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionDenied("Audit entries are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionDenied("Audit entries are immutable.")
