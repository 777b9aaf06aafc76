# dx_core/results/models.py
from django.db import models

from dx_core.common.models import UUIDModel


class ResultRecord(UUIDModel):
    """
    One submitted result version (append-only per order).

    A rejection does not delete the record: the order simply stops pointing at
    it, and the next submission creates version + 1.
    """
    order = models.ForeignKey("orders.DiagnosticOrder", on_delete=models.CASCADE, related_name="results")
    version = models.PositiveIntegerField()

    findings = models.TextField()
    interpretation = models.TextField()

    performed_by = models.CharField(max_length=128)
    verified_by = models.CharField(max_length=128, blank=True, default="")
    submitted_by = models.CharField(max_length=128)
    submitted_at = models.DateTimeField()

    is_critical = models.BooleanField(default=False)
    critical_details = models.TextField(blank=True, default="")
    critical_reasons = models.JSONField(default=list, blank=True)

    # LAB only: [{name, value, unit, normal_range}]
    measurements = models.JSONField(default=list, blank=True)
    result_document = models.CharField(max_length=512, blank=True, default="")

    class Meta:
        db_table = "results_result_record"
        ordering = ["order_id", "version"]
        constraints = [
            models.UniqueConstraint(fields=["order", "version"], name="uq_result_version_per_order"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} v{self.version}"

    def snapshot(self) -> dict:
        return {
            "result_id": str(self.id),
            "version": self.version,
            "findings": self.findings,
            "interpretation": self.interpretation,
            "performed_by": self.performed_by,
            "verified_by": self.verified_by,
            "submitted_by": self.submitted_by,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "is_critical": self.is_critical,
            "critical_details": self.critical_details,
        }
