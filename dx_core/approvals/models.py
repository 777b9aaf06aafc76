# dx_core/approvals/models.py
from django.db import models

from dx_core.common.models import UUIDModel


class ApprovalDecision(models.TextChoices):
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


class ApprovalRecord(UUIDModel):
    """
    Second-person decision on one result version. One decision per result.
    """
    order = models.ForeignKey("orders.DiagnosticOrder", on_delete=models.CASCADE, related_name="approvals")
    result = models.OneToOneField("results.ResultRecord", on_delete=models.PROTECT, related_name="approval")

    decision = models.CharField(max_length=16, choices=ApprovalDecision.choices)
    decided_by = models.CharField(max_length=128)
    decided_at = models.DateTimeField()
    comments = models.TextField(blank=True, default="")

    class Meta:
        db_table = "approvals_approval_record"
        ordering = ["-decided_at"]

    def __str__(self) -> str:
        return f"{self.decision} by {self.decided_by}"
