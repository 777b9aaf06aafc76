# dx_core/orders/models.py
from __future__ import annotations

from django.db import models

from dx_core.common.models import StateGuardedModel, UUIDModel


class OrderKind(models.TextChoices):
    LAB = "LAB", "Laboratory"
    IMAGING = "IMAGING", "Imaging"


class OrderUrgency(models.TextChoices):
    ROUTINE = "ROUTINE", "Routine"
    URGENT = "URGENT", "Urgent"
    EMERGENCY = "EMERGENCY", "Emergency"
    STAT = "STAT", "Stat"


class OrderState(models.TextChoices):
    ORDERED = "ORDERED", "Ordered"
    SAMPLE_COLLECTED = "SAMPLE_COLLECTED", "Sample collected"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    PENDING_APPROVAL = "PENDING_APPROVAL", "Pending approval"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class ImagingModality(models.TextChoices):
    XRAY = "XRAY", "X-Ray"
    CT = "CT", "CT"
    MRI = "MRI", "MRI"
    ULTRASOUND = "ULTRASOUND", "Ultrasound"
    PET = "PET", "PET"
    MAMMOGRAPHY = "MAMMOGRAPHY", "Mammography"
    FLUOROSCOPY = "FLUOROSCOPY", "Fluoroscopy"


class DiagnosticOrder(StateGuardedModel):
    """
    One lab or imaging order. State, result/approval pointers, criticality and
    version are written only through OrderStore.commit().
    """

    accession_number = models.CharField(max_length=32, unique=True)
    kind = models.CharField(max_length=16, choices=OrderKind.choices)

    patient_ref = models.CharField(max_length=128, db_index=True)
    ordering_clinician_ref = models.CharField(max_length=128, db_index=True)

    state = models.CharField(max_length=24, choices=OrderState.choices, default=OrderState.ORDERED)
    urgency = models.CharField(max_length=16, choices=OrderUrgency.choices, default=OrderUrgency.ROUTINE)
    is_critical = models.BooleanField(default=False)

    active_result = models.ForeignKey(
        "results.ResultRecord",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    approval = models.ForeignKey(
        "approvals.ApprovalRecord",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "orders_diagnostic_order"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["kind", "state"]),
            models.Index(fields=["patient_ref", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.accession_number} ({self.state})"

    @property
    def is_terminal(self) -> bool:
        return self.state in (OrderState.COMPLETED, OrderState.CANCELLED)

    @property
    def result(self):
        return self.active_result

    @property
    def details(self):
        """Kind-specific sub-type (LabOrderDetails or ImagingOrderDetails)."""
        attr = "lab_details" if self.kind == OrderKind.LAB else "imaging_details"
        return getattr(self, attr, None)


class LabOrderDetails(UUIDModel):
    order = models.OneToOneField(DiagnosticOrder, on_delete=models.CASCADE, related_name="lab_details")
    test_name = models.CharField(max_length=128)
    test_category = models.CharField(max_length=64, blank=True, default="")
    sample_type = models.CharField(max_length=64, blank=True, default="")
    normal_range = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        db_table = "orders_lab_details"

    def __str__(self) -> str:
        return self.test_name


class ImagingOrderDetails(UUIDModel):
    order = models.OneToOneField(DiagnosticOrder, on_delete=models.CASCADE, related_name="imaging_details")
    modality = models.CharField(max_length=16, choices=ImagingModality.choices)
    body_part = models.CharField(max_length=128)
    contrast = models.BooleanField(default=False)

    class Meta:
        db_table = "orders_imaging_details"

    def __str__(self) -> str:
        return f"{self.modality} {self.body_part}"
