# dx_core/samples/models.py
from django.db import models
from django.db.models import Q

from dx_core.common.models import UUIDModel


class SampleCondition(models.TextChoices):
    GOOD = "GOOD", "Good"
    ACCEPTABLE = "ACCEPTABLE", "Acceptable"
    POOR = "POOR", "Poor"
    REJECTED = "REJECTED", "Rejected"


class SampleRecord(UUIDModel):
    """
    The physical specimen (or imaging slot) of one order.

    A barcode is bound to at most one active sample; the binding is released
    (is_active=False) once the order reaches a terminal state.
    """
    order = models.OneToOneField(
        "orders.DiagnosticOrder",
        on_delete=models.CASCADE,
        related_name="sample",
    )
    barcode = models.CharField(max_length=64, db_index=True)
    barcode_derived = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    condition = models.CharField(max_length=16, choices=SampleCondition.choices, default=SampleCondition.GOOD)
    location = models.CharField(max_length=128, blank=True, default="")

    collected_by = models.CharField(max_length=128)
    collected_at = models.DateTimeField()

    class Meta:
        db_table = "samples_sample_record"
        constraints = [
            models.UniqueConstraint(
                fields=["barcode"],
                condition=Q(is_active=True),
                name="uq_sample_active_barcode",
            ),
        ]

    def __str__(self) -> str:
        return self.barcode


class CustodyEntry(UUIDModel):
    """
    Append-only chain-of-custody log of a sample, ordered by `sequence`.
    """
    sample = models.ForeignKey(SampleRecord, on_delete=models.CASCADE, related_name="custody_entries")
    sequence = models.PositiveIntegerField()

    actor_ref = models.CharField(max_length=128)
    recorded_at = models.DateTimeField()
    note = models.CharField(max_length=255)
    location = models.CharField(max_length=128, blank=True, default="")

    class Meta:
        db_table = "samples_custody_entry"
        ordering = ["sample_id", "sequence"]
        constraints = [
            models.UniqueConstraint(fields=["sample", "sequence"], name="uq_custody_entry_sample_sequence"),
        ]

    def __str__(self) -> str:
        return f"{self.sample_id}#{self.sequence} {self.note}"
