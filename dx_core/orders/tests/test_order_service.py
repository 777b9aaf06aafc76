from datetime import timedelta

import pytest
from django.utils import timezone

from dx_core.audit.models import AuditEntry

from dx_core.orders.exceptions import InvalidPayload, OrderNotFound
from dx_core.orders.models import DiagnosticOrder, OrderKind, OrderState
from dx_core.orders.selectors import average_turnaround_hours, get_order, order_state_counts
from dx_core.orders.services import OrderService

pytestmark = pytest.mark.django_db


def test_create_lab_order_starts_ordered_with_accession_number(lab_order):
    stem = f"LAB-{timezone.now():%Y%m}-"

    assert lab_order.state == OrderState.ORDERED
    assert lab_order.version == 1
    assert lab_order.accession_number == f"{stem}0001"
    assert lab_order.details.test_name == "Potassium"
    assert lab_order.result is None


def test_accession_sequence_is_per_kind(lab_order, imaging_order, doctor):
    second = OrderService.create_order(
        kind="LAB", patient_ref="p-2", ordering_clinician_ref=doctor.ref, details={"test_name": "CBC"}
    )

    assert second.accession_number.endswith("-0002")
    assert imaging_order.accession_number.startswith("RAD-")
    assert imaging_order.accession_number.endswith("-0001")
    assert imaging_order.details.modality == "CT"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"kind": "PHARMACY", "details": {}},
        {"kind": "LAB", "details": {}},
        {"kind": "LAB", "details": {"test_name": "CBC", "modality": "CT"}},
        {"kind": "IMAGING", "details": {"modality": "SONAR", "body_part": "Chest"}},
        {"kind": "LAB", "details": {"test_name": "CBC"}, "urgency": "WHENEVER"},
        {"kind": "LAB", "details": {"test_name": "CBC"}, "patient_ref": " "},
    ],
)
def test_create_order_rejects_invalid_input(db, kwargs):
    params = {"patient_ref": "p-1", "ordering_clinician_ref": "dr.diaz", **kwargs}
    with pytest.raises(InvalidPayload):
        OrderService.create_order(**params)


def test_get_order_unknown_id_raises_not_found(db):
    with pytest.raises(OrderNotFound):
        get_order(order_id="00000000-0000-0000-0000-000000000000")
    with pytest.raises(OrderNotFound):
        get_order(order_id="not-a-uuid")


def test_state_counts(lab_order, imaging_order, advance):
    advance(lab_order, OrderState.IN_PROGRESS)

    counts = order_state_counts()

    assert counts["total"] == 2
    assert counts["by_state"][OrderState.IN_PROGRESS] == 1
    assert counts["by_state"][OrderState.ORDERED] == 1
    assert counts["by_state"][OrderState.COMPLETED] == 0
    assert counts["by_kind"] == {"LAB": 1, "IMAGING": 1}
    assert counts["critical_open"] == 0
    assert counts["avg_turnaround_hours"] == {"LAB": None, "IMAGING": None}


def _completed_hours_ago(order, advance, hours):
    advance(order, OrderState.COMPLETED)
    approved_at = AuditEntry.objects.get(order_id=order.id, transition="approve").occurred_at
    DiagnosticOrder.objects.filter(id=order.id).update(created_at=approved_at - timedelta(hours=hours))


def test_average_turnaround_per_kind(lab_order, imaging_order, advance, doctor):
    second = OrderService.create_order(
        kind=OrderKind.LAB,
        patient_ref="patient-003",
        ordering_clinician_ref=doctor.ref,
        details={"test_name": "Sodium", "normal_range": "135-145"},
    )
    _completed_hours_ago(lab_order, advance, 2)
    _completed_hours_ago(second, advance, 4)

    # open and cancelled orders do not count
    advance(imaging_order, OrderState.CANCELLED)

    assert average_turnaround_hours() == {"LAB": 3.0, "IMAGING": None}
    assert order_state_counts()["avg_turnaround_hours"]["LAB"] == 3.0
