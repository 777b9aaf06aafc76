import pytest
from datetime import datetime, timezone as dt_timezone

from dx_core.audit.models import AuditEntry
from dx_core.orders.exceptions import (
    BarcodeConflict,
    InvalidPayload,
    InvalidTransition,
    TransitionNotPermitted,
)
from dx_core.orders.models import DiagnosticOrder, OrderState
from dx_core.orders.services import OrderService
from dx_core.samples.barcodes import derive_barcode
from dx_core.samples.handlers import SampleInput
from dx_core.samples.models import SampleRecord
from dx_core.samples.selectors import custody_log, find_active_by_barcode
from dx_core.samples.services import SampleLedger

pytestmark = pytest.mark.django_db


@pytest.fixture
def other_lab_order(db, doctor):
    return OrderService.create_order(
        kind="LAB", patient_ref="patient-009", ordering_clinician_ref=doctor.ref, details={"test_name": "Glucose"}
    )


def test_collect_creates_sample_and_first_custody_entry(lab_order, nurse):
    sample = SampleLedger.collect_sample(
        order_id=lab_order.id,
        sample_input=SampleInput(barcode="bc-1", condition="ACCEPTABLE", location="Ward 4"),
        actor=nurse,
    )

    assert sample.barcode == "BC-1"
    assert sample.condition == "ACCEPTABLE"
    assert sample.collected_by == "nurse.ana"
    assert sample.is_active

    log = list(custody_log(order_id=lab_order.id))
    assert [(e.sequence, e.actor_ref, e.note) for e in log] == [(1, "nurse.ana", "collected")]
    assert DiagnosticOrder.objects.get(id=lab_order.id).state == OrderState.SAMPLE_COLLECTED


def test_collect_derives_barcode_when_omitted(lab_order, nurse, settings):
    settings.DX_BARCODE_PREFIX = "lab"
    at = datetime(2025, 3, 4, 5, 6, 7, tzinfo=dt_timezone.utc)

    sample = SampleLedger.collect_sample(
        order_id=lab_order.id, sample_input={"collected_at": at}, actor=nurse
    )

    assert sample.barcode == f"LAB-{lab_order.id.hex[:12].upper()}-20250304050607"
    assert sample.barcode == derive_barcode(lab_order, at)
    assert sample.barcode_derived is True


def test_barcode_bound_to_another_active_order_conflicts(lab_order, other_lab_order, nurse):
    SampleLedger.collect_sample(order_id=lab_order.id, sample_input={"barcode": "DUP-1"}, actor=nurse)

    with pytest.raises(BarcodeConflict):
        SampleLedger.collect_sample(order_id=other_lab_order.id, sample_input={"barcode": "DUP-1"}, actor=nurse)

    other = DiagnosticOrder.objects.get(id=other_lab_order.id)
    assert other.state == OrderState.ORDERED
    assert other.version == 1
    assert not AuditEntry.objects.filter(order_id=other.id).exists()


def test_terminal_order_releases_its_barcode(lab_order, other_lab_order, nurse):
    SampleLedger.collect_sample(order_id=lab_order.id, sample_input={"barcode": "REUSE-1"}, actor=nurse)
    from dx_core.orders.state_machine import OrderStateMachine

    OrderStateMachine.request_transition(order_id=lab_order.id, transition="cancel", actor=nurse)

    assert SampleRecord.objects.get(order_id=lab_order.id).is_active is False
    assert find_active_by_barcode(barcode="reuse-1") is None

    sample = SampleLedger.collect_sample(
        order_id=other_lab_order.id, sample_input={"barcode": "REUSE-1"}, actor=nurse
    )
    assert find_active_by_barcode(barcode="REUSE-1") == sample


def test_invalid_sample_payload(lab_order, nurse):
    with pytest.raises(InvalidPayload) as exc:
        SampleLedger.collect_sample(
            order_id=lab_order.id, sample_input={"condition": "FROZEN", "colour": "red"}, actor=nurse
        )
    assert exc.value.details == {"unexpected_fields": ["colour"]}

    with pytest.raises(InvalidPayload) as exc:
        SampleLedger.collect_sample(order_id=lab_order.id, sample_input={"condition": "FROZEN"}, actor=nurse)
    assert "condition" in exc.value.details


def test_rejected_condition_is_recorded(lab_order, nurse):
    sample = SampleLedger.collect_sample(
        order_id=lab_order.id, sample_input={"barcode": "HAEM-1", "condition": "rejected"}, actor=nurse
    )
    assert sample.condition == "REJECTED"


def test_append_custody_bumps_version_without_audit(lab_order, nurse, lab_tech):
    SampleLedger.collect_sample(order_id=lab_order.id, sample_input={"barcode": "CUS-1"}, actor=nurse)
    order = DiagnosticOrder.objects.get(id=lab_order.id)

    entry = SampleLedger.append_custody(
        order_id=order.id, note="received at bench", actor=lab_tech, location="Core lab"
    )

    assert entry.sequence == 2
    assert entry.location == "Core lab"
    after = DiagnosticOrder.objects.get(id=order.id)
    assert after.version == order.version + 1
    assert after.state == OrderState.SAMPLE_COLLECTED
    assert AuditEntry.objects.filter(order_id=order.id).count() == 1
    assert SampleRecord.objects.get(order_id=order.id).location == "Core lab"


def test_append_custody_requires_a_sample(lab_order, lab_tech):
    with pytest.raises(InvalidTransition):
        SampleLedger.append_custody(order_id=lab_order.id, note="moved", actor=lab_tech)


def test_append_custody_rejected_on_terminal_orders(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.COMPLETED)

    with pytest.raises(InvalidTransition):
        SampleLedger.append_custody(order_id=lab_order.id, note="archived", actor=lab_tech)

    assert list(custody_log(order_id=lab_order.id).values_list("sequence", flat=True)) == [1]


def test_append_custody_role_and_note_checks(lab_order, nurse, viewer):
    SampleLedger.collect_sample(order_id=lab_order.id, sample_input={"barcode": "CUS-2"}, actor=nurse)

    with pytest.raises(TransitionNotPermitted):
        SampleLedger.append_custody(order_id=lab_order.id, note="moved", actor=viewer)

    with pytest.raises(InvalidPayload):
        SampleLedger.append_custody(order_id=lab_order.id, note="   ", actor=nurse)
