import pytest

from dx_core.audit.models import AuditEntry
from dx_core.orders.exceptions import (
    IncompleteCriticalReport,
    IncompleteResult,
    InvalidPayload,
    InvalidTransition,
    TransitionNotPermitted,
)
from dx_core.orders.models import DiagnosticOrder, OrderState
from dx_core.orders.state_machine import OrderStateMachine
from dx_core.results.models import ResultRecord
from dx_core.results.services import ResultEngine

pytestmark = pytest.mark.django_db


def _unchanged(order_id, state=OrderState.IN_PROGRESS):
    order = DiagnosticOrder.objects.get(id=order_id)
    assert order.state == state
    assert order.active_result_id is None
    assert not ResultRecord.objects.filter(order_id=order_id).exists()


def test_submit_creates_version_and_moves_to_pending_approval(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.IN_PROGRESS)

    record = ResultEngine.submit_result(
        order_id=lab_order.id,
        result_input={"findings": "K 4.4", "interpretation": "Normal", "verified_by": "lab.kim"},
        actor=lab_tech,
    )

    assert record.version == 1
    assert record.performed_by == "lab.lee"
    assert record.submitted_by == "lab.lee"
    assert record.verified_by == "lab.kim"
    order = DiagnosticOrder.objects.get(id=lab_order.id)
    assert order.state == OrderState.PENDING_APPROVAL
    assert order.active_result_id == record.id
    assert order.is_critical is False


def test_submit_requires_in_progress(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.SAMPLE_COLLECTED)

    with pytest.raises(InvalidTransition):
        ResultEngine.submit_result(
            order_id=lab_order.id, result_input={"findings": "f", "interpretation": "i"}, actor=lab_tech
        )
    _unchanged(lab_order.id, OrderState.SAMPLE_COLLECTED)


def test_critical_without_details_is_rejected(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.IN_PROGRESS)

    with pytest.raises(IncompleteCriticalReport):
        ResultEngine.submit_result(
            order_id=lab_order.id,
            result_input={"findings": "K 7.3", "interpretation": "High", "is_critical": True, "critical_details": " "},
            actor=lab_tech,
        )
    _unchanged(lab_order.id)


def test_critical_completeness_is_checked_before_findings(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.IN_PROGRESS)

    with pytest.raises(IncompleteCriticalReport):
        ResultEngine.submit_result(order_id=lab_order.id, result_input={"is_critical": True}, actor=lab_tech)


@pytest.mark.parametrize(
    "payload",
    [
        {"findings": "", "interpretation": "Normal"},
        {"findings": "K 4.0", "interpretation": "  "},
        {"findings": "K 4.0"},
    ],
)
def test_findings_and_interpretation_are_required(lab_order, advance, lab_tech, payload):
    advance(lab_order, OrderState.IN_PROGRESS)

    with pytest.raises(IncompleteResult):
        ResultEngine.submit_result(order_id=lab_order.id, result_input=payload, actor=lab_tech)
    _unchanged(lab_order.id)


def test_measurements_trigger_automatic_critical_flag(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.IN_PROGRESS)

    record = ResultEngine.submit_result(
        order_id=lab_order.id,
        result_input={
            "findings": "K 7.2 mmol/L",
            "interpretation": "Hyperkalaemia",
            "measurements": [{"name": "Potassium", "value": "7.2", "unit": "mmol/L"}],
        },
        actor=lab_tech,
    )

    assert record.is_critical is True
    assert "Potassium" in record.critical_details
    assert record.critical_reasons[0]["code"] == "CRITICAL_HIGH"
    assert DiagnosticOrder.objects.get(id=lab_order.id).is_critical is True

    entry = AuditEntry.objects.filter(order_id=lab_order.id, transition="submit_result").get()
    assert entry.metadata["auto_flagged"] is True


def test_automatic_flag_can_be_disabled(lab_order, advance, lab_tech, settings):
    settings.DX_CRITICAL_AUTODETECT = False
    advance(lab_order, OrderState.IN_PROGRESS)

    record = ResultEngine.submit_result(
        order_id=lab_order.id,
        result_input={
            "findings": "K 7.2 mmol/L",
            "interpretation": "Hyperkalaemia",
            "measurements": [{"name": "Potassium", "value": "7.2"}],
        },
        actor=lab_tech,
    )

    assert record.is_critical is False


def test_imaging_results_carry_no_measurements(imaging_order, radiographer):
    for transition in ("collect_sample", "begin_processing"):
        OrderStateMachine.request_transition(order_id=imaging_order.id, transition=transition, actor=radiographer)

    with pytest.raises(InvalidPayload):
        ResultEngine.submit_result(
            order_id=imaging_order.id,
            result_input={"findings": "f", "interpretation": "i", "measurements": [{"name": "HU", "value": "40"}]},
            actor=radiographer,
        )

    record = ResultEngine.submit_result(
        order_id=imaging_order.id,
        result_input={"findings": "No acute bleed", "interpretation": "Normal CT head", "result_document": "pacs://123"},
        actor=radiographer,
    )
    assert record.result_document == "pacs://123"


def test_submitter_needs_processing_role(lab_order, advance, nurse):
    advance(lab_order, OrderState.IN_PROGRESS)

    with pytest.raises(TransitionNotPermitted):
        ResultEngine.submit_result(
            order_id=lab_order.id, result_input={"findings": "f", "interpretation": "i"}, actor=nurse
        )


def test_unexpected_fields_are_rejected(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.IN_PROGRESS)

    with pytest.raises(InvalidPayload):
        ResultEngine.submit_result(
            order_id=lab_order.id,
            result_input={"findings": "f", "interpretation": "i", "approved": True},
            actor=lab_tech,
        )
