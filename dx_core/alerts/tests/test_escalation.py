import pytest

from dx_core.alerts.models import EscalationTicket, TicketPriority
from dx_core.alerts.services import CriticalValueEscalator
from dx_core.approvals.services import ApprovalGate
from dx_core.common.events import CRITICAL_ESCALATED, ESCALATION_ACKNOWLEDGED
from dx_core.orders.exceptions import AlreadyAcknowledged, TicketNotFound, TransitionNotPermitted
from dx_core.orders.models import OrderState
from dx_core.orders.store import OrderStore
from dx_core.results.services import ResultEngine

pytestmark = pytest.mark.django_db

CRITICAL = {
    "findings": "K 7.1 mmol/L",
    "interpretation": "Severe hyperkalaemia",
    "is_critical": True,
    "critical_details": "Potassium 7.1 mmol/L",
}


class ExplodingNotifier:
    def notify(self, ticket):
        raise RuntimeError("pager offline")


def test_critical_submission_opens_ticket_and_notifies(
    lab_order, advance, lab_tech, captured_events, django_capture_on_commit_callbacks
):
    seen = captured_events(CRITICAL_ESCALATED)
    advance(lab_order, OrderState.IN_PROGRESS)

    with django_capture_on_commit_callbacks(execute=True):
        ResultEngine.submit_result(order_id=lab_order.id, result_input=CRITICAL, actor=lab_tech)

    ticket = EscalationTicket.objects.get(order_id=lab_order.id)
    assert ticket.patient_ref == "patient-001"
    assert ticket.ordering_clinician_ref == "dr.diaz"
    assert ticket.critical_details == "Potassium 7.1 mmol/L"
    assert ticket.acknowledged_at is None
    assert ticket.priority == TicketPriority.HIGH

    assert len(seen) == 1
    name, payload = seen[0]
    assert name == CRITICAL_ESCALATED
    assert payload["ticket_id"] == str(ticket.id)
    assert payload["order_id"] == str(lab_order.id)


def test_non_critical_submission_raises_nothing(lab_order, advance):
    advance(lab_order, OrderState.PENDING_APPROVAL)
    assert not EscalationTicket.objects.exists()


def test_escalation_is_deduplicated_while_open(
    lab_order, advance, lab_tech, pathologist, captured_events, django_capture_on_commit_callbacks
):
    seen = captured_events(CRITICAL_ESCALATED)
    with django_capture_on_commit_callbacks(execute=True):
        advance(lab_order, OrderState.PENDING_APPROVAL, result=CRITICAL)
    first = EscalationTicket.objects.get(order_id=lab_order.id)

    assert CriticalValueEscalator.escalate(OrderStore.load(lab_order.id)) == first

    ApprovalGate.decide(order_id=lab_order.id, decision="REJECTED", actor=pathologist, comments="repeat draw")
    with django_capture_on_commit_callbacks(execute=True):
        corrected = ResultEngine.submit_result(
            order_id=lab_order.id,
            result_input={**CRITICAL, "findings": "K 7.4 mmol/L", "critical_details": "Potassium 7.4 mmol/L"},
            actor=lab_tech,
        )

    assert EscalationTicket.objects.filter(order_id=lab_order.id).count() == 1
    assert len(seen) == 1

    # the open ticket follows the active result
    ticket = EscalationTicket.objects.get(id=first.id)
    assert ticket.result_id == corrected.id
    assert ticket.critical_details == "Potassium 7.4 mmol/L"


def test_new_ticket_after_acknowledgement(lab_order, advance, lab_tech, pathologist, doctor):
    advance(lab_order, OrderState.PENDING_APPROVAL, result=CRITICAL)
    first = EscalationTicket.objects.get(order_id=lab_order.id)
    CriticalValueEscalator.acknowledge(ticket_id=first.id, actor=doctor)

    ApprovalGate.decide(order_id=lab_order.id, decision="REJECTED", actor=pathologist, comments="repeat draw")
    ResultEngine.submit_result(order_id=lab_order.id, result_input=CRITICAL, actor=lab_tech)

    tickets = EscalationTicket.objects.filter(order_id=lab_order.id)
    assert tickets.count() == 2
    assert tickets.filter(acknowledged_at__isnull=True).count() == 1


def test_stat_orders_get_immediate_priority(imaging_order, radiographer):
    from dx_core.orders.state_machine import OrderStateMachine

    for transition in ("collect_sample", "begin_processing"):
        OrderStateMachine.request_transition(order_id=imaging_order.id, transition=transition, actor=radiographer)
    ResultEngine.submit_result(
        order_id=imaging_order.id,
        result_input={
            "findings": "Large subdural haematoma",
            "interpretation": "Neurosurgical emergency",
            "is_critical": True,
            "critical_details": "Acute SDH with midline shift",
        },
        actor=radiographer,
    )

    assert EscalationTicket.objects.get(order_id=imaging_order.id).priority == TicketPriority.IMMEDIATE


def test_acknowledge_once(lab_order, advance, doctor, nurse, captured_events):
    seen = captured_events(ESCALATION_ACKNOWLEDGED)
    advance(lab_order, OrderState.PENDING_APPROVAL, result=CRITICAL)
    ticket = EscalationTicket.objects.get(order_id=lab_order.id)

    acked = CriticalValueEscalator.acknowledge(ticket_id=ticket.id, actor=doctor)

    assert acked.acknowledged_by == "dr.diaz"
    assert acked.acknowledged_at is not None
    assert seen[0][1]["ticket_id"] == str(ticket.id)

    with pytest.raises(AlreadyAcknowledged):
        CriticalValueEscalator.acknowledge(ticket_id=ticket.id, actor=nurse)

    assert EscalationTicket.objects.get(id=ticket.id).acknowledged_by == "dr.diaz"


def test_acknowledge_unknown_ticket(db, doctor):
    with pytest.raises(TicketNotFound):
        CriticalValueEscalator.acknowledge(ticket_id="00000000-0000-0000-0000-000000000000", actor=doctor)
    with pytest.raises(TicketNotFound):
        CriticalValueEscalator.acknowledge(ticket_id="nope", actor=doctor)


def test_acknowledge_requires_clinical_role(lab_order, advance, lab_tech):
    advance(lab_order, OrderState.PENDING_APPROVAL, result=CRITICAL)
    ticket = EscalationTicket.objects.get(order_id=lab_order.id)

    with pytest.raises(TransitionNotPermitted):
        CriticalValueEscalator.acknowledge(ticket_id=ticket.id, actor=lab_tech)


def test_notifier_failure_does_not_undo_submission(
    lab_order, advance, lab_tech, settings, django_capture_on_commit_callbacks, caplog
):
    settings.DX_NOTIFIER = "dx_core.alerts.tests.test_escalation.ExplodingNotifier"
    advance(lab_order, OrderState.IN_PROGRESS)

    with django_capture_on_commit_callbacks(execute=True):
        record = ResultEngine.submit_result(order_id=lab_order.id, result_input=CRITICAL, actor=lab_tech)

    assert record.is_critical
    assert EscalationTicket.objects.filter(order_id=lab_order.id).exists()
    assert "Notifier failed" in caplog.text


def test_logging_notifier_writes_call_back_request(
    lab_order, advance, lab_tech, settings, django_capture_on_commit_callbacks, caplog
):
    settings.DX_NOTIFIER = "dx_core.alerts.integrations.LoggingNotifier"
    advance(lab_order, OrderState.IN_PROGRESS)

    with caplog.at_level("WARNING", logger="dx_core.alerts.integrations"):
        with django_capture_on_commit_callbacks(execute=True):
            ResultEngine.submit_result(order_id=lab_order.id, result_input=CRITICAL, actor=lab_tech)

    lines = [r.getMessage() for r in caplog.records if r.name == "dx_core.alerts.integrations"]
    assert lines == ["CRITICAL VALUE for patient patient-001: call dr.diaz (HIGH) - Potassium 7.1 mmol/L"]
