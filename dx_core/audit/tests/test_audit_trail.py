import pytest
from django.core.exceptions import PermissionDenied

from dx_core.audit.models import AuditEntry
from dx_core.audit.selectors import latest_transition_entry, list_audit_entries, order_audit_trail
from dx_core.orders.models import OrderState
from dx_core.orders.state_machine import OrderStateMachine

pytestmark = pytest.mark.django_db


def test_trail_reconstructs_state_history(lab_order, advance):
    advance(lab_order, OrderState.COMPLETED)

    trail = list(order_audit_trail(order_id=lab_order.id))

    assert [e.sequence for e in trail] == [1, 2, 3, 4]
    assert trail[0].from_state == OrderState.ORDERED
    for prev, nxt in zip(trail, trail[1:]):
        assert prev.to_state == nxt.from_state
    assert trail[-1].to_state == OrderState.COMPLETED


def test_entries_are_immutable(lab_order, advance):
    advance(lab_order, OrderState.SAMPLE_COLLECTED)
    entry = AuditEntry.objects.get(order_id=lab_order.id)

    entry.note = "edited"
    with pytest.raises(PermissionDenied):
        entry.save()
    with pytest.raises(PermissionDenied):
        entry.delete()

    assert AuditEntry.objects.get(id=entry.id).note == ""


def test_latest_transition_entry_skips_notes(lab_order, advance, doctor):
    advance(lab_order, OrderState.SAMPLE_COLLECTED)
    OrderStateMachine.add_note(order_id=lab_order.id, note="tube relabelled", actor=doctor)

    assert latest_transition_entry(order_id=lab_order.id).transition == "collect_sample"


def test_list_filters(lab_order, imaging_order, advance, radiographer, doctor):
    advance(lab_order, OrderState.SAMPLE_COLLECTED)
    OrderStateMachine.request_transition(order_id=imaging_order.id, transition="collect_sample", actor=radiographer)
    OrderStateMachine.add_note(order_id=imaging_order.id, note="patient claustrophobic", actor=doctor)

    assert list_audit_entries().count() == 3
    assert list_audit_entries(order_id=imaging_order.id).count() == 2
    assert list_audit_entries(transition="note").get().actor_ref == "dr.diaz"
    assert list_audit_entries(actor_ref="rad.tech").get().order_id == imaging_order.id
