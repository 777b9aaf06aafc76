# dx_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from dx_core.common import events
from dx_core.common.idempotency import clear_local_store
from dx_core.common.permissions import Actor
from dx_core.orders.models import OrderKind, OrderState, OrderUrgency
from dx_core.orders.services import OrderService
from dx_core.orders.state_machine import OrderStateMachine


@pytest.fixture(autouse=True)
def _isolated_process_state():
    clear_local_store()
    yield
    clear_local_store()


# -------------------------------------------------------------------
# Actors (service-level tests)
# -------------------------------------------------------------------

@pytest.fixture
def nurse():
    return Actor("nurse.ana", frozenset({"NURSE"}))


@pytest.fixture
def lab_tech():
    return Actor("lab.lee", frozenset({"LAB"}))


@pytest.fixture
def lab_tech_2():
    return Actor("lab.kim", frozenset({"LAB"}))


@pytest.fixture
def pathologist():
    return Actor("path.perez", frozenset({"PATHOLOGIST"}))


@pytest.fixture
def radiographer():
    return Actor("rad.tech", frozenset({"RADIOLOGY"}))


@pytest.fixture
def radiologist():
    return Actor("rad.rossi", frozenset({"RADIOLOGIST"}))


@pytest.fixture
def doctor():
    return Actor("dr.diaz", frozenset({"DOCTOR"}))


@pytest.fixture
def viewer():
    return Actor("viewer.vu", frozenset({"READONLY"}))


# -------------------------------------------------------------------
# Orders
# -------------------------------------------------------------------

@pytest.fixture
def lab_order(db, doctor):
    return OrderService.create_order(
        kind=OrderKind.LAB,
        patient_ref="patient-001",
        ordering_clinician_ref=doctor.ref,
        urgency=OrderUrgency.ROUTINE,
        details={"test_name": "Potassium", "test_category": "Biochemistry", "sample_type": "Serum", "normal_range": "3.5-5.1"},
    )


@pytest.fixture
def imaging_order(db, doctor):
    return OrderService.create_order(
        kind=OrderKind.IMAGING,
        patient_ref="patient-002",
        ordering_clinician_ref=doctor.ref,
        urgency=OrderUrgency.STAT,
        details={"modality": "CT", "body_part": "Head", "contrast": False},
    )


RESULT_OK = {"findings": "K 4.2 mmol/L", "interpretation": "Within normal limits"}
RESULT_CRITICAL = {
    "findings": "K 7.1 mmol/L",
    "interpretation": "Severe hyperkalaemia",
    "is_critical": True,
    "critical_details": "Potassium 7.1 mmol/L",
}


@pytest.fixture
def advance(nurse, lab_tech, pathologist):
    """
    Drive a LAB order through the state machine up to `target`.

        advance(order, OrderState.PENDING_APPROVAL)
    """
    steps = [
        (OrderState.SAMPLE_COLLECTED, "collect_sample", nurse, {"barcode": None}),
        (OrderState.IN_PROGRESS, "begin_processing", lab_tech, None),
        (OrderState.PENDING_APPROVAL, "submit_result", lab_tech, RESULT_OK),
        (OrderState.COMPLETED, "approve", pathologist, None),
    ]

    def _advance(order, target, *, result=None):
        if target == OrderState.CANCELLED:
            return OrderStateMachine.request_transition(order_id=order.id, transition="cancel", actor=nurse)
        for state, transition, actor, payload in steps:
            if transition == "submit_result" and result is not None:
                payload = result
            order = OrderStateMachine.request_transition(
                order_id=order.id, transition=transition, actor=actor, payload=payload
            )
            if state == target:
                return order
        return order

    return _advance


@pytest.fixture
def captured_events():
    """Collects payloads published on the in-process bus for the given event names."""
    seen = []
    handlers = []

    def _listen(*names):
        for name in names:
            def handler(payload, _name=name):
                seen.append((_name, payload))

            events.subscribe(name)(handler)
            handlers.append((name, handler))
        return seen

    yield _listen

    for name, handler in handlers:
        events.unsubscribe(name, handler)


# -------------------------------------------------------------------
# API
# -------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    User = get_user_model()

    def _make(username, *roles, **extra):
        user = User.objects.create_user(username=username, password="testpass", **extra)
        for role in roles:
            group, _ = Group.objects.get_or_create(name=role)
            user.groups.add(group)
        return user

    return _make


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _client
