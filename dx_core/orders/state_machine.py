# dx_core/orders/state_machine.py
"""
Order State Machine: the single entry point that moves a DiagnosticOrder
between states.

Each transition is validated, applied and audited atomically:
- legality against workflow.TRANSITION_TABLE
- replay detection (order already in the target state)
- role enforcement
- payload validation by the owning sub-component (outside the transaction)
- sub-component rows + state flip + version bump + audit entry in one transaction
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from django.db import IntegrityError, transaction
from django.utils import timezone

from dx_core.audit.models import AuditEntry
from dx_core.audit.selectors import latest_transition_entry
from dx_core.common.permissions import CLINICAL_STAFF, Actor
from dx_core.orders.exceptions import (
    ConcurrentModification,
    InvalidPayload,
    InvalidTransition,
    StaleTransition,
    TransitionNotPermitted,
)
from dx_core.orders.models import DiagnosticOrder
from dx_core.orders.store import OrderStore
from dx_core.orders.transitions import NoteOnlyHandler, TransitionHandler, clean_note
from dx_core.orders.workflow import (
    TRANSITION_TABLE,
    Transition,
    parse_transition,
    require_permission,
)

logger = logging.getLogger(__name__)

_HANDLERS: Dict[str, TransitionHandler] = {}


def get_handler(transition: str) -> TransitionHandler:
    if not _HANDLERS:
        # sub-components import the state machine for their facades
        from dx_core.approvals.handlers import ApproveHandler, RejectHandler
        from dx_core.results.handlers import ResultSubmissionHandler
        from dx_core.samples.handlers import SampleCollectionHandler

        _HANDLERS.update(
            {
                Transition.COLLECT_SAMPLE: SampleCollectionHandler(),
                Transition.BEGIN_PROCESSING: NoteOnlyHandler(Transition.BEGIN_PROCESSING),
                Transition.SUBMIT_RESULT: ResultSubmissionHandler(),
                Transition.APPROVE: ApproveHandler(),
                Transition.REJECT: RejectHandler(),
                Transition.CANCEL: NoteOnlyHandler(Transition.CANCEL),
            }
        )
    return _HANDLERS[transition]


class OrderStateMachine:

    @staticmethod
    def request_transition(
        *,
        order_id,
        transition: str,
        actor: Actor,
        payload: Any = None,
    ) -> DiagnosticOrder:
        name = parse_transition(transition)
        sources, target = TRANSITION_TABLE[name]

        order = OrderStore.load(order_id)
        from_state = order.state

        if from_state not in sources and from_state != target:
            logger.warning("Rejected %s on order %s in state %s", name, order.id, from_state)
            raise InvalidTransition(
                f"Cannot {name} an order in state {from_state}",
                details={"order_id": str(order.id), "state": from_state, "transition": name},
            )

        handler = get_handler(name)
        cleaned = handler.clean(order, payload)

        if from_state not in sources:
            return OrderStateMachine._confirm_replay(order, name, handler, cleaned, actor)

        handler.pre_authorize(order, cleaned, actor)
        require_permission(actor, name, order.kind)
        handler.check(order, cleaned, actor)

        expected_version = order.version
        now = timezone.now()

        try:
            with transaction.atomic():
                extra = handler.apply(order, cleaned, actor, now) or {}
                order.state = target
                OrderStore.commit(order, expected_version=expected_version)

                if order.is_terminal:
                    from dx_core.samples.services import SampleLedger

                    SampleLedger.release_binding(order)

                OrderStore.append_audit(
                    order,
                    actor_ref=actor.ref,
                    from_state=from_state,
                    to_state=target,
                    transition=name,
                    note=handler.note(cleaned),
                    metadata={"request": handler.canonical(cleaned), **extra},
                    occurred_at=now,
                )
                handler.after_apply(order, cleaned, actor)
        except IntegrityError as exc:
            logger.warning("Constraint collision during %s on order %s: %s", name, order.id, exc)
            raise ConcurrentModification(details={"order_id": str(order.id), "transition": name})

        logger.info(
            "Order %s %s: %s -> %s by %s (v%s)",
            order.accession_number,
            name,
            from_state,
            target,
            actor.ref,
            order.version,
        )

        return order

    @staticmethod
    def _confirm_replay(
        order: DiagnosticOrder,
        name: str,
        handler: TransitionHandler,
        cleaned: Any,
        actor: Actor,
    ) -> DiagnosticOrder:
        """
        Order already sits in the target state. Same transition + same actor + same
        request as the latest audited transition is a retry: succeed without writing.

        The actor is part of the match: an identical payload from another actor
        raises StaleTransition.
        """
        last = latest_transition_entry(order_id=order.id)

        if last is None or last.transition != name:
            raise InvalidTransition(
                f"Cannot {name} an order in state {order.state}",
                details={"order_id": str(order.id), "state": order.state, "transition": name},
            )

        same_request = (last.metadata or {}).get("request") == handler.canonical(cleaned)
        if last.actor_ref != actor.ref or not same_request:
            logger.warning("Stale %s on order %s (already %s)", name, order.id, order.state)
            raise StaleTransition(
                details={
                    "order_id": str(order.id),
                    "state": order.state,
                    "transition": name,
                    "audit_sequence": last.sequence,
                }
            )

        logger.info("Replay of %s on order %s acknowledged without changes", name, order.id)
        return order

    @staticmethod
    def add_note(*, order_id, note: str, actor: Actor) -> AuditEntry:
        """
        Informational audit entry; allowed in any state, terminal included.
        """
        text = clean_note(note)
        if not text:
            raise InvalidPayload("note must not be empty", details={"field": "note"})

        if not actor.has_any(CLINICAL_STAFF):
            raise TransitionNotPermitted(
                "Actor may not annotate orders",
                details={"transition": Transition.NOTE},
            )

        order = OrderStore.load(order_id)

        try:
            with transaction.atomic():
                entry = OrderStore.append_audit(
                    order,
                    actor_ref=actor.ref,
                    from_state=order.state,
                    to_state=order.state,
                    transition=Transition.NOTE,
                    note=text,
                )
        except IntegrityError:
            raise ConcurrentModification(details={"order_id": str(order.id), "transition": Transition.NOTE})

        logger.info("Note added to order %s by %s", order.accession_number, actor.ref)
        return entry
