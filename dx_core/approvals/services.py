# dx_core/approvals/services.py
from __future__ import annotations

from typing import Optional

from dx_core.approvals.models import ApprovalDecision, ApprovalRecord
from dx_core.common.permissions import Actor
from dx_core.orders.exceptions import InvalidPayload
from dx_core.orders.workflow import Transition

_DECISION_TRANSITIONS = {
    ApprovalDecision.APPROVED: Transition.APPROVE,
    ApprovalDecision.REJECTED: Transition.REJECT,
}


class ApprovalGate:
    """
    Second-person review. APPROVED is the only way into COMPLETED;
    REJECTED sends the order back to IN_PROGRESS without its result.
    """

    @staticmethod
    def decide(*, order_id, decision: str, actor: Actor, comments: Optional[str] = None) -> ApprovalRecord:
        from dx_core.orders.state_machine import OrderStateMachine

        key = (decision or "").strip().upper()
        if key not in _DECISION_TRANSITIONS:
            raise InvalidPayload(
                f"decision must be one of {', '.join(ApprovalDecision.values)}",
                details={"field": "decision"},
            )

        order = OrderStateMachine.request_transition(
            order_id=order_id,
            transition=_DECISION_TRANSITIONS[key],
            actor=actor,
            payload={"comments": comments or ""},
        )
        return order.approval
