# dx_core/results/services.py
from __future__ import annotations

from typing import Any, Dict

from dx_core.common.permissions import Actor
from dx_core.orders.models import DiagnosticOrder
from dx_core.orders.workflow import Transition
from dx_core.results.models import ResultRecord


class ResultEngine:
    """
    Write-model operations for results.
    - submit: new append-only version, through the state machine
    - clear_for_correction: used by rejection; the record itself is kept
    """

    @staticmethod
    def submit_result(*, order_id, result_input: Any, actor: Actor) -> ResultRecord:
        from dx_core.orders.state_machine import OrderStateMachine

        order = OrderStateMachine.request_transition(
            order_id=order_id,
            transition=Transition.SUBMIT_RESULT,
            actor=actor,
            payload=result_input,
        )
        return order.active_result

    @staticmethod
    def clear_for_correction(order: DiagnosticOrder) -> Dict[str, Any] | None:
        """
        Detaches the active result from the order (in memory; persisted by the
        state machine commit) and returns its snapshot for the audit trail.
        """
        record = order.active_result
        order.active_result = None
        return None if record is None else record.snapshot()
