# dx_core/approvals/handlers.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from dx_core.approvals.models import ApprovalDecision, ApprovalRecord
from dx_core.orders.exceptions import InvalidPayload, InvalidTransition, SelfApprovalForbidden
from dx_core.orders.transitions import TransitionHandler
from dx_core.orders.workflow import Transition
from dx_core.results.services import ResultEngine


@dataclass(frozen=True)
class DecisionInput:
    comments: str = ""


def _parse_decision(payload: Any) -> DecisionInput:
    if payload is None:
        return DecisionInput()
    if isinstance(payload, DecisionInput):
        return DecisionInput(comments=(payload.comments or "").strip())
    if isinstance(payload, str):
        return DecisionInput(comments=payload.strip())
    if isinstance(payload, dict):
        unknown = set(payload) - {"comments"}
        if unknown:
            raise InvalidPayload(details={"unexpected_fields": sorted(unknown)})
        comments = payload.get("comments") or ""
        if not isinstance(comments, str):
            raise InvalidPayload("comments must be a string", details={"field": "comments"})
        return DecisionInput(comments=comments.strip())
    raise InvalidPayload(f"Unsupported decision payload: {type(payload).__name__}")


class _DecisionHandler(TransitionHandler):
    decision: str = ""

    def clean(self, order, payload) -> DecisionInput:
        return _parse_decision(payload)

    def pre_authorize(self, order, cleaned: DecisionInput, actor) -> None:
        # two-person rule outranks the role check
        result = order.active_result
        if result is None:
            raise InvalidTransition(
                "Order has no result awaiting approval",
                details={"order_id": str(order.id), "state": order.state},
            )

        # two-person rule: nobody who produced the result may decide on it
        involved = {result.performed_by, result.verified_by, result.submitted_by} - {""}
        if actor.ref in involved:
            raise SelfApprovalForbidden(
                details={"actor": actor.ref, "result_id": str(result.id)},
            )

    def _record(self, order, cleaned: DecisionInput, actor, now) -> ApprovalRecord:
        record = ApprovalRecord.objects.create(
            order=order,
            result=order.active_result,
            decision=self.decision,
            decided_by=actor.ref,
            decided_at=now,
            comments=cleaned.comments,
        )
        order.approval = record
        return record

    def canonical(self, cleaned: DecisionInput) -> Dict[str, Any]:
        return {"decision": self.decision, "comments": cleaned.comments}

    def note(self, cleaned: DecisionInput) -> str:
        return cleaned.comments


class ApproveHandler(_DecisionHandler):
    transition = Transition.APPROVE
    decision = ApprovalDecision.APPROVED

    def apply(self, order, cleaned, actor, now) -> Dict[str, Any]:
        record = self._record(order, cleaned, actor, now)
        return {"approval_id": str(record.id), "result_id": str(record.result_id)}


class RejectHandler(_DecisionHandler):
    transition = Transition.REJECT
    decision = ApprovalDecision.REJECTED

    def clean(self, order, payload) -> DecisionInput:
        cleaned = super().clean(order, payload)
        if not cleaned.comments:
            raise InvalidPayload("Rejection requires comments", details={"field": "comments"})
        return cleaned

    def apply(self, order, cleaned, actor, now) -> Dict[str, Any]:
        record = self._record(order, cleaned, actor, now)
        snapshot = ResultEngine.clear_for_correction(order)
        return {"approval_id": str(record.id), "rejected_result": snapshot}
