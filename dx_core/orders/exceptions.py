# dx_core/orders/exceptions.py
"""
Failure kinds of the diagnostic order lifecycle.

Every error leaves the order exactly as it was before the call.
Only ConcurrentModification is worth retrying (after a reload).
"""
from __future__ import annotations

from dx_core.common.exceptions import DomainError


class DiagnosticOrderError(DomainError):
    code = "diagnostic_order_error"


class InvalidTransition(DiagnosticOrderError):
    code = "invalid_transition"
    http_status = 409
    default_message = "Transition is not legal from the order's current state."


class StaleTransition(DiagnosticOrderError):
    code = "stale_transition"
    http_status = 409
    default_message = "Order already reached this state with a different request."


class ConcurrentModification(DiagnosticOrderError):
    code = "concurrent_modification"
    http_status = 409
    retryable = True
    default_message = "Order was modified concurrently. Reload and retry."


class IncompleteCriticalReport(DiagnosticOrderError):
    code = "incomplete_critical_report"
    http_status = 400
    default_message = "Critical results require critical details."


class IncompleteResult(DiagnosticOrderError):
    code = "incomplete_result"
    http_status = 400
    default_message = "Findings and interpretation are required."


class InvalidPayload(DiagnosticOrderError):
    code = "invalid_payload"
    http_status = 400
    default_message = "Request payload is invalid."


class BarcodeConflict(DiagnosticOrderError):
    code = "barcode_conflict"
    http_status = 409
    default_message = "Barcode is already bound to another active sample."


class SelfApprovalForbidden(DiagnosticOrderError):
    code = "self_approval_forbidden"
    http_status = 403
    default_message = "The performer or verifier of a result cannot approve or reject it."


class TransitionNotPermitted(DiagnosticOrderError):
    code = "transition_not_permitted"
    http_status = 403
    default_message = "Actor's roles do not allow this transition."


class AlreadyAcknowledged(DiagnosticOrderError):
    code = "already_acknowledged"
    http_status = 409
    default_message = "Escalation ticket was already acknowledged."


class OrderNotFound(DiagnosticOrderError):
    code = "order_not_found"
    http_status = 404
    default_message = "Diagnostic order not found."


class TicketNotFound(DiagnosticOrderError):
    code = "ticket_not_found"
    http_status = 404
    default_message = "Escalation ticket not found."
