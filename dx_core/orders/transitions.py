# dx_core/orders/transitions.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from dx_core.common.permissions import Actor
from dx_core.orders.exceptions import InvalidPayload
from dx_core.orders.models import DiagnosticOrder


class TransitionHandler:
    """
    Per-transition hooks called by OrderStateMachine, in this order:

    1) clean(order, payload)             -> validated input (no writes)
    2) pre_authorize(order, cleaned, actor) -> guards that outrank the role check (no writes)
    3) check(order, cleaned, actor)      -> business guards (no writes)
    4) apply(order, cleaned, actor, now) -> sub-component rows + in-memory order fields,
                                            returns extra audit metadata
    5) after_apply(...)                  -> same transaction, after the audit entry

    canonical(cleaned) is the JSON-safe request stored in the audit entry;
    replays are compared against it.
    """

    transition: str = ""

    def clean(self, order: DiagnosticOrder, payload: Any) -> Any:
        return payload

    def pre_authorize(self, order: DiagnosticOrder, cleaned: Any, actor: Actor) -> None:
        return None

    def check(self, order: DiagnosticOrder, cleaned: Any, actor: Actor) -> None:
        return None

    def apply(self, order: DiagnosticOrder, cleaned: Any, actor: Actor, now: datetime) -> Dict[str, Any]:
        return {}

    def after_apply(self, order: DiagnosticOrder, cleaned: Any, actor: Actor) -> None:
        return None

    def canonical(self, cleaned: Any) -> Dict[str, Any]:
        return {}

    def note(self, cleaned: Any) -> str:
        return ""


@dataclass(frozen=True)
class NoteInput:
    note: str = ""


def _coerce_note(payload: Any) -> str:
    if payload is None:
        return ""
    if isinstance(payload, NoteInput):
        return payload.note
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        unknown = set(payload) - {"note"}
        if unknown:
            raise InvalidPayload(details={"unexpected_fields": sorted(unknown)})
        value = payload.get("note") or ""
        if not isinstance(value, str):
            raise InvalidPayload("note must be a string", details={"field": "note"})
        return value
    raise InvalidPayload(f"Unsupported payload type: {type(payload).__name__}")


class NoteOnlyHandler(TransitionHandler):
    """begin_processing and cancel: no sub-component, optional note."""

    def __init__(self, transition: str):
        self.transition = transition

    def clean(self, order, payload) -> NoteInput:
        return NoteInput(note=_coerce_note(payload).strip())

    def canonical(self, cleaned: NoteInput) -> Dict[str, Any]:
        return {"note": cleaned.note}

    def note(self, cleaned: NoteInput) -> str:
        return cleaned.note


def clean_note(payload: Optional[Any]) -> str:
    return _coerce_note(payload).strip()
