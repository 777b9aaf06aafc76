# dx_core/orders/workflow.py
"""
Authoritative workflow for diagnostic orders.

This module defines:
- the transition table (source states -> target state)
- terminal states
- role-based enforcement per transition and order kind
- introspection helpers for the API

Do not bypass these rules at model or view level.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Set, Tuple

from dx_core.common.permissions import (
    ROLE_DOCTOR,
    ROLE_LAB,
    ROLE_NURSE,
    ROLE_PATHOLOGIST,
    ROLE_RADIOLOGIST,
    ROLE_RADIOLOGY,
    Actor,
)
from dx_core.orders.exceptions import InvalidTransition, TransitionNotPermitted
from dx_core.orders.models import OrderKind, OrderState


class Transition:
    COLLECT_SAMPLE = "collect_sample"
    BEGIN_PROCESSING = "begin_processing"
    SUBMIT_RESULT = "submit_result"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"

    # informational audit entries (no state change)
    NOTE = "note"


NON_TERMINAL: FrozenSet[str] = frozenset(
    {
        OrderState.ORDERED,
        OrderState.SAMPLE_COLLECTED,
        OrderState.IN_PROGRESS,
        OrderState.PENDING_APPROVAL,
    }
)

TERMINAL_STATES: FrozenSet[str] = frozenset({OrderState.COMPLETED, OrderState.CANCELLED})


# transition -> (legal source states, target state)
TRANSITION_TABLE: Dict[str, Tuple[FrozenSet[str], str]] = {
    Transition.COLLECT_SAMPLE: (frozenset({OrderState.ORDERED}), OrderState.SAMPLE_COLLECTED),
    Transition.BEGIN_PROCESSING: (frozenset({OrderState.SAMPLE_COLLECTED}), OrderState.IN_PROGRESS),
    Transition.SUBMIT_RESULT: (frozenset({OrderState.IN_PROGRESS}), OrderState.PENDING_APPROVAL),
    Transition.APPROVE: (frozenset({OrderState.PENDING_APPROVAL}), OrderState.COMPLETED),
    Transition.REJECT: (frozenset({OrderState.PENDING_APPROVAL}), OrderState.IN_PROGRESS),
    Transition.CANCEL: (NON_TERMINAL, OrderState.CANCELLED),
}


# ===============================================================
# ROLE POLICY
# ===============================================================

_BOTH_KINDS = (OrderKind.LAB, OrderKind.IMAGING)

TRANSITION_ROLES: Dict[str, Dict[str, Set[str]]] = {
    Transition.COLLECT_SAMPLE: {
        OrderKind.LAB: {ROLE_NURSE, ROLE_LAB, ROLE_DOCTOR},
        OrderKind.IMAGING: {ROLE_NURSE, ROLE_RADIOLOGY, ROLE_DOCTOR},
    },
    Transition.BEGIN_PROCESSING: {
        OrderKind.LAB: {ROLE_LAB},
        OrderKind.IMAGING: {ROLE_RADIOLOGY},
    },
    Transition.SUBMIT_RESULT: {
        OrderKind.LAB: {ROLE_LAB, ROLE_PATHOLOGIST},
        OrderKind.IMAGING: {ROLE_RADIOLOGY, ROLE_RADIOLOGIST},
    },
    Transition.APPROVE: {
        OrderKind.LAB: {ROLE_PATHOLOGIST, ROLE_DOCTOR},
        OrderKind.IMAGING: {ROLE_RADIOLOGIST, ROLE_DOCTOR},
    },
    Transition.REJECT: {
        OrderKind.LAB: {ROLE_PATHOLOGIST, ROLE_DOCTOR},
        OrderKind.IMAGING: {ROLE_RADIOLOGIST, ROLE_DOCTOR},
    },
    Transition.CANCEL: {
        kind: {ROLE_DOCTOR, ROLE_NURSE, ROLE_LAB, ROLE_RADIOLOGY, ROLE_PATHOLOGIST, ROLE_RADIOLOGIST}
        for kind in _BOTH_KINDS
    },
}

# custody appends: anyone who may collect or process a sample of that kind
CUSTODY_ROLES: Dict[str, Set[str]] = {
    kind: TRANSITION_ROLES[Transition.COLLECT_SAMPLE][kind] | TRANSITION_ROLES[Transition.BEGIN_PROCESSING][kind]
    for kind in _BOTH_KINDS
}

ACKNOWLEDGE_ROLES: Set[str] = {ROLE_DOCTOR, ROLE_NURSE}


# ===============================================================
# VALIDATION
# ===============================================================

def parse_transition(name: str) -> str:
    key = (name or "").strip().lower()
    if key not in TRANSITION_TABLE:
        raise InvalidTransition(f"Unknown transition: {name!r}", details={"transition": name})
    return key


def sources_for(transition: str) -> FrozenSet[str]:
    return TRANSITION_TABLE[transition][0]


def is_legal(transition: str, state: str) -> bool:
    return state in sources_for(transition)


def required_roles(transition: str, kind: str) -> Set[str]:
    return TRANSITION_ROLES.get(transition, {}).get(kind, set())


def require_permission(actor: Actor, transition: str, kind: str) -> None:
    allowed = required_roles(transition, kind)
    if not actor.has_any(allowed):
        raise TransitionNotPermitted(
            f"Roles {sorted(actor.roles)} may not {transition} a {kind} order",
            details={"transition": transition, "kind": kind, "allowed_roles": sorted(allowed)},
        )


# ===============================================================
# INTROSPECTION HELPERS
# ===============================================================

def allowed_transitions(state: str, kind: str, actor: Actor | None = None) -> List[str]:
    """
    Transitions legal from `state`; filtered by the actor's roles when given.
    """
    out = [t for t in TRANSITION_TABLE if is_legal(t, state)]
    if actor is not None:
        out = [t for t in out if actor.has_any(required_roles(t, kind))]
    return sorted(out)


def workflow_definition() -> Dict:
    return {
        "states": [s for s, _ in OrderState.choices],
        "transitions": {
            name: {"from": sorted(sources), "to": target}
            for name, (sources, target) in TRANSITION_TABLE.items()
        },
        "terminal_states": sorted(TERMINAL_STATES),
    }
