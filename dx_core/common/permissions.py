# dx_core/common/permissions.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Set

from rest_framework.permissions import SAFE_METHODS, BasePermission

# Group/role names (Django auth Group names)
ROLE_ADMIN = "ADMIN"
ROLE_DOCTOR = "DOCTOR"
ROLE_NURSE = "NURSE"
ROLE_LAB = "LAB"
ROLE_RADIOLOGY = "RADIOLOGY"
ROLE_PATHOLOGIST = "PATHOLOGIST"
ROLE_RADIOLOGIST = "RADIOLOGIST"
ROLE_READONLY = "READONLY"

ALL_ROLES = (
    ROLE_ADMIN,
    ROLE_DOCTOR,
    ROLE_NURSE,
    ROLE_LAB,
    ROLE_RADIOLOGY,
    ROLE_PATHOLOGIST,
    ROLE_RADIOLOGIST,
    ROLE_READONLY,
)

CLINICAL_STAFF = frozenset(set(ALL_ROLES) - {ROLE_READONLY})


def user_roles(user) -> Set[str]:
    """
    Resolve roles from:
    1) superuser flag (treated as ADMIN)
    2) Django groups: user.groups
    3) optional user.role / user.roles attributes

    Authenticated users without any role are READONLY.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(user.groups.values_list("name", flat=True))

    if getattr(user, "role", None):
        roles.add(str(user.role))

    if getattr(user, "roles", None):
        try:
            roles.update(set(user.roles))
        except TypeError:
            roles.add(str(user.roles))

    if not roles:
        roles.add(ROLE_READONLY)

    return {r.strip().upper() for r in roles}


@dataclass(frozen=True)
class Actor:
    """
    Verified identity handed to the core by the authorization layer.
    `ref` is what lands in performed_by / decided_by / audit entries.
    """
    ref: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "ref", str(self.ref or "").strip())
        object.__setattr__(self, "roles", frozenset(str(r).strip().upper() for r in (self.roles or ())))

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    def has_any(self, allowed) -> bool:
        return self.is_admin or bool(self.roles & set(allowed))


def actor_from_user(user) -> Actor:
    return Actor(ref=user.get_username(), roles=frozenset(user_roles(user)))


class BaseRolePermission(BasePermission):
    """
    Endpoint-level RBAC. Fine-grained transition rules live in the order workflow;
    this only decides who may reach an endpoint at all.

    - ADMIN bypass.
    - allowed_roles_per_action maps view action -> roles.
    - Unknown SAFE actions fall back to list/retrieve; unknown writes are denied.
    """
    message = "You do not have permission to perform this action."

    allowed_roles_per_action: dict[str, Set[str] | FrozenSet[str]] = {}

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs
        if request.method.upper() in SAFE_METHODS:
            return "retrieve" if is_detail else "list"
        if request.method.upper() == "POST":
            return "create"
        return None

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        roles = user_roles(user)
        if ROLE_ADMIN in roles:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            allowed = self.allowed_roles_per_action.get("retrieve" if "pk" in kwargs else "list")

        if allowed is not None:
            return bool(roles & set(allowed))

        return False


_READ = frozenset(ALL_ROLES)


class DiagnosticOrderPermission(BaseRolePermission):
    """Diagnostic orders: reads for everyone, writes for clinical staff (the state machine decides the rest)."""
    allowed_roles_per_action = {
        "list": _READ,
        "retrieve": _READ,
        "stats": _READ,
        "audit": _READ,
        "results": _READ,
        "workflow": _READ,
        "create": {ROLE_DOCTOR, ROLE_NURSE},
        "transition": CLINICAL_STAFF,
        "collect_sample": CLINICAL_STAFF,
        "custody": _READ,
        "append_custody": CLINICAL_STAFF,
        "submit_result": CLINICAL_STAFF,
        "decide": CLINICAL_STAFF,
        "notes": CLINICAL_STAFF,
    }


class EscalationPermission(BaseRolePermission):
    """Critical-value escalation tickets."""
    allowed_roles_per_action = {
        "list": {ROLE_DOCTOR, ROLE_NURSE, ROLE_PATHOLOGIST, ROLE_RADIOLOGIST, ROLE_READONLY},
        "retrieve": {ROLE_DOCTOR, ROLE_NURSE, ROLE_PATHOLOGIST, ROLE_RADIOLOGIST, ROLE_READONLY},
        "acknowledge": {ROLE_DOCTOR, ROLE_NURSE},
    }


class AuditPermission(BaseRolePermission):
    """Audit trail access across orders."""
    allowed_roles_per_action = {
        "list": {ROLE_DOCTOR, ROLE_PATHOLOGIST, ROLE_RADIOLOGIST},
    }
