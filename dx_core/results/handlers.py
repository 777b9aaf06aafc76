# dx_core/results/handlers.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db.models import Max

from dx_core.orders.exceptions import IncompleteCriticalReport, IncompleteResult, InvalidPayload
from dx_core.orders.models import OrderKind
from dx_core.orders.transitions import TransitionHandler
from dx_core.orders.workflow import Transition
from dx_core.results.critical import critical_check, summarize
from dx_core.results.models import ResultRecord

_FIELDS = {
    "findings",
    "interpretation",
    "performed_by",
    "verified_by",
    "is_critical",
    "critical_details",
    "measurements",
    "result_document",
}


@dataclass(frozen=True)
class ResultInput:
    findings: str = ""
    interpretation: str = ""
    performed_by: Optional[str] = None
    verified_by: str = ""
    is_critical: bool = False
    critical_details: str = ""
    measurements: List[Dict[str, Any]] = field(default_factory=list)
    result_document: str = ""

    # filled by auto-detection, not part of the request
    detected_reasons: List[Dict[str, Any]] = field(default_factory=list, compare=False)
    auto_flagged: bool = field(default=False, compare=False)

    def as_request(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(_FIELDS)}


def _text(raw: Dict[str, Any], name: str, errors: Dict[str, str], max_len: int | None = None) -> str:
    value = raw.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        errors[name] = "must be a string"
        return ""
    value = value.strip()
    if max_len and len(value) > max_len:
        errors[name] = f"at most {max_len} characters"
    return value


def _measurements(raw: Dict[str, Any], errors: Dict[str, str]) -> List[Dict[str, Any]]:
    value = raw.get("measurements") or []
    if not isinstance(value, list):
        errors["measurements"] = "must be a list"
        return []

    out: List[Dict[str, Any]] = []
    for i, m in enumerate(value):
        if not isinstance(m, dict) or not str(m.get("name") or "").strip():
            errors[f"measurements[{i}]"] = "object with a non-empty name expected"
            continue
        out.append(
            {
                "name": str(m["name"]).strip(),
                "value": m.get("value"),
                "unit": str(m.get("unit") or ""),
                "normal_range": str(m.get("normal_range") or ""),
            }
        )
    return out


def parse_result_input(payload: Any) -> ResultInput:
    if isinstance(payload, ResultInput):
        raw = payload.as_request()
    elif isinstance(payload, dict):
        unknown = set(payload) - _FIELDS
        if unknown:
            raise InvalidPayload(details={"unexpected_fields": sorted(unknown)})
        raw = payload
    else:
        raise InvalidPayload("Result payload is required")

    errors: Dict[str, str] = {}

    is_critical = raw.get("is_critical", False)
    if not isinstance(is_critical, bool):
        errors["is_critical"] = "must be a boolean"
        is_critical = False

    parsed = ResultInput(
        findings=_text(raw, "findings", errors),
        interpretation=_text(raw, "interpretation", errors),
        performed_by=_text(raw, "performed_by", errors, 128) or None,
        verified_by=_text(raw, "verified_by", errors, 128),
        is_critical=is_critical,
        critical_details=_text(raw, "critical_details", errors),
        measurements=_measurements(raw, errors),
        result_document=_text(raw, "result_document", errors, 512),
    )

    if errors:
        raise InvalidPayload("Invalid result payload", details=errors)

    return parsed


def _autodetect_enabled() -> bool:
    return bool(getattr(settings, "DX_CRITICAL_AUTODETECT", True))


class ResultSubmissionHandler(TransitionHandler):
    transition = Transition.SUBMIT_RESULT

    def clean(self, order, payload) -> ResultInput:
        cleaned = parse_result_input(payload)

        # criticality completeness first: a flagged result without details is never accepted
        if cleaned.is_critical and not cleaned.critical_details:
            raise IncompleteCriticalReport(details={"field": "critical_details"})

        missing = [f for f in ("findings", "interpretation") if not getattr(cleaned, f)]
        if missing:
            raise IncompleteResult(details={"missing": missing})

        if order.kind == OrderKind.IMAGING and cleaned.measurements:
            raise InvalidPayload("Measurements apply to lab orders only", details={"field": "measurements"})

        if order.kind == OrderKind.LAB and cleaned.measurements and _autodetect_enabled():
            details = getattr(order, "details", None)
            detected, reasons = critical_check(
                cleaned.measurements,
                default_range=getattr(details, "normal_range", None),
            )
            if detected:
                cleaned = replace(
                    cleaned,
                    detected_reasons=reasons,
                    auto_flagged=not cleaned.is_critical,
                    is_critical=True,
                    critical_details=cleaned.critical_details or summarize(reasons),
                )

        return cleaned

    def apply(self, order, cleaned: ResultInput, actor, now) -> Dict[str, Any]:
        current = order.results.aggregate(m=Max("version"))["m"] or 0

        record = ResultRecord.objects.create(
            order=order,
            version=current + 1,
            findings=cleaned.findings,
            interpretation=cleaned.interpretation,
            performed_by=cleaned.performed_by or actor.ref,
            verified_by=cleaned.verified_by,
            submitted_by=actor.ref,
            submitted_at=now,
            is_critical=cleaned.is_critical,
            critical_details=cleaned.critical_details if cleaned.is_critical else "",
            critical_reasons=cleaned.detected_reasons,
            measurements=cleaned.measurements,
            result_document=cleaned.result_document,
        )

        order.active_result = record
        order.approval = None
        # criticality is sticky for the order's lifetime
        order.is_critical = order.is_critical or record.is_critical

        return {
            "result_id": str(record.id),
            "result_version": record.version,
            "is_critical": record.is_critical,
            "auto_flagged": cleaned.auto_flagged,
        }

    def after_apply(self, order, cleaned: ResultInput, actor) -> None:
        if order.active_result is not None and order.active_result.is_critical:
            from dx_core.alerts.services import CriticalValueEscalator

            CriticalValueEscalator.escalate(order)

    def canonical(self, cleaned: ResultInput) -> Dict[str, Any]:
        return cleaned.as_request()
