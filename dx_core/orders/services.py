# dx_core/orders/services.py
from __future__ import annotations

import logging
from typing import Any, Dict

from django.db import IntegrityError, transaction
from django.utils import timezone

from dx_core.orders.exceptions import InvalidPayload
from dx_core.orders.models import (
    DiagnosticOrder,
    ImagingModality,
    ImagingOrderDetails,
    LabOrderDetails,
    OrderKind,
    OrderUrgency,
)

logger = logging.getLogger(__name__)

ACCESSION_PREFIX = {
    OrderKind.LAB: "LAB",
    OrderKind.IMAGING: "RAD",
}

_MAX_ACCESSION_ATTEMPTS = 5


def next_accession_number(kind: str, now=None) -> str:
    """
    <LAB|RAD>-YYYYMM-NNNN, sequence per kind and month.
    """
    now = now or timezone.now()
    stem = f"{ACCESSION_PREFIX[kind]}-{now:%Y%m}-"
    count = DiagnosticOrder.objects.filter(kind=kind, accession_number__startswith=stem).count()
    return f"{stem}{count + 1:04d}"


def _clean_details(kind: str, details: Dict[str, Any] | None) -> Dict[str, Any]:
    details = dict(details or {})
    errors: Dict[str, str] = {}

    if kind == OrderKind.LAB:
        allowed = {"test_name", "test_category", "sample_type", "normal_range"}
        if not str(details.get("test_name") or "").strip():
            errors["test_name"] = "required for lab orders"
    else:
        allowed = {"modality", "body_part", "contrast"}
        modality = str(details.get("modality") or "").strip().upper()
        if modality not in ImagingModality.values:
            errors["modality"] = f"one of {', '.join(ImagingModality.values)}"
        details["modality"] = modality
        if not str(details.get("body_part") or "").strip():
            errors["body_part"] = "required for imaging orders"
        details["contrast"] = bool(details.get("contrast", False))

    unknown = set(details) - allowed
    if unknown:
        errors["unexpected_fields"] = ", ".join(sorted(unknown))

    if errors:
        raise InvalidPayload("Invalid order details", details=errors)

    return {k: (v.strip() if isinstance(v, str) else v) for k, v in details.items()}


class OrderService:
    """
    Write-model operations for orders outside the state machine.
    - create_order: ORDERED order + its kind-specific detail row, atomically
    """

    @staticmethod
    def create_order(
        *,
        kind: str,
        patient_ref: str,
        ordering_clinician_ref: str,
        urgency: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> DiagnosticOrder:
        kind = (kind or "").strip().upper()
        if kind not in OrderKind.values:
            raise InvalidPayload(details={"kind": f"one of {', '.join(OrderKind.values)}"})

        urgency = (urgency or OrderUrgency.ROUTINE).strip().upper()
        if urgency not in OrderUrgency.values:
            raise InvalidPayload(details={"urgency": f"one of {', '.join(OrderUrgency.values)}"})

        patient_ref = (patient_ref or "").strip()
        ordering_clinician_ref = (ordering_clinician_ref or "").strip()
        if not patient_ref or not ordering_clinician_ref:
            raise InvalidPayload(details={"required": ["patient_ref", "ordering_clinician_ref"]})

        cleaned = _clean_details(kind, details)

        for attempt in range(1, _MAX_ACCESSION_ATTEMPTS + 1):
            try:
                with transaction.atomic():
                    order = DiagnosticOrder.objects.create(
                        accession_number=next_accession_number(kind),
                        kind=kind,
                        patient_ref=patient_ref,
                        ordering_clinician_ref=ordering_clinician_ref,
                        urgency=urgency,
                    )
                    if kind == OrderKind.LAB:
                        LabOrderDetails.objects.create(order=order, **cleaned)
                    else:
                        ImagingOrderDetails.objects.create(order=order, **cleaned)
            except IntegrityError:
                # accession number taken by a concurrent create
                if attempt == _MAX_ACCESSION_ATTEMPTS:
                    raise
                continue

            logger.info("Order %s created for patient %s", order.accession_number, patient_ref)
            return order
