# dx_core/samples/handlers.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from dx_core.orders.exceptions import BarcodeConflict, ConcurrentModification, InvalidPayload
from dx_core.orders.transitions import TransitionHandler
from dx_core.orders.workflow import Transition
from dx_core.samples.barcodes import derive_barcode
from dx_core.samples.models import CustodyEntry, SampleCondition, SampleRecord

COLLECTED_NOTE = "collected"

_FIELDS = {"barcode", "condition", "location", "collected_at", "note"}


@dataclass(frozen=True)
class SampleInput:
    barcode: Optional[str] = None
    condition: str = SampleCondition.GOOD
    location: str = ""
    collected_at: Optional[datetime] = None
    note: str = ""

    def as_request(self) -> Dict[str, Any]:
        return {
            "barcode": self.barcode,
            "condition": str(self.condition),
            "location": self.location,
            "collected_at": self.collected_at.isoformat() if self.collected_at else None,
            "note": self.note,
        }


def _parse_sample_input(payload: Any) -> SampleInput:
    if isinstance(payload, SampleInput):
        raw = payload.__dict__
    elif isinstance(payload, dict):
        unknown = set(payload) - _FIELDS
        if unknown:
            raise InvalidPayload(details={"unexpected_fields": sorted(unknown)})
        raw = payload
    elif payload is None:
        raw = {}
    else:
        raise InvalidPayload(f"Unsupported sample payload: {type(payload).__name__}")

    errors: Dict[str, str] = {}

    barcode = raw.get("barcode")
    if barcode is not None:
        if not isinstance(barcode, str):
            errors["barcode"] = "must be a string"
        else:
            barcode = barcode.strip().upper() or None
            if barcode and len(barcode) > 64:
                errors["barcode"] = "at most 64 characters"

    condition = raw.get("condition") or SampleCondition.GOOD
    if str(condition).upper() not in SampleCondition.values:
        errors["condition"] = f"one of {', '.join(SampleCondition.values)}"
    else:
        condition = str(condition).upper()

    location = raw.get("location") or ""
    if not isinstance(location, str) or len(location) > 128:
        errors["location"] = "string of at most 128 characters"

    collected_at = raw.get("collected_at")
    if isinstance(collected_at, str):
        collected_at = parse_datetime(collected_at)
        if collected_at is None:
            errors["collected_at"] = "ISO-8601 datetime expected"
    if collected_at is not None and not isinstance(collected_at, datetime):
        errors["collected_at"] = "ISO-8601 datetime expected"
    if isinstance(collected_at, datetime) and timezone.is_naive(collected_at):
        collected_at = timezone.make_aware(collected_at)

    note = raw.get("note") or ""
    if not isinstance(note, str):
        errors["note"] = "must be a string"

    if errors:
        raise InvalidPayload("Invalid sample payload", details=errors)

    return SampleInput(
        barcode=barcode,
        condition=condition,
        location=location.strip(),
        collected_at=collected_at,
        note=note.strip(),
    )


def barcode_bound_elsewhere(barcode: str, order) -> bool:
    return SampleRecord.objects.filter(barcode=barcode, is_active=True).exclude(order_id=order.id).exists()


class SampleCollectionHandler(TransitionHandler):
    transition = Transition.COLLECT_SAMPLE

    def clean(self, order, payload) -> SampleInput:
        return _parse_sample_input(payload)

    def check(self, order, cleaned: SampleInput, actor) -> None:
        if cleaned.barcode and barcode_bound_elsewhere(cleaned.barcode, order):
            raise BarcodeConflict(details={"barcode": cleaned.barcode})

    def apply(self, order, cleaned: SampleInput, actor, now) -> Dict[str, Any]:
        collected_at = cleaned.collected_at or now
        barcode = cleaned.barcode or derive_barcode(order, collected_at)

        try:
            with transaction.atomic():
                sample = SampleRecord.objects.create(
                    order=order,
                    barcode=barcode,
                    barcode_derived=cleaned.barcode is None,
                    condition=cleaned.condition,
                    location=cleaned.location,
                    collected_by=actor.ref,
                    collected_at=collected_at,
                )
        except IntegrityError:
            # lost a race: either the barcode or the order's sample slot was taken meanwhile
            if barcode_bound_elsewhere(barcode, order):
                raise BarcodeConflict(details={"barcode": barcode})
            raise ConcurrentModification(details={"order_id": str(order.id)})

        CustodyEntry.objects.create(
            sample=sample,
            sequence=1,
            actor_ref=actor.ref,
            recorded_at=now,
            note=COLLECTED_NOTE,
            location=cleaned.location,
        )

        return {
            "sample_id": str(sample.id),
            "barcode": barcode,
            "barcode_derived": sample.barcode_derived,
        }

    def canonical(self, cleaned: SampleInput) -> Dict[str, Any]:
        return cleaned.as_request()

    def note(self, cleaned: SampleInput) -> str:
        return cleaned.note
