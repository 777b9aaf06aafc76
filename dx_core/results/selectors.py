# dx_core/results/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from dx_core.results.models import ResultRecord


def result_history(*, order_id: UUID) -> QuerySet[ResultRecord]:
    return ResultRecord.objects.filter(order_id=order_id).order_by("version")
