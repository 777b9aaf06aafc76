# dx_core/audit/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.exceptions import ValidationError

from dx_core.audit.api.serializers import AuditEntrySerializer
from dx_core.audit.models import AuditEntry
from dx_core.audit.selectors import list_audit_entries
from dx_core.common.api.pagination import AuditTrailPagination, paginate
from dx_core.common.permissions import AuditPermission


class AuditEntryViewSet(viewsets.GenericViewSet):
    """
    Audit timeline across orders (per-order trails live under /orders/{id}/audit/).
    """
    permission_classes = [AuditPermission]

    serializer_class = AuditEntrySerializer
    queryset = AuditEntry.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEntrySerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="order",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by diagnostic order id.",
            ),
            OpenApiParameter(
                name="transition",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by transition (e.g. submit_result, reject, note).",
            ),
            OpenApiParameter(
                name="actor_ref",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by actor reference.",
            ),
        ],
    )
    def list(self, request):
        order_raw = request.query_params.get("order") or None

        order_id = None
        if order_raw:
            try:
                order_id = UUID(str(order_raw))
            except ValueError:
                raise ValidationError({"order": "Invalid order id (UUID expected)."})

        qs = list_audit_entries(
            order_id=order_id,
            transition=request.query_params.get("transition") or None,
            actor_ref=request.query_params.get("actor_ref") or None,
        )
        return paginate(request, qs, AuditEntrySerializer, paginator=AuditTrailPagination())
