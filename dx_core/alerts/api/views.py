from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from dx_core.alerts.api.serializers import EscalationTicketSerializer
from dx_core.alerts.selectors import escalations_qs
from dx_core.alerts.services import CriticalValueEscalator
from dx_core.common.idempotency import get_key, load_response, save_response
from dx_core.common.permissions import EscalationPermission, actor_from_user


class EscalationViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    permission_classes = [EscalationPermission]
    serializer_class = EscalationTicketSerializer
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def get_queryset(self):
        params = self.request.query_params

        order_id = params.get("order") or None
        if order_id:
            try:
                order_id = UUID(str(order_id))
            except ValueError:
                raise ValidationError({"order": "Invalid order id (UUID expected)."})

        return escalations_qs(
            open_only=params.get("open") in ("1", "true"),
            clinician_ref=params.get("clinician") or None,
            order_id=order_id,
        )

    @extend_schema(tags=["Escalations"], request=None, responses={200: EscalationTicketSerializer})
    @action(methods=["POST"], detail=True, url_path="acknowledge")
    def acknowledge(self, request, pk=None):
        idem = get_key(request)
        if idem:
            cached = load_response(request.user.id, request.method, request.path, idem)
            if cached is not None:
                return Response(cached, status=status.HTTP_200_OK)

        ticket = CriticalValueEscalator.acknowledge(ticket_id=pk, actor=actor_from_user(request.user))
        out = EscalationTicketSerializer(ticket).data

        if idem:
            save_response(request.user.id, request.method, request.path, idem, out)

        return Response(out, status=status.HTTP_200_OK)
