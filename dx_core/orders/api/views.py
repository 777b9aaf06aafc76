# dx_core/orders/api/views.py
from __future__ import annotations

from typing import Callable

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from dx_core.approvals.api.serializers import ApprovalRecordSerializer, DecisionSerializer
from dx_core.approvals.services import ApprovalGate
from dx_core.audit.api.serializers import AuditEntrySerializer
from dx_core.audit.selectors import order_audit_trail
from dx_core.common.api.pagination import AuditTrailPagination, paginate
from dx_core.common.idempotency import get_key, load_response, save_response
from dx_core.common.permissions import DiagnosticOrderPermission, actor_from_user
from dx_core.orders.api.serializers import (
    DiagnosticOrderSerializer,
    NoteSerializer,
    OrderCreateSerializer,
    OrderStatsSerializer,
    TransitionRequestSerializer,
)
from dx_core.orders.filters import DiagnosticOrderFilter
from dx_core.orders.selectors import get_order, list_orders, order_state_counts
from dx_core.orders.services import OrderService
from dx_core.orders.state_machine import OrderStateMachine
from dx_core.orders.workflow import workflow_definition
from dx_core.results.api.serializers import ResultRecordSerializer, ResultSubmitSerializer
from dx_core.results.selectors import result_history
from dx_core.results.services import ResultEngine
from dx_core.samples.api.serializers import (
    CustodyAppendSerializer,
    CustodyEntrySerializer,
    SampleCollectSerializer,
    SampleRecordSerializer,
)
from dx_core.samples.selectors import custody_log
from dx_core.samples.services import SampleLedger


class DiagnosticOrderViewSet(viewsets.GenericViewSet):
    """
    Thin API layer:
    - idempotency caching on writes
    - serializer validation (shape only; business rules live in the services)
    - delegates writes to the state machine / sub-components, reads to selectors
    """
    permission_classes = [DiagnosticOrderPermission]

    serializer_class = DiagnosticOrderSerializer
    lookup_value_regex = "[0-9a-fA-F-]{36}"
    filterset_class = DiagnosticOrderFilter
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter, filters.SearchFilter]
    ordering_fields = ["created_at", "updated_at", "urgency", "state"]
    search_fields = ["accession_number", "patient_ref", "lab_details__test_name", "imaging_details__body_part"]

    def get_queryset(self):
        return list_orders()

    def _actor(self, request):
        return actor_from_user(request.user)

    def _idempotent(self, request, produce: Callable[[], dict], status_code: int) -> Response:
        """
        Replays the stored response when the same Idempotency-Key is reused
        by the same user on the same endpoint.
        """
        idem = get_key(request)
        if idem:
            cached = load_response(request.user.id, request.method, request.path, idem)
            if cached is not None:
                return Response(cached, status=status_code)

        out = produce()

        if idem:
            save_response(request.user.id, request.method, request.path, idem, out, status_code)

        return Response(out, status=status_code)

    def _order_out(self, request, order_id) -> dict:
        # re-read so nested sample/result/approval are current
        return DiagnosticOrderSerializer(get_order(order_id=order_id), context={"request": request}).data

    # ----------------------------
    # Reads
    # ----------------------------
    @extend_schema(tags=["Orders"], responses={200: DiagnosticOrderSerializer(many=True)})
    def list(self, request):
        qs = self.filter_queryset(self.get_queryset())
        return paginate(request, qs, DiagnosticOrderSerializer)

    @extend_schema(tags=["Orders"], responses={200: DiagnosticOrderSerializer})
    def retrieve(self, request, pk=None):
        return Response(self._order_out(request, pk), status=status.HTTP_200_OK)

    @extend_schema(tags=["Orders"], responses={200: OrderStatsSerializer})
    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(OrderStatsSerializer(order_state_counts()).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Orders"], responses={200: dict})
    @action(detail=False, methods=["get"], url_path="workflow")
    def workflow(self, request):
        return Response(workflow_definition(), status=status.HTTP_200_OK)

    @extend_schema(tags=["Orders"], responses={200: AuditEntrySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="audit")
    def audit(self, request, pk=None):
        order = get_order(order_id=pk)
        return paginate(request, order_audit_trail(order_id=order.id), AuditEntrySerializer, paginator=AuditTrailPagination())

    @extend_schema(tags=["Results"], responses={200: ResultRecordSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="results")
    def results(self, request, pk=None):
        order = get_order(order_id=pk)
        return Response(ResultRecordSerializer(result_history(order_id=order.id), many=True).data)

    # ----------------------------
    # Writes
    # ----------------------------
    @extend_schema(tags=["Orders"], request=OrderCreateSerializer, responses={201: DiagnosticOrderSerializer})
    def create(self, request):
        ser = OrderCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        def produce():
            order = OrderService.create_order(
                kind=data["kind"],
                patient_ref=data["patient_ref"],
                ordering_clinician_ref=data.get("ordering_clinician_ref") or self._actor(request).ref,
                urgency=data.get("urgency"),
                details=dict(data["details"]),
            )
            return self._order_out(request, order.id)

        return self._idempotent(request, produce, status.HTTP_201_CREATED)

    @extend_schema(tags=["Orders"], request=TransitionRequestSerializer, responses={200: DiagnosticOrderSerializer})
    @action(detail=True, methods=["post"], url_path="transition")
    def transition(self, request, pk=None):
        ser = TransitionRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        def produce():
            order = OrderStateMachine.request_transition(
                order_id=pk,
                transition=ser.validated_data["transition"],
                actor=self._actor(request),
                payload=ser.validated_data.get("payload"),
            )
            return self._order_out(request, order.id)

        return self._idempotent(request, produce, status.HTTP_200_OK)

    @extend_schema(tags=["Samples"], request=SampleCollectSerializer, responses={201: SampleRecordSerializer})
    @action(detail=True, methods=["post"], url_path="collect-sample")
    def collect_sample(self, request, pk=None):
        ser = SampleCollectSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        def produce():
            sample = SampleLedger.collect_sample(
                order_id=pk,
                sample_input=dict(ser.validated_data),
                actor=self._actor(request),
            )
            return SampleRecordSerializer(sample).data

        return self._idempotent(request, produce, status.HTTP_201_CREATED)

    @extend_schema(tags=["Samples"], responses={200: CustodyEntrySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="custody")
    def custody(self, request, pk=None):
        order = get_order(order_id=pk)
        return Response(CustodyEntrySerializer(custody_log(order_id=order.id), many=True).data)

    @extend_schema(tags=["Samples"], request=CustodyAppendSerializer, responses={201: CustodyEntrySerializer})
    @custody.mapping.post
    def append_custody(self, request, pk=None):
        ser = CustodyAppendSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        def produce():
            entry = SampleLedger.append_custody(
                order_id=pk,
                note=ser.validated_data["note"],
                location=ser.validated_data.get("location"),
                actor=self._actor(request),
            )
            return CustodyEntrySerializer(entry).data

        return self._idempotent(request, produce, status.HTTP_201_CREATED)

    @extend_schema(tags=["Results"], request=ResultSubmitSerializer, responses={201: ResultRecordSerializer})
    @action(detail=True, methods=["post"], url_path="submit-result")
    def submit_result(self, request, pk=None):
        ser = ResultSubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        payload = dict(ser.validated_data)
        if "measurements" in payload:
            payload["measurements"] = [dict(m) for m in payload["measurements"]]

        def produce():
            record = ResultEngine.submit_result(order_id=pk, result_input=payload, actor=self._actor(request))
            return ResultRecordSerializer(record).data

        return self._idempotent(request, produce, status.HTTP_201_CREATED)

    @extend_schema(tags=["Approvals"], request=DecisionSerializer, responses={200: ApprovalRecordSerializer})
    @action(detail=True, methods=["post"], url_path="decide")
    def decide(self, request, pk=None):
        ser = DecisionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        def produce():
            record = ApprovalGate.decide(
                order_id=pk,
                decision=ser.validated_data["decision"],
                comments=ser.validated_data.get("comments"),
                actor=self._actor(request),
            )
            return ApprovalRecordSerializer(record).data

        return self._idempotent(request, produce, status.HTTP_200_OK)

    @extend_schema(tags=["Audit"], request=NoteSerializer, responses={201: AuditEntrySerializer})
    @action(detail=True, methods=["post"], url_path="notes")
    def notes(self, request, pk=None):
        ser = NoteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        def produce():
            entry = OrderStateMachine.add_note(
                order_id=pk,
                note=ser.validated_data["note"],
                actor=self._actor(request),
            )
            return AuditEntrySerializer(entry).data

        return self._idempotent(request, produce, status.HTTP_201_CREATED)
