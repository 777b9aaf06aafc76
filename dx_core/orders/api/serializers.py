# dx_core/orders/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from dx_core.approvals.api.serializers import ApprovalRecordSerializer
from dx_core.common.permissions import actor_from_user
from dx_core.orders.models import (
    DiagnosticOrder,
    ImagingModality,
    ImagingOrderDetails,
    LabOrderDetails,
    OrderKind,
    OrderUrgency,
)
from dx_core.orders.workflow import TRANSITION_TABLE, allowed_transitions
from dx_core.results.api.serializers import ResultRecordSerializer
from dx_core.samples.api.serializers import SampleRecordSerializer


class LabOrderDetailsSerializer(serializers.ModelSerializer):
    class Meta:
        model = LabOrderDetails
        fields = ["test_name", "test_category", "sample_type", "normal_range"]


class ImagingOrderDetailsSerializer(serializers.ModelSerializer):
    class Meta:
        model = ImagingOrderDetails
        fields = ["modality", "body_part", "contrast"]


class DiagnosticOrderSerializer(serializers.ModelSerializer):
    details = serializers.SerializerMethodField()
    sample = serializers.SerializerMethodField()
    result = ResultRecordSerializer(source="active_result", read_only=True, allow_null=True)
    approval = ApprovalRecordSerializer(read_only=True, allow_null=True)
    allowed_transitions = serializers.SerializerMethodField()

    class Meta:
        model = DiagnosticOrder
        fields = [
            "id",
            "accession_number",
            "kind",
            "patient_ref",
            "ordering_clinician_ref",
            "state",
            "urgency",
            "is_critical",
            "details",
            "sample",
            "result",
            "approval",
            "version",
            "allowed_transitions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_details(self, obj) -> dict | None:
        details = obj.details
        if details is None:
            return None
        if obj.kind == OrderKind.LAB:
            return LabOrderDetailsSerializer(details).data
        return ImagingOrderDetailsSerializer(details).data

    def get_sample(self, obj) -> dict | None:
        sample = getattr(obj, "sample", None)
        return None if sample is None else SampleRecordSerializer(sample).data

    def get_allowed_transitions(self, obj) -> list[str]:
        request = self.context.get("request")
        user = getattr(request, "user", None)
        actor = actor_from_user(user) if user is not None and user.is_authenticated else None
        return allowed_transitions(obj.state, obj.kind, actor)


class OrderDetailsInputSerializer(serializers.Serializer):
    # LAB
    test_name = serializers.CharField(max_length=128, required=False)
    test_category = serializers.CharField(max_length=64, required=False, allow_blank=True)
    sample_type = serializers.CharField(max_length=64, required=False, allow_blank=True)
    normal_range = serializers.CharField(max_length=64, required=False, allow_blank=True)
    # IMAGING
    modality = serializers.ChoiceField(choices=ImagingModality.choices, required=False)
    body_part = serializers.CharField(max_length=128, required=False)
    contrast = serializers.BooleanField(required=False)


class OrderCreateSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=OrderKind.choices)
    patient_ref = serializers.CharField(max_length=128)
    ordering_clinician_ref = serializers.CharField(max_length=128, required=False)
    urgency = serializers.ChoiceField(choices=OrderUrgency.choices, required=False, default=OrderUrgency.ROUTINE)
    details = OrderDetailsInputSerializer()


class TransitionRequestSerializer(serializers.Serializer):
    transition = serializers.ChoiceField(choices=sorted(TRANSITION_TABLE))
    payload = serializers.JSONField(required=False, allow_null=True)


class NoteSerializer(serializers.Serializer):
    note = serializers.CharField()


class OrderStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    by_state = serializers.DictField(child=serializers.IntegerField())
    by_kind = serializers.DictField(child=serializers.IntegerField())
    critical_open = serializers.IntegerField()
    avg_turnaround_hours = serializers.DictField(child=serializers.FloatField(allow_null=True))
