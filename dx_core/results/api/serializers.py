# dx_core/results/api/serializers.py
from rest_framework import serializers

from dx_core.results.models import ResultRecord


class ResultRecordSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = ResultRecord
        fields = [
            "id",
            "order_id",
            "version",
            "findings",
            "interpretation",
            "performed_by",
            "verified_by",
            "submitted_by",
            "submitted_at",
            "is_critical",
            "critical_details",
            "critical_reasons",
            "measurements",
            "result_document",
        ]
        read_only_fields = fields


class MeasurementSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=64)
    value = serializers.CharField(max_length=64)
    unit = serializers.CharField(max_length=32, required=False, allow_blank=True)
    normal_range = serializers.CharField(max_length=64, required=False, allow_blank=True)


class ResultSubmitSerializer(serializers.Serializer):
    # completeness is a domain rule (incomplete_result / incomplete_critical_report), not a 400 here
    findings = serializers.CharField(required=False, allow_blank=True)
    interpretation = serializers.CharField(required=False, allow_blank=True)
    performed_by = serializers.CharField(max_length=128, required=False, allow_blank=True)
    verified_by = serializers.CharField(max_length=128, required=False, allow_blank=True)
    is_critical = serializers.BooleanField(required=False, default=False)
    critical_details = serializers.CharField(required=False, allow_blank=True)
    measurements = MeasurementSerializer(many=True, required=False)
    result_document = serializers.CharField(max_length=512, required=False, allow_blank=True)
