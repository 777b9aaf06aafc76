# dx_core/approvals/api/serializers.py
from rest_framework import serializers

from dx_core.approvals.models import ApprovalDecision, ApprovalRecord


class ApprovalRecordSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)
    result_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = ApprovalRecord
        fields = ["id", "order_id", "result_id", "decision", "decided_by", "decided_at", "comments"]
        read_only_fields = fields


class DecisionSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=ApprovalDecision.choices)
    comments = serializers.CharField(required=False, allow_blank=True, default="")
