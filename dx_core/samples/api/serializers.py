# dx_core/samples/api/serializers.py
from rest_framework import serializers

from dx_core.samples.models import CustodyEntry, SampleCondition, SampleRecord


class CustodyEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = CustodyEntry
        fields = ["id", "sequence", "actor_ref", "recorded_at", "note", "location"]
        read_only_fields = fields


class SampleRecordSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = SampleRecord
        fields = [
            "id",
            "order_id",
            "barcode",
            "barcode_derived",
            "is_active",
            "condition",
            "location",
            "collected_by",
            "collected_at",
        ]
        read_only_fields = fields


class SampleCollectSerializer(serializers.Serializer):
    barcode = serializers.CharField(max_length=64, required=False, allow_blank=True)
    condition = serializers.ChoiceField(choices=SampleCondition.choices, required=False)
    location = serializers.CharField(max_length=128, required=False, allow_blank=True)
    collected_at = serializers.DateTimeField(required=False)
    note = serializers.CharField(required=False, allow_blank=True)


class CustodyAppendSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=255)
    location = serializers.CharField(max_length=128, required=False, allow_blank=True)
