# dx_core/audit/api/serializers.py
from rest_framework import serializers

from dx_core.audit.models import AuditEntry


class AuditEntrySerializer(serializers.ModelSerializer):
    # API field "timestamp" maps to the model field "occurred_at"
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)
    order_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = AuditEntry
        fields = [
            "id",
            "order_id",
            "sequence",
            "timestamp",
            "actor_ref",
            "from_state",
            "to_state",
            "transition",
            "note",
            "metadata",
        ]
        read_only_fields = fields
