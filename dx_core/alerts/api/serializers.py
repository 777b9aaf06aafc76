from rest_framework import serializers

from dx_core.alerts.models import EscalationTicket


class EscalationTicketSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)
    result_id = serializers.UUIDField(read_only=True, allow_null=True)
    accession_number = serializers.CharField(source="order.accession_number", read_only=True)
    is_acknowledged = serializers.BooleanField(read_only=True)

    class Meta:
        model = EscalationTicket
        fields = [
            "id",
            "order_id",
            "accession_number",
            "result_id",
            "patient_ref",
            "ordering_clinician_ref",
            "priority",
            "critical_details",
            "raised_at",
            "is_acknowledged",
            "acknowledged_at",
            "acknowledged_by",
        ]
        read_only_fields = fields
