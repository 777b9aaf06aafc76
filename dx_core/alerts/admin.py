from django.contrib import admin

from dx_core.alerts.models import EscalationTicket


@admin.register(EscalationTicket)
class EscalationTicketAdmin(admin.ModelAdmin):
    list_display = ("order", "priority", "ordering_clinician_ref", "raised_at", "acknowledged_at", "acknowledged_by")
    list_filter = ("priority",)
    search_fields = ("order__accession_number", "patient_ref", "ordering_clinician_ref")
    ordering = ("-raised_at",)
