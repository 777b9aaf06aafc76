from django.contrib import admin

from dx_core.orders.models import DiagnosticOrder, ImagingOrderDetails, LabOrderDetails


class LabOrderDetailsInline(admin.StackedInline):
    model = LabOrderDetails
    extra = 0
    can_delete = False


class ImagingOrderDetailsInline(admin.StackedInline):
    model = ImagingOrderDetails
    extra = 0
    can_delete = False


@admin.register(DiagnosticOrder)
class DiagnosticOrderAdmin(admin.ModelAdmin):
    list_display = ("accession_number", "kind", "state", "urgency", "is_critical", "patient_ref", "created_at")
    list_filter = ("kind", "state", "urgency", "is_critical")
    search_fields = ("accession_number", "patient_ref", "ordering_clinician_ref")
    ordering = ("-created_at",)
    inlines = [LabOrderDetailsInline, ImagingOrderDetailsInline]

    # state and pointers move only through the state machine
    readonly_fields = ("state", "is_critical", "active_result", "approval", "version")
