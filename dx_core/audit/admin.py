# dx_core/audit/admin.py
from django.contrib import admin

from dx_core.audit.models import AuditEntry


@admin.register(AuditEntry)
class AuditEntryAdmin(admin.ModelAdmin):
    list_display = (
        "order",
        "sequence",
        "transition",
        "from_state",
        "to_state",
        "actor_ref",
        "occurred_at",
    )
    list_filter = ("transition", "to_state")
    search_fields = ("order__accession_number", "actor_ref", "transition")
    readonly_fields = [f.name for f in AuditEntry._meta.fields]
    ordering = ("-occurred_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
