from django.contrib import admin

from dx_core.approvals.models import ApprovalRecord


@admin.register(ApprovalRecord)
class ApprovalRecordAdmin(admin.ModelAdmin):
    list_display = ("order", "result", "decision", "decided_by", "decided_at")
    list_filter = ("decision",)
    search_fields = ("order__accession_number", "decided_by")
    ordering = ("-decided_at",)
