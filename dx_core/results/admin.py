from django.contrib import admin

from dx_core.results.models import ResultRecord


@admin.register(ResultRecord)
class ResultRecordAdmin(admin.ModelAdmin):
    list_display = ("order", "version", "is_critical", "performed_by", "verified_by", "submitted_at")
    list_filter = ("is_critical",)
    search_fields = ("order__accession_number", "performed_by", "verified_by")
    readonly_fields = ("submitted_at", "critical_reasons")
    ordering = ("-submitted_at",)
