from django.contrib import admin

from dx_core.samples.models import CustodyEntry, SampleRecord


class CustodyEntryInline(admin.TabularInline):
    model = CustodyEntry
    extra = 0
    can_delete = False
    readonly_fields = ("sequence", "actor_ref", "recorded_at", "note", "location")


@admin.register(SampleRecord)
class SampleRecordAdmin(admin.ModelAdmin):
    list_display = ("barcode", "order", "condition", "is_active", "collected_by", "collected_at")
    list_filter = ("condition", "is_active")
    search_fields = ("barcode", "order__accession_number")
    inlines = [CustodyEntryInline]
