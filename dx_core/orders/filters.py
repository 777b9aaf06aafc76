# dx_core/orders/filters.py
import django_filters as df

from dx_core.orders.models import DiagnosticOrder, OrderKind, OrderState, OrderUrgency


class DiagnosticOrderFilter(df.FilterSet):
    kind = df.ChoiceFilter(choices=OrderKind.choices)
    state = df.MultipleChoiceFilter(choices=OrderState.choices)
    urgency = df.ChoiceFilter(choices=OrderUrgency.choices)
    is_critical = df.BooleanFilter()
    patient_ref = df.CharFilter(field_name="patient_ref")
    ordering_clinician_ref = df.CharFilter(field_name="ordering_clinician_ref")
    accession_number = df.CharFilter(field_name="accession_number", lookup_expr="icontains")
    barcode = df.CharFilter(field_name="sample__barcode", lookup_expr="iexact")
    created = df.DateFromToRangeFilter(field_name="created_at")

    class Meta:
        model = DiagnosticOrder
        fields = [
            "kind",
            "state",
            "urgency",
            "is_critical",
            "patient_ref",
            "ordering_clinician_ref",
            "accession_number",
            "barcode",
            "created",
        ]
