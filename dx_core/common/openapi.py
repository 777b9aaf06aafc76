# dx_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter


class DxAutoSchema(AutoSchema):
    """
    Adds the optional Idempotency-Key header to every write endpoint.
    """

    IDEMPOTENCY_HEADER = OpenApiParameter(
        name="Idempotency-Key",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.HEADER,
        required=False,
        description=(
            "Optional idempotency key for safely retrying POST requests. "
            "A repeated key returns the first response without re-running the transition."
        ),
    )

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])

        if self.method.upper() not in {"POST", "PUT", "PATCH"}:
            return params

        # don't duplicate if a specific endpoint decorator already declares it
        if not any(p.name.lower() == "idempotency-key" for p in params):
            params.append(self.IDEMPOTENCY_HEADER)

        return params
