# dx_core/common/exceptions.py
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """
    Business-rule failure raised by services.

    Services never format responses: the API layer reads `code`, `http_status`
    and `retryable` to build the error envelope.
    """

    code = "domain_error"
    http_status = 409
    retryable = False
    default_message = "Request violates a business rule."

    def __init__(self, message: str | None = None, *, details: Any = None):
        super().__init__(message or self.default_message)
        self.details = details

    @property
    def message(self) -> str:
        return str(self)
