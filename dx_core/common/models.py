# dx_core/common/models.py
from __future__ import annotations

import uuid

from django.core.exceptions import PermissionDenied
from django.db import models


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UUIDModel(TimeStampedModel):
    """
    UUID primary key + timestamps. Ids are opaque and never reused.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


class StateGuardedModel(UUIDModel):
    """
    Prevent direct modification of the workflow field outside the state machine.

    The state machine persists through queryset.update(), which never calls save(),
    so any save() that changes STATE_FIELD on an existing row is a bypass attempt.

    Escape hatch (data repair scripts only): save(_state_bypass=True).
    """

    STATE_FIELD = "state"

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        bypass = bool(kwargs.pop("_state_bypass", False))

        if not bypass and not self._state.adding:
            old = (
                self.__class__.objects.filter(pk=self.pk)
                .values_list(self.STATE_FIELD, flat=True)
                .first()
            )
            if old is not None and old != getattr(self, self.STATE_FIELD):
                raise PermissionDenied(
                    f"Direct modification of '{self.STATE_FIELD}' is forbidden. "
                    "Use the order state machine."
                )

        return super().save(*args, **kwargs)


# -------------------------------------------------------------------
# Durable idempotency
# -------------------------------------------------------------------

class IdempotencyRecord(TimeStampedModel):
    """
    Stores idempotent responses durably.

    Keyed by:
      (user_id, method, path, idempotency_key)

    This makes POST operations safe across multiple workers and restarts.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user_id = models.BigIntegerField(db_index=True)
    method = models.CharField(max_length=16, db_index=True)
    path = models.CharField(max_length=255, db_index=True)
    idempotency_key = models.CharField(max_length=255, db_index=True)

    status_code = models.PositiveIntegerField(default=200)
    response_data = models.JSONField(default=dict)

    class Meta:
        db_table = "common_idempotency_record"
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "method", "path", "idempotency_key"],
                name="uq_idempo_user_method_path_key",
            )
        ]

    def __str__(self) -> str:
        return f"{self.method} {self.path} {self.idempotency_key}"
