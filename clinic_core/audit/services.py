# clinic_core/audit/services.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

from clinic_core.audit.models import AuditEvent


@dataclass(frozen=True)
class AuditRecord:
    event_code: str
    entity_type: str
    entity_id: UUID
    business_unit_id: UUID
    actor_user_id: int | None
    metadata: Dict[str, Any]


def _json_safe(metadata: Dict[str, Any]) -> Dict[str, Any]:
    # dates/times/decimals/UUIDs arrive from services; JSONField needs plain values
    encoder = DjangoJSONEncoder()
    out: Dict[str, Any] = {}
    for k, v in metadata.items():
        if v is None or isinstance(v, (str, int, float, bool, list, dict)):
            out[k] = v
        else:
            out[k] = encoder.default(v)
    return out


class AuditService:
    """
    Central audit writer. Persists into AuditEvent (immutable).
    """

    @staticmethod
    @transaction.atomic
    def log(
        *,
        event_code: str,
        entity_type: str,
        entity_id: UUID,
        business_unit_id: UUID,
        actor_user_id: int | None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        metadata = _json_safe(metadata or {})

        AuditEvent.objects.create(
            business_unit_id=business_unit_id,
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )

        return AuditRecord(
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            business_unit_id=business_unit_id,
            actor_user_id=actor_user_id,
            metadata=metadata,
        )
