from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

import attrs

from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if attrs.has(type(value)):
        return _jsonable(attrs.asdict(value, recurse=False))
    return value


_OMITTED_FIELDS = frozenset(
    {
        'qr_code_data',
        'nfc_data',
        'rfid_data',
        'barcode_data',
        'stream_access_token',
        'transfer_code',
    }
)


def snapshot(entity: Any, *fields: str) -> Optional[dict[str, Any]]:
    """JSON-safe copy of an entity for before/after blobs; credentials never leave the ticket."""
    if entity is None:
        return None
    data = attrs.asdict(entity, recurse=False)
    if fields:
        data = {k: data[k] for k in fields}
    return _jsonable({k: v for k, v in data.items() if k not in _OMITTED_FIELDS})


@attrs.define(frozen=True)
class AuditEntry:
    action: AuditAction
    resource_kind: ResourceKind
    resource_id: UUID
    actor_id: Optional[UUID] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    metadata: dict[str, Any] = attrs.field(factory=dict, converter=_jsonable)
    suspicious: bool = False
