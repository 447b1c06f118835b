from typing import Any, Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import ValidationError
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)


@attrs.frozen
class InventoryLine:
    """
    One requested line of capacity.

    Exactly one inventory scope applies: explicit seats (which belong to a tier),
    a session, a tier, or the event-level pool when none is given.
    """

    event_id: UUID
    quantity: int
    tier_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    seat_ids: tuple[UUID, ...] = attrs.field(default=(), converter=tuple)
    ticket_type: TicketType = TicketType.GENERAL
    ticket_format: TicketFormat = TicketFormat.DIGITAL
    credential_format: CredentialFormat = CredentialFormat.QR_CODE

    def __attrs_post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValidationError('quantity must be positive', field='quantity')
        if self.seat_ids and len(self.seat_ids) != self.quantity:
            raise ValidationError('quantity must match the number of seats', field='seat_ids')
        if len(set(self.seat_ids)) != len(self.seat_ids):
            raise ValidationError('duplicate seats in request', field='seat_ids')
        if self.seat_ids and self.session_id is not None:
            raise ValidationError('seats cannot be combined with a session', field='session_id')

    def to_dict(self) -> dict[str, Any]:
        return {
            'event_id': str(self.event_id),
            'quantity': self.quantity,
            'tier_id': str(self.tier_id) if self.tier_id else None,
            'session_id': str(self.session_id) if self.session_id else None,
            'seat_ids': [str(s) for s in self.seat_ids],
            'ticket_type': str(self.ticket_type),
            'ticket_format': str(self.ticket_format),
            'credential_format': str(self.credential_format),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'InventoryLine':
        return cls(
            event_id=UUID(data['event_id']),
            quantity=int(data['quantity']),
            tier_id=UUID(data['tier_id']) if data.get('tier_id') else None,
            session_id=UUID(data['session_id']) if data.get('session_id') else None,
            seat_ids=tuple(UUID(s) for s in data.get('seat_ids') or ()),
            ticket_type=TicketType(data.get('ticket_type', TicketType.GENERAL)),
            ticket_format=TicketFormat(data.get('ticket_format', TicketFormat.DIGITAL)),
            credential_format=CredentialFormat(
                data.get('credential_format', CredentialFormat.QR_CODE)
            ),
        )
