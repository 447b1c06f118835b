from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import ExpiredError, ForbiddenError, ValidationError
from src.service.ticket_lifecycle.domain.enum.transfer_status import (
    TRANSFER_TRANSITIONS,
    TransferStatus,
)
from src.service.ticket_lifecycle.domain.enum.transition import ensure_transition


@attrs.define
class TicketTransfer:
    id: UUID
    ticket_id: UUID
    from_user_id: UUID
    transfer_code: str
    requested_at: datetime
    expires_at: datetime
    to_user_id: Optional[UUID] = None
    to_email: Optional[str] = None
    message: Optional[str] = None
    status: TransferStatus = TransferStatus.PENDING
    accepted_by: Optional[UUID] = None
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def initiate(
        cls,
        *,
        id: UUID,
        ticket_id: UUID,
        from_user_id: UUID,
        to_user_id: Optional[UUID],
        to_email: Optional[str],
        transfer_code: str,
        message: Optional[str],
        now: datetime,
        ttl: timedelta,
    ) -> 'TicketTransfer':
        if to_user_id is None and not to_email:
            raise ValidationError('Either to_user_id or to_email is required', field='to_user_id')
        if to_user_id is not None and to_user_id == from_user_id:
            raise ValidationError('Cannot transfer a ticket to yourself', field='to_user_id')
        return cls(
            id=id,
            ticket_id=ticket_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            to_email=to_email,
            transfer_code=transfer_code,
            message=message,
            requested_at=now,
            expires_at=now + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_accepted_by(self, user_id: UUID) -> bool:
        return self.status == TransferStatus.ACCEPTED and self.accepted_by == user_id

    def ensure_acceptable_by(
        self, *, user_id: UUID, transfer_code: Optional[str], now: datetime
    ) -> None:
        if self.to_user_id is not None:
            if self.to_user_id != user_id:
                raise ForbiddenError('This transfer is addressed to another user')
        elif user_id == self.from_user_id:
            raise ForbiddenError('The sender cannot accept their own transfer')
        elif transfer_code != self.transfer_code:
            raise ForbiddenError('A valid transfer code is required')
        ensure_transition(
            self.status, TransferStatus.ACCEPTED, TRANSFER_TRANSITIONS, resource='Transfer'
        )
        if self.is_expired(now):
            raise ExpiredError('Transfer has expired')

    def accept(self, *, user_id: UUID, now: datetime) -> 'TicketTransfer':
        return attrs.evolve(
            self,
            status=TransferStatus.ACCEPTED,
            to_user_id=self.to_user_id or user_id,
            accepted_by=user_id,
            accepted_at=now,
        )

    def decline(self, *, user_id: UUID, now: datetime) -> 'TicketTransfer':
        if user_id not in (self.from_user_id, self.to_user_id):
            raise ForbiddenError('Only the sender or the recipient can decline a transfer')
        ensure_transition(
            self.status, TransferStatus.DECLINED, TRANSFER_TRANSITIONS, resource='Transfer'
        )
        return attrs.evolve(self, status=TransferStatus.DECLINED, declined_at=now)

    def cancel(self, *, user_id: UUID, now: datetime) -> 'TicketTransfer':
        if user_id != self.from_user_id:
            raise ForbiddenError('Only the sender can cancel a transfer')
        ensure_transition(
            self.status, TransferStatus.CANCELLED, TRANSFER_TRANSITIONS, resource='Transfer'
        )
        return attrs.evolve(self, status=TransferStatus.CANCELLED, cancelled_at=now)

    def expire(self) -> 'TicketTransfer':
        ensure_transition(
            self.status, TransferStatus.EXPIRED, TRANSFER_TRANSITIONS, resource='Transfer'
        )
        return attrs.evolve(self, status=TransferStatus.EXPIRED)
