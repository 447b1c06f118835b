from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import ConflictingStateError, ExpiredError
from src.service.ticket_lifecycle.domain.enum.reservation_status import (
    RESERVATION_TRANSITIONS,
    ReservationStatus,
)
from src.service.ticket_lifecycle.domain.enum.transition import ensure_transition
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine


@attrs.define
class Reservation:
    id: UUID
    user_id: UUID
    event_id: UUID
    quantity: int
    created_at: datetime
    expires_at: datetime
    tier_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    seat_ids: list[UUID] = attrs.field(factory=list)
    status: ReservationStatus = ReservationStatus.HELD
    checkout_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    payment_id: Optional[UUID] = None
    confirmed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    release_reason: Optional[str] = None

    @classmethod
    def hold(
        cls,
        *,
        id: UUID,
        user_id: UUID,
        line: InventoryLine,
        now: datetime,
        ttl: timedelta,
        checkout_id: Optional[UUID] = None,
    ) -> 'Reservation':
        return cls(
            id=id,
            user_id=user_id,
            event_id=line.event_id,
            quantity=line.quantity,
            tier_id=line.tier_id,
            session_id=line.session_id,
            seat_ids=list(line.seat_ids),
            created_at=now,
            expires_at=now + ttl,
            checkout_id=checkout_id,
        )

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.HELD

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def confirm(self, *, payment_id: Optional[UUID], now: datetime) -> 'Reservation':
        ensure_transition(
            self.status,
            ReservationStatus.CONFIRMED,
            RESERVATION_TRANSITIONS,
            resource='Reservation',
        )
        if self.is_expired(now):
            raise ExpiredError('Reservation has expired')
        return attrs.evolve(
            self, status=ReservationStatus.CONFIRMED, payment_id=payment_id, confirmed_at=now
        )

    def release(self, *, reason: str, now: datetime) -> 'Reservation':
        ensure_transition(
            self.status, ReservationStatus.RELEASED, RESERVATION_TRANSITIONS, resource='Reservation'
        )
        return attrs.evolve(
            self, status=ReservationStatus.RELEASED, released_at=now, release_reason=reason
        )

    def shrink(self, *, by: int, now: datetime) -> 'Reservation':
        """Give back part of a held reservation; releasing the last unit releases it."""
        if by >= self.quantity:
            return self.release(reason='cancelled', now=now)
        if not self.is_active:
            raise ConflictingStateError(
                f'Reservation is {self.status}', current_state=str(self.status)
            )
        return attrs.evolve(self, quantity=self.quantity - by)
