from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import ExpiredError
from src.service.ticket_lifecycle.domain.enum.checkout_status import (
    CHECKOUT_TRANSITIONS,
    CheckoutStatus,
)
from src.service.ticket_lifecycle.domain.enum.transition import ensure_transition
from src.service.ticket_lifecycle.domain.value_object.billing_info import BillingInfo
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine
from src.service.ticket_lifecycle.domain.value_object.price_quote import PriceQuote


@attrs.frozen
class CheckoutLine:
    """Cart line frozen at initiation together with its price."""

    line: InventoryLine
    quote: PriceQuote

    def to_dict(self) -> dict[str, Any]:
        return {'line': self.line.to_dict(), 'quote': self.quote.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'CheckoutLine':
        return cls(
            line=InventoryLine.from_dict(data['line']),
            quote=PriceQuote.from_dict(data['quote']),
        )


@attrs.define
class Checkout:
    id: UUID
    user_id: UUID
    payment_method: str
    lines: list[CheckoutLine]
    total_amount: Decimal
    currency: str
    created_at: datetime
    expires_at: datetime
    billing_info: Optional[BillingInfo] = None
    cart_id: Optional[UUID] = None
    status: CheckoutStatus = CheckoutStatus.PENDING
    reservation_ids: list[UUID] = attrs.field(factory=list)
    payment_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def initiate(
        cls,
        *,
        id: UUID,
        user_id: UUID,
        cart_id: Optional[UUID],
        payment_method: str,
        billing_info: Optional[BillingInfo],
        lines: list[CheckoutLine],
        currency: str,
        now: datetime,
        ttl: timedelta,
    ) -> 'Checkout':
        total = sum((cl.quote.total.amount for cl in lines), Decimal('0.00'))
        return cls(
            id=id,
            user_id=user_id,
            cart_id=cart_id,
            payment_method=payment_method,
            billing_info=billing_info,
            lines=lines,
            total_amount=total,
            currency=currency,
            created_at=now,
            expires_at=now + ttl,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def ensure_completable(self, now: datetime) -> None:
        ensure_transition(
            self.status, CheckoutStatus.COMPLETED, CHECKOUT_TRANSITIONS, resource='Checkout'
        )
        if self.is_expired(now):
            raise ExpiredError('Checkout has expired')

    def complete(self, *, order_id: UUID, payment_id: Optional[UUID], now: datetime) -> 'Checkout':
        self.ensure_completable(now)
        return attrs.evolve(
            self,
            status=CheckoutStatus.COMPLETED,
            order_id=order_id,
            payment_id=payment_id,
            completed_at=now,
        )

    def cancel(self, *, now: datetime) -> 'Checkout':
        ensure_transition(
            self.status, CheckoutStatus.CANCELLED, CHECKOUT_TRANSITIONS, resource='Checkout'
        )
        return attrs.evolve(self, status=CheckoutStatus.CANCELLED, cancelled_at=now)

    def expire(self, *, now: datetime) -> 'Checkout':
        ensure_transition(
            self.status, CheckoutStatus.EXPIRED, CHECKOUT_TRANSITIONS, resource='Checkout'
        )
        return attrs.evolve(self, status=CheckoutStatus.EXPIRED, cancelled_at=now)
