from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import ConflictingStateError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.domain.enum.order_status import ORDER_TRANSITIONS, OrderStatus
from src.service.ticket_lifecycle.domain.enum.transition import ensure_transition
from src.service.ticket_lifecycle.domain.value_object.billing_info import BillingInfo
from src.service.ticket_lifecycle.domain.value_object.money import to_cents


def derive_status(*, total_amount: Decimal, amount_paid: Decimal) -> OrderStatus:
    if amount_paid <= 0:
        return OrderStatus.RESERVED
    if amount_paid >= total_amount:
        return OrderStatus.CONFIRMED
    return OrderStatus.PARTIALLY_PAID


@attrs.define
class Order:
    """
    Persistent record of a purchase; owns its tickets

    ``amount_paid + balance_due == total_amount`` holds for every instance.
    Refunds are tracked in ``refunded_amount`` and never reduce ``amount_paid``.
    """

    id: UUID
    user_id: UUID
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    currency: str
    status: OrderStatus
    created_at: datetime
    checkout_id: Optional[UUID] = None
    billing_info: Optional[BillingInfo] = None
    metadata: dict[str, Any] = attrs.field(factory=dict)
    refunded_amount: Decimal = Decimal('0.00')
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def open(
        cls,
        *,
        id: UUID,
        user_id: UUID,
        total_amount: Decimal,
        amount_paid: Decimal,
        currency: str,
        now: datetime,
        checkout_id: Optional[UUID] = None,
        billing_info: Optional[BillingInfo] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> 'Order':
        total = to_cents(total_amount)
        paid = min(to_cents(amount_paid), total)
        if paid < 0:
            raise ValidationError('amount_paid cannot be negative', field='amount_paid')
        status = derive_status(total_amount=total, amount_paid=paid)
        return cls(
            id=id,
            user_id=user_id,
            checkout_id=checkout_id,
            total_amount=total,
            amount_paid=paid,
            balance_due=total - paid,
            currency=currency,
            status=status,
            billing_info=billing_info,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
            confirmed_at=now if status == OrderStatus.CONFIRMED else None,
        )

    @property
    def reservation_ids(self) -> list[UUID]:
        return [UUID(r) for r in self.metadata.get('reservation_ids', [])]

    @property
    def is_fully_paid(self) -> bool:
        return self.balance_due == 0

    @Logger.io
    def apply_payment(self, *, amount: Decimal, now: datetime) -> tuple['Order', Decimal]:
        """
        Apply a verified payment, clamped to the balance due

        Returns:
            The updated order and the amount actually applied
        """
        amount = to_cents(amount)
        if amount <= 0:
            raise ValidationError('amount_paid must be greater than zero', field='amount_paid')
        if self.status == OrderStatus.CONFIRMED or (
            self.status in (OrderStatus.RESERVED, OrderStatus.PARTIALLY_PAID) and self.is_fully_paid
        ):
            raise ConflictingStateError(
                'Order is already fully paid', current_state=str(self.status)
            )
        if self.status not in (OrderStatus.RESERVED, OrderStatus.PARTIALLY_PAID):
            raise ConflictingStateError(
                f'Order is {self.status}, payments cannot be applied',
                current_state=str(self.status),
            )

        applied = min(amount, self.balance_due)
        paid = self.amount_paid + applied
        status = derive_status(total_amount=self.total_amount, amount_paid=paid)
        ensure_transition(self.status, status, ORDER_TRANSITIONS, resource='Order')
        order = attrs.evolve(
            self,
            amount_paid=paid,
            balance_due=self.total_amount - paid,
            status=status,
            updated_at=now,
            confirmed_at=now if status == OrderStatus.CONFIRMED else self.confirmed_at,
        )
        return order, applied

    @Logger.io
    def cancel(self, *, reason: Optional[str], now: datetime) -> 'Order':
        ensure_transition(self.status, OrderStatus.CANCELLED, ORDER_TRANSITIONS, resource='Order')
        return attrs.evolve(
            self,
            status=OrderStatus.CANCELLED,
            cancellation_reason=reason,
            cancelled_at=now,
            updated_at=now,
        )

    def record_refund(self, *, amount: Decimal, fully_refunded: bool, now: datetime) -> 'Order':
        refunded = self.refunded_amount + to_cents(amount)
        if refunded > self.amount_paid:
            raise ValidationError('Refunds exceed the amount paid', field='refund_amount')
        status = self.status
        if fully_refunded:
            ensure_transition(
                self.status, OrderStatus.REFUNDED, ORDER_TRANSITIONS, resource='Order'
            )
            status = OrderStatus.REFUNDED
        return attrs.evolve(self, refunded_amount=refunded, status=status, updated_at=now)

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount_paid - self.refunded_amount

    def drop_line_amount(self, *, amount: Decimal, now: datetime) -> 'Order':
        """Remove a cancelled ticket's price from an order nothing has been paid on yet."""
        if self.status != OrderStatus.RESERVED:
            raise ConflictingStateError(
                f'Order is {self.status}, cancel the whole order instead',
                current_state=str(self.status),
            )
        total = self.total_amount - to_cents(amount)
        return attrs.evolve(
            self, total_amount=total, balance_due=total - self.amount_paid, updated_at=now
        )
