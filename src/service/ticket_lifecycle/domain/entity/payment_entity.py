from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import attrs

from src.service.ticket_lifecycle.domain.enum.payment_status import (
    PAYMENT_TRANSITIONS,
    PaymentGateway,
    PaymentStatus,
)
from src.service.ticket_lifecycle.domain.enum.transition import ensure_transition
from src.service.ticket_lifecycle.domain.value_object.money import to_cents


@attrs.define
class Payment:
    """
    Money movement against an order

    A refund credit is a separate Payment with a negative amount, linked to the
    payment it reverses through ``metadata['refund_of']``.
    """

    id: UUID
    user_id: UUID
    gateway: PaymentGateway
    payment_method: str
    reference_number: str
    amount: Decimal
    currency: str
    created_at: datetime
    status: PaymentStatus = PaymentStatus.PENDING
    order_id: Optional[UUID] = None
    checkout_id: Optional[UUID] = None
    gateway_transaction_id: Optional[str] = None
    gateway_response: dict[str, Any] = attrs.field(factory=dict)
    refunded_amount: Decimal = Decimal('0.00')
    metadata: dict[str, Any] = attrs.field(factory=dict)
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_credit(self) -> bool:
        return self.amount < 0

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount - self.refunded_amount

    def _move(self, target: PaymentStatus) -> None:
        ensure_transition(self.status, target, PAYMENT_TRANSITIONS, resource='Payment')

    def complete(
        self,
        *,
        transaction_id: Optional[str],
        gateway_response: dict[str, Any],
        now: datetime,
        order_id: Optional[UUID] = None,
    ) -> 'Payment':
        self._move(PaymentStatus.COMPLETED)
        return attrs.evolve(
            self,
            status=PaymentStatus.COMPLETED,
            gateway_transaction_id=transaction_id,
            gateway_response=gateway_response,
            order_id=order_id or self.order_id,
            completed_at=now,
            updated_at=now,
        )

    def fail(
        self, *, reason: str, now: datetime, gateway_response: dict[str, Any] | None = None
    ) -> 'Payment':
        self._move(PaymentStatus.FAILED)
        return attrs.evolve(
            self,
            status=PaymentStatus.FAILED,
            gateway_response=gateway_response or self.gateway_response,
            metadata={**self.metadata, 'failure_reason': reason},
            updated_at=now,
        )

    def record_refund(self, *, amount: Decimal, now: datetime) -> 'Payment':
        refunded = self.refunded_amount + to_cents(amount)
        target = (
            PaymentStatus.REFUNDED if refunded >= self.amount else PaymentStatus.PARTIALLY_REFUNDED
        )
        self._move(target)
        return attrs.evolve(self, refunded_amount=refunded, status=target, updated_at=now)

    def claim_for_reconciliation(self, *, reason: str, now: datetime) -> 'Payment':
        """Take a pending payment out of every payment path before its money is returned."""
        self._move(PaymentStatus.RECONCILING)
        return attrs.evolve(
            self,
            status=PaymentStatus.RECONCILING,
            metadata={**self.metadata, 'reconcile_reason': reason},
            updated_at=now,
        )

    def mark_reconciled(
        self, *, transaction_id: Optional[str], refund_id: Optional[str], now: datetime
    ) -> 'Payment':
        """Gateway captured money that was never applied; it has been returned."""
        self._move(PaymentStatus.REFUNDED)
        return attrs.evolve(
            self,
            status=PaymentStatus.REFUNDED,
            gateway_transaction_id=transaction_id,
            refunded_amount=self.amount,
            metadata={**self.metadata, 'reconciled_refund_id': refund_id},
            updated_at=now,
        )

    def flag_for_review(self, *, reason: str, now: datetime) -> 'Payment':
        return attrs.evolve(
            self,
            metadata={**self.metadata, 'needs_manual_review': True, 'review_reason': reason},
            updated_at=now,
        )
