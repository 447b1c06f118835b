from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import attrs

from src.service.ticket_lifecycle.domain.enum.refund_status import (
    REFUND_TRANSITIONS,
    RefundStatus,
)
from src.service.ticket_lifecycle.domain.enum.transition import ensure_transition


@attrs.define
class TicketRefund:
    id: UUID
    ticket_id: UUID
    order_id: UUID
    user_id: UUID
    original_amount: Decimal
    refund_amount: Decimal
    currency: str
    reason: str
    requested_at: datetime
    status: RefundStatus = RefundStatus.PENDING
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    gateway_refund_id: Optional[str] = None
    refund_payment_id: Optional[UUID] = None

    def ensure_pending(self) -> None:
        ensure_transition(
            self.status, RefundStatus.PROCESSING, REFUND_TRANSITIONS, resource='Refund'
        )

    def claim(self) -> 'TicketRefund':
        """Hold a pending refund for one approver while its money goes back."""
        self.ensure_pending()
        return attrs.evolve(self, status=RefundStatus.PROCESSING)

    def release_claim(self) -> 'TicketRefund':
        ensure_transition(
            self.status, RefundStatus.PENDING, REFUND_TRANSITIONS, resource='Refund'
        )
        return attrs.evolve(self, status=RefundStatus.PENDING)

    def approve(
        self,
        *,
        approver_id: UUID,
        gateway_refund_id: Optional[str],
        refund_payment_id: UUID,
        now: datetime,
    ) -> 'TicketRefund':
        ensure_transition(
            self.status, RefundStatus.APPROVED, REFUND_TRANSITIONS, resource='Refund'
        )
        return attrs.evolve(
            self,
            status=RefundStatus.APPROVED,
            approved_by=approver_id,
            approved_at=now,
            gateway_refund_id=gateway_refund_id,
            refund_payment_id=refund_payment_id,
        )

    def reject(self, *, rejector_id: UUID, reason: str, now: datetime) -> 'TicketRefund':
        ensure_transition(self.status, RefundStatus.REJECTED, REFUND_TRANSITIONS, resource='Refund')
        return attrs.evolve(
            self,
            status=RefundStatus.REJECTED,
            rejected_by=rejector_id,
            rejected_at=now,
            rejection_reason=reason,
        )
