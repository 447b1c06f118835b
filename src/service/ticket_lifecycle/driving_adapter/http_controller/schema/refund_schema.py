from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.service.ticket_lifecycle.app.dto.lifecycle_results import RefundStats
from src.service.ticket_lifecycle.app.dto.page import Page
from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund


class RequestRefundRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)
    refund_amount: Optional[Decimal] = Field(default=None, gt=0)


class RejectRefundRequest(BaseModel):
    rejection_reason: str = Field(min_length=1, max_length=1000)


class RefundResponse(BaseModel):
    id: UUID
    ticket_id: UUID
    order_id: UUID
    user_id: UUID
    original_amount: Decimal
    refund_amount: Decimal
    currency: str
    reason: str
    status: str
    requested_at: datetime
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    refund_payment_id: Optional[UUID] = None

    @classmethod
    def from_entity(cls, refund: TicketRefund) -> 'RefundResponse':
        return cls(
            id=refund.id,
            ticket_id=refund.ticket_id,
            order_id=refund.order_id,
            user_id=refund.user_id,
            original_amount=refund.original_amount,
            refund_amount=refund.refund_amount,
            currency=refund.currency,
            reason=refund.reason,
            status=refund.status.value,
            requested_at=refund.requested_at,
            approved_by=refund.approved_by,
            approved_at=refund.approved_at,
            rejected_by=refund.rejected_by,
            rejected_at=refund.rejected_at,
            rejection_reason=refund.rejection_reason,
            refund_payment_id=refund.refund_payment_id,
        )


class RefundListResponse(BaseModel):
    items: List[RefundResponse]
    total: int
    page: int
    limit: int

    @classmethod
    def from_page(cls, page: Page[TicketRefund]) -> 'RefundListResponse':
        return cls(
            items=[RefundResponse.from_entity(r) for r in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
        )


class RefundStatsResponse(BaseModel):
    pending: int
    processing: int
    approved: int
    rejected: int
    approved_total: Decimal

    @classmethod
    def from_stats(cls, stats: RefundStats) -> 'RefundStatsResponse':
        return cls(
            pending=stats.pending,
            processing=stats.processing,
            approved=stats.approved,
            rejected=stats.rejected,
            approved_total=stats.approved_total,
        )
