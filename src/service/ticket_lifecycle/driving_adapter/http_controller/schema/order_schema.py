from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.service.ticket_lifecycle.app.dto.lifecycle_results import (
    AppliedPayment,
    OrderDetail,
    PaymentInitiation,
    PurchaseResult,
)
from src.service.ticket_lifecycle.app.dto.page import Page
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.ticket_schema import (
    TicketResponse,
)


class ApplyPaymentRequest(BaseModel):
    amount_paid: Decimal = Field(gt=0)
    payment_method: str = Field(min_length=1)
    gateway_response: Optional[dict[str, Any]] = None

    model_config = {
        'json_schema_extra': {
            'example': {
                'amount_paid': '50.00',
                'payment_method': 'stripe',
                'gateway_response': {'payment_intent_id': 'pi_123'},
            }
        }
    }


class CancelOrderRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class InitiatePaymentRequest(BaseModel):
    payment_method: str = Field(min_length=1)
    order_id: Optional[UUID] = None
    checkout_id: Optional[UUID] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)


class PaymentResponse(BaseModel):
    id: UUID
    reference_number: str
    gateway: str
    payment_method: str
    amount: Decimal
    refunded_amount: Decimal
    currency: str
    status: str
    created_at: datetime
    order_id: Optional[UUID] = None
    checkout_id: Optional[UUID] = None
    completed_at: Optional[datetime] = None
    is_refund: bool = False

    @classmethod
    def from_entity(cls, payment: Payment) -> 'PaymentResponse':
        return cls(
            id=payment.id,
            reference_number=payment.reference_number,
            gateway=payment.gateway.value,
            payment_method=payment.payment_method,
            amount=payment.amount,
            refunded_amount=payment.refunded_amount,
            currency=payment.currency,
            status=payment.status.value,
            created_at=payment.created_at,
            order_id=payment.order_id,
            checkout_id=payment.checkout_id,
            completed_at=payment.completed_at,
            is_refund=payment.is_credit,
        )


class PaymentInitiationResponse(BaseModel):
    payment: PaymentResponse
    client_payload: dict[str, Any] = {}

    @classmethod
    def from_result(cls, result: PaymentInitiation) -> 'PaymentInitiationResponse':
        return cls(
            payment=PaymentResponse.from_entity(result.payment),
            client_payload=result.client_payload,
        )


class OrderResponse(BaseModel):
    id: UUID
    user_id: UUID
    status: str
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    refunded_amount: Decimal
    currency: str
    created_at: datetime
    checkout_id: Optional[UUID] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def from_entity(cls, order: Order) -> 'OrderResponse':
        return cls(
            id=order.id,
            user_id=order.user_id,
            status=order.status.value,
            total_amount=order.total_amount,
            amount_paid=order.amount_paid,
            balance_due=order.balance_due,
            refunded_amount=order.refunded_amount,
            currency=order.currency,
            created_at=order.created_at,
            checkout_id=order.checkout_id,
            confirmed_at=order.confirmed_at,
            cancelled_at=order.cancelled_at,
            cancellation_reason=order.cancellation_reason,
        )


class OrderDetailResponse(OrderResponse):
    tickets: List[TicketResponse] = []
    payments: List[PaymentResponse] = []

    @classmethod
    def from_detail(cls, detail: OrderDetail) -> 'OrderDetailResponse':
        return cls(
            **OrderResponse.from_entity(detail.order).model_dump(),
            tickets=[TicketResponse.from_entity(t) for t in detail.tickets],
            payments=[PaymentResponse.from_entity(p) for p in detail.payments],
        )


class OrderListResponse(BaseModel):
    items: List[OrderResponse]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def from_page(cls, page: Page[Order]) -> 'OrderListResponse':
        return cls(
            items=[OrderResponse.from_entity(o) for o in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
            pages=page.pages,
        )


class AppliedPaymentResponse(BaseModel):
    order: OrderResponse
    payment: PaymentResponse
    applied: Decimal
    confirmed_ticket_ids: List[UUID] = []

    @classmethod
    def from_result(cls, result: AppliedPayment) -> 'AppliedPaymentResponse':
        return cls(
            order=OrderResponse.from_entity(result.order),
            payment=PaymentResponse.from_entity(result.payment),
            applied=result.applied,
            confirmed_ticket_ids=[t.id for t in result.confirmed_tickets],
        )


class PurchaseResponse(BaseModel):
    order: OrderResponse
    tickets: List[TicketResponse]
    reservation_id: UUID
    reserved_until: datetime

    @classmethod
    def from_result(cls, result: PurchaseResult) -> 'PurchaseResponse':
        return cls(
            order=OrderResponse.from_entity(result.order),
            tickets=[TicketResponse.from_entity(t) for t in result.tickets],
            reservation_id=result.reservation.id,
            reserved_until=result.reservation.expires_at,
        )
