from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.service.ticket_lifecycle.app.dto.lifecycle_results import (
    CheckoutCompletion,
    CheckoutInitiation,
)
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout
from src.service.ticket_lifecycle.domain.value_object.billing_info import BillingInfo


class BillingInfoSchema(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    address_line: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    def to_value(self) -> BillingInfo:
        return BillingInfo(**self.model_dump())


class InitiateCheckoutRequest(BaseModel):
    payment_method: str = Field(min_length=1)
    billing_info: Optional[BillingInfoSchema] = None

    model_config = {
        'json_schema_extra': {
            'example': {
                'payment_method': 'stripe',
                'billing_info': {'name': 'Ada Lovelace', 'email': 'ada@example.com'},
            }
        }
    }


class CompleteCheckoutRequest(BaseModel):
    checkout_id: UUID
    payment_intent_id: Optional[str] = None
    stripe_token: Optional[str] = None
    payment_method: Optional[str] = None
    amount_paid: Optional[Decimal] = Field(default=None, gt=0)
    verification_payload: Optional[dict[str, Any]] = None


class CheckoutLineResponse(BaseModel):
    event_id: UUID
    quantity: int
    tier_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    seat_ids: List[UUID] = []
    ticket_type: str
    unit_price: Decimal
    service_fee: Decimal
    gateway_fee: Decimal
    total: Decimal


class CheckoutResponse(BaseModel):
    id: UUID
    status: str
    payment_method: str
    total_amount: Decimal
    currency: str
    expires_at: datetime
    created_at: datetime
    lines: List[CheckoutLineResponse]
    reservation_ids: List[UUID] = []
    payment_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, checkout: Checkout) -> 'CheckoutResponse':
        return cls(
            id=checkout.id,
            status=checkout.status.value,
            payment_method=checkout.payment_method,
            total_amount=checkout.total_amount,
            currency=checkout.currency,
            expires_at=checkout.expires_at,
            created_at=checkout.created_at,
            lines=[
                CheckoutLineResponse(
                    event_id=cl.line.event_id,
                    quantity=cl.line.quantity,
                    tier_id=cl.line.tier_id,
                    session_id=cl.line.session_id,
                    seat_ids=list(cl.line.seat_ids),
                    ticket_type=cl.line.ticket_type.value,
                    unit_price=cl.quote.unit_price.amount,
                    service_fee=cl.quote.service_fee.amount,
                    gateway_fee=cl.quote.gateway_fee.amount,
                    total=cl.quote.total.amount,
                )
                for cl in checkout.lines
            ],
            reservation_ids=list(checkout.reservation_ids),
            payment_id=checkout.payment_id,
            order_id=checkout.order_id,
            completed_at=checkout.completed_at,
        )


class CheckoutInitiationResponse(BaseModel):
    checkout: CheckoutResponse
    reserved_until: Optional[datetime] = None

    @classmethod
    def from_result(cls, result: CheckoutInitiation) -> 'CheckoutInitiationResponse':
        return cls(
            checkout=CheckoutResponse.from_entity(result.checkout),
            reserved_until=min((r.expires_at for r in result.reservations), default=None),
        )


class CheckoutCompletionResponse(BaseModel):
    checkout_id: UUID
    checkout_status: str
    order_id: UUID
    order_status: str
    amount_paid: Decimal
    balance_due: Decimal
    payment_id: UUID
    payment_reference: str
    ticket_ids: List[UUID]

    @classmethod
    def from_result(cls, result: CheckoutCompletion) -> 'CheckoutCompletionResponse':
        return cls(
            checkout_id=result.checkout.id,
            checkout_status=result.checkout.status.value,
            order_id=result.order.id,
            order_status=result.order.status.value,
            amount_paid=result.order.amount_paid,
            balance_due=result.order.balance_due,
            payment_id=result.payment.id,
            payment_reference=result.payment.reference_number,
            ticket_ids=[t.id for t in result.tickets],
        )
