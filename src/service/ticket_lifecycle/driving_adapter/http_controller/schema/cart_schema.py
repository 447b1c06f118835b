from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.service.ticket_lifecycle.app.dto.lifecycle_results import CartView
from src.service.ticket_lifecycle.domain.entity.cart_entity import Cart
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)


class AddCartItemRequest(BaseModel):
    event_id: UUID
    quantity: int = Field(gt=0)
    tier_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    seat_ids: List[UUID] = []
    ticket_type: TicketType = TicketType.GENERAL
    ticket_format: TicketFormat = TicketFormat.DIGITAL
    credential_format: CredentialFormat = CredentialFormat.QR_CODE

    model_config = {
        'json_schema_extra': {
            'example': {
                'event_id': '01936d8f-5e73-7c4e-a9c5-123456789abc',
                'quantity': 2,
                'ticket_type': 'general',
            }
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(gt=0)


class CartItemResponse(BaseModel):
    id: UUID
    event_id: UUID
    quantity: int
    tier_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    seat_ids: List[UUID] = []
    ticket_type: str
    added_at: datetime
    unit_price: Optional[Decimal] = None
    service_fee: Optional[Decimal] = None
    line_total: Optional[Decimal] = None


class CartResponse(BaseModel):
    id: Optional[UUID] = None
    status: Optional[str] = None
    currency: Optional[str] = None
    expires_at: Optional[datetime] = None
    items: List[CartItemResponse] = []
    total: Decimal = Decimal('0.00')

    @classmethod
    def from_entity(cls, cart: Cart) -> 'CartResponse':
        return cls.from_view(CartView(cart=cart))

    @classmethod
    def from_view(cls, view: CartView) -> 'CartResponse':
        cart = view.cart
        if cart is None:
            return cls()
        quotes = view.quotes or [None] * len(cart.items)
        return cls(
            id=cart.id,
            status=cart.status.value,
            currency=cart.currency,
            expires_at=cart.expires_at,
            items=[
                CartItemResponse(
                    id=item.id,
                    event_id=item.line.event_id,
                    quantity=item.line.quantity,
                    tier_id=item.line.tier_id,
                    session_id=item.line.session_id,
                    seat_ids=list(item.line.seat_ids),
                    ticket_type=item.line.ticket_type.value,
                    added_at=item.added_at,
                    unit_price=quote.unit_price.amount if quote else None,
                    service_fee=quote.service_fee.amount if quote else None,
                    line_total=quote.total.amount if quote else None,
                )
                for item, quote in zip(cart.items, quotes)
            ],
            total=view.total,
        )
