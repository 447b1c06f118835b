"""Composite results returned by use cases to the driving adapters."""

from decimal import Decimal
from typing import Any, Optional

import attrs

from src.service.ticket_lifecycle.domain.entity.cart_entity import Cart
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer
from src.service.ticket_lifecycle.domain.value_object.price_quote import PriceQuote


@attrs.define(frozen=True)
class CartView:
    cart: Optional[Cart]
    quotes: list[PriceQuote] = attrs.field(factory=list)
    total: Decimal = Decimal('0.00')
    currency: Optional[str] = None


@attrs.define(frozen=True)
class CheckoutInitiation:
    checkout: Checkout
    reservations: list[Reservation] = attrs.field(factory=list)


@attrs.define(frozen=True)
class OrderDetail:
    order: Order
    tickets: list[Ticket] = attrs.field(factory=list)
    payments: list[Payment] = attrs.field(factory=list)


@attrs.define(frozen=True)
class PurchaseResult:
    order: Order
    tickets: list[Ticket]
    reservation: Reservation


@attrs.define(frozen=True)
class PaymentInitiation:
    payment: Payment
    client_payload: dict[str, Any] = attrs.field(factory=dict)


@attrs.define(frozen=True)
class ValidationOutcome:
    ticket: Ticket
    validation_method: str


@attrs.define(frozen=True)
class RefundStats:
    pending: int
    processing: int
    approved: int
    rejected: int
    approved_total: Decimal


@attrs.define(frozen=True)
class ReservationSweepResult:
    released: list[Reservation] = attrs.field(factory=list)
    cancelled_orders: list[Order] = attrs.field(factory=list)


@attrs.define(frozen=True)
class AppliedPayment:
    order_before: Order
    order: Order
    payment: Payment
    applied: Decimal
    confirmed_tickets: list[Ticket] = attrs.field(factory=list)
    confirmed_reservations: list[Reservation] = attrs.field(factory=list)


@attrs.define(frozen=True)
class CheckoutCompletion:
    checkout: Checkout
    order: Order
    payment: Payment
    tickets: list[Ticket] = attrs.field(factory=list)
    reservations: list[Reservation] = attrs.field(factory=list)
    checkout_before: Optional[Checkout] = None
    payment_before: Optional[Payment] = None


@attrs.define(frozen=True)
class TicketCancellation:
    ticket: Ticket
    order: Order


@attrs.define(frozen=True)
class TransferAcceptance:
    transfer: TicketTransfer
    ticket: Ticket


@attrs.define(frozen=True)
class RefundDecision:
    refund: TicketRefund
    ticket: Ticket
    order: Order
    credit: Optional[Payment] = None
    credits: list[Payment] = attrs.field(factory=list)
