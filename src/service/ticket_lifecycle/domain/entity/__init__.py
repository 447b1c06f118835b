"""Ticket Lifecycle Domain Entities"""

from src.service.ticket_lifecycle.domain.entity.audit_log_entity import AuditLog
from src.service.ticket_lifecycle.domain.entity.cart_entity import Cart, CartItem
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout, CheckoutLine
from src.service.ticket_lifecycle.domain.entity.event_entity import (
    Event,
    EventSession,
    PricingTier,
    Seat,
)
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer

__all__ = [
    'AuditLog',
    'Cart',
    'CartItem',
    'Checkout',
    'CheckoutLine',
    'Event',
    'EventSession',
    'Order',
    'Payment',
    'PricingTier',
    'Reservation',
    'Seat',
    'Ticket',
    'TicketRefund',
    'TicketTransfer',
]
