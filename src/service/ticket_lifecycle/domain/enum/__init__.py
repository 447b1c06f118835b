"""Ticket Lifecycle Domain Enums"""

from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.cart_status import CartStatus
from src.service.ticket_lifecycle.domain.enum.checkout_status import (
    CHECKOUT_TRANSITIONS,
    CheckoutStatus,
)
from src.service.ticket_lifecycle.domain.enum.event_status import EventStatus
from src.service.ticket_lifecycle.domain.enum.inventory_scope import InventoryScope
from src.service.ticket_lifecycle.domain.enum.order_status import ORDER_TRANSITIONS, OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import (
    PAYMENT_TRANSITIONS,
    PaymentGateway,
    PaymentStatus,
)
from src.service.ticket_lifecycle.domain.enum.refund_status import REFUND_TRANSITIONS, RefundStatus
from src.service.ticket_lifecycle.domain.enum.reservation_status import (
    RESERVATION_TRANSITIONS,
    ReservationStatus,
)
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)
from src.service.ticket_lifecycle.domain.enum.ticket_status import TICKET_TRANSITIONS, TicketStatus
from src.service.ticket_lifecycle.domain.enum.transfer_status import (
    TRANSFER_TRANSITIONS,
    TransferStatus,
)

__all__ = [
    'AuditAction',
    'CHECKOUT_TRANSITIONS',
    'CartStatus',
    'CheckoutStatus',
    'CredentialFormat',
    'EventStatus',
    'InventoryScope',
    'ORDER_TRANSITIONS',
    'OrderStatus',
    'PAYMENT_TRANSITIONS',
    'PaymentGateway',
    'PaymentStatus',
    'REFUND_TRANSITIONS',
    'RESERVATION_TRANSITIONS',
    'RefundStatus',
    'ReservationStatus',
    'ResourceKind',
    'SeatStatus',
    'TICKET_TRANSITIONS',
    'TRANSFER_TRANSITIONS',
    'TicketFormat',
    'TicketStatus',
    'TicketType',
    'TransferStatus',
]
