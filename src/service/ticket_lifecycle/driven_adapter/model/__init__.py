"""
Database Models

Import all models here to ensure they are registered with SQLAlchemy
"""

from src.service.ticket_lifecycle.driven_adapter.model.audit_log_model import AuditLogModel
from src.service.ticket_lifecycle.driven_adapter.model.cart_model import CartItemModel, CartModel
from src.service.ticket_lifecycle.driven_adapter.model.checkout_model import CheckoutModel
from src.service.ticket_lifecycle.driven_adapter.model.event_model import (
    EventModel,
    EventSessionModel,
    PricingTierModel,
    SeatModel,
)
from src.service.ticket_lifecycle.driven_adapter.model.order_model import OrderModel
from src.service.ticket_lifecycle.driven_adapter.model.payment_model import PaymentModel
from src.service.ticket_lifecycle.driven_adapter.model.refund_model import TicketRefundModel
from src.service.ticket_lifecycle.driven_adapter.model.reservation_model import ReservationModel
from src.service.ticket_lifecycle.driven_adapter.model.ticket_model import TicketModel
from src.service.ticket_lifecycle.driven_adapter.model.transfer_model import TicketTransferModel

__all__ = [
    'AuditLogModel',
    'CartItemModel',
    'CartModel',
    'CheckoutModel',
    'EventModel',
    'EventSessionModel',
    'OrderModel',
    'PaymentModel',
    'PricingTierModel',
    'ReservationModel',
    'SeatModel',
    'TicketModel',
    'TicketRefundModel',
    'TicketTransferModel',
]
