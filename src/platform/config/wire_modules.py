"""
Wire Modules Configuration

Defines the modules that need dependency injection wiring.
Shared between production and test environments.
"""

from types import ModuleType

from src.service.ticket_lifecycle.app.command import (
    apply_order_payment_use_case,
    cancel_checkout_use_case,
    cancel_order_use_case,
    cancel_ticket_use_case,
    cart_item_use_case,
    complete_checkout_use_case,
    expire_checkouts_use_case,
    initiate_checkout_use_case,
    initiate_payment_use_case,
    purchase_tickets_use_case,
    release_expired_reservations_use_case,
    ticket_refund_use_case,
    ticket_transfer_use_case,
    validate_ticket_use_case,
)
from src.service.ticket_lifecycle.app.query import (
    audit_query_use_case,
    cart_query_use_case,
    ticket_query_use_case,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth import role_auth


WIRE_MODULES: list[ModuleType] = [
    cart_item_use_case,
    initiate_checkout_use_case,
    complete_checkout_use_case,
    cancel_checkout_use_case,
    expire_checkouts_use_case,
    purchase_tickets_use_case,
    initiate_payment_use_case,
    apply_order_payment_use_case,
    cancel_order_use_case,
    cancel_ticket_use_case,
    validate_ticket_use_case,
    ticket_transfer_use_case,
    ticket_refund_use_case,
    release_expired_reservations_use_case,
    cart_query_use_case,
    ticket_query_use_case,
    audit_query_use_case,
    role_auth,
]
