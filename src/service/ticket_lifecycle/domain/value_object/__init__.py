"""Ticket Lifecycle Value Objects"""

from src.service.ticket_lifecycle.domain.value_object.billing_info import BillingInfo
from src.service.ticket_lifecycle.domain.value_object.gateway_result import (
    PaymentIntent,
    RefundResult,
    VerificationResult,
)
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine
from src.service.ticket_lifecycle.domain.value_object.issued_credential import IssuedCredential
from src.service.ticket_lifecycle.domain.value_object.money import (
    CENT,
    CurrencyMismatchError,
    Money,
    to_cents,
)
from src.service.ticket_lifecycle.domain.value_object.price_quote import PriceQuote


__all__ = [
    'BillingInfo',
    'CENT',
    'CurrencyMismatchError',
    'InventoryLine',
    'IssuedCredential',
    'Money',
    'PaymentIntent',
    'PriceQuote',
    'RefundResult',
    'VerificationResult',
    'to_cents',
]
