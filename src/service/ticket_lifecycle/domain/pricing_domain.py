"""
Pricing rules

Pure functions: no I/O, no clock. The caller loads the event, tier and session
and supplies the gateway fee quoted by the payment adapter.
"""

from decimal import Decimal
from typing import Iterable, Optional

from src.platform.exception.exceptions import ValidationError
from src.service.ticket_lifecycle.domain.entity.event_entity import (
    Event,
    EventSession,
    PricingTier,
)
from src.service.ticket_lifecycle.domain.enum.ticket_format import TicketType
from src.service.ticket_lifecycle.domain.value_object.money import Money
from src.service.ticket_lifecycle.domain.value_object.price_quote import PriceQuote


TYPE_MULTIPLIERS: dict[TicketType, Decimal] = {
    TicketType.GENERAL: Decimal('1.0'),
    TicketType.VIP: Decimal('2.0'),
    TicketType.PREMIUM: Decimal('1.5'),
}

DEFAULT_SERVICE_FEE_RATE = Decimal('0.10')


def resolve_base_price(
    *,
    event: Event,
    tier: Optional[PricingTier] = None,
    session: Optional[EventSession] = None,
) -> Decimal:
    if session is not None and session.base_price_override is not None:
        return session.base_price_override
    if tier is not None:
        return tier.base_price
    return event.base_price


def quote_line(
    *,
    event: Event,
    quantity: int,
    ticket_type: TicketType = TicketType.GENERAL,
    tier: Optional[PricingTier] = None,
    session: Optional[EventSession] = None,
    gateway_fee: Optional[Money] = None,
    service_fee_rate: Decimal = DEFAULT_SERVICE_FEE_RATE,
) -> PriceQuote:
    if quantity <= 0:
        raise ValidationError('quantity must be positive', field='quantity')

    currency = event.currency
    base = resolve_base_price(event=event, tier=tier, session=session)
    if base < 0:
        raise ValidationError('base price cannot be negative', field='base_price')

    unit_price = Money(amount=base * TYPE_MULTIPLIERS[ticket_type], currency=currency)
    service_fee = unit_price.percent(service_fee_rate)
    fee = gateway_fee if gateway_fee is not None else Money.zero(currency)
    if fee.currency != currency:
        raise ValidationError(
            f'Gateway fee in {fee.currency} does not match event currency {currency}',
            field='currency',
        )
    total = (unit_price + service_fee) * quantity + fee
    return PriceQuote(
        unit_price=unit_price,
        service_fee=service_fee,
        gateway_fee=fee,
        quantity=quantity,
        total=total,
    )


def single_currency(currencies: Iterable[str]) -> str:
    """The one currency shared by all lines; mixed carts are rejected."""
    distinct = set(currencies)
    if not distinct:
        raise ValidationError('Cart is empty', field='items')
    if len(distinct) > 1:
        raise ValidationError(
            f'Mixed-currency carts are not supported: {", ".join(sorted(distinct))}',
            field='currency',
        )
    return distinct.pop()


def total_of(quotes: Iterable[PriceQuote], *, currency: str) -> Money:
    total = Money.zero(currency)
    for quote in quotes:
        total = total + quote.total
    return total
