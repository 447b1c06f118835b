"""
Unit tests for Money and line pricing

Pricing rule: total = (unit_price + service_fee) * quantity + gateway_fee,
with unit_price = base * type multiplier and service_fee = 10% of unit_price.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from uuid_utils.compat import uuid7

from src.platform.exception.exceptions import ValidationError
from src.service.ticket_lifecycle.domain.entity.event_entity import EventSession
from src.service.ticket_lifecycle.domain.enum.ticket_format import TicketType
from src.service.ticket_lifecycle.domain.pricing_domain import (
    quote_line,
    resolve_base_price,
    single_currency,
    total_of,
)
from src.service.ticket_lifecycle.domain.value_object.money import (
    CurrencyMismatchError,
    Money,
    to_cents,
)
from test.service.ticket_lifecycle.lifecycle_factories import make_event, make_tier


NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestMoney:
    def test_amounts_are_rounded_half_even_to_cents(self) -> None:
        assert Money(Decimal('10.005'), 'usd').amount == Decimal('10.00')
        assert Money(Decimal('10.015'), 'USD').amount == Decimal('10.02')
        assert to_cents(0.1) == Decimal('0.10')

    def test_currency_code_is_normalized(self) -> None:
        assert Money(Decimal('1'), ' eur ').currency == 'EUR'

    def test_invalid_currency_code_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            Money(Decimal('1'), 'DOLLAR')

    def test_arithmetic_across_currencies_is_a_type_error(self) -> None:
        with pytest.raises(CurrencyMismatchError):
            Money(Decimal('1'), 'USD') + Money(Decimal('1'), 'EUR')
        with pytest.raises(TypeError):
            _ = Money(Decimal('1'), 'USD') < Money(Decimal('2'), 'GBP')

    def test_multiplying_by_a_float_is_rejected(self) -> None:
        with pytest.raises(TypeError):
            Money(Decimal('1'), 'USD') * 1.5  # type: ignore[operator]

    def test_percent_and_zero(self) -> None:
        price = Money(Decimal('100.00'), 'USD')
        assert price.percent(Decimal('0.10')) == Money(Decimal('10.00'), 'USD')
        assert Money.zero('USD').is_zero
        assert price.is_positive


@pytest.mark.unit
class TestQuoteLine:
    def test_tier_price_with_service_fee(self) -> None:
        """
        Given: a tier priced at 100.00 USD
        When: quoting two general tickets
        Then: unit 100.00, fee 10.00, total 220.00
        """
        event = make_event(now=NOW)
        tier = make_tier(event=event, base_price='100.00')

        quote = quote_line(event=event, quantity=2, tier=tier)

        assert quote.unit_price == Money(Decimal('100.00'), 'USD')
        assert quote.service_fee == Money(Decimal('10.00'), 'USD')
        assert quote.unit_total == Money(Decimal('110.00'), 'USD')
        assert quote.total == Money(Decimal('220.00'), 'USD')

    @pytest.mark.parametrize(
        ('ticket_type', 'expected_unit'),
        [
            (TicketType.GENERAL, '50.00'),
            (TicketType.VIP, '100.00'),
            (TicketType.PREMIUM, '75.00'),
        ],
    )
    def test_ticket_type_multiplier(self, ticket_type: TicketType, expected_unit: str) -> None:
        event = make_event(now=NOW, base_price='50.00')

        quote = quote_line(event=event, quantity=1, ticket_type=ticket_type)

        assert quote.unit_price.amount == Decimal(expected_unit)

    def test_session_override_beats_tier_and_event_price(self) -> None:
        event = make_event(now=NOW, base_price='50.00')
        tier = make_tier(event=event, base_price='80.00')
        session = EventSession(
            id=uuid7(),
            event_id=event.id,
            name='Matinee',
            capacity=20,
            available_seats=20,
            start_time=event.start_date,
            base_price_override=Decimal('30.00'),
        )

        assert resolve_base_price(event=event, tier=tier, session=session) == Decimal('30.00')
        assert resolve_base_price(event=event, tier=tier) == Decimal('80.00')
        assert resolve_base_price(event=event) == Decimal('50.00')

    def test_gateway_fee_is_added_once(self) -> None:
        event = make_event(now=NOW, base_price='100.00')

        quote = quote_line(
            event=event, quantity=3, gateway_fee=Money(Decimal('2.50'), 'USD')
        )

        assert quote.total.amount == Decimal('332.50')

    def test_gateway_fee_in_another_currency_is_rejected(self) -> None:
        event = make_event(now=NOW)

        with pytest.raises(ValidationError):
            quote_line(event=event, quantity=1, gateway_fee=Money(Decimal('1'), 'EUR'))

    def test_non_positive_quantity_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            quote_line(event=make_event(now=NOW), quantity=0)

    def test_totals_are_summed_in_one_currency(self) -> None:
        event = make_event(now=NOW, base_price='10.00')
        quotes = [quote_line(event=event, quantity=1), quote_line(event=event, quantity=2)]

        assert total_of(quotes, currency='USD').amount == Decimal('33.00')

    def test_mixed_currencies_are_rejected(self) -> None:
        assert single_currency(['USD', 'USD']) == 'USD'
        with pytest.raises(ValidationError):
            single_currency(['USD', 'EUR'])
        with pytest.raises(ValidationError):
            single_currency([])
