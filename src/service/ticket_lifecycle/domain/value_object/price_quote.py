from decimal import Decimal
from typing import Any

import attrs

from src.service.ticket_lifecycle.domain.value_object.money import Money


@attrs.frozen
class PriceQuote:
    """Priced line: ``total = (unit_price + service_fee) * quantity + gateway_fee``."""

    unit_price: Money
    service_fee: Money
    gateway_fee: Money
    quantity: int
    total: Money

    @property
    def currency(self) -> str:
        return self.total.currency

    @property
    def unit_total(self) -> Money:
        return self.unit_price + self.service_fee

    def to_dict(self) -> dict[str, Any]:
        return {
            'unit_price': str(self.unit_price.amount),
            'service_fee': str(self.service_fee.amount),
            'gateway_fee': str(self.gateway_fee.amount),
            'quantity': self.quantity,
            'total': str(self.total.amount),
            'currency': self.currency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'PriceQuote':
        currency = data['currency']
        return cls(
            unit_price=Money(amount=Decimal(data['unit_price']), currency=currency),
            service_fee=Money(amount=Decimal(data['service_fee']), currency=currency),
            gateway_fee=Money(amount=Decimal(data['gateway_fee']), currency=currency),
            quantity=int(data['quantity']),
            total=Money(amount=Decimal(data['total']), currency=currency),
        )
