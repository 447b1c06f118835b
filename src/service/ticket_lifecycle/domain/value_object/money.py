"""
Money value object

Fixed-point amounts with two fractional digits, rounded half-to-even.
Arithmetic and ordering between different currencies is a type error.
"""

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

import attrs


CENT = Decimal('0.01')


class CurrencyMismatchError(TypeError):
    def __init__(self, left: str, right: str) -> None:
        super().__init__(f'Cannot combine {left} with {right}')
        self.left = left
        self.right = right


def to_cents(value: Any) -> Decimal:
    """Quantize anything Decimal-compatible to cents; floats go through ``str`` first."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def _normalize_currency(value: str) -> str:
    code = (value or '').strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValueError(f'Invalid ISO-4217 currency code: {value!r}')
    return code


@attrs.frozen(order=False)
class Money:
    amount: Decimal = attrs.field(converter=to_cents)
    currency: str = attrs.field(converter=_normalize_currency)

    @classmethod
    def zero(cls, currency: str) -> 'Money':
        return cls(amount=Decimal('0'), currency=currency)

    def _check(self, other: 'Money') -> None:
        if not isinstance(other, Money):
            raise TypeError(f'Expected Money, got {type(other).__name__}')
        if other.currency != self.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: 'Money') -> 'Money':
        self._check(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __mul__(self, factor: int | Decimal) -> 'Money':
        if isinstance(factor, (float, Money)) or isinstance(factor, bool):
            raise TypeError('Money can only be multiplied by int or Decimal')
        return Money(amount=self.amount * Decimal(factor), currency=self.currency)

    __rmul__ = __mul__

    def __neg__(self) -> 'Money':
        return Money(amount=-self.amount, currency=self.currency)

    def __lt__(self, other: 'Money') -> bool:
        self._check(other)
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check(other)
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._check(other)
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._check(other)
        return self.amount >= other.amount

    def percent(self, rate: Decimal) -> 'Money':
        return Money(amount=self.amount * rate, currency=self.currency)

    def min(self, other: 'Money') -> 'Money':
        return self if self <= other else other

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    def __str__(self) -> str:
        return f'{self.amount} {self.currency}'
