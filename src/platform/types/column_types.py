"""
Portable SQLAlchemy column types

The same models run on PostgreSQL (production) and SQLite (tests), so the
dialect-specific parts live here:

- UtcDateTime: always hands back timezone-aware UTC datetimes. SQLite drops
  tzinfo on the way out; comparing that against an aware ``now`` raises.
- MoneyNumeric: NUMERIC(12, 2) (exact text on SQLite), always read back as a
  Decimal quantized to cents.
- JsonDocument: JSONB on PostgreSQL, JSON elsewhere.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any

from sqlalchemy import JSON, DateTime, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator


CENT = Decimal('0.01')


class UtcDateTime(TypeDecorator):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f'Naive datetime is not allowed: {value!r}')
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class MoneyNumeric(TypeDecorator):
    impl = Numeric(12, 2)
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> Any:
        # SQLite has no fixed-point type; keep the exact decimal text instead of a float
        if dialect.name == 'sqlite':
            return dialect.type_descriptor(String(32))
        return dialect.type_descriptor(Numeric(12, 2))

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        quantized = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_EVEN)
        return str(quantized) if dialect.name == 'sqlite' else quantized

    def process_result_value(self, value: Any, dialect: Dialect) -> Decimal | None:
        if value is None:
            return None
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_EVEN)


JsonDocument = JSON().with_variant(JSONB(), 'postgresql')
