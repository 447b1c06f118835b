from enum import StrEnum


class OrderStatus(StrEnum):
    RESERVED = 'reserved'
    PARTIALLY_PAID = 'partially_paid'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    REFUNDED = 'refunded'


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.RESERVED: frozenset(
        {OrderStatus.PARTIALLY_PAID, OrderStatus.CONFIRMED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PARTIALLY_PAID: frozenset(
        {OrderStatus.PARTIALLY_PAID, OrderStatus.CONFIRMED, OrderStatus.CANCELLED}
    ),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.REFUNDED, OrderStatus.CANCELLED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}
