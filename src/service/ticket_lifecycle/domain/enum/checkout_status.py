from enum import StrEnum


class CheckoutStatus(StrEnum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'


CHECKOUT_TRANSITIONS: dict[CheckoutStatus, frozenset[CheckoutStatus]] = {
    CheckoutStatus.PENDING: frozenset(
        {CheckoutStatus.COMPLETED, CheckoutStatus.CANCELLED, CheckoutStatus.EXPIRED}
    ),
    CheckoutStatus.COMPLETED: frozenset(),
    CheckoutStatus.CANCELLED: frozenset(),
    CheckoutStatus.EXPIRED: frozenset(),
}
