from enum import StrEnum


class PaymentStatus(StrEnum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'
    PARTIALLY_REFUNDED = 'partially_refunded'
    RECONCILING = 'reconciling'


PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.RECONCILING}
    ),
    # claimed by the reconciler; only it may move the payment on
    PaymentStatus.RECONCILING: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.COMPLETED: frozenset(
        {PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED}
    ),
    PaymentStatus.PARTIALLY_REFUNDED: frozenset(
        {PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED}
    ),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


class PaymentGateway(StrEnum):
    STRIPE = 'stripe'
    PAYPAL = 'paypal'
    ZIM_GATEWAY = 'zim_gateway'
    OTHER = 'other'  # offline: cash, bank transfer, counter sales

    @classmethod
    def for_method(cls, payment_method: str) -> 'PaymentGateway':
        method = (payment_method or '').strip().lower()
        if method in ('stripe', 'card', 'credit_card', 'debit_card'):
            return cls.STRIPE
        if method == 'paypal':
            return cls.PAYPAL
        if method in ('zim', 'zim_gateway'):
            return cls.ZIM_GATEWAY
        return cls.OTHER
