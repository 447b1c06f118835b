from enum import StrEnum


class AuditAction(StrEnum):
    RESERVATION_HELD = 'RESERVATION_HELD'
    RESERVATION_CONFIRMED = 'RESERVATION_CONFIRMED'
    RESERVATION_RELEASED = 'RESERVATION_RELEASED'

    CART_ITEM_ADDED = 'CART_ITEM_ADDED'
    CART_ITEM_UPDATED = 'CART_ITEM_UPDATED'
    CART_ITEM_REMOVED = 'CART_ITEM_REMOVED'
    CART_CLEARED = 'CART_CLEARED'

    CHECKOUT_INITIATED = 'CHECKOUT_INITIATED'
    CHECKOUT_COMPLETED = 'CHECKOUT_COMPLETED'
    CHECKOUT_CANCELLED = 'CHECKOUT_CANCELLED'
    CHECKOUT_EXPIRED = 'CHECKOUT_EXPIRED'

    ORDER_RESERVED = 'ORDER_RESERVED'
    ORDER_CONFIRMED = 'ORDER_CONFIRMED'
    ORDER_PARTIALLY_PAID = 'ORDER_PARTIALLY_PAID'
    ORDER_CANCELLED = 'ORDER_CANCELLED'
    ORDER_REFUNDED = 'ORDER_REFUNDED'

    PAYMENT_INITIATED = 'PAYMENT_INITIATED'
    PAYMENT_COMPLETED = 'PAYMENT_COMPLETED'
    PAYMENT_FAILED = 'PAYMENT_FAILED'
    PAYMENT_RECONCILED = 'PAYMENT_RECONCILED'

    TICKET_ISSUED = 'TICKET_ISSUED'
    TICKET_CONFIRMED = 'TICKET_CONFIRMED'
    TICKET_CANCELLED = 'TICKET_CANCELLED'
    TICKET_VALIDATED = 'TICKET_VALIDATED'

    TRANSFER_INITIATED = 'TRANSFER_INITIATED'
    TRANSFER_ACCEPTED = 'TRANSFER_ACCEPTED'
    TRANSFER_DECLINED = 'TRANSFER_DECLINED'
    TRANSFER_CANCELLED = 'TRANSFER_CANCELLED'
    TRANSFER_EXPIRED = 'TRANSFER_EXPIRED'

    REQUEST_REFUND = 'REQUEST_REFUND'
    REFUND_APPROVED = 'REFUND_APPROVED'
    REFUND_REJECTED = 'REFUND_REJECTED'
    REFUND_NEEDS_REVIEW = 'REFUND_NEEDS_REVIEW'


class ResourceKind(StrEnum):
    RESERVATION = 'reservation'
    CART = 'cart'
    CHECKOUT = 'checkout'
    ORDER = 'order'
    PAYMENT = 'payment'
    TICKET = 'ticket'
    TRANSFER = 'ticket_transfer'
    REFUND = 'ticket_refund'
