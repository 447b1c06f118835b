from enum import StrEnum


class RefundStatus(StrEnum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    APPROVED = 'approved'
    REJECTED = 'rejected'


REFUND_TRANSITIONS: dict[RefundStatus, frozenset[RefundStatus]] = {
    RefundStatus.PENDING: frozenset({RefundStatus.PROCESSING, RefundStatus.REJECTED}),
    # processing: an approver holds the refund while the gateway returns the money
    RefundStatus.PROCESSING: frozenset({RefundStatus.APPROVED, RefundStatus.PENDING}),
    RefundStatus.APPROVED: frozenset(),
    RefundStatus.REJECTED: frozenset(),
}
