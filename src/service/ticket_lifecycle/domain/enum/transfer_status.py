from enum import StrEnum


class TransferStatus(StrEnum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    DECLINED = 'declined'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'


TRANSFER_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset(
        {
            TransferStatus.ACCEPTED,
            TransferStatus.DECLINED,
            TransferStatus.EXPIRED,
            TransferStatus.CANCELLED,
        }
    ),
    TransferStatus.ACCEPTED: frozenset(),
    TransferStatus.DECLINED: frozenset(),
    TransferStatus.EXPIRED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}
