from enum import StrEnum


class TicketStatus(StrEnum):
    RESERVED = 'reserved'
    CONFIRMED = 'confirmed'
    USED = 'used'
    CANCELLED = 'cancelled'
    TRANSFERRED = 'transferred'
    REFUND_PENDING = 'refund_pending'
    REFUNDED = 'refunded'

    @property
    def is_terminal(self) -> bool:
        return self in (TicketStatus.USED, TicketStatus.REFUNDED, TicketStatus.CANCELLED)

    @property
    def is_live(self) -> bool:
        """Counts against capacity."""
        return self in (
            TicketStatus.RESERVED,
            TicketStatus.CONFIRMED,
            TicketStatus.USED,
            TicketStatus.REFUND_PENDING,
        )


TICKET_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.RESERVED: frozenset({TicketStatus.CONFIRMED, TicketStatus.CANCELLED}),
    TicketStatus.CONFIRMED: frozenset(
        {
            TicketStatus.USED,
            TicketStatus.CANCELLED,
            TicketStatus.TRANSFERRED,
            TicketStatus.REFUND_PENDING,
        }
    ),
    TicketStatus.REFUND_PENDING: frozenset({TicketStatus.REFUNDED, TicketStatus.CONFIRMED}),
    TicketStatus.TRANSFERRED: frozenset(),
    TicketStatus.USED: frozenset(),
    TicketStatus.CANCELLED: frozenset(),
    TicketStatus.REFUNDED: frozenset(),
}
