from enum import StrEnum


class ReservationStatus(StrEnum):
    HELD = 'held'
    CONFIRMED = 'confirmed'
    EXPIRED = 'expired'
    RELEASED = 'released'


RESERVATION_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.HELD: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.EXPIRED, ReservationStatus.RELEASED}
    ),
    ReservationStatus.CONFIRMED: frozenset(),
    ReservationStatus.EXPIRED: frozenset(),
    ReservationStatus.RELEASED: frozenset(),
}
