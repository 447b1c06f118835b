from enum import StrEnum


class InventoryScope(StrEnum):
    """Which counter row a hold draws from."""

    EVENT = 'event'
    TIER = 'tier'
    SESSION = 'session'
