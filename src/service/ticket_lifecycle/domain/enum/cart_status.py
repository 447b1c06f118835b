from enum import StrEnum


class CartStatus(StrEnum):
    ACTIVE = 'active'
    COMPLETED = 'completed'
    ABANDONED = 'abandoned'
