"""
Event Repository Interface

Read side of the catalogue the engine sells from. Events, tiers, sessions and
seats are authored elsewhere; ``add_*`` exists for provisioning and fixtures.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.event_entity import (
    Event,
    EventSession,
    PricingTier,
    Seat,
)


class IEventRepo(ABC):
    @abstractmethod
    async def get_by_id(self, *, event_id: UUID) -> Optional[Event]:
        pass

    @abstractmethod
    async def lock_events(self, *, event_ids: List[UUID]) -> List[Event]:
        """
        SELECT ... FOR UPDATE on the event rows, in id order

        Every transaction that changes capacity or reservation state takes these
        locks first; this is the head of the lock order.
        """
        pass

    @abstractmethod
    async def get_tier(self, *, tier_id: UUID) -> Optional[PricingTier]:
        pass

    @abstractmethod
    async def list_tiers(self, *, event_id: UUID) -> List[PricingTier]:
        pass

    @abstractmethod
    async def get_session(self, *, session_id: UUID) -> Optional[EventSession]:
        pass

    @abstractmethod
    async def list_sessions(self, *, event_id: UUID) -> List[EventSession]:
        pass

    @abstractmethod
    async def get_seats(self, *, seat_ids: List[UUID]) -> List[Seat]:
        pass

    @abstractmethod
    async def find_seats_by_label(self, *, event_id: UUID, labels: List[str]) -> List[Seat]:
        """Seats addressed as ``section-row-number``; unknown labels are left out."""
        pass

    @abstractmethod
    async def add_event(self, *, event: Event) -> Event:
        pass

    @abstractmethod
    async def add_tier(self, *, tier: PricingTier) -> PricingTier:
        pass

    @abstractmethod
    async def add_session(self, *, session: EventSession) -> EventSession:
        pass

    @abstractmethod
    async def add_seats(self, *, seats: List[Seat]) -> List[Seat]:
        pass
