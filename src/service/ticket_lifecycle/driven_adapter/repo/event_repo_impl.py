from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, tuple_

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_event_repo import IEventRepo
from src.service.ticket_lifecycle.domain.entity.event_entity import (
    Event,
    EventSession,
    PricingTier,
    Seat,
)
from src.service.ticket_lifecycle.domain.enum.event_status import EventStatus
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus
from src.service.ticket_lifecycle.driven_adapter.model.event_model import (
    EventModel,
    EventSessionModel,
    PricingTierModel,
    SeatModel,
)
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class EventRepoImpl(SessionBoundRepo, IEventRepo):
    @staticmethod
    def _to_event(model: EventModel) -> Event:
        return Event(
            id=model.id,
            organizer_id=model.organizer_id,
            title=model.title,
            total_capacity=model.total_capacity,
            available_tickets=model.available_tickets,
            currency=model.currency,
            base_price=model.base_price,
            start_date=model.start_date,
            end_date=model.end_date,
            status=EventStatus(model.status),
            sales_start_date=model.sales_start_date,
            sales_end_date=model.sales_end_date,
            is_streaming=model.is_streaming,
            deleted_at=model.deleted_at,
            created_at=model.created_at,
        )

    @staticmethod
    def _to_tier(model: PricingTierModel) -> PricingTier:
        return PricingTier(
            id=model.id,
            event_id=model.event_id,
            name=model.name,
            base_price=model.base_price,
            total_tickets=model.total_tickets,
            available_tickets=model.available_tickets,
            sales_start_date=model.sales_start_date,
            sales_end_date=model.sales_end_date,
            is_active=model.is_active,
        )

    @staticmethod
    def _to_session(model: EventSessionModel) -> EventSession:
        return EventSession(
            id=model.id,
            event_id=model.event_id,
            name=model.name,
            capacity=model.capacity,
            available_seats=model.available_seats,
            start_time=model.start_time,
            base_price_override=model.base_price_override,
            is_active=model.is_active,
        )

    @staticmethod
    def _to_seat(model: SeatModel) -> Seat:
        return Seat(
            id=model.id,
            event_id=model.event_id,
            tier_id=model.tier_id,
            section=model.section,
            row=model.row,
            number=model.number,
            status=SeatStatus(model.status),
            reservation_id=model.reservation_id,
        )

    @Logger.io
    async def get_by_id(self, *, event_id: UUID) -> Optional[Event]:
        async with self._get_session() as session:
            model = await session.get(EventModel, event_id, populate_existing=True)
            return self._to_event(model) if model else None

    @Logger.io
    async def lock_events(self, *, event_ids: List[UUID]) -> List[Event]:
        async with self._get_session() as session:
            result = await session.execute(
                select(EventModel)
                .where(EventModel.id.in_(set(event_ids)))
                .order_by(EventModel.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            return [self._to_event(m) for m in result.scalars().all()]

    @Logger.io
    async def get_tier(self, *, tier_id: UUID) -> Optional[PricingTier]:
        async with self._get_session() as session:
            model = await session.get(PricingTierModel, tier_id, populate_existing=True)
            return self._to_tier(model) if model else None

    @Logger.io
    async def list_tiers(self, *, event_id: UUID) -> List[PricingTier]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PricingTierModel)
                .where(PricingTierModel.event_id == event_id)
                .order_by(PricingTierModel.id)
                .execution_options(populate_existing=True)
            )
            return [self._to_tier(m) for m in result.scalars().all()]

    @Logger.io
    async def get_session(self, *, session_id: UUID) -> Optional[EventSession]:
        async with self._get_session() as session:
            model = await session.get(EventSessionModel, session_id, populate_existing=True)
            return self._to_session(model) if model else None

    @Logger.io
    async def list_sessions(self, *, event_id: UUID) -> List[EventSession]:
        async with self._get_session() as session:
            result = await session.execute(
                select(EventSessionModel)
                .where(EventSessionModel.event_id == event_id)
                .order_by(EventSessionModel.start_time)
                .execution_options(populate_existing=True)
            )
            return [self._to_session(m) for m in result.scalars().all()]

    @Logger.io
    async def get_seats(self, *, seat_ids: List[UUID]) -> List[Seat]:
        if not seat_ids:
            return []
        async with self._get_session() as session:
            result = await session.execute(
                select(SeatModel)
                .where(SeatModel.id.in_(seat_ids))
                .order_by(SeatModel.id)
                .execution_options(populate_existing=True)
            )
            return [self._to_seat(m) for m in result.scalars().all()]

    @Logger.io
    async def find_seats_by_label(self, *, event_id: UUID, labels: List[str]) -> List[Seat]:
        positions = [tuple(label.split('-', 2)) for label in labels if label.count('-') >= 2]
        if not positions:
            return []
        async with self._get_session() as session:
            result = await session.execute(
                select(SeatModel)
                .where(
                    SeatModel.event_id == event_id,
                    tuple_(SeatModel.section, SeatModel.row, SeatModel.number).in_(positions),
                )
                .order_by(SeatModel.id)
            )
            return [self._to_seat(m) for m in result.scalars().all()]

    @Logger.io
    async def add_event(self, *, event: Event) -> Event:
        async with self._get_session() as session:
            session.add(
                EventModel(
                    id=event.id,
                    organizer_id=event.organizer_id,
                    title=event.title,
                    total_capacity=event.total_capacity,
                    available_tickets=event.available_tickets,
                    currency=event.currency,
                    base_price=event.base_price,
                    status=event.status.value,
                    start_date=event.start_date,
                    end_date=event.end_date,
                    sales_start_date=event.sales_start_date,
                    sales_end_date=event.sales_end_date,
                    is_streaming=event.is_streaming,
                    deleted_at=event.deleted_at,
                    created_at=event.created_at,
                )
            )
            await session.flush()
            return event

    @Logger.io
    async def add_tier(self, *, tier: PricingTier) -> PricingTier:
        async with self._get_session() as session:
            session.add(
                PricingTierModel(
                    id=tier.id,
                    event_id=tier.event_id,
                    name=tier.name,
                    base_price=tier.base_price,
                    total_tickets=tier.total_tickets,
                    available_tickets=tier.available_tickets,
                    sales_start_date=tier.sales_start_date,
                    sales_end_date=tier.sales_end_date,
                    is_active=tier.is_active,
                )
            )
            await session.flush()
            return tier

    @Logger.io
    async def add_session(self, *, session: EventSession) -> EventSession:
        async with self._get_session() as db_session:
            db_session.add(
                EventSessionModel(
                    id=session.id,
                    event_id=session.event_id,
                    name=session.name,
                    capacity=session.capacity,
                    available_seats=session.available_seats,
                    start_time=session.start_time,
                    base_price_override=session.base_price_override,
                    is_active=session.is_active,
                )
            )
            await db_session.flush()
            return session

    @Logger.io
    async def add_seats(self, *, seats: List[Seat]) -> List[Seat]:
        async with self._get_session() as session:
            session.add_all(
                SeatModel(
                    id=seat.id,
                    event_id=seat.event_id,
                    tier_id=seat.tier_id,
                    section=seat.section,
                    row=seat.row,
                    number=seat.number,
                    status=seat.status.value,
                    reservation_id=seat.reservation_id,
                )
                for seat in seats
            )
            await session.flush()
            return seats
