from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_reservation_repo import IReservationRepo
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.enum.reservation_status import ReservationStatus
from src.service.ticket_lifecycle.driven_adapter.model.reservation_model import ReservationModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class ReservationRepoImpl(SessionBoundRepo, IReservationRepo):
    @staticmethod
    def _to_entity(model: ReservationModel) -> Reservation:
        return Reservation(
            id=model.id,
            user_id=model.user_id,
            event_id=model.event_id,
            tier_id=model.tier_id,
            session_id=model.session_id,
            seat_ids=[UUID(s) for s in model.seat_ids or []],
            quantity=model.quantity,
            status=ReservationStatus(model.status),
            checkout_id=model.checkout_id,
            order_id=model.order_id,
            payment_id=model.payment_id,
            created_at=model.created_at,
            expires_at=model.expires_at,
            confirmed_at=model.confirmed_at,
            released_at=model.released_at,
            release_reason=model.release_reason,
        )

    @staticmethod
    def _apply(model: ReservationModel, reservation: Reservation) -> None:
        model.user_id = reservation.user_id
        model.event_id = reservation.event_id
        model.tier_id = reservation.tier_id
        model.session_id = reservation.session_id
        model.seat_ids = [str(s) for s in reservation.seat_ids]
        model.quantity = reservation.quantity
        model.status = reservation.status.value
        model.checkout_id = reservation.checkout_id
        model.order_id = reservation.order_id
        model.payment_id = reservation.payment_id
        model.created_at = reservation.created_at
        model.expires_at = reservation.expires_at
        model.confirmed_at = reservation.confirmed_at
        model.released_at = reservation.released_at
        model.release_reason = reservation.release_reason

    @Logger.io
    async def create(self, *, reservation: Reservation) -> Reservation:
        async with self._get_session() as session:
            model = ReservationModel(id=reservation.id)
            self._apply(model, reservation)
            session.add(model)
            await session.flush()
            return reservation

    @Logger.io
    async def get_by_id(self, *, reservation_id: UUID) -> Optional[Reservation]:
        async with self._get_session() as session:
            model = await session.get(ReservationModel, reservation_id, populate_existing=True)
            return self._to_entity(model) if model else None

    @Logger.io
    async def lock_many(
        self, *, reservation_ids: List[UUID], skip_locked: bool = False
    ) -> List[Reservation]:
        if not reservation_ids:
            return []
        async with self._get_session() as session:
            result = await session.execute(
                select(ReservationModel)
                .where(ReservationModel.id.in_(set(reservation_ids)))
                .order_by(ReservationModel.id)
                .with_for_update(skip_locked=skip_locked)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def update(self, *, reservation: Reservation) -> Reservation:
        async with self._get_session() as session:
            model = await session.get(ReservationModel, reservation.id)
            if model is None:
                raise LookupError(f'Reservation {reservation.id} does not exist')
            self._apply(model, reservation)
            await session.flush()
            return reservation

    @Logger.io
    async def find_expired_held(self, *, now: datetime, limit: int) -> List[Reservation]:
        async with self._get_session() as session:
            result = await session.execute(
                select(ReservationModel)
                .where(
                    ReservationModel.status == ReservationStatus.HELD.value,
                    ReservationModel.expires_at <= now,
                )
                .order_by(ReservationModel.expires_at)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]
