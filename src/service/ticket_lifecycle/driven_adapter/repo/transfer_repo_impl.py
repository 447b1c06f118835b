from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_transfer_repo import (
    ITransferRepo,
    TransferDirection,
)
from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer
from src.service.ticket_lifecycle.domain.enum.transfer_status import TransferStatus
from src.service.ticket_lifecycle.driven_adapter.model.transfer_model import TicketTransferModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class TransferRepoImpl(SessionBoundRepo, ITransferRepo):
    @staticmethod
    def _to_entity(model: TicketTransferModel) -> TicketTransfer:
        return TicketTransfer(
            id=model.id,
            ticket_id=model.ticket_id,
            from_user_id=model.from_user_id,
            to_user_id=model.to_user_id,
            to_email=model.to_email,
            transfer_code=model.transfer_code,
            message=model.message,
            status=TransferStatus(model.status),
            requested_at=model.requested_at,
            expires_at=model.expires_at,
            accepted_by=model.accepted_by,
            accepted_at=model.accepted_at,
            declined_at=model.declined_at,
            cancelled_at=model.cancelled_at,
        )

    @staticmethod
    def _apply(model: TicketTransferModel, transfer: TicketTransfer) -> None:
        model.ticket_id = transfer.ticket_id
        model.from_user_id = transfer.from_user_id
        model.to_user_id = transfer.to_user_id
        model.to_email = transfer.to_email
        model.transfer_code = transfer.transfer_code
        model.message = transfer.message
        model.status = transfer.status.value
        model.requested_at = transfer.requested_at
        model.expires_at = transfer.expires_at
        model.accepted_by = transfer.accepted_by
        model.accepted_at = transfer.accepted_at
        model.declined_at = transfer.declined_at
        model.cancelled_at = transfer.cancelled_at

    @Logger.io
    async def create(self, *, transfer: TicketTransfer) -> TicketTransfer:
        async with self._get_session() as session:
            model = TicketTransferModel(id=transfer.id)
            self._apply(model, transfer)
            session.add(model)
            await session.flush()
            return transfer

    @Logger.io
    async def get_by_id(
        self, *, transfer_id: UUID, for_update: bool = False, skip_locked: bool = False
    ) -> Optional[TicketTransfer]:
        async with self._get_session() as session:
            stmt = (
                select(TicketTransferModel)
                .where(TicketTransferModel.id == transfer_id)
                .execution_options(populate_existing=True)
            )
            if for_update:
                stmt = stmt.with_for_update(skip_locked=skip_locked)
            model = (await session.execute(stmt)).scalar_one_or_none()
            return self._to_entity(model) if model else None

    @Logger.io
    async def code_exists(self, *, transfer_code: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketTransferModel.id).where(
                    TicketTransferModel.transfer_code == transfer_code
                )
            )
            return result.first() is not None

    @Logger.io
    async def update(self, *, transfer: TicketTransfer) -> TicketTransfer:
        async with self._get_session() as session:
            model = await session.get(TicketTransferModel, transfer.id)
            if model is None:
                raise LookupError(f'Transfer {transfer.id} does not exist')
            self._apply(model, transfer)
            await session.flush()
            return transfer

    @Logger.io
    async def find_pending_for_ticket(self, *, ticket_id: UUID) -> Optional[TicketTransfer]:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketTransferModel)
                .where(
                    TicketTransferModel.ticket_id == ticket_id,
                    TicketTransferModel.status == TransferStatus.PENDING.value,
                )
                .execution_options(populate_existing=True)
            )
            model = result.scalars().first()
            return self._to_entity(model) if model else None

    @Logger.io
    async def list_by_ticket(self, *, ticket_id: UUID) -> List[TicketTransfer]:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketTransferModel)
                .where(TicketTransferModel.ticket_id == ticket_id)
                .order_by(TicketTransferModel.requested_at.desc())
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def list_pending_for_user(
        self, *, user_id: UUID, direction: TransferDirection
    ) -> List[TicketTransfer]:
        if direction == 'incoming':
            party = TicketTransferModel.to_user_id == user_id
        elif direction == 'outgoing':
            party = TicketTransferModel.from_user_id == user_id
        else:
            party = or_(
                TicketTransferModel.to_user_id == user_id,
                TicketTransferModel.from_user_id == user_id,
            )
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketTransferModel)
                .where(party, TicketTransferModel.status == TransferStatus.PENDING.value)
                .order_by(TicketTransferModel.requested_at.desc())
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def find_expired_pending(self, *, now: datetime, limit: int) -> List[TicketTransfer]:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketTransferModel)
                .where(
                    TicketTransferModel.status == TransferStatus.PENDING.value,
                    TicketTransferModel.expires_at <= now,
                )
                .order_by(TicketTransferModel.expires_at)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]
