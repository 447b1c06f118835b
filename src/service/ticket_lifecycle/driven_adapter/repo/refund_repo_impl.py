from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_refund_repo import IRefundRepo
from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund
from src.service.ticket_lifecycle.domain.enum.refund_status import RefundStatus
from src.service.ticket_lifecycle.driven_adapter.model.event_model import EventModel
from src.service.ticket_lifecycle.driven_adapter.model.refund_model import TicketRefundModel
from src.service.ticket_lifecycle.driven_adapter.model.ticket_model import TicketModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class RefundRepoImpl(SessionBoundRepo, IRefundRepo):
    @staticmethod
    def _to_entity(model: TicketRefundModel) -> TicketRefund:
        return TicketRefund(
            id=model.id,
            ticket_id=model.ticket_id,
            order_id=model.order_id,
            user_id=model.user_id,
            original_amount=model.original_amount,
            refund_amount=model.refund_amount,
            currency=model.currency,
            reason=model.reason,
            status=RefundStatus(model.status),
            requested_at=model.requested_at,
            approved_by=model.approved_by,
            approved_at=model.approved_at,
            rejected_by=model.rejected_by,
            rejected_at=model.rejected_at,
            rejection_reason=model.rejection_reason,
            gateway_refund_id=model.gateway_refund_id,
            refund_payment_id=model.refund_payment_id,
        )

    @staticmethod
    def _apply(model: TicketRefundModel, refund: TicketRefund) -> None:
        model.ticket_id = refund.ticket_id
        model.order_id = refund.order_id
        model.user_id = refund.user_id
        model.original_amount = refund.original_amount
        model.refund_amount = refund.refund_amount
        model.currency = refund.currency
        model.reason = refund.reason
        model.status = refund.status.value
        model.requested_at = refund.requested_at
        model.approved_by = refund.approved_by
        model.approved_at = refund.approved_at
        model.rejected_by = refund.rejected_by
        model.rejected_at = refund.rejected_at
        model.rejection_reason = refund.rejection_reason
        model.gateway_refund_id = refund.gateway_refund_id
        model.refund_payment_id = refund.refund_payment_id

    @staticmethod
    def _scoped(stmt, organizer_id: Optional[UUID]):
        if organizer_id is None:
            return stmt
        return (
            stmt.join(TicketModel, TicketModel.id == TicketRefundModel.ticket_id)
            .join(EventModel, EventModel.id == TicketModel.event_id)
            .where(EventModel.organizer_id == organizer_id)
        )

    @Logger.io
    async def create(self, *, refund: TicketRefund) -> TicketRefund:
        async with self._get_session() as session:
            model = TicketRefundModel(id=refund.id)
            self._apply(model, refund)
            session.add(model)
            await session.flush()
            return refund

    @Logger.io
    async def get_by_id(
        self, *, refund_id: UUID, for_update: bool = False
    ) -> Optional[TicketRefund]:
        async with self._get_session() as session:
            model = await session.get(
                TicketRefundModel,
                refund_id,
                with_for_update=for_update or None,
                populate_existing=True,
            )
            return self._to_entity(model) if model else None

    @Logger.io
    async def update(self, *, refund: TicketRefund) -> TicketRefund:
        async with self._get_session() as session:
            model = await session.get(TicketRefundModel, refund.id)
            if model is None:
                raise LookupError(f'Refund {refund.id} does not exist')
            self._apply(model, refund)
            await session.flush()
            return refund

    @Logger.io
    async def find_pending_for_ticket(self, *, ticket_id: UUID) -> Optional[TicketRefund]:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketRefundModel)
                .where(
                    TicketRefundModel.ticket_id == ticket_id,
                    TicketRefundModel.status == RefundStatus.PENDING.value,
                )
                .execution_options(populate_existing=True)
            )
            model = result.scalars().first()
            return self._to_entity(model) if model else None

    @Logger.io
    async def list_by_user(
        self, *, user_id: UUID, page: int, limit: int
    ) -> tuple[List[TicketRefund], int]:
        async with self._get_session() as session:
            condition = TicketRefundModel.user_id == user_id
            count_stmt = select(func.count()).select_from(TicketRefundModel).where(condition)
            total = (await session.execute(count_stmt)).scalar_one()
            result = await session.execute(
                select(TicketRefundModel)
                .where(condition)
                .order_by(TicketRefundModel.requested_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()], total

    @Logger.io
    async def list_pending(self, *, organizer_id: Optional[UUID] = None) -> List[TicketRefund]:
        async with self._get_session() as session:
            stmt = self._scoped(select(TicketRefundModel), organizer_id)
            result = await session.execute(
                stmt.where(TicketRefundModel.status == RefundStatus.PENDING.value)
                .order_by(TicketRefundModel.requested_at)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def stats(
        self, *, organizer_id: Optional[UUID] = None
    ) -> tuple[dict[RefundStatus, int], Decimal]:
        async with self._get_session() as session:
            count_stmt = self._scoped(
                select(TicketRefundModel.status, func.count(TicketRefundModel.id)), organizer_id
            ).group_by(TicketRefundModel.status)
            counts = {status: 0 for status in RefundStatus}
            for status, count in (await session.execute(count_stmt)).all():
                counts[RefundStatus(status)] = count

            # MoneyNumeric is text on SQLite, so the approved total is summed here
            amount_stmt = self._scoped(
                select(TicketRefundModel.refund_amount), organizer_id
            ).where(TicketRefundModel.status == RefundStatus.APPROVED.value)
            amounts = (await session.execute(amount_stmt)).scalars().all()
            return counts, sum(amounts, Decimal('0.00'))
