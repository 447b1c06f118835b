from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_order_repo import IOrderRepo
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.value_object.billing_info import BillingInfo
from src.service.ticket_lifecycle.driven_adapter.model.order_model import OrderModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class OrderRepoImpl(SessionBoundRepo, IOrderRepo):
    @staticmethod
    def _to_entity(model: OrderModel) -> Order:
        return Order(
            id=model.id,
            user_id=model.user_id,
            checkout_id=model.checkout_id,
            total_amount=model.total_amount,
            amount_paid=model.amount_paid,
            balance_due=model.balance_due,
            refunded_amount=model.refunded_amount,
            currency=model.currency,
            status=OrderStatus(model.status),
            billing_info=BillingInfo.from_dict(model.billing_info),
            metadata=dict(model.order_metadata or {}),
            cancellation_reason=model.cancellation_reason,
            created_at=model.created_at,
            updated_at=model.updated_at,
            confirmed_at=model.confirmed_at,
            cancelled_at=model.cancelled_at,
        )

    @staticmethod
    def _apply(model: OrderModel, order: Order) -> None:
        model.user_id = order.user_id
        model.checkout_id = order.checkout_id
        model.total_amount = order.total_amount
        model.amount_paid = order.amount_paid
        model.balance_due = order.balance_due
        model.refunded_amount = order.refunded_amount
        model.currency = order.currency
        model.status = order.status.value
        model.billing_info = order.billing_info.to_dict() if order.billing_info else None
        model.order_metadata = dict(order.metadata)
        model.cancellation_reason = order.cancellation_reason
        model.created_at = order.created_at
        model.updated_at = order.updated_at
        model.confirmed_at = order.confirmed_at
        model.cancelled_at = order.cancelled_at

    @Logger.io
    async def create(self, *, order: Order) -> Order:
        async with self._get_session() as session:
            model = OrderModel(id=order.id)
            self._apply(model, order)
            session.add(model)
            await session.flush()
            return order

    @Logger.io
    async def get_by_id(self, *, order_id: UUID, for_update: bool = False) -> Optional[Order]:
        async with self._get_session() as session:
            model = await session.get(
                OrderModel, order_id, with_for_update=for_update or None, populate_existing=True
            )
            return self._to_entity(model) if model else None

    @Logger.io
    async def update(self, *, order: Order) -> Order:
        async with self._get_session() as session:
            model = await session.get(OrderModel, order.id)
            if model is None:
                raise LookupError(f'Order {order.id} does not exist')
            self._apply(model, order)
            await session.flush()
            return order

    @Logger.io
    async def list_by_user(
        self, *, user_id: UUID, status: Optional[OrderStatus], page: int, limit: int
    ) -> tuple[List[Order], int]:
        async with self._get_session() as session:
            conditions = [OrderModel.user_id == user_id]
            if status is not None:
                conditions.append(OrderModel.status == status.value)

            count_stmt = select(func.count()).select_from(OrderModel).where(*conditions)
            total = (await session.execute(count_stmt)).scalar_one()
            result = await session.execute(
                select(OrderModel)
                .where(*conditions)
                .order_by(OrderModel.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()], total
