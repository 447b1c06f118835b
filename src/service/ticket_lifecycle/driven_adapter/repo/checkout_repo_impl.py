from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_checkout_repo import ICheckoutRepo
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout, CheckoutLine
from src.service.ticket_lifecycle.domain.enum.checkout_status import CheckoutStatus
from src.service.ticket_lifecycle.domain.value_object.billing_info import BillingInfo
from src.service.ticket_lifecycle.driven_adapter.model.checkout_model import CheckoutModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class CheckoutRepoImpl(SessionBoundRepo, ICheckoutRepo):
    @staticmethod
    def _to_entity(model: CheckoutModel) -> Checkout:
        return Checkout(
            id=model.id,
            user_id=model.user_id,
            cart_id=model.cart_id,
            payment_method=model.payment_method,
            billing_info=BillingInfo.from_dict(model.billing_info),
            lines=[CheckoutLine.from_dict(line) for line in model.lines],
            total_amount=model.total_amount,
            currency=model.currency,
            status=CheckoutStatus(model.status),
            reservation_ids=[UUID(r) for r in model.reservation_ids or []],
            payment_id=model.payment_id,
            order_id=model.order_id,
            created_at=model.created_at,
            expires_at=model.expires_at,
            completed_at=model.completed_at,
            cancelled_at=model.cancelled_at,
        )

    @staticmethod
    def _apply(model: CheckoutModel, checkout: Checkout) -> None:
        model.user_id = checkout.user_id
        model.cart_id = checkout.cart_id
        model.payment_method = checkout.payment_method
        model.billing_info = checkout.billing_info.to_dict() if checkout.billing_info else None
        model.lines = [line.to_dict() for line in checkout.lines]
        model.total_amount = checkout.total_amount
        model.currency = checkout.currency
        model.status = checkout.status.value
        model.reservation_ids = [str(r) for r in checkout.reservation_ids]
        model.payment_id = checkout.payment_id
        model.order_id = checkout.order_id
        model.created_at = checkout.created_at
        model.expires_at = checkout.expires_at
        model.completed_at = checkout.completed_at
        model.cancelled_at = checkout.cancelled_at

    @Logger.io
    async def create(self, *, checkout: Checkout) -> Checkout:
        async with self._get_session() as session:
            model = CheckoutModel(id=checkout.id)
            self._apply(model, checkout)
            session.add(model)
            await session.flush()
            return checkout

    @Logger.io
    async def get_by_id(self, *, checkout_id: UUID, for_update: bool = False) -> Optional[Checkout]:
        async with self._get_session() as session:
            model = await session.get(
                CheckoutModel,
                checkout_id,
                with_for_update=for_update or None,
                populate_existing=True,
            )
            return self._to_entity(model) if model else None

    @Logger.io
    async def update(self, *, checkout: Checkout) -> Checkout:
        async with self._get_session() as session:
            model = await session.get(CheckoutModel, checkout.id)
            if model is None:
                raise LookupError(f'Checkout {checkout.id} does not exist')
            self._apply(model, checkout)
            await session.flush()
            return checkout

    @Logger.io
    async def find_expired_pending(self, *, now: datetime, limit: int) -> List[Checkout]:
        async with self._get_session() as session:
            result = await session.execute(
                select(CheckoutModel)
                .where(
                    CheckoutModel.status == CheckoutStatus.PENDING.value,
                    CheckoutModel.expires_at <= now,
                )
                .order_by(CheckoutModel.expires_at)
                .limit(limit)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]
