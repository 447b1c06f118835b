from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_payment_repo import IPaymentRepo
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway, PaymentStatus
from src.service.ticket_lifecycle.driven_adapter.model.payment_model import PaymentModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class PaymentRepoImpl(SessionBoundRepo, IPaymentRepo):
    @staticmethod
    def _to_entity(model: PaymentModel) -> Payment:
        return Payment(
            id=model.id,
            user_id=model.user_id,
            order_id=model.order_id,
            checkout_id=model.checkout_id,
            gateway=PaymentGateway(model.gateway),
            payment_method=model.payment_method,
            reference_number=model.reference_number,
            amount=model.amount,
            currency=model.currency,
            status=PaymentStatus(model.status),
            gateway_transaction_id=model.gateway_transaction_id,
            gateway_response=dict(model.gateway_response or {}),
            refunded_amount=model.refunded_amount,
            metadata=dict(model.payment_metadata or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
            completed_at=model.completed_at,
        )

    @staticmethod
    def _apply(model: PaymentModel, payment: Payment) -> None:
        model.user_id = payment.user_id
        model.order_id = payment.order_id
        model.checkout_id = payment.checkout_id
        model.gateway = payment.gateway.value
        model.payment_method = payment.payment_method
        model.reference_number = payment.reference_number
        model.amount = payment.amount
        model.currency = payment.currency
        model.status = payment.status.value
        model.gateway_transaction_id = payment.gateway_transaction_id
        model.gateway_response = dict(payment.gateway_response)
        model.refunded_amount = payment.refunded_amount
        model.payment_metadata = dict(payment.metadata)
        model.created_at = payment.created_at
        model.updated_at = payment.updated_at
        model.completed_at = payment.completed_at

    @Logger.io
    async def create(self, *, payment: Payment) -> Payment:
        async with self._get_session() as session:
            model = PaymentModel(id=payment.id)
            self._apply(model, payment)
            session.add(model)
            await session.flush()
            return payment

    @Logger.io
    async def get_by_id(self, *, payment_id: UUID, for_update: bool = False) -> Optional[Payment]:
        async with self._get_session() as session:
            model = await session.get(
                PaymentModel, payment_id, with_for_update=for_update or None, populate_existing=True
            )
            return self._to_entity(model) if model else None

    @Logger.io
    async def get_by_reference(self, *, reference_number: str) -> Optional[Payment]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PaymentModel)
                .where(PaymentModel.reference_number == reference_number)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
            return self._to_entity(model) if model else None

    @Logger.io
    async def reference_exists(self, *, reference_number: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                select(PaymentModel.id).where(PaymentModel.reference_number == reference_number)
            )
            return result.first() is not None

    @Logger.io
    async def update(self, *, payment: Payment) -> Payment:
        async with self._get_session() as session:
            model = await session.get(PaymentModel, payment.id)
            if model is None:
                raise LookupError(f'Payment {payment.id} does not exist')
            self._apply(model, payment)
            await session.flush()
            return payment

    @Logger.io
    async def list_by_order(self, *, order_id: UUID, for_update: bool = False) -> List[Payment]:
        async with self._get_session() as session:
            stmt = (
                select(PaymentModel)
                .where(PaymentModel.order_id == order_id)
                .order_by(PaymentModel.created_at, PaymentModel.id)
                .execution_options(populate_existing=True)
            )
            if for_update:
                stmt = stmt.with_for_update()
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def find_pending_for_checkout(self, *, checkout_id: UUID) -> Optional[Payment]:
        async with self._get_session() as session:
            result = await session.execute(
                select(PaymentModel)
                .where(
                    PaymentModel.checkout_id == checkout_id,
                    PaymentModel.status == PaymentStatus.PENDING.value,
                )
                .order_by(PaymentModel.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            model = result.scalar_one_or_none()
            return self._to_entity(model) if model else None
