from typing import Optional
from uuid import UUID

from sqlalchemy import select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_cart_repo import ICartRepo
from src.service.ticket_lifecycle.domain.entity.cart_entity import Cart, CartItem
from src.service.ticket_lifecycle.domain.enum.cart_status import CartStatus
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine
from src.service.ticket_lifecycle.driven_adapter.model.cart_model import CartItemModel, CartModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class CartRepoImpl(SessionBoundRepo, ICartRepo):
    @staticmethod
    def _to_entity(model: CartModel) -> Cart:
        return Cart(
            id=model.id,
            user_id=model.user_id,
            status=CartStatus(model.status),
            currency=model.currency,
            created_at=model.created_at,
            expires_at=model.expires_at,
            updated_at=model.updated_at,
            items=[
                CartItem(
                    id=item.id,
                    cart_id=item.cart_id,
                    line=InventoryLine.from_dict(item.line),
                    added_at=item.added_at,
                )
                for item in model.items
            ],
        )

    @Logger.io
    async def get_active_for_user(
        self, *, user_id: UUID, for_update: bool = False
    ) -> Optional[Cart]:
        async with self._get_session() as session:
            stmt = (
                select(CartModel)
                .where(CartModel.user_id == user_id, CartModel.status == CartStatus.ACTIVE.value)
                .order_by(CartModel.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            if for_update:
                stmt = stmt.with_for_update()
            model = (await session.execute(stmt)).scalar_one_or_none()
            return self._to_entity(model) if model else None

    @Logger.io
    async def get_by_id(self, *, cart_id: UUID) -> Optional[Cart]:
        async with self._get_session() as session:
            model = await session.get(CartModel, cart_id, populate_existing=True)
            return self._to_entity(model) if model else None

    @Logger.io
    async def save(self, *, cart: Cart) -> Cart:
        async with self._get_session() as session:
            model = await session.get(CartModel, cart.id)
            if model is None:
                model = CartModel(id=cart.id, user_id=cart.user_id, created_at=cart.created_at)
                session.add(model)
            model.status = cart.status.value
            model.currency = cart.currency
            model.expires_at = cart.expires_at
            model.updated_at = cart.updated_at
            existing = {item.id: item for item in model.items}
            items = []
            for item in cart.items:
                item_model = existing.get(item.id) or CartItemModel(id=item.id, cart_id=cart.id)
                item_model.event_id = item.event_id
                item_model.line = item.line.to_dict()
                item_model.added_at = item.added_at
                items.append(item_model)
            model.items = items
            await session.flush()
            return cart
