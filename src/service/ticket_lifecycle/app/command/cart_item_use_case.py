from datetime import datetime, timedelta
from typing import Optional, Self, Sequence
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
from uuid_utils.compat import uuid7

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.entity.cart_entity import Cart, CartItem
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine


def _cart_entry(action: AuditAction, *, cart: Cart, user_id: UUID, **metadata) -> AuditEntry:
    return AuditEntry(
        action=action,
        resource_kind=ResourceKind.CART,
        resource_id=cart.id,
        actor_id=user_id,
        after={'items': len(cart.items), 'currency': cart.currency},
        metadata=metadata,
    )


async def _active_cart(uow: AbstractUnitOfWork, *, user_id: UUID, now: datetime) -> Cart:
    cart = await uow.cart_repo.get_active_for_user(user_id=user_id, for_update=True)
    if cart is None or cart.is_expired(now):
        raise NotFoundError('Cart not found')
    return cart


class AddCartItemUseCase:
    """
    Add a line to the caller's cart, opening a new cart when none is active

    An expired cart is abandoned on the way. The line is checked against the
    event's sales window here; capacity is only taken at checkout.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        reservations: ReservationManager,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.reservations = reservations
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(uow=uow, reservations=reservations, clock=clock, audit_trail=audit_trail)

    @Logger.io
    async def execute(
        self,
        *,
        user_id: UUID,
        event_id: UUID,
        quantity: int,
        tier_id: Optional[UUID] = None,
        session_id: Optional[UUID] = None,
        seat_ids: Sequence[UUID] = (),
        ticket_type: TicketType = TicketType.GENERAL,
        ticket_format: TicketFormat = TicketFormat.DIGITAL,
        credential_format: CredentialFormat = CredentialFormat.QR_CODE,
    ) -> Cart:
        with self.tracer.start_as_current_span(
            'use_case.add_cart_item',
            attributes={'user.id': str(user_id), 'event.id': str(event_id)},
        ):
            now = self.clock.now()
            line = InventoryLine(
                event_id=event_id,
                quantity=quantity,
                tier_id=tier_id,
                session_id=session_id,
                seat_ids=seat_ids,
                ticket_type=ticket_type,
                ticket_format=ticket_format,
                credential_format=credential_format,
            )
            async with self.uow:
                event = await self.uow.event_repo.get_by_id(event_id=event_id)
                if event is None:
                    raise NotFoundError('Event not found')
                await self.reservations.ensure_line_on_sale(
                    self.uow, event=event, line=line, now=now
                )

                cart = await self.uow.cart_repo.get_active_for_user(
                    user_id=user_id, for_update=True
                )
                if cart is not None and cart.is_expired(now):
                    await self.uow.cart_repo.save(cart=cart.abandon(now=now))
                    Logger.base.info(f'🛒 [CART] Abandoned expired cart {cart.id}')
                    cart = None
                if cart is None:
                    cart = Cart.open(
                        id=uuid7(),
                        user_id=user_id,
                        now=now,
                        ttl=timedelta(hours=settings.CART_TTL_HOURS),
                    )

                item = CartItem(id=uuid7(), cart_id=cart.id, line=line, added_at=now)
                cart = cart.add_item(item=item, currency=event.currency, now=now)
                await self.uow.cart_repo.save(cart=cart)
                await self.uow.commit()

            await self.audit_trail.record(
                _cart_entry(
                    AuditAction.CART_ITEM_ADDED,
                    cart=cart,
                    user_id=user_id,
                    item=line.to_dict(),
                )
            )
            return cart


class UpdateCartItemUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork, clock: IClock, audit_trail: IAuditTrail) -> None:
        self.uow = uow
        self.clock = clock
        self.audit_trail = audit_trail

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(uow=uow, clock=clock, audit_trail=audit_trail)

    @Logger.io
    async def execute(self, *, user_id: UUID, item_id: UUID, quantity: int) -> Cart:
        now = self.clock.now()
        async with self.uow:
            cart = await _active_cart(self.uow, user_id=user_id, now=now)
            before_quantity = cart.find_item(item_id).quantity
            cart = cart.update_quantity(item_id=item_id, quantity=quantity, now=now)
            await self.uow.cart_repo.save(cart=cart)
            await self.uow.commit()

        await self.audit_trail.record(
            _cart_entry(
                AuditAction.CART_ITEM_UPDATED,
                cart=cart,
                user_id=user_id,
                item_id=item_id,
                before_quantity=before_quantity,
                quantity=quantity,
            )
        )
        return cart


class RemoveCartItemUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork, clock: IClock, audit_trail: IAuditTrail) -> None:
        self.uow = uow
        self.clock = clock
        self.audit_trail = audit_trail

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(uow=uow, clock=clock, audit_trail=audit_trail)

    @Logger.io
    async def execute(self, *, user_id: UUID, item_id: UUID) -> Cart:
        now = self.clock.now()
        async with self.uow:
            cart = await _active_cart(self.uow, user_id=user_id, now=now)
            cart = cart.remove_item(item_id=item_id, now=now)
            await self.uow.cart_repo.save(cart=cart)
            await self.uow.commit()

        await self.audit_trail.record(
            _cart_entry(AuditAction.CART_ITEM_REMOVED, cart=cart, user_id=user_id, item_id=item_id)
        )
        return cart


class ClearCartUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork, clock: IClock, audit_trail: IAuditTrail) -> None:
        self.uow = uow
        self.clock = clock
        self.audit_trail = audit_trail

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(uow=uow, clock=clock, audit_trail=audit_trail)

    @Logger.io
    async def execute(self, *, user_id: UUID) -> Cart:
        now = self.clock.now()
        async with self.uow:
            cart = await _active_cart(self.uow, user_id=user_id, now=now)
            cart = cart.clear(now=now)
            await self.uow.cart_repo.save(cart=cart)
            await self.uow.commit()

        await self.audit_trail.record(
            _cart_entry(AuditAction.CART_CLEARED, cart=cart, user_id=user_id)
        )
        return cart
