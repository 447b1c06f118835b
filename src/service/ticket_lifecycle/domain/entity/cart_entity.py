from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import ConflictingStateError, NotFoundError, ValidationError
from src.service.ticket_lifecycle.domain.enum.cart_status import CartStatus
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine


@attrs.define
class CartItem:
    id: UUID
    cart_id: UUID
    line: InventoryLine
    added_at: datetime

    @property
    def event_id(self) -> UUID:
        return self.line.event_id

    @property
    def quantity(self) -> int:
        return self.line.quantity


@attrs.define
class Cart:
    """
    Per-user open container of intended lines

    The currency is fixed by the first item; adding an item priced in another
    currency is rejected.
    """

    id: UUID
    user_id: UUID
    created_at: datetime
    expires_at: datetime
    status: CartStatus = CartStatus.ACTIVE
    currency: Optional[str] = None
    items: list[CartItem] = attrs.field(factory=list)
    updated_at: Optional[datetime] = None

    @classmethod
    def open(cls, *, id: UUID, user_id: UUID, now: datetime, ttl: timedelta) -> 'Cart':
        return cls(id=id, user_id=user_id, created_at=now, expires_at=now + ttl, updated_at=now)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @property
    def is_empty(self) -> bool:
        return not self.items

    def _ensure_active(self) -> None:
        if self.status != CartStatus.ACTIVE:
            raise ConflictingStateError(f'Cart is {self.status}', current_state=str(self.status))

    def add_item(self, *, item: CartItem, currency: str, now: datetime) -> 'Cart':
        self._ensure_active()
        if self.currency and self.items and currency != self.currency:
            raise ValidationError(
                f'Cart is priced in {self.currency}, cannot add an item in {currency}',
                field='event_id',
            )
        return attrs.evolve(
            self, items=[*self.items, item], currency=currency, updated_at=now
        )

    def find_item(self, item_id: UUID) -> CartItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise NotFoundError('Cart item not found')

    def update_quantity(self, *, item_id: UUID, quantity: int, now: datetime) -> 'Cart':
        self._ensure_active()
        item = self.find_item(item_id)
        if item.line.seat_ids:
            raise ValidationError(
                'Seat selections cannot change quantity, remove and re-add the seats',
                field='quantity',
            )
        updated = attrs.evolve(item, line=attrs.evolve(item.line, quantity=quantity))
        items = [updated if i.id == item_id else i for i in self.items]
        return attrs.evolve(self, items=items, updated_at=now)

    def remove_item(self, *, item_id: UUID, now: datetime) -> 'Cart':
        self._ensure_active()
        self.find_item(item_id)
        items = [i for i in self.items if i.id != item_id]
        return attrs.evolve(
            self, items=items, currency=self.currency if items else None, updated_at=now
        )

    def clear(self, *, now: datetime) -> 'Cart':
        self._ensure_active()
        return attrs.evolve(self, items=[], currency=None, updated_at=now)

    def complete(self, *, now: datetime) -> 'Cart':
        self._ensure_active()
        return attrs.evolve(self, status=CartStatus.COMPLETED, updated_at=now)

    def abandon(self, *, now: datetime) -> 'Cart':
        return attrs.evolve(self, status=CartStatus.ABANDONED, updated_at=now)
