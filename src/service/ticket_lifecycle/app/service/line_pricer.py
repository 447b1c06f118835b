from decimal import Decimal
from typing import Optional

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import NotFoundError, ValidationError
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGateway
from src.service.ticket_lifecycle.domain.entity.event_entity import Event, PricingTier
from src.service.ticket_lifecycle.domain.pricing_domain import (
    DEFAULT_SERVICE_FEE_RATE,
    quote_line,
)
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine
from src.service.ticket_lifecycle.domain.value_object.price_quote import PriceQuote


class LinePricer:
    """Loads what the pricing rules need for one line and quotes it."""

    def __init__(self, *, service_fee_rate: Decimal = DEFAULT_SERVICE_FEE_RATE) -> None:
        self.service_fee_rate = service_fee_rate

    async def quote(
        self,
        uow: AbstractUnitOfWork,
        *,
        line: InventoryLine,
        event: Optional[Event] = None,
        gateway: Optional[IPaymentGateway] = None,
    ) -> PriceQuote:
        event = event or await uow.event_repo.get_by_id(event_id=line.event_id)
        if event is None or event.deleted_at is not None:
            raise NotFoundError('Event not found')

        tier = await self._tier_for(uow, line=line)
        session = None
        if line.session_id is not None:
            session = await uow.event_repo.get_session(session_id=line.session_id)
            if session is None or session.event_id != event.id:
                raise NotFoundError('Event session not found')

        quote = quote_line(
            event=event,
            quantity=line.quantity,
            ticket_type=line.ticket_type,
            tier=tier,
            session=session,
            service_fee_rate=self.service_fee_rate,
        )
        if gateway is None:
            return quote
        fee = gateway.quote_fee(quote.total)
        if fee.is_zero:
            return quote
        return quote_line(
            event=event,
            quantity=line.quantity,
            ticket_type=line.ticket_type,
            tier=tier,
            session=session,
            gateway_fee=fee,
            service_fee_rate=self.service_fee_rate,
        )

    async def _tier_for(
        self, uow: AbstractUnitOfWork, *, line: InventoryLine
    ) -> Optional[PricingTier]:
        tier_id = line.tier_id
        if tier_id is None and line.seat_ids:
            seats = await uow.event_repo.get_seats(seat_ids=list(line.seat_ids))
            tier_ids = {seat.tier_id for seat in seats}
            if len(tier_ids) > 1:
                raise ValidationError('Seats in one line must share a tier', field='seat_ids')
            tier_id = tier_ids.pop() if tier_ids else None
        if tier_id is None:
            return None
        tier = await uow.event_repo.get_tier(tier_id=tier_id)
        if tier is None or tier.event_id != line.event_id:
            raise NotFoundError('Pricing tier not found')
        return tier
