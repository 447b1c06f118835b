"""
Unit tests for InventoryLedger

Test Focus:
1. Which counters a line draws from (event pool, tier, session, seats)
2. A refused conditional decrement surfaces as Insufficient / Sold out / Not found
3. Seats already held by someone else are never taken twice
"""

from unittest.mock import AsyncMock, Mock

import pytest
from uuid_utils.compat import uuid7

from src.platform.exception.exceptions import (
    InsufficientError,
    NotFoundError,
    ValidationError,
)
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.domain.entity.event_entity import Seat
from src.service.ticket_lifecycle.domain.enum.inventory_scope import InventoryScope
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus


def _seat(*, event_id, tier_id, label: str, status: SeatStatus = SeatStatus.AVAILABLE) -> Seat:
    return Seat(
        id=uuid7(),
        event_id=event_id,
        tier_id=tier_id,
        section='A',
        row='1',
        number=label,
        status=status,
    )


@pytest.mark.unit
class TestInventoryLedger:
    @pytest.fixture
    def uow(self) -> Mock:
        uow = Mock()
        uow.inventory_repo = AsyncMock()
        uow.inventory_repo.decrement = AsyncMock(return_value=True)
        return uow

    @pytest.mark.asyncio
    async def test_tier_line_draws_from_tier_and_event(self, uow: Mock) -> None:
        """
        Given: a line for 2 tickets in a tier
        When: the ledger decrements it
        Then: the tier counter and the event pool both go down by 2
        """
        event_id, tier_id = uuid7(), uuid7()

        await InventoryLedger().decrement(uow, event_id=event_id, quantity=2, tier_id=tier_id)

        scopes = [c.kwargs['scope'] for c in uow.inventory_repo.decrement.call_args_list]
        assert scopes == [InventoryScope.TIER, InventoryScope.EVENT]
        assert all(
            c.kwargs['quantity'] == 2 for c in uow.inventory_repo.decrement.call_args_list
        )

    @pytest.mark.asyncio
    async def test_session_line_draws_from_the_session_only(self, uow: Mock) -> None:
        session_id = uuid7()

        await InventoryLedger().decrement(
            uow, event_id=uuid7(), quantity=1, session_id=session_id
        )

        uow.inventory_repo.decrement.assert_awaited_once_with(
            scope=InventoryScope.SESSION, row_id=session_id, quantity=1
        )

    @pytest.mark.asyncio
    async def test_refused_decrement_reports_what_is_left(self, uow: Mock) -> None:
        """
        Given: the tier has 1 unit left and the conditional UPDATE refuses 2
        When: decrementing
        Then: InsufficientError mentions the remaining count
        """
        uow.inventory_repo.decrement = AsyncMock(return_value=False)
        uow.inventory_repo.get_available = AsyncMock(return_value=1)

        with pytest.raises(InsufficientError, match='Only 1 tickets left'):
            await InventoryLedger().decrement(
                uow, event_id=uuid7(), quantity=2, tier_id=uuid7()
            )

    @pytest.mark.asyncio
    async def test_empty_counter_is_sold_out(self, uow: Mock) -> None:
        uow.inventory_repo.decrement = AsyncMock(return_value=False)
        uow.inventory_repo.get_available = AsyncMock(return_value=0)

        with pytest.raises(InsufficientError, match='Sold out'):
            await InventoryLedger().decrement(uow, event_id=uuid7(), quantity=1)

    @pytest.mark.asyncio
    async def test_missing_counter_is_not_found(self, uow: Mock) -> None:
        uow.inventory_repo.decrement = AsyncMock(return_value=False)
        uow.inventory_repo.get_available = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await InventoryLedger().decrement(uow, event_id=uuid7(), quantity=1)

    @pytest.mark.asyncio
    async def test_seats_are_held_and_counted_per_tier(self, uow: Mock) -> None:
        event_id, tier_id = uuid7(), uuid7()
        seats = [
            _seat(event_id=event_id, tier_id=tier_id, label='1'),
            _seat(event_id=event_id, tier_id=tier_id, label='2'),
        ]
        uow.inventory_repo.lock_seats = AsyncMock(return_value=seats)
        uow.inventory_repo.update_seat_status = AsyncMock(return_value=2)
        reservation_id = uuid7()

        held = await InventoryLedger().decrement(
            uow,
            event_id=event_id,
            quantity=2,
            seat_ids=[s.id for s in seats],
            reservation_id=reservation_id,
        )

        assert held == seats
        status_call = uow.inventory_repo.update_seat_status.call_args
        assert status_call.kwargs['to_status'] == SeatStatus.HELD
        assert status_call.kwargs['reservation_id'] == reservation_id
        tier_call = uow.inventory_repo.decrement.call_args_list[0]
        assert tier_call.kwargs == {
            'scope': InventoryScope.TIER,
            'row_id': tier_id,
            'quantity': 2,
        }

    @pytest.mark.asyncio
    async def test_taken_seat_is_refused(self, uow: Mock) -> None:
        event_id, tier_id = uuid7(), uuid7()
        seats = [
            _seat(event_id=event_id, tier_id=tier_id, label='1'),
            _seat(event_id=event_id, tier_id=tier_id, label='2', status=SeatStatus.SOLD),
        ]
        uow.inventory_repo.lock_seats = AsyncMock(return_value=seats)

        with pytest.raises(InsufficientError, match='A-1-2'):
            await InventoryLedger().decrement(
                uow, event_id=event_id, quantity=2, seat_ids=[s.id for s in seats]
            )
        uow.inventory_repo.decrement.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_seat_from_another_event_is_rejected(self, uow: Mock) -> None:
        seat = _seat(event_id=uuid7(), tier_id=uuid7(), label='1')
        uow.inventory_repo.lock_seats = AsyncMock(return_value=[seat])

        with pytest.raises(ValidationError):
            await InventoryLedger().decrement(
                uow, event_id=uuid7(), quantity=1, seat_ids=[seat.id]
            )

    @pytest.mark.asyncio
    async def test_increment_returns_units_to_the_same_counters(self, uow: Mock) -> None:
        event_id, tier_id = uuid7(), uuid7()

        await InventoryLedger().increment(uow, event_id=event_id, quantity=3, tier_id=tier_id)

        calls = [c.kwargs for c in uow.inventory_repo.increment.call_args_list]
        assert calls == [
            {'scope': InventoryScope.TIER, 'row_id': tier_id, 'quantity': 3},
            {'scope': InventoryScope.EVENT, 'row_id': event_id, 'quantity': 3},
        ]
