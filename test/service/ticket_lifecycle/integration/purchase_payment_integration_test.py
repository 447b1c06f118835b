"""
Integration tests for purchase, payment and reservation expiry

Scenarios:
- Buy two tier tickets and pay by card: order, tickets and payment all confirmed
- The last unit of a tier goes to exactly one buyer
- An unpaid hold expires and its capacity comes back
- An order is paid in cash in two instalments by an operator
"""

from decimal import Decimal

import pytest

from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    GatewayFatalError,
    InsufficientError,
)
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import (
    PaymentGateway,
    PaymentStatus,
)
from src.service.ticket_lifecycle.domain.enum.reservation_status import ReservationStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from test.service.ticket_lifecycle.integration.lifecycle_harness import Lifecycle


@pytest.mark.integration
class TestPurchaseAndPay:
    async def test_card_purchase_confirms_everything(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        """
        Given: a tier with 10 tickets at 100.00 and a 10% service fee
        When: the buyer reserves 2 tickets and pays the balance by card
        Then:
          - the order is 220.00 and confirmed with nothing left to pay
          - both tickets are confirmed and carry a QR credential
          - the tier has 8 left and the payment is completed at the gateway's id
        """
        event, tier = await lifecycle.seed_event(tier_total=10, tier_price='100.00')

        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=2, tier_id=tier.id
        )

        assert purchase.order.status == OrderStatus.RESERVED
        assert purchase.order.total_amount == Decimal('220.00')
        assert purchase.order.balance_due == Decimal('220.00')
        assert [t.status for t in purchase.tickets] == [TicketStatus.RESERVED] * 2
        assert purchase.reservation.status == ReservationStatus.HELD

        applied = await lifecycle.confirm_ticket_payment().execute(
            user_id=buyer.id, ticket_id=purchase.tickets[0].id, payment_method='stripe'
        )

        assert applied.order.status == OrderStatus.CONFIRMED
        assert applied.order.amount_paid == Decimal('220.00')
        assert applied.order.balance_due == Decimal('0.00')
        assert applied.applied == Decimal('220.00')
        assert len(applied.confirmed_tickets) == 2
        assert [r.status for r in applied.confirmed_reservations] == [
            ReservationStatus.CONFIRMED
        ]

        async with lifecycle.uow() as uow:
            stored_tier = await uow.event_repo.get_tier(tier_id=tier.id)
            tickets = await uow.ticket_repo.list_by_order(order_id=purchase.order.id)
            payments = await uow.payment_repo.list_by_order(order_id=purchase.order.id)
            reservation = await uow.reservation_repo.get_by_id(
                reservation_id=purchase.reservation.id
            )

        assert stored_tier.available_tickets == 8
        assert all(t.status == TicketStatus.CONFIRMED for t in tickets)
        assert all(t.qr_code_data and t.validation_key for t in tickets)
        assert len({t.ticket_number for t in tickets}) == 2
        (payment,) = payments
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.gateway == PaymentGateway.STRIPE
        assert payment.gateway_transaction_id == f'ch_{payment.reference_number}'
        assert reservation.status == ReservationStatus.CONFIRMED
        assert reservation.payment_id == payment.id

    async def test_purchase_and_payment_are_audited(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        lifecycle.clock.advance(minutes=1)
        await lifecycle.apply_payment().execute(
            user_id=buyer.id,
            order_id=purchase.order.id,
            amount_paid=None,
            payment_method='card',
        )

        logs = await lifecycle.audit_trail.audit_log_repo.list_for_resource(
            resource_kind=ResourceKind.ORDER, resource_id=purchase.order.id
        )

        assert [log.action for log in logs] == [
            AuditAction.ORDER_RESERVED,
            AuditAction.ORDER_CONFIRMED,
        ]
        assert logs[1].before['status'] == 'reserved'
        assert logs[1].after['status'] == 'confirmed'

    async def test_declined_card_leaves_the_order_unpaid(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        lifecycle.gateway.decline_reason = 'insufficient_funds'

        with pytest.raises(GatewayFatalError):
            await lifecycle.apply_payment().execute(
                user_id=buyer.id,
                order_id=purchase.order.id,
                amount_paid=None,
                payment_method='card',
            )

        async with lifecycle.uow() as uow:
            order = await uow.order_repo.get_by_id(order_id=purchase.order.id)
            (payment,) = await uow.payment_repo.list_by_order(order_id=purchase.order.id)

        assert order.status == OrderStatus.RESERVED
        assert order.amount_paid == Decimal('0.00')
        assert payment.status == PaymentStatus.FAILED


@pytest.mark.integration
class TestNoOversell:
    async def test_last_ticket_goes_to_one_buyer(
        self, lifecycle: Lifecycle, buyer: CurrentUser, another_buyer: CurrentUser
    ) -> None:
        """
        Given: a tier with a single ticket left
        When: two buyers try to reserve it one after the other
        Then: the first gets it, the second is told it is sold out, the tier stays at 0
        """
        event, tier = await lifecycle.seed_event(tier_total=1)

        first = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        with pytest.raises(InsufficientError, match='Sold out'):
            await lifecycle.purchase().execute(
                user_id=another_buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
            )

        async with lifecycle.uow() as uow:
            stored_tier = await uow.event_repo.get_tier(tier_id=tier.id)
            stored_event = await uow.event_repo.get_by_id(event_id=event.id)
            losers_tickets = await uow.ticket_repo.list_by_user(user_id=another_buyer.id)

        assert first.reservation.quantity == 1
        assert stored_tier.available_tickets == 0
        assert stored_event.available_tickets == event.total_capacity - 1
        assert losers_tickets == []

    async def test_request_larger_than_what_is_left(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event(tier_total=3)

        with pytest.raises(InsufficientError, match='Only 3 tickets left'):
            await lifecycle.purchase().execute(
                user_id=buyer.id, event_id=event.id, quantity=4, tier_id=tier.id
            )

        async with lifecycle.uow() as uow:
            stored_tier = await uow.event_repo.get_tier(tier_id=tier.id)
            stored_event = await uow.event_repo.get_by_id(event_id=event.id)

        assert stored_tier.available_tickets == 3
        assert stored_event.available_tickets == event.total_capacity


@pytest.mark.integration
class TestReservationExpiry:
    async def test_unpaid_hold_is_released_after_ttl(
        self, lifecycle: Lifecycle, buyer: CurrentUser, another_buyer: CurrentUser
    ) -> None:
        """
        Given: a buyer holds the only 2 tickets of a tier and never pays
        When: 16 minutes pass and the expiry sweep runs
        Then:
          - the reservation is released and both counters are back
          - the unpaid order and its tickets are cancelled
          - another buyer can now reserve the tickets
        """
        event, tier = await lifecycle.seed_event(tier_total=2)
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=2, tier_id=tier.id
        )

        lifecycle.clock.advance(minutes=14)
        early = await lifecycle.release_expired().execute()
        assert early.released == []

        lifecycle.clock.advance(minutes=2)
        result = await lifecycle.release_expired().execute()

        assert [r.id for r in result.released] == [purchase.reservation.id]
        assert result.released[0].status == ReservationStatus.RELEASED
        assert result.released[0].release_reason == 'expired'
        assert [o.id for o in result.cancelled_orders] == [purchase.order.id]

        async with lifecycle.uow() as uow:
            stored_tier = await uow.event_repo.get_tier(tier_id=tier.id)
            stored_event = await uow.event_repo.get_by_id(event_id=event.id)
            order = await uow.order_repo.get_by_id(order_id=purchase.order.id)
            tickets = await uow.ticket_repo.list_by_order(order_id=purchase.order.id)

        assert stored_tier.available_tickets == 2
        assert stored_event.available_tickets == event.total_capacity
        assert order.status == OrderStatus.CANCELLED
        assert all(t.status == TicketStatus.CANCELLED for t in tickets)

        second = await lifecycle.purchase().execute(
            user_id=another_buyer.id, event_id=event.id, quantity=2, tier_id=tier.id
        )
        assert second.order.status == OrderStatus.RESERVED

    async def test_sweep_is_idempotent(self, lifecycle: Lifecycle, buyer: CurrentUser) -> None:
        event, tier = await lifecycle.seed_event(tier_total=2)
        await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        lifecycle.clock.advance(minutes=20)

        await lifecycle.release_expired().execute()
        again = await lifecycle.release_expired().execute()

        async with lifecycle.uow() as uow:
            stored_tier = await uow.event_repo.get_tier(tier_id=tier.id)

        assert again.released == []
        assert stored_tier.available_tickets == 2

    async def test_paying_after_expiry_is_refused(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        lifecycle.clock.advance(minutes=30)
        await lifecycle.release_expired().execute()

        with pytest.raises(ConflictingStateError):
            await lifecycle.apply_payment().execute(
                user_id=buyer.id,
                order_id=purchase.order.id,
                amount_paid=None,
                payment_method='card',
            )
        assert lifecycle.gateway.verifications == []


@pytest.mark.integration
class TestPartialPayments:
    async def test_cash_in_two_instalments(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        """
        Given: a reserved order of 330.00 (3 tickets at 100.00 plus fees)
        When: an operator records 100.00 cash, then the remaining 230.00
        Then:
          - after the first payment the order is partially paid, the hold is
            consumed and the tickets are still reserved
          - after the second payment the order and all tickets are confirmed
        """
        event, tier = await lifecycle.seed_event(tier_total=5)
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=3, tier_id=tier.id
        )
        assert purchase.order.total_amount == Decimal('330.00')

        first = await lifecycle.apply_payment().execute(
            user_id=organizer.id,
            order_id=purchase.order.id,
            amount_paid=Decimal('100.00'),
            payment_method='cash',
            acting_as_operator=True,
        )

        assert first.order.status == OrderStatus.PARTIALLY_PAID
        assert first.order.amount_paid == Decimal('100.00')
        assert first.order.balance_due == Decimal('230.00')
        assert first.payment.gateway == PaymentGateway.OTHER
        assert [r.status for r in first.confirmed_reservations] == [
            ReservationStatus.CONFIRMED
        ]
        assert first.confirmed_tickets == []

        lifecycle.clock.advance(minutes=30)
        swept = await lifecycle.release_expired().execute()
        assert swept.released == []

        second = await lifecycle.apply_payment().execute(
            user_id=organizer.id,
            order_id=purchase.order.id,
            amount_paid=Decimal('230.00'),
            payment_method='cash',
            acting_as_operator=True,
        )

        assert second.order.status == OrderStatus.CONFIRMED
        assert second.order.balance_due == Decimal('0.00')
        assert len(second.confirmed_tickets) == 3

        async with lifecycle.uow() as uow:
            payments = await uow.payment_repo.list_by_order(order_id=purchase.order.id)

        assert sorted(p.amount for p in payments) == [Decimal('100.00'), Decimal('230.00')]
        assert all(p.status == PaymentStatus.COMPLETED for p in payments)

    async def test_buyer_cannot_record_cash_themselves(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )

        with pytest.raises(ForbiddenError):
            await lifecycle.apply_payment().execute(
                user_id=buyer.id,
                order_id=purchase.order.id,
                amount_paid=Decimal('10.00'),
                payment_method='cash',
            )

    async def test_overpayment_is_capped_at_the_balance(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        lifecycle.gateway.verified_amount = Decimal('150.00')

        applied = await lifecycle.apply_payment().execute(
            user_id=buyer.id,
            order_id=purchase.order.id,
            amount_paid=None,
            payment_method='card',
        )

        assert applied.order.amount_paid == Decimal('110.00')
        assert applied.applied == Decimal('110.00')
        assert applied.payment.amount == Decimal('110.00')
        assert applied.payment.metadata['needs_manual_review'] is True
