"""
Integration tests for the cart -> checkout -> order path

Scenarios:
- A card checkout turns the cart into a confirmed order with tickets
- An abandoned checkout expires and gives its holds back
- A cancelled checkout leaves the cart open for another try
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from src.platform.exception.exceptions import ConflictingStateError, ValidationError
from src.service.ticket_lifecycle.app.command.cancel_checkout_use_case import (
    CancelCheckoutUseCase,
)
from src.service.ticket_lifecycle.app.command.cart_item_use_case import AddCartItemUseCase
from src.service.ticket_lifecycle.app.command.complete_checkout_use_case import (
    CompleteCheckoutUseCase,
)
from src.service.ticket_lifecycle.app.command.expire_checkouts_use_case import (
    ExpireCheckoutsUseCase,
)
from src.service.ticket_lifecycle.app.command.initiate_checkout_use_case import (
    InitiateCheckoutUseCase,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.domain.enum.cart_status import CartStatus
from src.service.ticket_lifecycle.domain.enum.checkout_status import CheckoutStatus
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentStatus
from src.service.ticket_lifecycle.domain.enum.reservation_status import ReservationStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from test.service.ticket_lifecycle.integration.lifecycle_harness import Lifecycle


def add_to_cart(lifecycle: Lifecycle) -> AddCartItemUseCase:
    return AddCartItemUseCase(
        uow=lifecycle.uow(),
        reservations=lifecycle.reservations,
        clock=lifecycle.clock,
        audit_trail=lifecycle.audit_trail,
    )


def initiate_checkout(lifecycle: Lifecycle) -> InitiateCheckoutUseCase:
    return InitiateCheckoutUseCase(
        uow=lifecycle.uow(),
        reservations=lifecycle.reservations,
        pricer=lifecycle.pricer,
        gateways=lifecycle.gateways,
        clock=lifecycle.clock,
        audit_trail=lifecycle.audit_trail,
    )


def complete_checkout(lifecycle: Lifecycle) -> CompleteCheckoutUseCase:
    return CompleteCheckoutUseCase(
        uow=lifecycle.uow(),
        reservations=lifecycle.reservations,
        issuer=lifecycle.issuer,
        payments=lifecycle.payments,
        payment_flow=lifecycle.payment_flow,
        clock=lifecycle.clock,
        audit_trail=lifecycle.audit_trail,
    )


async def tier_available(lifecycle: Lifecycle, tier_id) -> int:
    async with lifecycle.uow() as uow:
        tier = await uow.event_repo.get_tier(tier_id=tier_id)
    assert tier is not None
    return tier.available_tickets


@pytest.mark.integration
class TestCheckout:
    async def test_card_checkout_confirms_the_cart(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        """
        Given: two 100.00 tier tickets in the buyer's cart
        When: the buyer checks out by card and the intent is verified
        Then:
          - the checkout holds 2 units while pending (total 220.00)
          - completion creates a confirmed order with 2 confirmed tickets
          - the holds are confirmed and the cart is completed
        """
        event, tier = await lifecycle.seed_event()
        cart = await add_to_cart(lifecycle).execute(
            user_id=buyer.id, event_id=event.id, quantity=2, tier_id=tier.id
        )
        assert cart.status == CartStatus.ACTIVE

        initiation = await initiate_checkout(lifecycle).execute(
            user_id=buyer.id, payment_method='card'
        )
        checkout = initiation.checkout
        assert checkout.total_amount == Decimal('220.00')
        assert checkout.expires_at == lifecycle.clock.now() + timedelta(minutes=15)
        assert len(initiation.reservations) == 1
        assert await tier_available(lifecycle, tier.id) == 8

        lifecycle.clock.advance(minutes=5)
        completion = await complete_checkout(lifecycle).execute(
            user_id=buyer.id, checkout_id=checkout.id, payment_intent_id='pi_x'
        )

        assert lifecycle.gateway.verifications[0]['payment_intent_id'] == 'pi_x'
        assert completion.checkout.status == CheckoutStatus.COMPLETED
        assert completion.order.status == OrderStatus.CONFIRMED
        assert completion.order.amount_paid == Decimal('220.00')
        assert completion.payment.status == PaymentStatus.COMPLETED
        assert [t.status for t in completion.tickets] == [TicketStatus.CONFIRMED] * 2
        assert all(t.qr_code_data for t in completion.tickets)
        assert [r.status for r in completion.reservations] == [ReservationStatus.CONFIRMED]
        assert await tier_available(lifecycle, tier.id) == 8

        async with lifecycle.uow() as uow:
            stored_cart = await uow.cart_repo.get_by_id(cart_id=cart.id)
            stored_tickets = await uow.ticket_repo.list_by_order(order_id=completion.order.id)
        assert stored_cart.status == CartStatus.COMPLETED
        assert len(stored_tickets) == 2

    async def test_empty_cart_cannot_be_checked_out(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        await add_to_cart(lifecycle).execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        async with lifecycle.uow() as uow:
            cart = await uow.cart_repo.get_active_for_user(user_id=buyer.id)
            await uow.cart_repo.save(cart=cart.clear(now=lifecycle.clock.now()))
            await uow.commit()

        with pytest.raises(ValidationError, match='Cart is empty'):
            await initiate_checkout(lifecycle).execute(user_id=buyer.id, payment_method='card')

    async def test_abandoned_checkout_expires_and_releases_holds(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        """
        Given: a pending checkout holding 3 units
        When: 16 minutes pass and the checkout sweep runs
        Then: the checkout is expired, the units are back, completion is refused
        """
        event, tier = await lifecycle.seed_event()
        await add_to_cart(lifecycle).execute(
            user_id=buyer.id, event_id=event.id, quantity=3, tier_id=tier.id
        )
        checkout = (
            await initiate_checkout(lifecycle).execute(user_id=buyer.id, payment_method='card')
        ).checkout
        assert await tier_available(lifecycle, tier.id) == 7

        lifecycle.clock.advance(minutes=16)
        expired = await ExpireCheckoutsUseCase(
            uow_factory=lifecycle.uow_factory,
            reservations=lifecycle.reservations,
            payments=lifecycle.payments,
            clock=lifecycle.clock,
            audit_trail=lifecycle.audit_trail,
        ).execute()

        assert [c.id for c in expired] == [checkout.id]
        assert expired[0].status == CheckoutStatus.EXPIRED
        assert await tier_available(lifecycle, tier.id) == 10

        with pytest.raises(ConflictingStateError):
            await complete_checkout(lifecycle).execute(
                user_id=buyer.id, checkout_id=checkout.id, payment_intent_id='pi_late'
            )
        assert lifecycle.gateway.verifications == []

    async def test_cancelled_checkout_keeps_the_cart(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        await add_to_cart(lifecycle).execute(
            user_id=buyer.id, event_id=event.id, quantity=2, tier_id=tier.id
        )
        first = (
            await initiate_checkout(lifecycle).execute(user_id=buyer.id, payment_method='card')
        ).checkout

        cancelled = await CancelCheckoutUseCase(
            uow=lifecycle.uow(),
            reservations=lifecycle.reservations,
            payments=lifecycle.payments,
            clock=lifecycle.clock,
            audit_trail=lifecycle.audit_trail,
        ).execute(user_id=buyer.id, checkout_id=first.id)

        assert cancelled.status == CheckoutStatus.CANCELLED
        assert await tier_available(lifecycle, tier.id) == 10

        second = await initiate_checkout(lifecycle).execute(
            user_id=buyer.id, payment_method='card'
        )
        assert second.checkout.id != first.id
        assert second.checkout.total_amount == Decimal('220.00')
        assert await tier_available(lifecycle, tier.id) == 8
