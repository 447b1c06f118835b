"""
Integration tests for money that must move exactly once

Scenarios:
- A refund on an order paid in instalments is spread over its payments
- An approved refund puts the ticket back on sale
- Approving the same refund twice, or while another approver holds it
- A gateway refusal after part of a refund went out
- A capture that was applied elsewhere is never reconciled away
- An unapplied capture is returned once
- Completing the same checkout twice
"""

from decimal import Decimal

import pytest

from src.platform.exception.exceptions import (
    ConflictingStateError,
    GatewayFatalError,
    InsufficientError,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway, PaymentStatus
from src.service.ticket_lifecycle.domain.enum.refund_status import RefundStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.gateway_result import VerificationResult
from src.service.ticket_lifecycle.domain.value_object.money import Money
from test.service.ticket_lifecycle.integration.checkout_integration_test import (
    add_to_cart,
    complete_checkout,
    initiate_checkout,
    tier_available,
)
from test.service.ticket_lifecycle.integration.lifecycle_harness import Lifecycle
from test.service.ticket_lifecycle.integration.ticket_aftercare_integration_test import (
    buy_confirmed_ticket,
    load_ticket,
)


@pytest.mark.integration
class TestRefundAllocation:
    async def test_refund_after_instalments_spans_both_payments(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        """
        Given: a 110.00 ticket paid 60.00 in cash, then 50.00 by card a minute later
        When: the owner requests a full refund and the organizer approves it
        Then:
          - the card payment is refunded first (50.00), the cash payment covers the rest
          - one credit per source payment, together -110.00
          - both source payments are refunded and the order is fully refunded
        """
        event, tier = await lifecycle.seed_event(organizer_id=organizer.id)
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        await lifecycle.apply_payment().execute(
            user_id=organizer.id,
            order_id=purchase.order.id,
            amount_paid=Decimal('60.00'),
            payment_method='cash',
            acting_as_operator=True,
        )
        lifecycle.clock.advance(minutes=1)
        paid = await lifecycle.apply_payment().execute(
            user_id=buyer.id,
            order_id=purchase.order.id,
            amount_paid=Decimal('50.00'),
            payment_method='card',
        )
        assert paid.order.status == OrderStatus.CONFIRMED
        ticket = paid.confirmed_tickets[0]

        refund = await lifecycle.request_refund().execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='cannot attend'
        )
        decision = await lifecycle.approve_refund().execute(
            approver_id=organizer.id, refund_id=refund.id
        )

        (card_refund,) = lifecycle.gateway.refunds
        assert card_refund['amount'] == Money(Decimal('50.00'), 'USD')
        assert decision.refund.status == RefundStatus.APPROVED
        assert decision.order.status == OrderStatus.REFUNDED
        assert decision.order.refunded_amount == Decimal('110.00')
        assert sorted(c.amount for c in decision.credits) == [
            Decimal('-60.00'),
            Decimal('-50.00'),
        ]
        assert decision.credit == decision.credits[0]
        assert decision.credit.amount == Decimal('-50.00')

        async with lifecycle.uow() as uow:
            payments = await uow.payment_repo.list_by_order(order_id=purchase.order.id)
        sources = {p.gateway: p for p in payments if not p.is_credit}
        credits = [p for p in payments if p.is_credit]
        assert sources[PaymentGateway.STRIPE].status == PaymentStatus.REFUNDED
        assert sources[PaymentGateway.OTHER].status == PaymentStatus.REFUNDED
        card = sources[PaymentGateway.STRIPE]
        assert card_refund['transaction_id'] == card.gateway_transaction_id
        assert sum((c.amount for c in credits), Decimal('0.00')) == Decimal('-110.00')
        assert {c.metadata['refund_of'] for c in credits} == {
            str(p.id) for p in sources.values()
        }
        assert len({c.reference_number for c in credits}) == 2

    async def test_approved_refund_puts_the_ticket_back_on_sale(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        event, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, organizer_id=organizer.id
        )
        assert await tier_available(lifecycle, ticket.tier_id) == 9

        refund = await lifecycle.request_refund().execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='cannot attend'
        )
        assert await tier_available(lifecycle, ticket.tier_id) == 9

        await lifecycle.approve_refund().execute(approver_id=organizer.id, refund_id=refund.id)

        assert await tier_available(lifecycle, ticket.tier_id) == 10
        async with lifecycle.uow() as uow:
            stored_event = await uow.event_repo.get_by_id(event_id=event.id)
        assert stored_event.available_tickets == event.available_tickets

    async def test_refund_larger_than_the_payments_is_refused_before_the_gateway(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, organizer_id=organizer.id
        )
        refund = await lifecycle.request_refund().execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='cannot attend'
        )
        async with lifecycle.uow() as uow:
            payments = await uow.payment_repo.list_by_order(order_id=ticket.order_id)
            source = next(p for p in payments if p.status == PaymentStatus.COMPLETED)
            await uow.payment_repo.update(
                payment=source.record_refund(
                    amount=Decimal('100.00'), now=lifecycle.clock.now()
                )
            )
            await uow.commit()

        with pytest.raises(InsufficientError, match='do not cover the refund amount'):
            await lifecycle.approve_refund().execute(
                approver_id=organizer.id, refund_id=refund.id
            )

        assert lifecycle.gateway.refunds == []
        async with lifecycle.uow() as uow:
            stored = await uow.refund_repo.get_by_id(refund_id=refund.id)
        assert stored.status == RefundStatus.PENDING


@pytest.mark.integration
class TestRefundApprovedOnce:
    async def test_second_approval_sends_no_money(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        """
        Given: an approved refund
        When: the organizer approves it again
        Then: the second approval is refused and the gateway was called once
        """
        _, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, organizer_id=organizer.id
        )
        refund = await lifecycle.request_refund().execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='ill'
        )
        await lifecycle.approve_refund().execute(approver_id=organizer.id, refund_id=refund.id)

        with pytest.raises(ConflictingStateError):
            await lifecycle.approve_refund().execute(
                approver_id=organizer.id, refund_id=refund.id
            )

        assert len(lifecycle.gateway.refunds) == 1
        async with lifecycle.uow() as uow:
            payments = await uow.payment_repo.list_by_order(order_id=ticket.order_id)
        assert len([p for p in payments if p.is_credit]) == 1

    async def test_refund_held_by_another_approver_is_not_sent_again(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, organizer_id=organizer.id
        )
        refund = await lifecycle.request_refund().execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='ill'
        )
        async with lifecycle.uow() as uow:
            await uow.refund_repo.update(refund=refund.claim())
            await uow.commit()

        with pytest.raises(ConflictingStateError):
            await lifecycle.approve_refund().execute(
                approver_id=organizer.id, refund_id=refund.id
            )

        assert lifecycle.gateway.refunds == []
        assert (await load_ticket(lifecycle, ticket.id)).status == TicketStatus.REFUND_PENDING

    async def test_gateway_failure_after_part_of_the_money_moved_is_held_for_review(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        """
        Given: a 110.00 ticket paid 60.00 by card, then 50.00 in cash
        When: approval returns the cash, then the card gateway refuses its part
        Then: the refund stays processing, nothing is recorded as refunded, review is flagged
        """
        event, tier = await lifecycle.seed_event(organizer_id=organizer.id)
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        await lifecycle.apply_payment().execute(
            user_id=buyer.id,
            order_id=purchase.order.id,
            amount_paid=Decimal('60.00'),
            payment_method='card',
        )
        lifecycle.clock.advance(minutes=1)
        paid = await lifecycle.apply_payment().execute(
            user_id=organizer.id,
            order_id=purchase.order.id,
            amount_paid=Decimal('50.00'),
            payment_method='cash',
            acting_as_operator=True,
        )
        ticket = paid.confirmed_tickets[0]
        refund = await lifecycle.request_refund().execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='ill'
        )
        lifecycle.gateway.refund_failure = 'charge_disputed'

        with pytest.raises(GatewayFatalError, match='charge_disputed'):
            await lifecycle.approve_refund().execute(
                approver_id=organizer.id, refund_id=refund.id
            )

        (card_attempt,) = lifecycle.gateway.refunds
        assert card_attempt['amount'] == Money(Decimal('60.00'), 'USD')
        async with lifecycle.uow() as uow:
            stored = await uow.refund_repo.get_by_id(refund_id=refund.id)
            order = await uow.order_repo.get_by_id(order_id=purchase.order.id)
        assert stored.status == RefundStatus.PROCESSING
        assert order.refunded_amount == Decimal('0.00')
        assert (await load_ticket(lifecycle, ticket.id)).status == TicketStatus.REFUND_PENDING

        logs = await lifecycle.audit_trail.audit_log_repo.list_for_resource(
            resource_kind=ResourceKind.REFUND, resource_id=refund.id
        )
        review = next(log for log in logs if log.action == AuditAction.REFUND_NEEDS_REVIEW)
        assert review.suspicious
        assert review.metadata['failure'] == 'Refund failed: charge_disputed'
        assert [r['amount'] for r in review.metadata['returned']] == ['50.00']


@pytest.mark.integration
class TestReconcileSafety:
    async def test_completed_payment_is_never_refunded_by_the_reconciler(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        """
        Given: a ticket whose card payment already completed the order
        When: a late flow for the same payment fails to apply and falls back to reconciling
        Then: the original error surfaces, no refund is sent, the payment stays completed
        """
        _, ticket = await buy_confirmed_ticket(lifecycle, user=buyer)
        async with lifecycle.uow() as uow:
            payments = await uow.payment_repo.list_by_order(order_id=ticket.order_id)
        payment = next(p for p in payments if p.status == PaymentStatus.COMPLETED)

        async def _already_paid(uow) -> None:
            raise ConflictingStateError('Order is already confirmed', current_state='confirmed')

        with pytest.raises(ConflictingStateError, match='already confirmed'):
            await lifecycle.payment_flow.apply_or_reconcile(
                lifecycle.uow(),
                payment_id=payment.id,
                verification=VerificationResult.succeeded(
                    transaction_id=payment.gateway_transaction_id, amount=payment.amount
                ),
                apply=_already_paid,
            )

        assert lifecycle.gateway.refunds == []
        async with lifecycle.uow() as uow:
            stored = await uow.payment_repo.get_by_id(payment_id=payment.id)
            order = await uow.order_repo.get_by_id(order_id=ticket.order_id)
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.refunded_amount == Decimal('0.00')
        assert order.status == OrderStatus.CONFIRMED

    async def test_unapplied_capture_is_returned_once(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        """
        Given: a pending card payment the gateway captured
        When: applying it fails twice in a row
        Then: the first failure refunds the capture, the second sends nothing
        """
        event, tier = await lifecycle.seed_event()
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        async with lifecycle.uow() as uow:
            payment = await lifecycle.payments.open_payment(
                uow,
                user_id=buyer.id,
                payment_method='card',
                amount=Money(Decimal('110.00'), 'USD'),
                now=lifecycle.clock.now(),
                order_id=purchase.order.id,
            )
            await uow.commit()
        verification = VerificationResult.succeeded(transaction_id='ch_captured')

        async def _order_gone(uow) -> None:
            raise ConflictingStateError('Order is cancelled', current_state='cancelled')

        for _ in range(2):
            with pytest.raises(ConflictingStateError):
                await lifecycle.payment_flow.apply_or_reconcile(
                    lifecycle.uow(),
                    payment_id=payment.id,
                    verification=verification,
                    apply=_order_gone,
                )

        (returned,) = lifecycle.gateway.refunds
        assert returned['transaction_id'] == 'ch_captured'
        assert returned['amount'] == Money(Decimal('110.00'), 'USD')
        async with lifecycle.uow() as uow:
            stored = await uow.payment_repo.get_by_id(payment_id=payment.id)
        assert stored.status == PaymentStatus.REFUNDED
        assert stored.refunded_amount == Decimal('110.00')


@pytest.mark.integration
class TestCheckoutCompletedOnce:
    async def test_completing_a_checkout_twice_is_refused(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        """
        Given: a checkout the buyer already completed by card
        When: the completion is submitted again
        Then: it is refused before any gateway call; one order, one payment, no refund
        """
        event, tier = await lifecycle.seed_event()
        await add_to_cart(lifecycle).execute(
            user_id=buyer.id, event_id=event.id, quantity=2, tier_id=tier.id
        )
        initiation = await initiate_checkout(lifecycle).execute(
            user_id=buyer.id, payment_method='card'
        )
        first = await complete_checkout(lifecycle).execute(
            user_id=buyer.id, checkout_id=initiation.checkout.id, payment_intent_id='pi_x'
        )

        with pytest.raises(ConflictingStateError):
            await complete_checkout(lifecycle).execute(
                user_id=buyer.id, checkout_id=initiation.checkout.id, payment_intent_id='pi_x'
            )

        assert len(lifecycle.gateway.verifications) == 1
        assert lifecycle.gateway.refunds == []
        assert await tier_available(lifecycle, tier.id) == 8
        async with lifecycle.uow() as uow:
            order = await uow.order_repo.get_by_id(order_id=first.order.id)
            payments = await uow.payment_repo.list_by_order(order_id=first.order.id)
            tickets = await uow.ticket_repo.list_by_order(order_id=first.order.id)
        assert order.status == OrderStatus.CONFIRMED
        assert [p.status for p in payments] == [PaymentStatus.COMPLETED]
        assert len(tickets) == 2
