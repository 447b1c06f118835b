"""
Integration tests for what happens to a paid ticket

Scenarios:
- Transfer to another user: ownership moves and credentials are re-issued
- Refund inside and outside the refund window, approval returns the money
- Gate validation: too early, first scan admitted, second scan refused
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from src.platform.exception.exceptions import (
    AlreadyUsedError,
    ConflictingStateError,
    ForbiddenError,
    GatewayFatalError,
    NotFoundError,
    NotStartedError,
    ValidationError,
)
from src.service.ticket_lifecycle.app.command.ticket_refund_use_case import (
    ApproveRefundUseCase,
    RejectRefundUseCase,
    RequestRefundUseCase,
)
from src.service.ticket_lifecycle.app.command.ticket_transfer_use_case import (
    AcceptTransferUseCase,
    CancelTransferUseCase,
    ExpireTransfersUseCase,
    InitiateTransferUseCase,
)
from src.service.ticket_lifecycle.app.command.validate_ticket_use_case import (
    ValidateTicketUseCase,
)
from src.service.ticket_lifecycle.domain.entity.event_entity import Event
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentStatus
from src.service.ticket_lifecycle.domain.enum.refund_status import RefundStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.enum.transfer_status import TransferStatus
from src.service.ticket_lifecycle.domain.value_object.money import Money
from test.service.ticket_lifecycle.integration.lifecycle_harness import Lifecycle


async def buy_confirmed_ticket(
    lifecycle: Lifecycle, *, user: CurrentUser, **event_kwargs
) -> tuple[Event, Ticket]:
    event, tier = await lifecycle.seed_event(**event_kwargs)
    purchase = await lifecycle.purchase().execute(
        user_id=user.id, event_id=event.id, quantity=1, tier_id=tier.id
    )
    applied = await lifecycle.confirm_ticket_payment().execute(
        user_id=user.id, ticket_id=purchase.tickets[0].id, payment_method='card'
    )
    return event, applied.confirmed_tickets[0]


async def load_ticket(lifecycle: Lifecycle, ticket_id) -> Ticket:
    async with lifecycle.uow() as uow:
        return await uow.ticket_repo.get_by_id(ticket_id=ticket_id)


@pytest.mark.integration
class TestTransfer:
    def _initiate(self, lifecycle: Lifecycle) -> InitiateTransferUseCase:
        return InitiateTransferUseCase(
            uow=lifecycle.uow(), clock=lifecycle.clock, audit_trail=lifecycle.audit_trail
        )

    def _accept(self, lifecycle: Lifecycle) -> AcceptTransferUseCase:
        return AcceptTransferUseCase(
            uow=lifecycle.uow(),
            issuer=lifecycle.issuer,
            clock=lifecycle.clock,
            audit_trail=lifecycle.audit_trail,
        )

    async def test_accepted_transfer_moves_the_ticket(
        self, lifecycle: Lifecycle, buyer: CurrentUser, another_buyer: CurrentUser
    ) -> None:
        """
        Given: a confirmed ticket owned by the buyer
        When: the buyer offers it to another user who accepts
        Then:
          - the recipient owns it, the purchaser is unchanged
          - the QR credential is re-issued so the old one no longer matches
          - accepting again returns the same result
        """
        event, ticket = await buy_confirmed_ticket(lifecycle, user=buyer)

        transfer = await self._initiate(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, to_user_id=another_buyer.id
        )
        assert transfer.status == TransferStatus.PENDING
        assert transfer.expires_at == lifecycle.clock.now() + timedelta(days=7)

        accepted = await self._accept(lifecycle).execute(
            user_id=another_buyer.id, transfer_id=transfer.id
        )

        assert accepted.transfer.status == TransferStatus.ACCEPTED
        assert accepted.ticket.user_id == another_buyer.id
        assert accepted.ticket.purchaser_id == buyer.id
        assert accepted.ticket.transfer_count == 1
        assert accepted.ticket.qr_code_data != ticket.qr_code_data

        again = await self._accept(lifecycle).execute(
            user_id=another_buyer.id, transfer_id=transfer.id
        )
        assert again.ticket.qr_code_data == accepted.ticket.qr_code_data
        assert again.ticket.transfer_count == 1

        stored = await load_ticket(lifecycle, ticket.id)
        assert stored.user_id == another_buyer.id
        assert stored.status == TicketStatus.CONFIRMED

        lifecycle.clock.set(event.start_date + timedelta(minutes=5))
        validate = ValidateTicketUseCase(
            uow=lifecycle.uow(), clock=lifecycle.clock, audit_trail=lifecycle.audit_trail
        )
        with pytest.raises(NotFoundError):
            await validate.execute(qr_code_data=ticket.qr_code_data)

    async def test_previous_owner_cannot_transfer_again(
        self, lifecycle: Lifecycle, buyer: CurrentUser, another_buyer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(lifecycle, user=buyer)
        transfer = await self._initiate(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, to_user_id=another_buyer.id
        )
        await self._accept(lifecycle).execute(user_id=another_buyer.id, transfer_id=transfer.id)

        with pytest.raises(ForbiddenError):
            await self._initiate(lifecycle).execute(
                user_id=buyer.id, ticket_id=ticket.id, to_email='someone@example.com'
            )

    async def test_only_one_pending_transfer_per_ticket(
        self, lifecycle: Lifecycle, buyer: CurrentUser, another_buyer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(lifecycle, user=buyer)
        transfer = await self._initiate(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, to_user_id=another_buyer.id
        )

        with pytest.raises(ConflictingStateError):
            await self._initiate(lifecycle).execute(
                user_id=buyer.id, ticket_id=ticket.id, to_email='friend@example.com'
            )

        cancelled = await CancelTransferUseCase(
            uow=lifecycle.uow(), clock=lifecycle.clock, audit_trail=lifecycle.audit_trail
        ).execute(user_id=buyer.id, transfer_id=transfer.id)
        assert cancelled.status == TransferStatus.CANCELLED

        retry = await self._initiate(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, to_email='friend@example.com'
        )
        assert retry.status == TransferStatus.PENDING

    async def test_unanswered_transfer_expires(
        self, lifecycle: Lifecycle, buyer: CurrentUser, another_buyer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(lifecycle, user=buyer)
        transfer = await self._initiate(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, to_user_id=another_buyer.id
        )
        lifecycle.clock.advance(days=8)

        expired = await ExpireTransfersUseCase(
            uow_factory=lifecycle.uow_factory,
            clock=lifecycle.clock,
            audit_trail=lifecycle.audit_trail,
        ).execute()

        assert [t.id for t in expired] == [transfer.id]
        assert expired[0].status == TransferStatus.EXPIRED
        with pytest.raises(ConflictingStateError):
            await self._accept(lifecycle).execute(
                user_id=another_buyer.id, transfer_id=transfer.id
            )
        assert (await load_ticket(lifecycle, ticket.id)).user_id == buyer.id


@pytest.mark.integration
class TestRefund:
    def _request(self, lifecycle: Lifecycle) -> RequestRefundUseCase:
        return lifecycle.request_refund()

    def _approve(self, lifecycle: Lifecycle) -> ApproveRefundUseCase:
        return lifecycle.approve_refund()

    async def test_approved_refund_returns_the_money(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        """
        Given: a 110.00 ticket paid by card, event in 30 days
        When: the owner requests a refund and the organizer approves it
        Then:
          - the gateway refunds 110.00 against the original charge
          - the ticket is refunded and the order fully refunded
          - a negative credit payment is recorded next to the original
        """
        _, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, organizer_id=organizer.id
        )

        refund = await self._request(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='cannot attend'
        )
        assert refund.status == RefundStatus.PENDING
        assert refund.refund_amount == Decimal('110.00')
        assert (await load_ticket(lifecycle, ticket.id)).status == TicketStatus.REFUND_PENDING

        decision = await self._approve(lifecycle).execute(
            approver_id=organizer.id, refund_id=refund.id
        )

        (gateway_call,) = lifecycle.gateway.refunds
        assert gateway_call['amount'] == Money(Decimal('110.00'), 'USD')
        assert decision.refund.status == RefundStatus.APPROVED
        assert decision.refund.gateway_refund_id == 're_1'
        assert decision.ticket.status == TicketStatus.REFUNDED
        assert decision.order.status == OrderStatus.REFUNDED
        assert decision.order.refunded_amount == Decimal('110.00')
        assert decision.order.amount_paid == Decimal('110.00')
        assert decision.credit.amount == Decimal('-110.00')

        async with lifecycle.uow() as uow:
            payments = await uow.payment_repo.list_by_order(order_id=ticket.order_id)
        source = next(p for p in payments if not p.is_credit)
        assert gateway_call['transaction_id'] == source.gateway_transaction_id
        assert source.status == PaymentStatus.REFUNDED
        credit = next(p for p in payments if p.is_credit)
        assert credit.metadata['refund_of'] == str(source.id)

    async def test_refund_inside_the_window_is_rejected(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, starts_in=timedelta(hours=12)
        )

        with pytest.raises(ValidationError, match='24 hours'):
            await self._request(lifecycle).execute(
                user_id=buyer.id, ticket_id=ticket.id, reason='cannot attend'
            )
        assert (await load_ticket(lifecycle, ticket.id)).status == TicketStatus.CONFIRMED

    async def test_only_the_events_organizer_decides(
        self,
        lifecycle: Lifecycle,
        buyer: CurrentUser,
        organizer: CurrentUser,
        admin: CurrentUser,
    ) -> None:
        _, ticket = await buy_confirmed_ticket(lifecycle, user=buyer)
        refund = await self._request(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='ill'
        )

        with pytest.raises(ForbiddenError):
            await self._approve(lifecycle).execute(approver_id=organizer.id, refund_id=refund.id)
        assert lifecycle.gateway.refunds == []

        decision = await self._approve(lifecycle).execute(
            approver_id=admin.id, refund_id=refund.id, is_admin=True
        )
        assert decision.refund.approved_by == admin.id

    async def test_gateway_failure_keeps_the_refund_pending(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, organizer_id=organizer.id
        )
        refund = await self._request(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='ill'
        )
        lifecycle.gateway.refund_failure = 'charge_already_refunded'

        with pytest.raises(GatewayFatalError):
            await self._approve(lifecycle).execute(approver_id=organizer.id, refund_id=refund.id)

        async with lifecycle.uow() as uow:
            stored = await uow.refund_repo.get_by_id(refund_id=refund.id)
        assert stored.status == RefundStatus.PENDING
        assert (await load_ticket(lifecycle, ticket.id)).status == TicketStatus.REFUND_PENDING

    async def test_rejected_refund_restores_the_ticket(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        _, ticket = await buy_confirmed_ticket(
            lifecycle, user=buyer, organizer_id=organizer.id
        )
        refund = await self._request(lifecycle).execute(
            user_id=buyer.id, ticket_id=ticket.id, reason='changed plans'
        )

        rejected = await RejectRefundUseCase(
            uow=lifecycle.uow(), clock=lifecycle.clock, audit_trail=lifecycle.audit_trail
        ).execute(
            rejector_id=organizer.id, refund_id=refund.id, rejection_reason='no refunds'
        )

        assert rejected.refund.status == RefundStatus.REJECTED
        assert rejected.ticket.status == TicketStatus.CONFIRMED
        assert (await load_ticket(lifecycle, ticket.id)).status == TicketStatus.CONFIRMED
        assert lifecycle.gateway.refunds == []


@pytest.mark.integration
class TestGateValidation:
    def _validate(self, lifecycle: Lifecycle) -> ValidateTicketUseCase:
        return ValidateTicketUseCase(
            uow=lifecycle.uow(), clock=lifecycle.clock, audit_trail=lifecycle.audit_trail
        )

    async def test_ticket_is_admitted_exactly_once(
        self, lifecycle: Lifecycle, buyer: CurrentUser, organizer: CurrentUser
    ) -> None:
        """
        Given: a confirmed ticket with a QR credential
        When: it is scanned before the event, then twice after doors open
        Then: not started (ticket untouched), admitted, already used
        """
        event, ticket = await buy_confirmed_ticket(lifecycle, user=buyer)

        with pytest.raises(NotStartedError):
            await self._validate(lifecycle).execute(qr_code_data=ticket.qr_code_data)
        assert (await load_ticket(lifecycle, ticket.id)).status == TicketStatus.CONFIRMED

        lifecycle.clock.set(event.start_date + timedelta(minutes=5))
        outcome = await self._validate(lifecycle).execute(
            qr_code_data=ticket.qr_code_data, validator_id=organizer.id
        )
        assert outcome.ticket.status == TicketStatus.USED
        assert outcome.validation_method == 'qr_code'

        with pytest.raises(AlreadyUsedError):
            await self._validate(lifecycle).execute(qr_code_data=ticket.qr_code_data)

        stored = await load_ticket(lifecycle, ticket.id)
        assert stored.status == TicketStatus.USED
        assert stored.used_at == event.start_date + timedelta(minutes=5)
        assert stored.validation_method == 'qr_code'

    async def test_unpaid_ticket_is_not_admitted(
        self, lifecycle: Lifecycle, buyer: CurrentUser
    ) -> None:
        event, tier = await lifecycle.seed_event()
        purchase = await lifecycle.purchase().execute(
            user_id=buyer.id, event_id=event.id, quantity=1, tier_id=tier.id
        )
        lifecycle.clock.set(event.start_date)

        with pytest.raises(ConflictingStateError):
            await self._validate(lifecycle).execute(ticket_id=purchase.tickets[0].id)
