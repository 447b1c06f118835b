"""
Unit tests for the orchestration services

Test Focus:
1. ValidateTicketUseCase: one credential only, the conditional update decides double scans
2. PaymentFlow: declines fail the payment, timeouts leave it pending, apply failures reconcile
3. AuditTrail: a failing audit write never breaks the caller
4. LifecycleSweeper: one failing sweep does not stop the others
5. allocate_refund: a refund is spread over completed payments, newest first
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest
from uuid_utils.compat import uuid7

from src.platform.exception.exceptions import (
    AlreadyUsedError,
    ConflictingStateError,
    GatewayFatalError,
    GatewayTransientError,
    InsufficientError,
    NotFoundError,
    NotStartedError,
    ValidationError,
)
from src.service.ticket_lifecycle.app.command.ticket_refund_use_case import allocate_refund
from src.service.ticket_lifecycle.app.command.validate_ticket_use_case import (
    ValidateTicketUseCase,
)
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry
from src.service.ticket_lifecycle.app.dto.lifecycle_results import ReservationSweepResult
from src.service.ticket_lifecycle.app.service.audit_trail import AuditTrail
from src.service.ticket_lifecycle.app.service.payment_flow import PaymentFlow
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway, PaymentStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.gateway_result import VerificationResult
from src.service.ticket_lifecycle.driving_adapter.background.lifecycle_sweeper import (
    LifecycleSweeper,
)
from test.service.ticket_lifecycle.lifecycle_factories import make_event, make_ticket
from test.shared.lifecycle_fakes import FakeClock, ScriptedGateway, registry_with


NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestValidateTicket:
    @pytest.fixture
    def event(self):
        return make_event(now=NOW)

    @pytest.fixture
    def ticket(self, event):
        return make_ticket(now=NOW, event=event, qr_code_data='{"ticketNumber": "x"}')

    @pytest.fixture
    def uow(self, event, ticket) -> AsyncMock:
        uow = AsyncMock()
        uow.ticket_repo.find_by_credential = AsyncMock(return_value=ticket)
        uow.ticket_repo.get_by_id = AsyncMock(return_value=ticket)
        uow.ticket_repo.mark_used_if_confirmed = AsyncMock(return_value=True)
        uow.event_repo.get_by_id = AsyncMock(return_value=event)
        return uow

    def _use_case(self, uow: AsyncMock, *, now: datetime) -> ValidateTicketUseCase:
        return ValidateTicketUseCase(uow=uow, clock=FakeClock(now), audit_trail=AsyncMock())

    @pytest.mark.asyncio
    async def test_first_scan_admits_the_ticket(self, uow: AsyncMock, event, ticket) -> None:
        """
        Given: a confirmed ticket and an event that has started
        When: its QR payload is scanned
        Then: the ticket is used, the method recorded, and an audit entry written
        """
        at_the_gate = event.start_date + timedelta(minutes=10)
        use_case = self._use_case(uow, now=at_the_gate)

        outcome = await use_case.execute(qr_code_data=ticket.qr_code_data)

        assert outcome.validation_method == 'qr_code'
        assert outcome.ticket.status == TicketStatus.USED
        assert outcome.ticket.used_at == at_the_gate
        uow.ticket_repo.mark_used_if_confirmed.assert_awaited_once_with(
            ticket_id=ticket.id, used_at=at_the_gate, validation_method='qr_code'
        )
        uow.commit.assert_awaited_once()
        entry = use_case.audit_trail.record.call_args.args[0]
        assert entry.action == AuditAction.TICKET_VALIDATED

    @pytest.mark.asyncio
    async def test_losing_a_concurrent_scan_is_already_used(
        self, uow: AsyncMock, event, ticket
    ) -> None:
        """
        Given: another gate flipped the ticket to used between read and update
        When: this scan's conditional update matches no row
        Then: AlreadyUsedError and nothing is committed
        """
        uow.ticket_repo.mark_used_if_confirmed = AsyncMock(return_value=False)
        uow.ticket_repo.get_by_id = AsyncMock(
            return_value=make_ticket(now=NOW, event=event, status=TicketStatus.USED)
        )
        use_case = self._use_case(uow, now=event.start_date)

        with pytest.raises(AlreadyUsedError):
            await use_case.execute(qr_code_data=ticket.qr_code_data)
        uow.commit.assert_not_awaited()
        use_case.audit_trail.record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refund_pending_ticket_is_refused(self, uow: AsyncMock, event, ticket) -> None:
        uow.ticket_repo.mark_used_if_confirmed = AsyncMock(return_value=False)
        uow.ticket_repo.get_by_id = AsyncMock(
            return_value=make_ticket(now=NOW, event=event, status=TicketStatus.REFUND_PENDING)
        )

        with pytest.raises(ConflictingStateError):
            await self._use_case(uow, now=event.start_date).execute(ticket_id=ticket.id)

    @pytest.mark.asyncio
    async def test_ticket_gone_after_a_lost_scan_is_not_found(
        self, uow: AsyncMock, event, ticket
    ) -> None:
        uow.ticket_repo.mark_used_if_confirmed = AsyncMock(return_value=False)
        uow.ticket_repo.get_by_id = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError, match='Ticket not found'):
            await self._use_case(uow, now=event.start_date).execute(
                qr_code_data=ticket.qr_code_data
            )
        uow.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scan_before_the_event_starts(self, uow: AsyncMock, ticket) -> None:
        with pytest.raises(NotStartedError):
            await self._use_case(uow, now=NOW).execute(qr_code_data=ticket.qr_code_data)
        uow.ticket_repo.mark_used_if_confirmed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_credential(self, uow: AsyncMock) -> None:
        uow.ticket_repo.find_by_credential = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await self._use_case(uow, now=NOW).execute(barcode_data='000000')

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        'kwargs',
        [
            {},
            {'qr_code_data': 'a', 'barcode_data': 'b'},
            {'nfc_data': 'a', 'ticket_id': uuid7()},
        ],
    )
    async def test_exactly_one_credential_is_required(self, uow: AsyncMock, kwargs) -> None:
        with pytest.raises(ValidationError):
            await self._use_case(uow, now=NOW).execute(**kwargs)


@pytest.mark.unit
class TestPaymentFlow:
    @pytest.fixture
    def gateway(self) -> ScriptedGateway:
        return ScriptedGateway()

    @pytest.fixture
    def payment(self) -> Payment:
        return Payment(
            id=uuid7(),
            user_id=uuid7(),
            gateway=PaymentGateway.STRIPE,
            payment_method='card',
            reference_number='PAY-1906372800000-ABC123',
            amount=Decimal('220.00'),
            currency='USD',
            created_at=NOW,
        )

    @pytest.fixture
    def flow(self, gateway: ScriptedGateway, payment: Payment) -> PaymentFlow:
        payments = AsyncMock()
        payments.mark_failed = AsyncMock(
            side_effect=lambda uow, **kw: payment.fail(reason=kw['reason'], now=kw['now'])
        )
        return PaymentFlow(
            gateways=registry_with(gateway),
            payments=payments,
            reconciler=AsyncMock(),
            audit_trail=AsyncMock(),
            clock=FakeClock(NOW),
        )

    @pytest.mark.asyncio
    async def test_approved_payment_returns_the_verification(
        self, flow: PaymentFlow, gateway: ScriptedGateway, payment: Payment
    ) -> None:
        result = await flow.verify(
            AsyncMock(), payment=payment, verification_payload={'payment_intent_id': 'pi_1'}
        )

        assert result.success
        assert result.transaction_id == f'ch_{payment.reference_number}'
        assert gateway.verifications[0]['amount'] == '220.00'
        assert gateway.verifications[0]['payment_intent_id'] == 'pi_1'

    @pytest.mark.asyncio
    async def test_decline_marks_the_payment_failed(
        self, flow: PaymentFlow, gateway: ScriptedGateway, payment: Payment
    ) -> None:
        """
        Given: the gateway declines the card
        When: verifying
        Then: the payment is failed in its own transaction and GatewayFatalError is raised
        """
        gateway.decline_reason = 'card_declined'
        uow = AsyncMock()

        with pytest.raises(GatewayFatalError, match='card_declined'):
            await flow.verify(uow, payment=payment, verification_payload={})

        flow.payments.mark_failed.assert_awaited_once()
        assert flow.payments.mark_failed.call_args.kwargs['reason'] == 'card_declined'
        uow.commit.assert_awaited_once()
        entry = flow.audit_trail.record.call_args.args[0]
        assert entry.action == AuditAction.PAYMENT_FAILED

    @pytest.mark.asyncio
    async def test_gateway_timeout_leaves_the_payment_pending(
        self, flow: PaymentFlow, gateway: ScriptedGateway, payment: Payment
    ) -> None:
        gateway.unreachable = True

        with pytest.raises(GatewayTransientError):
            await flow.verify(AsyncMock(), payment=payment, verification_payload={})

        flow.payments.mark_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_apply_failure_sends_money_to_the_reconciler(self, flow: PaymentFlow) -> None:
        """
        Given: money was verified but the order was cancelled meanwhile
        When: the apply step raises
        Then: the reconciler refunds it and the error reaches the caller
        """
        verification = VerificationResult.succeeded(transaction_id='ch_1')
        payment_id = uuid7()

        async def apply(uow):
            raise ConflictingStateError('Order is cancelled, payments cannot be applied')

        with pytest.raises(ConflictingStateError):
            await flow.apply_or_reconcile(
                AsyncMock(), payment_id=payment_id, verification=verification, apply=apply
            )

        flow.reconciler.reconcile.assert_awaited_once_with(
            payment_id=payment_id,
            verification=verification,
            reason='Order is cancelled, payments cannot be applied',
        )

    @pytest.mark.asyncio
    async def test_apply_success_commits(self, flow: PaymentFlow) -> None:
        uow = AsyncMock()

        async def apply(uow):
            return 'applied'

        result = await flow.apply_or_reconcile(
            uow,
            payment_id=uuid7(),
            verification=VerificationResult.succeeded(transaction_id='ch_1'),
            apply=apply,
        )

        assert result == 'applied'
        uow.commit.assert_awaited_once()
        flow.reconciler.reconcile.assert_not_awaited()


@pytest.mark.unit
class TestAuditTrail:
    def _entry(self) -> AuditEntry:
        return AuditEntry(
            action=AuditAction.ORDER_CONFIRMED,
            resource_kind=ResourceKind.ORDER,
            resource_id=uuid7(),
            metadata={'amount': Decimal('300.00')},
        )

    @pytest.mark.asyncio
    async def test_entry_is_stamped_and_appended(self) -> None:
        repo = AsyncMock()
        repo.append = AsyncMock(side_effect=lambda log: log)
        trail = AuditTrail(audit_log_repo=repo, clock=FakeClock(NOW))

        log = await trail.record(self._entry())

        assert log is not None
        assert log.created_at == NOW
        assert log.action == AuditAction.ORDER_CONFIRMED
        assert log.metadata == {'amount': '300.00'}

    @pytest.mark.asyncio
    async def test_failed_write_does_not_raise(self) -> None:
        repo = AsyncMock()
        repo.append = AsyncMock(side_effect=RuntimeError('disk full'))
        trail = AuditTrail(audit_log_repo=repo, clock=FakeClock(NOW))

        assert await trail.record(self._entry()) is None

    @pytest.mark.asyncio
    async def test_record_all_writes_every_entry(self) -> None:
        repo = AsyncMock()
        repo.append = AsyncMock(side_effect=lambda log: log)
        trail = AuditTrail(audit_log_repo=repo, clock=FakeClock(NOW))

        await trail.record_all([self._entry(), self._entry()])

        assert repo.append.await_count == 2


@pytest.mark.unit
class TestLifecycleSweeper:
    @pytest.mark.asyncio
    async def test_failing_sweep_does_not_stop_the_others(self) -> None:
        release = AsyncMock()
        release.execute = AsyncMock(side_effect=RuntimeError('database went away'))
        checkouts = AsyncMock()
        checkouts.execute = AsyncMock(return_value=[Mock(), Mock()])
        transfers = AsyncMock()
        transfers.execute = AsyncMock(return_value=[Mock()])

        sweeper = LifecycleSweeper(
            release_reservations=release,
            expire_checkouts=checkouts,
            expire_transfers=transfers,
            interval=1,
            batch_size=50,
        )

        assert await sweeper.run_once() == {'reservations': 0, 'checkouts': 2, 'transfers': 1}
        checkouts.execute.assert_awaited_once_with(batch_size=50)

    @pytest.mark.asyncio
    async def test_released_reservations_are_counted(self) -> None:
        release = AsyncMock()
        release.execute = AsyncMock(
            return_value=ReservationSweepResult(released=[Mock(), Mock(), Mock()])
        )
        checkouts = AsyncMock()
        checkouts.execute = AsyncMock(return_value=[])
        transfers = AsyncMock()
        transfers.execute = AsyncMock(return_value=[])

        sweeper = LifecycleSweeper(
            release_reservations=release,
            expire_checkouts=checkouts,
            expire_transfers=transfers,
            interval=1,
            batch_size=10,
        )

        result = await sweeper.run_once()

        assert result['reservations'] == 3


def _paid(amount: str, *, minutes: int, refunded: str = '0.00', credit: bool = False) -> Payment:
    return Payment(
        id=uuid7(),
        user_id=uuid7(),
        gateway=PaymentGateway.STRIPE,
        payment_method='card',
        reference_number=f'PAY-{minutes}',
        amount=-Decimal(amount) if credit else Decimal(amount),
        currency='USD',
        created_at=NOW,
        status=PaymentStatus.COMPLETED,
        refunded_amount=Decimal(refunded),
        completed_at=NOW + timedelta(minutes=minutes),
    )


@pytest.mark.unit
class TestRefundAllocation:
    def test_single_payment_covers_the_refund(self) -> None:
        payment = _paid('110.00', minutes=0)

        (piece,) = allocate_refund([payment], amount=Decimal('110.00'))

        assert piece.payment is payment
        assert piece.amount == Decimal('110.00')

    def test_newest_payment_gives_back_first(self) -> None:
        """
        Given: 60.00 paid first, 50.00 paid a minute later
        When: 110.00 is refunded
        Then: the later payment returns 50.00 and the earlier one the remaining 60.00
        """
        first, second = _paid('60.00', minutes=0), _paid('50.00', minutes=1)

        pieces = allocate_refund([first, second], amount=Decimal('110.00'))

        assert [(p.payment, p.amount) for p in pieces] == [
            (second, Decimal('50.00')),
            (first, Decimal('60.00')),
        ]

    def test_partial_refund_stops_once_covered(self) -> None:
        first, second = _paid('60.00', minutes=0), _paid('50.00', minutes=1)

        pieces = allocate_refund([first, second], amount=Decimal('30.00'))

        assert [(p.payment, p.amount) for p in pieces] == [(second, Decimal('30.00'))]

    def test_credits_and_spent_payments_are_skipped(self) -> None:
        spent = _paid('50.00', minutes=2, refunded='50.00')
        spent.status = PaymentStatus.REFUNDED
        partly = _paid('50.00', minutes=1, refunded='20.00')
        partly.status = PaymentStatus.PARTIALLY_REFUNDED
        credit = _paid('20.00', minutes=3, credit=True)
        pending = _paid('80.00', minutes=4)
        pending.status = PaymentStatus.PENDING
        oldest = _paid('40.00', minutes=0)

        pieces = allocate_refund(
            [spent, partly, credit, pending, oldest], amount=Decimal('50.00')
        )

        assert [(p.payment, p.amount) for p in pieces] == [
            (partly, Decimal('30.00')),
            (oldest, Decimal('20.00')),
        ]

    def test_refund_beyond_what_was_paid_is_refused(self) -> None:
        with pytest.raises(InsufficientError):
            allocate_refund(
                [_paid('60.00', minutes=0), _paid('50.00', minutes=1)],
                amount=Decimal('110.01'),
            )
