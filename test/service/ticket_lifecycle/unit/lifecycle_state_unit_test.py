"""
Unit tests for the lifecycle state machines

Covers orders, reservations, payments, tickets, transfers, refunds,
checkouts and carts. Every illegal move must raise ConflictingStateError.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from uuid_utils.compat import uuid7

from src.platform.exception.exceptions import (
    AlreadyUsedError,
    ConflictingStateError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    NotStartedError,
    ValidationError,
)
from src.service.ticket_lifecycle.domain.entity.cart_entity import Cart, CartItem
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout, CheckoutLine
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer
from src.service.ticket_lifecycle.domain.enum.cart_status import CartStatus
from src.service.ticket_lifecycle.domain.enum.checkout_status import CheckoutStatus
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import (
    PaymentGateway,
    PaymentStatus,
)
from src.service.ticket_lifecycle.domain.enum.refund_status import RefundStatus
from src.service.ticket_lifecycle.domain.enum.reservation_status import ReservationStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.enum.transfer_status import TransferStatus
from src.service.ticket_lifecycle.domain.pricing_domain import quote_line
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine
from test.service.ticket_lifecycle.lifecycle_factories import (
    make_event,
    make_order,
    make_ticket,
)


NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


def _payment(amount: str = '300.00') -> Payment:
    return Payment(
        id=uuid7(),
        user_id=uuid7(),
        gateway=PaymentGateway.STRIPE,
        payment_method='card',
        reference_number='PAY-1-ABCDEF',
        amount=Decimal(amount),
        currency='USD',
        created_at=NOW,
    )


def _transfer(*, to_user_id=None, to_email=None, from_user_id=None) -> TicketTransfer:
    return TicketTransfer.initiate(
        id=uuid7(),
        ticket_id=uuid7(),
        from_user_id=from_user_id or uuid7(),
        to_user_id=to_user_id,
        to_email=to_email,
        transfer_code='TRFABC123XYZ',
        message=None,
        now=NOW,
        ttl=timedelta(days=7),
    )


@pytest.mark.unit
class TestOrderPayments:
    def test_partial_then_full_payment(self) -> None:
        """
        Given: an order of 300.00 with nothing paid
        When: 100.00 then 200.00 are applied
        Then: it moves reserved -> partially_paid -> confirmed with no balance left
        """
        order = make_order(now=NOW, total='300.00')
        assert order.status == OrderStatus.RESERVED

        order, applied = order.apply_payment(amount=Decimal('100.00'), now=NOW)
        assert applied == Decimal('100.00')
        assert order.status == OrderStatus.PARTIALLY_PAID
        assert order.balance_due == Decimal('200.00')

        order, applied = order.apply_payment(amount=Decimal('200.00'), now=NOW)
        assert order.status == OrderStatus.CONFIRMED
        assert order.balance_due == Decimal('0.00')
        assert order.amount_paid + order.balance_due == order.total_amount
        assert order.confirmed_at == NOW

    def test_overpayment_is_clamped_to_the_balance(self) -> None:
        order = make_order(now=NOW, total='300.00', paid='250.00')

        order, applied = order.apply_payment(amount=Decimal('80.00'), now=NOW)

        assert applied == Decimal('50.00')
        assert order.amount_paid == Decimal('300.00')

    def test_paying_a_confirmed_order_is_rejected(self) -> None:
        order = make_order(now=NOW, total='300.00', paid='300.00')

        with pytest.raises(ConflictingStateError):
            order.apply_payment(amount=Decimal('1.00'), now=NOW)

    def test_non_positive_payment_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_order(now=NOW).apply_payment(amount=Decimal('0'), now=NOW)

    def test_cancelled_order_accepts_nothing(self) -> None:
        order = make_order(now=NOW).cancel(reason='changed my mind', now=NOW)

        assert order.status == OrderStatus.CANCELLED
        with pytest.raises(ConflictingStateError):
            order.apply_payment(amount=Decimal('10.00'), now=NOW)
        with pytest.raises(ConflictingStateError):
            order.cancel(reason=None, now=NOW)

    def test_refunds_never_exceed_amount_paid(self) -> None:
        order = make_order(now=NOW, total='300.00', paid='300.00')

        order = order.record_refund(amount=Decimal('110.00'), fully_refunded=False, now=NOW)
        assert order.refunded_amount == Decimal('110.00')
        assert order.amount_paid == Decimal('300.00')
        assert order.refundable_amount == Decimal('190.00')

        with pytest.raises(ValidationError):
            order.record_refund(amount=Decimal('200.00'), fully_refunded=True, now=NOW)

        order = order.record_refund(amount=Decimal('190.00'), fully_refunded=True, now=NOW)
        assert order.status == OrderStatus.REFUNDED

    def test_dropping_a_line_keeps_the_balance_identity(self) -> None:
        order = make_order(now=NOW, total='330.00')

        order = order.drop_line_amount(amount=Decimal('110.00'), now=NOW)

        assert order.total_amount == Decimal('220.00')
        assert order.balance_due == Decimal('220.00')


@pytest.mark.unit
class TestReservation:
    def _hold(self, quantity: int = 2) -> Reservation:
        return Reservation.hold(
            id=uuid7(),
            user_id=uuid7(),
            line=InventoryLine(event_id=uuid7(), quantity=quantity),
            now=NOW,
            ttl=timedelta(minutes=15),
        )

    def test_hold_expires_after_ttl(self) -> None:
        reservation = self._hold()

        assert reservation.status == ReservationStatus.HELD
        assert reservation.expires_at == NOW + timedelta(minutes=15)
        assert not reservation.is_expired(NOW + timedelta(minutes=14))
        assert reservation.is_expired(NOW + timedelta(minutes=15))

    def test_confirm_before_expiry(self) -> None:
        payment_id = uuid7()

        confirmed = self._hold().confirm(payment_id=payment_id, now=NOW + timedelta(minutes=5))

        assert confirmed.status == ReservationStatus.CONFIRMED
        assert confirmed.payment_id == payment_id

    def test_confirm_after_expiry_is_rejected(self) -> None:
        with pytest.raises(ExpiredError):
            self._hold().confirm(payment_id=None, now=NOW + timedelta(minutes=16))

    def test_released_reservation_is_terminal(self) -> None:
        released = self._hold().release(reason='expired', now=NOW)

        assert released.status == ReservationStatus.RELEASED
        assert released.release_reason == 'expired'
        with pytest.raises(ConflictingStateError):
            released.confirm(payment_id=None, now=NOW)

    def test_shrink_gives_back_units_and_releases_on_the_last(self) -> None:
        reservation = self._hold(quantity=3)

        reservation = reservation.shrink(by=1, now=NOW)
        assert reservation.quantity == 2
        assert reservation.is_active

        reservation = reservation.shrink(by=2, now=NOW)
        assert reservation.status == ReservationStatus.RELEASED


@pytest.mark.unit
class TestPayment:
    def test_complete_then_refund_in_two_steps(self) -> None:
        payment = _payment('300.00').complete(
            transaction_id='ch_1', gateway_response={'ok': True}, now=NOW
        )
        assert payment.status == PaymentStatus.COMPLETED

        payment = payment.record_refund(amount=Decimal('110.00'), now=NOW)
        assert payment.status == PaymentStatus.PARTIALLY_REFUNDED
        assert payment.refundable_amount == Decimal('190.00')

        payment = payment.record_refund(amount=Decimal('190.00'), now=NOW)
        assert payment.status == PaymentStatus.REFUNDED

    def test_failed_payment_is_terminal(self) -> None:
        payment = _payment().fail(reason='card declined', now=NOW)

        assert payment.status == PaymentStatus.FAILED
        assert payment.metadata['failure_reason'] == 'card declined'
        with pytest.raises(ConflictingStateError):
            payment.complete(transaction_id='ch_1', gateway_response={}, now=NOW)

    def test_reconciled_payment_is_marked_refunded(self) -> None:
        claimed = _payment('50.00').claim_for_reconciliation(reason='order cancelled', now=NOW)
        assert claimed.status == PaymentStatus.RECONCILING

        payment = claimed.mark_reconciled(transaction_id='ch_9', refund_id='re_9', now=NOW)

        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refunded_amount == Decimal('50.00')
        assert payment.metadata['reconciled_refund_id'] == 're_9'

    def test_only_pending_payments_can_be_claimed_for_reconciliation(self) -> None:
        completed = _payment().complete(transaction_id='ch_1', gateway_response={}, now=NOW)

        with pytest.raises(ConflictingStateError):
            completed.claim_for_reconciliation(reason='late duplicate', now=NOW)

        claimed = _payment().claim_for_reconciliation(reason='order cancelled', now=NOW)
        with pytest.raises(ConflictingStateError):
            claimed.complete(transaction_id='ch_1', gateway_response={}, now=NOW)
        with pytest.raises(ConflictingStateError):
            _payment().mark_reconciled(transaction_id='ch_9', refund_id='re_9', now=NOW)

    def test_negative_amount_is_a_credit(self) -> None:
        assert _payment('-110.00').is_credit
        assert not _payment('110.00').is_credit


@pytest.mark.unit
class TestTicket:
    def test_reserved_ticket_confirms_then_cancel_is_terminal(self) -> None:
        event = make_event(now=NOW)
        ticket = make_ticket(now=NOW, event=event, status=TicketStatus.RESERVED)

        ticket = ticket.confirm(now=NOW)
        assert ticket.status == TicketStatus.CONFIRMED

        ticket = ticket.cancel(now=NOW)
        assert ticket.status == TicketStatus.CANCELLED
        with pytest.raises(ConflictingStateError):
            ticket.confirm(now=NOW)

    def test_refund_round_trip_through_pending(self) -> None:
        ticket = make_ticket(now=NOW, event=make_event(now=NOW))

        pending = ticket.request_refund(now=NOW)
        assert pending.status == TicketStatus.REFUND_PENDING
        assert pending.restore_after_rejected_refund(now=NOW).status == TicketStatus.CONFIRMED
        assert pending.mark_refunded(now=NOW).status == TicketStatus.REFUNDED

    def test_change_owner_keeps_the_purchaser(self) -> None:
        ticket = make_ticket(now=NOW, event=make_event(now=NOW))
        new_owner = uuid7()

        moved = ticket.change_owner(new_owner_id=new_owner, now=NOW)

        assert moved.current_owner() == new_owner
        assert moved.purchaser_id == ticket.purchaser_id
        assert moved.transfer_count == 1

    def test_change_owner_requires_a_confirmed_ticket(self) -> None:
        ticket = make_ticket(now=NOW, event=make_event(now=NOW), status=TicketStatus.RESERVED)

        with pytest.raises(ConflictingStateError):
            ticket.change_owner(new_owner_id=uuid7(), now=NOW)

    def test_admission_window(self) -> None:
        """
        Given: a confirmed ticket for an event that starts in 30 days
        When: it is presented before the start, during, and after the end
        Then: not started, admitted, expired
        """
        event = make_event(now=NOW)
        ticket = make_ticket(now=NOW, event=event)

        with pytest.raises(NotStartedError):
            ticket.ensure_admissible(
                event_start=event.start_date, event_end=event.end_date, now=NOW
            )
        ticket.ensure_admissible(
            event_start=event.start_date,
            event_end=event.end_date,
            now=event.start_date + timedelta(minutes=5),
        )
        with pytest.raises(ExpiredError):
            ticket.ensure_admissible(
                event_start=event.start_date,
                event_end=event.end_date,
                now=event.end_date + timedelta(minutes=1),
            )

    def test_used_ticket_is_never_admitted_again(self) -> None:
        event = make_event(now=NOW)
        ticket = make_ticket(now=NOW, event=event, status=TicketStatus.USED)

        with pytest.raises(AlreadyUsedError):
            ticket.ensure_admissible(
                event_start=event.start_date, event_end=event.end_date, now=event.start_date
            )

    def test_unpaid_ticket_is_not_admitted(self) -> None:
        event = make_event(now=NOW)
        ticket = make_ticket(now=NOW, event=event, status=TicketStatus.RESERVED)

        with pytest.raises(ConflictingStateError):
            ticket.ensure_admissible(
                event_start=event.start_date, event_end=event.end_date, now=event.start_date
            )


@pytest.mark.unit
class TestTransfer:
    def test_recipient_is_required_and_cannot_be_the_sender(self) -> None:
        sender = uuid7()

        with pytest.raises(ValidationError):
            _transfer(from_user_id=sender)
        with pytest.raises(ValidationError):
            _transfer(from_user_id=sender, to_user_id=sender)

    def test_addressed_transfer_accepts_only_its_recipient(self) -> None:
        recipient = uuid7()
        transfer = _transfer(to_user_id=recipient)

        with pytest.raises(ForbiddenError):
            transfer.ensure_acceptable_by(user_id=uuid7(), transfer_code=None, now=NOW)

        transfer.ensure_acceptable_by(user_id=recipient, transfer_code=None, now=NOW)
        accepted = transfer.accept(user_id=recipient, now=NOW)
        assert accepted.status == TransferStatus.ACCEPTED
        assert accepted.is_accepted_by(recipient)

    def test_email_transfer_needs_the_code_and_a_different_user(self) -> None:
        sender = uuid7()
        transfer = _transfer(from_user_id=sender, to_email='friend@example.com')

        with pytest.raises(ForbiddenError):
            transfer.ensure_acceptable_by(
                user_id=sender, transfer_code=transfer.transfer_code, now=NOW
            )
        with pytest.raises(ForbiddenError):
            transfer.ensure_acceptable_by(user_id=uuid7(), transfer_code='WRONG', now=NOW)

        claimant = uuid7()
        transfer.ensure_acceptable_by(
            user_id=claimant, transfer_code=transfer.transfer_code, now=NOW
        )
        assert transfer.accept(user_id=claimant, now=NOW).to_user_id == claimant

    def test_expired_transfer_cannot_be_accepted(self) -> None:
        recipient = uuid7()
        transfer = _transfer(to_user_id=recipient)

        with pytest.raises(ExpiredError):
            transfer.ensure_acceptable_by(
                user_id=recipient, transfer_code=None, now=NOW + timedelta(days=7)
            )
        assert transfer.expire().status == TransferStatus.EXPIRED

    def test_decline_and_cancel_permissions(self) -> None:
        sender, recipient = uuid7(), uuid7()
        transfer = _transfer(from_user_id=sender, to_user_id=recipient)

        with pytest.raises(ForbiddenError):
            transfer.decline(user_id=uuid7(), now=NOW)
        with pytest.raises(ForbiddenError):
            transfer.cancel(user_id=recipient, now=NOW)

        assert transfer.decline(user_id=recipient, now=NOW).status == TransferStatus.DECLINED
        cancelled = transfer.cancel(user_id=sender, now=NOW)
        assert cancelled.status == TransferStatus.CANCELLED
        with pytest.raises(ConflictingStateError):
            cancelled.ensure_acceptable_by(user_id=recipient, transfer_code=None, now=NOW)


@pytest.mark.unit
class TestRefund:
    def _refund(self) -> TicketRefund:
        return TicketRefund(
            id=uuid7(),
            ticket_id=uuid7(),
            order_id=uuid7(),
            user_id=uuid7(),
            original_amount=Decimal('110.00'),
            refund_amount=Decimal('110.00'),
            currency='USD',
            reason='cannot attend',
            requested_at=NOW,
        )

    def test_approve_records_the_gateway_refund(self) -> None:
        approver, credit_id = uuid7(), uuid7()

        claimed = self._refund().claim()
        assert claimed.status == RefundStatus.PROCESSING

        refund = claimed.approve(
            approver_id=approver, gateway_refund_id='re_1', refund_payment_id=credit_id, now=NOW
        )

        assert refund.status == RefundStatus.APPROVED
        assert refund.approved_by == approver
        assert refund.refund_payment_id == credit_id

    def test_decided_refund_cannot_be_decided_again(self) -> None:
        rejected = self._refund().reject(rejector_id=uuid7(), reason='too late', now=NOW)

        assert rejected.status == RefundStatus.REJECTED
        assert rejected.rejection_reason == 'too late'
        with pytest.raises(ConflictingStateError):
            rejected.approve(
                approver_id=uuid7(), gateway_refund_id=None, refund_payment_id=uuid7(), now=NOW
            )

    def test_claimed_refund_is_held_by_one_approver(self) -> None:
        claimed = self._refund().claim()

        with pytest.raises(ConflictingStateError):
            claimed.claim()
        with pytest.raises(ConflictingStateError):
            claimed.reject(rejector_id=uuid7(), reason='too late', now=NOW)
        with pytest.raises(ConflictingStateError):
            self._refund().approve(
                approver_id=uuid7(), gateway_refund_id=None, refund_payment_id=uuid7(), now=NOW
            )
        assert claimed.release_claim().status == RefundStatus.PENDING


@pytest.mark.unit
class TestCheckoutAndCart:
    def _checkout(self) -> Checkout:
        event = make_event(now=NOW, base_price='100.00')
        line = InventoryLine(event_id=event.id, quantity=2)
        return Checkout.initiate(
            id=uuid7(),
            user_id=uuid7(),
            cart_id=None,
            payment_method='card',
            billing_info=None,
            lines=[CheckoutLine(line=line, quote=quote_line(event=event, quantity=2))],
            currency='USD',
            now=NOW,
            ttl=timedelta(minutes=15),
        )

    def test_checkout_total_is_the_sum_of_its_lines(self) -> None:
        checkout = self._checkout()

        assert checkout.total_amount == Decimal('220.00')
        assert checkout.status == CheckoutStatus.PENDING

    def test_checkout_completes_once_and_only_before_expiry(self) -> None:
        checkout = self._checkout()

        with pytest.raises(ExpiredError):
            checkout.complete(order_id=uuid7(), payment_id=None, now=NOW + timedelta(minutes=15))

        completed = checkout.complete(order_id=uuid7(), payment_id=uuid7(), now=NOW)
        assert completed.status == CheckoutStatus.COMPLETED
        with pytest.raises(ConflictingStateError):
            completed.cancel(now=NOW)

    def test_expired_checkout_is_terminal(self) -> None:
        expired = self._checkout().expire(now=NOW)

        assert expired.status == CheckoutStatus.EXPIRED
        with pytest.raises(ConflictingStateError):
            expired.complete(order_id=uuid7(), payment_id=None, now=NOW)

    def test_cart_item_lifecycle(self) -> None:
        cart = Cart.open(id=uuid7(), user_id=uuid7(), now=NOW, ttl=timedelta(days=1))
        item = CartItem(
            id=uuid7(),
            cart_id=cart.id,
            line=InventoryLine(event_id=uuid7(), quantity=1),
            added_at=NOW,
        )

        cart = cart.add_item(item=item, currency='USD', now=NOW)
        assert cart.currency == 'USD'

        cart = cart.update_quantity(item_id=item.id, quantity=3, now=NOW)
        assert cart.find_item(item.id).quantity == 3

        with pytest.raises(ValidationError):
            other = CartItem(
                id=uuid7(),
                cart_id=cart.id,
                line=InventoryLine(event_id=uuid7(), quantity=1),
                added_at=NOW,
            )
            cart.add_item(item=other, currency='EUR', now=NOW)

        cart = cart.remove_item(item_id=item.id, now=NOW)
        assert cart.is_empty
        assert cart.currency is None
        with pytest.raises(NotFoundError):
            cart.find_item(item.id)

    def test_completed_cart_is_frozen(self) -> None:
        cart = Cart.open(id=uuid7(), user_id=uuid7(), now=NOW, ttl=timedelta(days=1))
        cart = cart.complete(now=NOW)

        assert cart.status == CartStatus.COMPLETED
        with pytest.raises(ConflictingStateError):
            cart.clear(now=NOW)
