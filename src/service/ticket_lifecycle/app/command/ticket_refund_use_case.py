"""
Ticket refunds

request -> approve | reject. Approval claims the refund (pending -> processing),
returns the money through the gateways of the order's completed payments with
no transaction open, then writes the ticket, order, source payments, one
negative credit Payment per source and the restored inventory together.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Self
from uuid import UUID

import attrs
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
from uuid_utils.compat import uuid7

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    CustomBaseError,
    ForbiddenError,
    GatewayFatalError,
    GatewayTransientError,
    InsufficientError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import RefundDecision
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGatewayRegistry
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.domain.credential_domain import refund_payment_reference
from src.service.ticket_lifecycle.domain.entity.event_entity import Event
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentStatus
from src.service.ticket_lifecycle.domain.enum.refund_status import RefundStatus
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.money import Money, to_cents


def ensure_can_moderate(event: Event, *, moderator_id: UUID, is_admin: bool) -> None:
    if not is_admin and event.organizer_id != moderator_id:
        raise ForbiddenError('Only the event organizer or an admin can decide refunds')


async def _load_refund(
    uow: AbstractUnitOfWork, *, refund_id: UUID, for_update: bool = False
) -> TicketRefund:
    refund = await uow.refund_repo.get_by_id(refund_id=refund_id, for_update=for_update)
    if refund is None:
        raise NotFoundError('Refund not found')
    return refund


async def _load_ticket_and_event(
    uow: AbstractUnitOfWork, *, ticket_id: UUID, for_update: bool = False
) -> tuple[Ticket, Event]:
    ticket = await uow.ticket_repo.get_by_id(ticket_id=ticket_id, for_update=for_update)
    if ticket is None:
        raise NotFoundError('Ticket not found')
    event = await uow.event_repo.get_by_id(event_id=ticket.event_id)
    if event is None:
        raise NotFoundError('Event not found')
    return ticket, event


@attrs.define(frozen=True)
class RefundSlice:
    payment: Payment
    amount: Decimal


@attrs.define(frozen=True)
class ReturnedSlice:
    payment_id: UUID
    amount: Decimal
    gateway_refund_id: Optional[str]


def allocate_refund(payments: list[Payment], *, amount: Decimal) -> list[RefundSlice]:
    """
    Spread a refund over the completed payments of an order, newest first

    An order paid in installments may have no single payment large enough to
    cover the refund, so each payment gives back what it has left until the
    amount is met.
    """
    candidates = sorted(
        (
            p
            for p in payments
            if p.status in (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)
            and not p.is_credit
            and p.refundable_amount > 0
        ),
        key=lambda p: (p.completed_at or p.created_at, p.id),
        reverse=True,
    )
    slices: list[RefundSlice] = []
    remaining = to_cents(amount)
    for payment in candidates:
        if remaining <= 0:
            break
        take = min(payment.refundable_amount, remaining)
        slices.append(RefundSlice(payment=payment, amount=take))
        remaining -= take
    if remaining > 0:
        raise InsufficientError('Completed payments on the order do not cover the refund amount')
    return slices


def _joined_refund_ids(returned: list[ReturnedSlice]) -> Optional[str]:
    return ','.join(r.gateway_refund_id for r in returned if r.gateway_refund_id) or None


class RequestRefundUseCase:
    def __init__(
        self, *, uow: AbstractUnitOfWork, clock: IClock, audit_trail: IAuditTrail
    ) -> None:
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
    async def execute(
        self,
        *,
        user_id: UUID,
        ticket_id: UUID,
        reason: str,
        refund_amount: Optional[Decimal] = None,
    ) -> TicketRefund:
        now = self.clock.now()
        async with self.uow:
            ticket, event = await _load_ticket_and_event(
                self.uow, ticket_id=ticket_id, for_update=True
            )
            if ticket.current_owner() != user_id:
                raise ForbiddenError('Only the ticket owner can request a refund')
            if ticket.status != TicketStatus.CONFIRMED:
                raise ConflictingStateError(
                    f'Ticket is {ticket.status}, only confirmed tickets can be refunded',
                    current_state=str(ticket.status),
                )
            window = timedelta(hours=settings.REFUND_WINDOW_HOURS)
            if event.start_date <= now + window:
                raise ValidationError(
                    f'Refunds must be requested at least {settings.REFUND_WINDOW_HOURS} hours '
                    f'before the event starts',
                    field='ticket_id',
                )
            order = await self.uow.order_repo.get_by_id(order_id=ticket.order_id)
            if order is None:
                raise NotFoundError('Order not found')

            amount = to_cents(refund_amount) if refund_amount is not None else ticket.total_price
            if amount <= 0:
                raise ValidationError(
                    'refund_amount must be greater than zero', field='refund_amount'
                )
            if amount > ticket.total_price or amount > order.refundable_amount:
                raise ValidationError(
                    'refund_amount cannot exceed the amount paid for the ticket',
                    field='refund_amount',
                )

            refund = TicketRefund(
                id=uuid7(),
                ticket_id=ticket.id,
                order_id=order.id,
                user_id=user_id,
                original_amount=ticket.total_price,
                refund_amount=amount,
                currency=ticket.currency,
                reason=reason,
                requested_at=now,
            )
            pending_ticket = ticket.request_refund(now=now)
            await self.uow.ticket_repo.update(ticket=pending_ticket)
            await self.uow.refund_repo.create(refund=refund)
            await self.uow.commit()

        metrics.refunds.labels(status=refund.status.value).inc()
        Logger.base.info(
            f'💸 [REFUND] Requested {amount} {refund.currency} for {ticket.ticket_number}'
        )
        await self.audit_trail.record_all(
            [
                AuditEntry(
                    action=AuditAction.REQUEST_REFUND,
                    resource_kind=ResourceKind.REFUND,
                    resource_id=refund.id,
                    actor_id=user_id,
                    after=snapshot(refund, 'status', 'refund_amount', 'original_amount'),
                    metadata={'ticket_id': ticket.id, 'reason': reason},
                ),
                AuditEntry(
                    action=AuditAction.REQUEST_REFUND,
                    resource_kind=ResourceKind.TICKET,
                    resource_id=ticket.id,
                    actor_id=user_id,
                    before=snapshot(ticket, 'status'),
                    after=snapshot(pending_ticket, 'status'),
                    metadata={'refund_id': refund.id},
                ),
            ]
        )
        return refund


class ApproveRefundUseCase:
    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        gateways: IPaymentGatewayRegistry,
        ledger: InventoryLedger,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.gateways = gateways
        self.ledger = ledger
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        gateways: IPaymentGatewayRegistry = Depends(Provide[Container.payment_gateways]),
        ledger: InventoryLedger = Depends(Provide[Container.inventory_ledger]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow, gateways=gateways, ledger=ledger, clock=clock, audit_trail=audit_trail
        )

    @Logger.io
    async def execute(
        self, *, approver_id: UUID, refund_id: UUID, is_admin: bool = False
    ) -> RefundDecision:
        """
        Claim the refund, return the money, then record it

        The claim (pending -> processing) commits before any gateway call, so a
        second approver sees a refund that is no longer pending and never sends
        the money twice. A gateway refusal before anything was returned puts the
        refund back to pending.
        """
        with self.tracer.start_as_current_span(
            'use_case.approve_refund', attributes={'refund.id': str(refund_id)}
        ):
            refund, slices = await self._claim(
                approver_id=approver_id, refund_id=refund_id, is_admin=is_admin
            )
            returned = await self._return_money(
                approver_id=approver_id, refund=refund, slices=slices
            )

            try:
                decision = await self._record(
                    approver_id=approver_id,
                    refund_id=refund_id,
                    returned=returned,
                    now=self.clock.now(),
                )
            except CustomBaseError as e:
                Logger.base.error(
                    f'⚠️ [REFUND] {refund.refund_amount} {refund.currency} returned by gateway '
                    f'({_joined_refund_ids(returned)}) but refund {refund_id} could not be '
                    f'recorded: {e.message}'
                )
                raise

            metrics.refunds.labels(status=decision.refund.status.value).inc()
            Logger.base.info(
                f'💸 [REFUND] Approved {refund.refund_amount} {refund.currency} for '
                f'{decision.ticket.ticket_number} by {approver_id} '
                f'across {len(returned)} payment(s)'
            )
            await self._audit(approver_id=approver_id, refund=refund, decision=decision)
            return decision

    async def _claim(
        self, *, approver_id: UUID, refund_id: UUID, is_admin: bool
    ) -> tuple[TicketRefund, list[RefundSlice]]:
        async with self.uow:
            refund = await _load_refund(self.uow, refund_id=refund_id)
            _, event = await _load_ticket_and_event(self.uow, ticket_id=refund.ticket_id)
            ensure_can_moderate(event, moderator_id=approver_id, is_admin=is_admin)

            refund = await _load_refund(self.uow, refund_id=refund_id, for_update=True)
            refund.ensure_pending()
            slices = allocate_refund(
                await self.uow.payment_repo.list_by_order(order_id=refund.order_id),
                amount=refund.refund_amount,
            )
            await self.uow.refund_repo.update(refund=refund.claim())
            await self.uow.commit()
        return refund, slices

    async def _return_money(
        self, *, approver_id: UUID, refund: TicketRefund, slices: list[RefundSlice]
    ) -> list[ReturnedSlice]:
        returned: list[ReturnedSlice] = []
        try:
            for piece in slices:
                source = piece.payment
                result = await self.gateways.get(source.gateway).refund(
                    transaction_id=source.gateway_transaction_id or source.reference_number,
                    amount=Money(piece.amount, refund.currency),
                    reason=refund.reason,
                )
                if not result.success:
                    raise GatewayFatalError(f'Refund failed: {result.reason}')
                returned.append(
                    ReturnedSlice(
                        payment_id=source.id,
                        amount=piece.amount,
                        gateway_refund_id=result.refund_id,
                    )
                )
        except (GatewayTransientError, GatewayFatalError) as e:
            Logger.base.warning(f'❌ [REFUND] Gateway refused refund {refund.id}: {e.message}')
            if returned:
                await self._hold_for_review(
                    approver_id=approver_id, refund=refund, returned=returned, failure=e.message
                )
            else:
                await self._release(refund_id=refund.id)
            raise
        return returned

    async def _release(self, *, refund_id: UUID) -> None:
        async with self.uow:
            refund = await _load_refund(self.uow, refund_id=refund_id, for_update=True)
            await self.uow.refund_repo.update(refund=refund.release_claim())
            await self.uow.commit()

    async def _hold_for_review(
        self,
        *,
        approver_id: UUID,
        refund: TicketRefund,
        returned: list[ReturnedSlice],
        failure: str,
    ) -> None:
        # part of the money is back with the buyer; the refund stays processing
        Logger.base.error(
            f'⚠️ [REFUND] Refund {refund.id} stopped after returning '
            f'{sum((r.amount for r in returned), Decimal("0.00"))} {refund.currency}: {failure}'
        )
        await self.audit_trail.record(
            AuditEntry(
                action=AuditAction.REFUND_NEEDS_REVIEW,
                resource_kind=ResourceKind.REFUND,
                resource_id=refund.id,
                actor_id=approver_id,
                before=snapshot(refund, 'status'),
                after={'status': str(RefundStatus.PROCESSING)},
                metadata={'returned': returned, 'failure': failure},
                suspicious=True,
            )
        )

    async def _record(
        self,
        *,
        approver_id: UUID,
        refund_id: UUID,
        returned: list[ReturnedSlice],
        now: datetime,
    ) -> RefundDecision:
        async with self.uow:
            refund = await _load_refund(self.uow, refund_id=refund_id)
            ticket = await self.uow.ticket_repo.get_by_id(ticket_id=refund.ticket_id)
            if ticket is None:
                raise NotFoundError('Ticket not found')

            # Lock order: event, order, ticket, payment, refund
            await self.uow.event_repo.lock_events(event_ids=[ticket.event_id])
            order = await self.uow.order_repo.get_by_id(order_id=refund.order_id, for_update=True)
            if order is None:
                raise NotFoundError('Order not found')
            tickets = await self.uow.ticket_repo.list_by_order(order_id=order.id, for_update=True)
            sources: dict[UUID, Payment] = {}
            for payment_id in sorted({r.payment_id for r in returned}):
                source = await self.uow.payment_repo.get_by_id(
                    payment_id=payment_id, for_update=True
                )
                if source is None:
                    raise NotFoundError('Payment not found')
                sources[payment_id] = source
            refund = await _load_refund(self.uow, refund_id=refund_id, for_update=True)

            ticket = next((t for t in tickets if t.id == refund.ticket_id), None)
            if ticket is None:
                raise NotFoundError('Ticket not found')
            refunded_ticket = ticket.mark_refunded(now=now)
            await self.uow.ticket_repo.update(ticket=refunded_ticket)
            await self.ledger.increment(
                self.uow,
                event_id=ticket.event_id,
                quantity=1,
                tier_id=ticket.tier_id,
                session_id=ticket.session_id,
                seat_ids=[ticket.seat_id] if ticket.seat_id else [],
                seat_status=SeatStatus.SOLD,
            )

            credits: list[Payment] = []
            for part, piece in enumerate(returned):
                source = sources[piece.payment_id].record_refund(amount=piece.amount, now=now)
                sources[piece.payment_id] = source
                await self.uow.payment_repo.update(payment=source)
                credit = Payment(
                    id=uuid7(),
                    user_id=order.user_id,
                    gateway=source.gateway,
                    payment_method=source.payment_method,
                    reference_number=refund_payment_reference(refund.id, part=part),
                    amount=-piece.amount,
                    currency=refund.currency,
                    status=PaymentStatus.COMPLETED,
                    order_id=order.id,
                    gateway_transaction_id=piece.gateway_refund_id,
                    metadata={'refund_of': str(source.id), 'refund_id': str(refund.id)},
                    created_at=now,
                    completed_at=now,
                    updated_at=now,
                )
                await self.uow.payment_repo.create(payment=credit)
                credits.append(credit)

            fully_refunded = order.status == OrderStatus.CONFIRMED and all(
                t.id == ticket.id or t.status in (TicketStatus.REFUNDED, TicketStatus.CANCELLED)
                for t in tickets
            )
            updated_order = order.record_refund(
                amount=refund.refund_amount, fully_refunded=fully_refunded, now=now
            )
            await self.uow.order_repo.update(order=updated_order)

            approved = refund.approve(
                approver_id=approver_id,
                gateway_refund_id=_joined_refund_ids(returned),
                refund_payment_id=credits[0].id,
                now=now,
            )
            await self.uow.refund_repo.update(refund=approved)
            await self.uow.commit()

        return RefundDecision(
            refund=approved,
            ticket=refunded_ticket,
            order=updated_order,
            credit=credits[0],
            credits=credits,
        )

    async def _audit(
        self, *, approver_id: UUID, refund: TicketRefund, decision: RefundDecision
    ) -> None:
        entries = [
            AuditEntry(
                action=AuditAction.REFUND_APPROVED,
                resource_kind=ResourceKind.REFUND,
                resource_id=refund.id,
                actor_id=approver_id,
                before=snapshot(refund, 'status'),
                after=snapshot(
                    decision.refund, 'status', 'approved_by', 'refund_amount', 'gateway_refund_id'
                ),
                metadata={
                    'ticket_id': decision.ticket.id,
                    'credit_payment_ids': [c.id for c in decision.credits],
                },
            ),
            AuditEntry(
                action=AuditAction.REFUND_APPROVED,
                resource_kind=ResourceKind.TICKET,
                resource_id=decision.ticket.id,
                actor_id=approver_id,
                before={'status': str(TicketStatus.REFUND_PENDING)},
                after=snapshot(decision.ticket, 'status'),
            ),
        ]
        if decision.order.status == OrderStatus.REFUNDED:
            entries.append(
                AuditEntry(
                    action=AuditAction.ORDER_REFUNDED,
                    resource_kind=ResourceKind.ORDER,
                    resource_id=decision.order.id,
                    actor_id=approver_id,
                    after=snapshot(decision.order, 'status', 'refunded_amount'),
                )
            )
        await self.audit_trail.record_all(entries)


class RejectRefundUseCase:
    def __init__(
        self, *, uow: AbstractUnitOfWork, clock: IClock, audit_trail: IAuditTrail
    ) -> None:
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
    async def execute(
        self,
        *,
        rejector_id: UUID,
        refund_id: UUID,
        rejection_reason: str,
        is_admin: bool = False,
    ) -> RefundDecision:
        now = self.clock.now()
        async with self.uow:
            refund = await _load_refund(self.uow, refund_id=refund_id)
            ticket, event = await _load_ticket_and_event(
                self.uow, ticket_id=refund.ticket_id, for_update=True
            )
            ensure_can_moderate(event, moderator_id=rejector_id, is_admin=is_admin)
            refund = await _load_refund(self.uow, refund_id=refund_id, for_update=True)
            rejected = refund.reject(rejector_id=rejector_id, reason=rejection_reason, now=now)
            restored = ticket.restore_after_rejected_refund(now=now)
            await self.uow.ticket_repo.update(ticket=restored)
            await self.uow.refund_repo.update(refund=rejected)
            order = await self.uow.order_repo.get_by_id(order_id=refund.order_id)
            if order is None:
                raise NotFoundError('Order not found')
            await self.uow.commit()

        metrics.refunds.labels(status=rejected.status.value).inc()
        await self.audit_trail.record(
            AuditEntry(
                action=AuditAction.REFUND_REJECTED,
                resource_kind=ResourceKind.REFUND,
                resource_id=refund.id,
                actor_id=rejector_id,
                before=snapshot(refund, 'status'),
                after=snapshot(rejected, 'status', 'rejected_by', 'rejection_reason'),
                metadata={'ticket_id': ticket.id},
            )
        )
        return RefundDecision(refund=rejected, ticket=restored, order=order)
