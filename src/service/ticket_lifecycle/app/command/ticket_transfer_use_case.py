"""
Ticket transfers

A confirmed ticket moves to another user in two steps: the owner opens a
pending transfer (addressed to a user id, or to an email with a transfer
code), the recipient accepts it. Ownership only changes on accept, and the
ticket's credentials are rotated so the sender's copy stops admitting.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Self
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
from uuid_utils.compat import uuid7

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    InternalError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import TransferAcceptance
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.ticket_issuer import TicketIssuer
from src.service.ticket_lifecycle.domain.credential_domain import generate_transfer_code
from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.enum.transfer_status import TransferStatus


TRANSFER_CODE_ATTEMPTS = 5

_TRANSFER_FIELDS = ('status', 'from_user_id', 'to_user_id', 'expires_at')


async def _unique_transfer_code(uow: AbstractUnitOfWork, *, now: datetime) -> str:
    for _ in range(TRANSFER_CODE_ATTEMPTS):
        candidate = generate_transfer_code(now)
        if not await uow.transfer_repo.code_exists(transfer_code=candidate):
            return candidate
    raise InternalError('Could not allocate a unique transfer code')


async def _get_transfer(
    uow: AbstractUnitOfWork, *, transfer_id: UUID, for_update: bool = False
) -> TicketTransfer:
    transfer = await uow.transfer_repo.get_by_id(transfer_id=transfer_id, for_update=for_update)
    if transfer is None:
        raise NotFoundError('Transfer not found')
    return transfer


class InitiateTransferUseCase:
    def __init__(
        self, *, uow: AbstractUnitOfWork, clock: IClock, audit_trail: IAuditTrail
    ) -> None:
        self.uow = uow
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

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
        to_user_id: Optional[UUID] = None,
        to_email: Optional[str] = None,
        message: Optional[str] = None,
    ) -> TicketTransfer:
        with self.tracer.start_as_current_span(
            'use_case.initiate_transfer',
            attributes={'user.id': str(user_id), 'ticket.id': str(ticket_id)},
        ):
            now = self.clock.now()
            async with self.uow:
                ticket = await self.uow.ticket_repo.get_by_id(ticket_id=ticket_id, for_update=True)
                if ticket is None:
                    raise NotFoundError('Ticket not found')
                if ticket.current_owner() != user_id:
                    raise ForbiddenError('Only the ticket owner can transfer it')
                if ticket.status != TicketStatus.CONFIRMED:
                    raise ConflictingStateError(
                        f'Ticket is {ticket.status}, only confirmed tickets can be transferred',
                        current_state=str(ticket.status),
                    )
                event = await self.uow.event_repo.get_by_id(event_id=ticket.event_id)
                if event is None:
                    raise NotFoundError('Event not found')
                if event.has_started(now):
                    raise ConflictingStateError(
                        'Tickets cannot be transferred once the event has started',
                        current_state=str(ticket.status),
                    )
                if await self.uow.transfer_repo.find_pending_for_ticket(ticket_id=ticket.id):
                    raise ConflictingStateError(
                        'Ticket already has a pending transfer',
                        current_state=str(TransferStatus.PENDING),
                    )

                transfer = TicketTransfer.initiate(
                    id=uuid7(),
                    ticket_id=ticket.id,
                    from_user_id=user_id,
                    to_user_id=to_user_id,
                    to_email=to_email,
                    transfer_code=await _unique_transfer_code(self.uow, now=now),
                    message=message,
                    now=now,
                    ttl=timedelta(days=settings.TRANSFER_TTL_DAYS),
                )
                await self.uow.transfer_repo.create(transfer=transfer)
                await self.uow.commit()

            metrics.transfers.labels(status=transfer.status.value).inc()
            Logger.base.info(
                f'🔁 [TRANSFER] {ticket.ticket_number} offered by {user_id} '
                f'to {to_user_id or to_email}'
            )
            await self.audit_trail.record(
                AuditEntry(
                    action=AuditAction.TRANSFER_INITIATED,
                    resource_kind=ResourceKind.TRANSFER,
                    resource_id=transfer.id,
                    actor_id=user_id,
                    after=snapshot(transfer, *_TRANSFER_FIELDS),
                    metadata={'ticket_id': ticket.id, 'to_email': to_email},
                )
            )
            return transfer


class AcceptTransferUseCase:
    """
    Move the ticket to the accepting user

    Retrying an accept that already went through returns the same result.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        issuer: TicketIssuer,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.issuer = issuer
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        issuer: TicketIssuer = Depends(Provide[Container.ticket_issuer]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(uow=uow, issuer=issuer, clock=clock, audit_trail=audit_trail)

    @Logger.io
    async def execute(
        self, *, user_id: UUID, transfer_id: UUID, transfer_code: Optional[str] = None
    ) -> TransferAcceptance:
        with self.tracer.start_as_current_span(
            'use_case.accept_transfer',
            attributes={'user.id': str(user_id), 'transfer.id': str(transfer_id)},
        ):
            now = self.clock.now()
            async with self.uow:
                transfer = await _get_transfer(self.uow, transfer_id=transfer_id)
                if transfer.is_accepted_by(user_id):
                    ticket = await self.uow.ticket_repo.get_by_id(ticket_id=transfer.ticket_id)
                    if ticket is None:
                        raise NotFoundError('Ticket not found')
                    return TransferAcceptance(transfer=transfer, ticket=ticket)

                # Lock order: ticket, then transfer
                ticket = await self.uow.ticket_repo.get_by_id(
                    ticket_id=transfer.ticket_id, for_update=True
                )
                if ticket is None:
                    raise NotFoundError('Ticket not found')
                transfer = await _get_transfer(self.uow, transfer_id=transfer_id, for_update=True)
                transfer.ensure_acceptable_by(user_id=user_id, transfer_code=transfer_code, now=now)
                if ticket.current_owner() != transfer.from_user_id:
                    raise ConflictingStateError(
                        'Ticket is no longer owned by the sender', current_state=str(ticket.status)
                    )

                moved = ticket.change_owner(new_owner_id=user_id, now=now)
                moved = self.issuer.rotate_credentials(moved, now=now)
                accepted = transfer.accept(user_id=user_id, now=now)
                await self.uow.ticket_repo.update(ticket=moved)
                await self.uow.transfer_repo.update(transfer=accepted)
                await self.uow.commit()

            metrics.transfers.labels(status=accepted.status.value).inc()
            Logger.base.info(
                f'🔁 [TRANSFER] {ticket.ticket_number} moved {transfer.from_user_id} -> {user_id}'
            )
            await self.audit_trail.record_all(
                [
                    AuditEntry(
                        action=AuditAction.TRANSFER_ACCEPTED,
                        resource_kind=ResourceKind.TRANSFER,
                        resource_id=accepted.id,
                        actor_id=user_id,
                        before=snapshot(transfer, *_TRANSFER_FIELDS),
                        after=snapshot(accepted, 'status', 'accepted_by', 'accepted_at'),
                    ),
                    AuditEntry(
                        action=AuditAction.TRANSFER_ACCEPTED,
                        resource_kind=ResourceKind.TICKET,
                        resource_id=moved.id,
                        actor_id=user_id,
                        before=snapshot(ticket, 'user_id', 'transfer_count'),
                        after=snapshot(moved, 'user_id', 'transfer_count'),
                        metadata={'transfer_id': accepted.id, 'credentials_rotated': True},
                    ),
                ]
            )
            return TransferAcceptance(transfer=accepted, ticket=moved)


class DeclineTransferUseCase:
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
    async def execute(self, *, user_id: UUID, transfer_id: UUID) -> TicketTransfer:
        async with self.uow:
            transfer = await _get_transfer(self.uow, transfer_id=transfer_id, for_update=True)
            declined = transfer.decline(user_id=user_id, now=self.clock.now())
            await self.uow.transfer_repo.update(transfer=declined)
            await self.uow.commit()

        metrics.transfers.labels(status=declined.status.value).inc()
        await self.audit_trail.record(
            AuditEntry(
                action=AuditAction.TRANSFER_DECLINED,
                resource_kind=ResourceKind.TRANSFER,
                resource_id=declined.id,
                actor_id=user_id,
                before=snapshot(transfer, 'status'),
                after=snapshot(declined, 'status', 'declined_at'),
            )
        )
        return declined


class CancelTransferUseCase:
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
    async def execute(self, *, user_id: UUID, transfer_id: UUID) -> TicketTransfer:
        async with self.uow:
            transfer = await _get_transfer(self.uow, transfer_id=transfer_id, for_update=True)
            cancelled = transfer.cancel(user_id=user_id, now=self.clock.now())
            await self.uow.transfer_repo.update(transfer=cancelled)
            await self.uow.commit()

        metrics.transfers.labels(status=cancelled.status.value).inc()
        await self.audit_trail.record(
            AuditEntry(
                action=AuditAction.TRANSFER_CANCELLED,
                resource_kind=ResourceKind.TRANSFER,
                resource_id=cancelled.id,
                actor_id=user_id,
                before=snapshot(transfer, 'status'),
                after=snapshot(cancelled, 'status', 'cancelled_at'),
            )
        )
        return cancelled


class ExpireTransfersUseCase:
    """Sweep: pending transfers past ``expires_at`` become expired, in batches."""

    def __init__(
        self,
        *,
        uow_factory: Callable[[], AbstractUnitOfWork],
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow_factory = uow_factory
        self.clock = clock
        self.audit_trail = audit_trail

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: Callable[[], AbstractUnitOfWork] = Depends(
            Provide[Container.uow_factory.provider]
        ),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(uow_factory=uow_factory, clock=clock, audit_trail=audit_trail)

    @Logger.io
    async def execute(self, *, batch_size: Optional[int] = None) -> list[TicketTransfer]:
        now = self.clock.now()
        expired: list[TicketTransfer] = []
        async with self.uow_factory() as uow:
            candidates = await uow.transfer_repo.find_expired_pending(
                now=now, limit=batch_size or settings.SWEEP_BATCH_SIZE
            )
            for candidate in candidates:
                locked = await uow.transfer_repo.get_by_id(
                    transfer_id=candidate.id, for_update=True, skip_locked=True
                )
                if (
                    locked is None
                    or locked.status != TransferStatus.PENDING
                    or not locked.is_expired(now)
                ):
                    continue
                expired.append(await uow.transfer_repo.update(transfer=locked.expire()))
            await uow.commit()

        metrics.record_sweep(sweep='transfers', processed=len(expired))
        if expired:
            Logger.base.info(f'🧹 [SWEEP] Expired {len(expired)} transfer(s)')
        await self.audit_trail.record_all(
            AuditEntry(
                action=AuditAction.TRANSFER_EXPIRED,
                resource_kind=ResourceKind.TRANSFER,
                resource_id=transfer.id,
                before={'status': str(TransferStatus.PENDING)},
                after=snapshot(transfer, 'status', 'expires_at'),
            )
            for transfer in expired
        )
        return expired
