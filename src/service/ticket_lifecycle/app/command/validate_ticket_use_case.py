from typing import Optional, Self
from uuid import UUID

import attrs
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    AlreadyUsedError,
    ConflictingStateError,
    CustomBaseError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import ValidationOutcome
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.ticket_format import CredentialFormat
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus


class ValidateTicketUseCase:
    """
    Admit a ticket at the gate

    Exactly one of the credential payloads or ``ticket_id`` identifies the
    ticket. The conditional ``confirmed -> used`` update decides concurrent
    scans of the same credential: the loser gets AlreadyUsedError.
    """

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
        qr_code_data: Optional[str] = None,
        nfc_data: Optional[str] = None,
        rfid_data: Optional[str] = None,
        barcode_data: Optional[str] = None,
        ticket_id: Optional[UUID] = None,
        validator_id: Optional[UUID] = None,
    ) -> ValidationOutcome:
        presented = {
            CredentialFormat.QR_CODE: qr_code_data,
            CredentialFormat.NFC: nfc_data,
            CredentialFormat.RFID: rfid_data,
            CredentialFormat.BARCODE: barcode_data,
        }
        credentials = {fmt: payload for fmt, payload in presented.items() if payload}
        if len(credentials) + (ticket_id is not None) != 1:
            raise ValidationError(
                'Present exactly one credential or a ticket_id', field='credential'
            )
        method = next(iter(credentials)).value if credentials else 'manual'

        with self.tracer.start_as_current_span(
            'use_case.validate_ticket', attributes={'validation.method': method}
        ):
            try:
                ticket = await self._admit(
                    credentials=credentials, ticket_id=ticket_id, method=method
                )
            except CustomBaseError as e:
                metrics.record_validation(method=method, result=e.code.lower())
                raise

            metrics.record_validation(method=method, result='admitted')
            Logger.base.info(f'✅ [VALIDATE] {ticket.ticket_number} admitted via {method}')
            await self.audit_trail.record(
                AuditEntry(
                    action=AuditAction.TICKET_VALIDATED,
                    resource_kind=ResourceKind.TICKET,
                    resource_id=ticket.id,
                    actor_id=validator_id,
                    before={'status': str(TicketStatus.CONFIRMED)},
                    after=snapshot(ticket, 'status', 'used_at', 'validation_method'),
                    metadata={'validation_method': method, 'event_id': ticket.event_id},
                )
            )
            return ValidationOutcome(ticket=ticket, validation_method=method)

    async def _admit(
        self,
        *,
        credentials: dict[CredentialFormat, str],
        ticket_id: Optional[UUID],
        method: str,
    ) -> Ticket:
        now = self.clock.now()
        async with self.uow:
            ticket = await self._lookup(credentials=credentials, ticket_id=ticket_id)
            event = await self.uow.event_repo.get_by_id(event_id=ticket.event_id)
            if event is None:
                raise NotFoundError('Event not found')
            ticket.ensure_admissible(
                event_start=event.start_date, event_end=event.end_date, now=now
            )

            admitted = await self.uow.ticket_repo.mark_used_if_confirmed(
                ticket_id=ticket.id, used_at=now, validation_method=method
            )
            if not admitted:
                current = await self.uow.ticket_repo.get_by_id(ticket_id=ticket.id)
                if current is None:
                    raise NotFoundError('Ticket not found')
                if current.status == TicketStatus.USED:
                    raise AlreadyUsedError('Ticket has already been used')
                raise ConflictingStateError(
                    f'Ticket is {current.status}, not valid for entry',
                    current_state=str(current.status),
                )
            await self.uow.commit()

        return attrs.evolve(
            ticket,
            status=TicketStatus.USED,
            used_at=now,
            validation_method=method,
            updated_at=now,
        )

    async def _lookup(
        self, *, credentials: dict[CredentialFormat, str], ticket_id: Optional[UUID]
    ) -> Ticket:
        if ticket_id is not None:
            ticket = await self.uow.ticket_repo.get_by_id(ticket_id=ticket_id)
        else:
            ((credential_format, payload),) = credentials.items()
            ticket = await self.uow.ticket_repo.find_by_credential(
                credential_format=credential_format, payload=payload
            )
        if ticket is None:
            raise NotFoundError('Ticket not found')
        return ticket
