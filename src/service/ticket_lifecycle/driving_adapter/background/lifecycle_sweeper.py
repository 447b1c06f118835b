from collections.abc import Awaitable, Callable

import anyio
from anyio.abc import TaskGroup

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.expire_checkouts_use_case import (
    ExpireCheckoutsUseCase,
)
from src.service.ticket_lifecycle.app.command.release_expired_reservations_use_case import (
    ReleaseExpiredReservationsUseCase,
)
from src.service.ticket_lifecycle.app.command.ticket_transfer_use_case import (
    ExpireTransfersUseCase,
)


class LifecycleSweeper:
    """Periodically expire reservations, checkouts and transfers whose deadline has passed"""

    def __init__(
        self,
        *,
        release_reservations: ReleaseExpiredReservationsUseCase,
        expire_checkouts: ExpireCheckoutsUseCase,
        expire_transfers: ExpireTransfersUseCase,
        interval: float = settings.SWEEP_INTERVAL_SECONDS,
        batch_size: int = settings.SWEEP_BATCH_SIZE,
    ) -> None:
        self.release_reservations = release_reservations
        self.expire_checkouts = expire_checkouts
        self.expire_transfers = expire_transfers
        self._interval = interval
        self._batch_size = batch_size

    @classmethod
    def from_container(cls, container: Container) -> 'LifecycleSweeper':
        uow_factory = container.uow_factory.provider
        clock = container.clock()
        audit_trail = container.audit_trail()
        return cls(
            release_reservations=ReleaseExpiredReservationsUseCase(
                uow_factory=uow_factory,
                reservations=container.reservation_manager(),
                clock=clock,
                audit_trail=audit_trail,
            ),
            expire_checkouts=ExpireCheckoutsUseCase(
                uow_factory=uow_factory,
                reservations=container.reservation_manager(),
                payments=container.order_payment_service(),
                clock=clock,
                audit_trail=audit_trail,
            ),
            expire_transfers=ExpireTransfersUseCase(
                uow_factory=uow_factory, clock=clock, audit_trail=audit_trail
            ),
            interval=container.config_service().SWEEP_INTERVAL_SECONDS,
            batch_size=container.config_service().SWEEP_BATCH_SIZE,
        )

    async def start(self, *, task_group: TaskGroup) -> None:
        task_group.start_soon(self._sweep_loop)  # pyrefly: ignore[bad-argument-type]
        Logger.base.info(f'🧹 [Sweeper] Started, every {self._interval}s')

    async def _sweep_loop(self) -> None:
        while True:
            await self.run_once()
            await anyio.sleep(self._interval)

    async def run_once(self) -> dict[str, int]:
        """One pass over every sweep; a failing sweep does not stop the others."""
        return {
            'reservations': await self._guarded('reservations', self._release_reservations),
            'checkouts': await self._guarded('checkouts', self._expire_checkouts),
            'transfers': await self._guarded('transfers', self._expire_transfers),
        }

    async def _guarded(self, name: str, sweep: Callable[[], Awaitable[int]]) -> int:
        try:
            processed = await sweep()
        except Exception as e:
            Logger.base.error(f'❌ [Sweeper] {name} sweep failed: {e}')
            return 0
        if processed:
            Logger.base.info(f'🧹 [Sweeper] {name}: {processed} processed')
        return processed

    async def _release_reservations(self) -> int:
        result = await self.release_reservations.execute(batch_size=self._batch_size)
        return len(result.released)

    async def _expire_checkouts(self) -> int:
        return len(await self.expire_checkouts.execute(batch_size=self._batch_size))

    async def _expire_transfers(self) -> int:
        return len(await self.expire_transfers.execute(batch_size=self._batch_size))
