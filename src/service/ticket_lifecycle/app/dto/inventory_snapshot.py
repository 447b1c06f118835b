from uuid import UUID

import attrs


@attrs.define(frozen=True)
class CounterSnapshot:
    id: UUID
    name: str
    total: int
    available: int

    @property
    def held_or_sold(self) -> int:
        return self.total - self.available


@attrs.define(frozen=True)
class InventorySnapshot:
    event_id: UUID
    total_capacity: int
    available_tickets: int
    tiers: list[CounterSnapshot] = attrs.field(factory=list)
    sessions: list[CounterSnapshot] = attrs.field(factory=list)
