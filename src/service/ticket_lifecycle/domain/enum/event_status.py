from enum import StrEnum


class EventStatus(StrEnum):
    DRAFT = 'draft'
    PENDING_APPROVAL = 'pending_approval'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PUBLISHED = 'published'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'

    @property
    def is_sellable(self) -> bool:
        return self in (EventStatus.APPROVED, EventStatus.PUBLISHED)
