from enum import StrEnum
from typing import Mapping

from src.platform.exception.exceptions import ConflictingStateError


def ensure_transition(
    current: StrEnum,
    target: StrEnum,
    table: Mapping[StrEnum, frozenset],
    *,
    resource: str,
) -> None:
    """Raise ConflictingStateError unless ``current -> target`` is listed in ``table``."""
    if target not in table.get(current, frozenset()):
        raise ConflictingStateError(
            f'{resource} is {current}, cannot move to {target}',
            current_state=str(current),
        )
