"""
Standup instance lifecycle.

pending -> collecting -> posted. ``posted`` is terminal (answers frozen).
Transitions are monotonic; no state is ever revisited.
"""

from typing import Dict, Optional, Union

from ..database.models import StandupStateEnum
from .exceptions import ValidationFailedError

StandupInstanceState = StandupStateEnum

VALID_TRANSITIONS: Dict[StandupStateEnum, Optional[StandupStateEnum]] = {
    StandupStateEnum.PENDING: StandupStateEnum.COLLECTING,
    StandupStateEnum.COLLECTING: StandupStateEnum.POSTED,
    StandupStateEnum.POSTED: None,
}

TERMINAL_STATES = frozenset(s for s, nxt in VALID_TRANSITIONS.items() if nxt is None)
ACTIVE_STATES = frozenset({StandupStateEnum.PENDING, StandupStateEnum.COLLECTING})


def coerce_state(value: Union[str, StandupStateEnum]) -> StandupStateEnum:
    """Accept an enum or its string value ("closed" is read as "posted")."""
    if isinstance(value, StandupStateEnum):
        return value
    normalized = str(value).strip().lower()
    if normalized == "closed":
        return StandupStateEnum.POSTED
    try:
        return StandupStateEnum(normalized)
    except ValueError:
        raise ValidationFailedError(f"Unknown standup state: {value}")


def next_state(current: Union[str, StandupStateEnum]) -> Optional[StandupStateEnum]:
    """The single state reachable from ``current``, or None if terminal."""
    return VALID_TRANSITIONS[coerce_state(current)]


def can_transition(
    from_state: Union[str, StandupStateEnum],
    to_state: Union[str, StandupStateEnum],
) -> bool:
    source = coerce_state(from_state)
    target = coerce_state(to_state)
    return VALID_TRANSITIONS.get(source) == target


def validate_transition(
    from_state: Union[str, StandupStateEnum],
    to_state: Union[str, StandupStateEnum],
) -> StandupStateEnum:
    """
    Check a requested transition against the table.

    Returns:
        The target state

    Raises:
        ValidationFailedError: naming both states when the move is not allowed
    """
    source = coerce_state(from_state)
    target = coerce_state(to_state)

    if VALID_TRANSITIONS.get(source) != target:
        raise ValidationFailedError(
            f"Invalid state transition from {source.value} to {target.value}"
        )

    return target


def is_terminal(state: Union[str, StandupStateEnum]) -> bool:
    return coerce_state(state) in TERMINAL_STATES
