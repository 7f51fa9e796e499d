"""
Tests for src/standups/state_machine.py
"""

import pytest

from src.database.models import StandupStateEnum
from src.standups.exceptions import ValidationFailedError
from src.standups.state_machine import (
    StandupInstanceState,
    can_transition,
    coerce_state,
    is_terminal,
    next_state,
    validate_transition,
)


class TestValidateTransition:

    def test_pending_to_collecting(self):
        assert validate_transition("pending", "collecting") == StandupStateEnum.COLLECTING

    def test_collecting_to_posted(self):
        assert validate_transition(StandupStateEnum.COLLECTING, StandupStateEnum.POSTED) == StandupStateEnum.POSTED

    def test_collecting_to_closed_alias(self):
        assert validate_transition("collecting", "closed") == StandupStateEnum.POSTED

    def test_pending_cannot_skip_collecting(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            validate_transition("pending", "posted")
        assert "pending" in exc_info.value.message
        assert "posted" in exc_info.value.message

    @pytest.mark.parametrize("target", ["pending", "collecting", "posted"])
    def test_closed_is_terminal(self, target):
        with pytest.raises(ValidationFailedError):
            validate_transition("posted", target)

    def test_no_backwards_move(self):
        with pytest.raises(ValidationFailedError):
            validate_transition("collecting", "pending")

    def test_same_state_is_not_a_transition(self):
        with pytest.raises(ValidationFailedError):
            validate_transition("pending", "pending")

    def test_unknown_state(self):
        with pytest.raises(ValidationFailedError):
            validate_transition("pending", "archived")


class TestHelpers:

    def test_closed_alias_is_posted(self):
        assert StandupInstanceState.CLOSED is StandupInstanceState.POSTED

    def test_coerce_state_case_insensitive(self):
        assert coerce_state(" Collecting ") == StandupStateEnum.COLLECTING

    def test_next_state(self):
        assert next_state("pending") == StandupStateEnum.COLLECTING
        assert next_state("collecting") == StandupStateEnum.POSTED
        assert next_state("posted") is None

    def test_can_transition(self):
        assert can_transition("pending", "collecting") is True
        assert can_transition("pending", "closed") is False

    def test_is_terminal(self):
        assert is_terminal("closed") is True
        assert is_terminal("collecting") is False
