"""
Pydantic models for API endpoint input validation.

Shape and size checks only; domain rules (question ranges, response window,
roster membership) are enforced by the standup services.
"""

from datetime import date, datetime
from typing import Optional, List, Union
from pydantic import BaseModel, Field, field_validator
from enum import Enum


# ============================================
# ENUMS
# ============================================

class StandupStateInput(str, Enum):
    """States a caller may request."""
    COLLECTING = "collecting"
    POSTED = "posted"
    CLOSED = "closed"


# ============================================
# INSTANCE OPERATIONS
# ============================================

class CreateInstanceRequest(BaseModel):
    """Create one team's instance for a local date or an instant."""
    team_id: str = Field(..., min_length=1, max_length=64)
    target_date: Union[date, datetime]
    actor_user_id: Optional[str] = Field(None, max_length=64)


class CreateInstancesForDateRequest(BaseModel):
    """Batch creation across teams."""
    target_date: Union[date, datetime]


class StateUpdateRequest(BaseModel):
    """Move an instance to its next state."""
    state: StandupStateInput
    actor_user_id: str = Field(..., min_length=1, max_length=64)


# ============================================
# ANSWER OPERATIONS
# ============================================

class AnswerInput(BaseModel):
    """One answer. The index is range-checked against the instance's snapshot."""
    question_index: int
    text: str = Field(..., min_length=1, max_length=2000)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError("Answer text cannot be blank")
        return v


class SubmitAnswersRequest(BaseModel):
    """Answers from an authenticated member."""
    team_member_id: str = Field(..., min_length=1, max_length=64)
    answers: List[AnswerInput] = Field(..., min_length=1, max_length=50)


class TokenSubmitRequest(BaseModel):
    """Answers submitted through a magic link."""
    token: str = Field(..., min_length=10, max_length=4096)
    answers: List[AnswerInput] = Field(..., min_length=1, max_length=50)


class TokenValidateRequest(BaseModel):
    token: str = Field(..., min_length=10, max_length=4096)
    standup_instance_id: Optional[str] = Field(None, max_length=64)
