from .api_validation import (
    StandupStateInput,
    CreateInstanceRequest,
    CreateInstancesForDateRequest,
    StateUpdateRequest,
    AnswerInput,
    SubmitAnswersRequest,
    TokenSubmitRequest,
    TokenValidateRequest,
)

__all__ = [
    "StandupStateInput",
    "CreateInstanceRequest",
    "CreateInstancesForDateRequest",
    "StateUpdateRequest",
    "AnswerInput",
    "SubmitAnswersRequest",
    "TokenSubmitRequest",
    "TokenValidateRequest",
]
