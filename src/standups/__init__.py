"""
Standup engine.

Instance lifecycle, response collection, participation metrics and magic
tokens for team standups.
"""

from .exceptions import (
    StandupError,
    NotFoundError,
    ValidationFailedError,
    ResponseWindowClosedError,
    ConflictError,
    UnauthenticatedError,
    ForbiddenError,
)
from .snapshot import ConfigSnapshot, ParticipantSnapshot, DeliveryTarget, build_config_snapshot
from .schedule import (
    StandupSchedule,
    ScheduleEvaluator,
    response_deadline,
    standup_start_time,
    reminder_time,
    followup_reminder_times,
)
from .state_machine import StandupInstanceState, validate_transition, can_transition, is_terminal
from .participation import ParticipationCalculator, ParticipationReport, CompletionStats, can_still_submit
from .tokens import MagicTokenCodec, MagicTokenPayload, MagicTokenService, get_magic_token_service
from .instances import (
    StandupInstanceService,
    InstanceCreationResult,
    BatchCreationResult,
    get_instance_service,
)
from .answers import AnswerCollectionService, SubmissionResult, get_answer_service
from .configs import StandupConfigService

__all__ = [
    "StandupError",
    "NotFoundError",
    "ValidationFailedError",
    "ResponseWindowClosedError",
    "ConflictError",
    "UnauthenticatedError",
    "ForbiddenError",
    "ConfigSnapshot",
    "ParticipantSnapshot",
    "DeliveryTarget",
    "build_config_snapshot",
    "StandupSchedule",
    "ScheduleEvaluator",
    "response_deadline",
    "standup_start_time",
    "reminder_time",
    "followup_reminder_times",
    "StandupInstanceState",
    "validate_transition",
    "can_transition",
    "is_terminal",
    "ParticipationCalculator",
    "ParticipationReport",
    "CompletionStats",
    "can_still_submit",
    "MagicTokenCodec",
    "MagicTokenPayload",
    "MagicTokenService",
    "get_magic_token_service",
    "StandupInstanceService",
    "InstanceCreationResult",
    "BatchCreationResult",
    "get_instance_service",
    "AnswerCollectionService",
    "SubmissionResult",
    "get_answer_service",
    "StandupConfigService",
]
