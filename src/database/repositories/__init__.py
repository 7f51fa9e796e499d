"""
Repository classes for database operations.

Each repository handles CRUD and queries for its entity type.
"""

from .teams import TeamRepository, get_team_repository
from .instances import StandupInstanceRepository, get_instance_repository
from .answers import AnswerRepository, get_answer_repository

__all__ = [
    "TeamRepository",
    "get_team_repository",
    "StandupInstanceRepository",
    "get_instance_repository",
    "AnswerRepository",
    "get_answer_repository",
]
