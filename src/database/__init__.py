"""
PostgreSQL Database Module for the Standup Engine.

Handles:
- Teams, members and their standup configs
- Standup instances with embedded config snapshots
- Per-question answers
"""

from .connection import (
    get_database,
    Database,
    init_database,
    close_database,
)
from .models import (
    Base,
    TeamDB,
    TeamMemberDB,
    StandupConfigDB,
    StandupConfigMemberDB,
    StandupInstanceDB,
    AnswerDB,
    StandupStateEnum,
    DeliveryTypeEnum,
)

__all__ = [
    "get_database",
    "Database",
    "init_database",
    "close_database",
    "Base",
    "TeamDB",
    "TeamMemberDB",
    "StandupConfigDB",
    "StandupConfigMemberDB",
    "StandupInstanceDB",
    "AnswerDB",
    "StandupStateEnum",
    "DeliveryTypeEnum",
]
