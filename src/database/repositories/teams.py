"""
Team repository.

Stores teams, their members and their standup configs:
- Org-scoped team lookup
- Active config resolution through the explicit ``active_config_id`` pointer
- Participant roster (included in the config and still active)
"""

import logging
from typing import Optional, List, Dict, Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ..connection import get_database
from ..models import (
    TeamDB,
    TeamMemberDB,
    StandupConfigDB,
    StandupConfigMemberDB,
    DeliveryTypeEnum,
)
from ..exceptions import DatabaseConstraintError, DatabaseOperationError

logger = logging.getLogger(__name__)


class TeamRepository:
    """Repository for teams, members and standup configs."""

    def __init__(self):
        self.db = get_database()

    # ==================== TEAMS ====================

    async def create_team(self, org_id: str, name: str, timezone: str = "UTC") -> TeamDB:
        """Create a team without a config."""
        async with self.db.session() as session:
            team = TeamDB(org_id=org_id, name=name, timezone=timezone)
            session.add(team)
            await session.flush()
            logger.info(f"Created team {team.id} ({name}) in org {org_id}")
            return team

    async def get_team(self, team_id: str) -> Optional[TeamDB]:
        """Get a team by ID."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamDB).where(TeamDB.id == team_id)
            )
            return result.scalar_one_or_none()

    async def get_team_for_org(self, team_id: str, org_id: str) -> Optional[TeamDB]:
        """Get a team only if it belongs to ``org_id``."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamDB).where(TeamDB.id == team_id, TeamDB.org_id == org_id)
            )
            return result.scalar_one_or_none()

    async def get_teams_with_active_config(self, org_id: Optional[str] = None) -> List[TeamDB]:
        """All teams that currently point at an active config, optionally within one org."""
        async with self.db.session() as session:
            query = select(TeamDB).where(TeamDB.active_config_id.is_not(None))
            if org_id is not None:
                query = query.where(TeamDB.org_id == org_id)
            result = await session.execute(query.order_by(TeamDB.id))
            return list(result.scalars().all())

    # ==================== CONFIGS ====================

    async def get_active_config(self, team_id: str) -> Optional[StandupConfigDB]:
        """The config referenced by the team's ``active_config_id``."""
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupConfigDB)
                .join(TeamDB, TeamDB.active_config_id == StandupConfigDB.id)
                .where(TeamDB.id == team_id)
            )
            return result.scalar_one_or_none()

    async def get_config(self, config_id: str) -> Optional[StandupConfigDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupConfigDB)
                .where(StandupConfigDB.id == config_id)
                .options(selectinload(StandupConfigDB.config_members))
            )
            return result.scalar_one_or_none()

    async def create_config(
        self,
        team_id: str,
        questions: Sequence[str],
        weekdays: Sequence[int],
        time_local: str,
        member_ids: Sequence[str],
        response_timeout_hours: int = 2,
        reminder_minutes_before: int = 10,
        name: str = "Daily Standup",
        delivery_type: DeliveryTypeEnum = DeliveryTypeEnum.CHANNEL,
        target_channel_id: Optional[str] = None,
        activate: bool = True,
    ) -> StandupConfigDB:
        """
        Create a new config version for a team.

        Earlier configs are kept as history. With ``activate`` the team's
        ``active_config_id`` is moved to the new config in the same transaction.
        """
        async with self.db.session() as session:
            try:
                config = StandupConfigDB(
                    team_id=team_id,
                    name=name,
                    questions=list(questions),
                    weekdays=sorted(weekdays),
                    time_local=time_local,
                    response_timeout_hours=response_timeout_hours,
                    reminder_minutes_before=reminder_minutes_before,
                    delivery_type=delivery_type,
                    target_channel_id=target_channel_id,
                )
                session.add(config)
                await session.flush()

                for member_id in member_ids:
                    session.add(StandupConfigMemberDB(
                        config_id=config.id,
                        team_member_id=member_id,
                        include=True,
                    ))

                if activate:
                    result = await session.execute(select(TeamDB).where(TeamDB.id == team_id))
                    team = result.scalar_one_or_none()
                    if team is None:
                        raise DatabaseOperationError(f"Team {team_id} not found")
                    team.active_config_id = config.id

                await session.flush()
                logger.info(f"Created config {config.id} for team {team_id} (active={activate})")
                return config

            except IntegrityError as e:
                logger.error(f"Constraint violation creating config for team {team_id}: {e}")
                raise DatabaseConstraintError(f"Cannot create config for team {team_id}")

    async def update_config(self, config_id: str, updates: Dict[str, Any]) -> bool:
        """Edit a live config in place. Existing instances keep their snapshot."""
        allowed = {
            "name", "questions", "weekdays", "time_local", "response_timeout_hours",
            "reminder_minutes_before", "delivery_type", "target_channel_id",
        }
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupConfigDB).where(StandupConfigDB.id == config_id)
            )
            config = result.scalar_one_or_none()
            if not config:
                return False

            for key, value in updates.items():
                if key in allowed:
                    setattr(config, key, value)

            await session.flush()
            logger.info(f"Updated config {config_id}: {sorted(updates)}")
            return True

    async def set_active_config(self, team_id: str, config_id: Optional[str]) -> bool:
        """Point the team at another config (or at none, pausing its standups)."""
        async with self.db.session() as session:
            result = await session.execute(select(TeamDB).where(TeamDB.id == team_id))
            team = result.scalar_one_or_none()
            if not team:
                return False

            team.active_config_id = config_id
            await session.flush()
            logger.info(f"Team {team_id} active config set to {config_id}")
            return True

    # ==================== MEMBERS ====================

    async def add_member(
        self,
        team_id: str,
        name: Optional[str] = None,
        integration_name: Optional[str] = None,
        platform_user_id: Optional[str] = None,
        fallback_user_id: Optional[str] = None,
    ) -> TeamMemberDB:
        async with self.db.session() as session:
            member = TeamMemberDB(
                team_id=team_id,
                name=name,
                integration_name=integration_name,
                platform_user_id=platform_user_id,
                fallback_user_id=fallback_user_id,
                active=True,
            )
            session.add(member)
            await session.flush()
            logger.info(f"Added member {member.id} to team {team_id}")
            return member

    async def deactivate_member(self, member_id: str) -> bool:
        async with self.db.session() as session:
            result = await session.execute(select(TeamMemberDB).where(TeamMemberDB.id == member_id))
            member = result.scalar_one_or_none()
            if not member:
                return False
            member.active = False
            await session.flush()
            logger.info(f"Deactivated member {member_id}")
            return True

    async def get_active_member(self, team_id: str, member_id: str) -> Optional[TeamMemberDB]:
        """A member of ``team_id`` who is still active."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamMemberDB).where(
                    TeamMemberDB.id == member_id,
                    TeamMemberDB.team_id == team_id,
                    TeamMemberDB.active == True,
                )
            )
            return result.scalar_one_or_none()

    async def get_active_members(self, team_id: str) -> List[TeamMemberDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamMemberDB)
                .where(TeamMemberDB.team_id == team_id, TeamMemberDB.active == True)
                .order_by(TeamMemberDB.id)
            )
            return list(result.scalars().all())

    async def get_participating_members(self, config_id: str) -> List[TeamMemberDB]:
        """Roster for a config: members included in it and still active."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TeamMemberDB)
                .join(StandupConfigMemberDB, StandupConfigMemberDB.team_member_id == TeamMemberDB.id)
                .where(
                    StandupConfigMemberDB.config_id == config_id,
                    StandupConfigMemberDB.include == True,
                    TeamMemberDB.active == True,
                )
                .order_by(TeamMemberDB.id)
            )
            return list(result.scalars().all())


# Singleton
_team_repo: Optional[TeamRepository] = None


def get_team_repository() -> TeamRepository:
    """Get the team repository singleton."""
    global _team_repo
    if _team_repo is None:
        _team_repo = TeamRepository()
    return _team_repo
