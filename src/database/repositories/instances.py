"""
Repository for standup instances.

The (team_id, target_date) unique constraint is the storage backstop for
idempotent creation; callers check for an existing instance first.
"""

import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from ..connection import get_database
from ..models import StandupInstanceDB, StandupStateEnum, TeamDB
from ..exceptions import DatabaseConstraintError

logger = logging.getLogger(__name__)


class StandupInstanceRepository:
    """Repository for standup instance operations."""

    def __init__(self):
        self.db = get_database()

    async def create(
        self,
        team_id: str,
        target_date: date,
        config_snapshot: Dict[str, Any],
        created_at: Optional[datetime] = None,
        state: StandupStateEnum = StandupStateEnum.PENDING,
    ) -> StandupInstanceDB:
        """
        Insert a new instance.

        Raises:
            DatabaseConstraintError: an instance for (team_id, target_date) already exists
        """
        async with self.db.session() as session:
            try:
                instance = StandupInstanceDB(
                    team_id=team_id,
                    target_date=target_date,
                    state=state,
                    config_snapshot=config_snapshot,
                )
                if created_at is not None:
                    instance.created_at = created_at
                session.add(instance)
                await session.flush()
                await session.refresh(instance)

                logger.info(f"Created standup instance {instance.id} for team {team_id} on {target_date}")
                return instance

            except IntegrityError as e:
                logger.warning(f"Duplicate standup instance for team {team_id} on {target_date}: {e}")
                raise DatabaseConstraintError(
                    f"Standup instance already exists for team {team_id} on {target_date}"
                )

    async def get_by_id(self, instance_id: str) -> Optional[StandupInstanceDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupInstanceDB).where(StandupInstanceDB.id == instance_id)
            )
            return result.scalar_one_or_none()

    async def get_for_org(self, instance_id: str, org_id: str) -> Optional[StandupInstanceDB]:
        """Get an instance only if its team belongs to ``org_id``."""
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupInstanceDB)
                .join(TeamDB, TeamDB.id == StandupInstanceDB.team_id)
                .where(StandupInstanceDB.id == instance_id, TeamDB.org_id == org_id)
            )
            return result.scalar_one_or_none()

    async def get_by_team_and_date(self, team_id: str, target_date: date) -> Optional[StandupInstanceDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupInstanceDB).where(
                    StandupInstanceDB.team_id == team_id,
                    StandupInstanceDB.target_date == target_date,
                )
            )
            return result.scalar_one_or_none()

    async def transition_state(
        self,
        instance_id: str,
        from_state: StandupStateEnum,
        to_state: StandupStateEnum,
    ) -> bool:
        """
        Compare-and-set the state.

        Returns False when the row is no longer in ``from_state`` (another
        caller moved it first).
        """
        async with self.db.session() as session:
            result = await session.execute(
                update(StandupInstanceDB)
                .where(
                    StandupInstanceDB.id == instance_id,
                    StandupInstanceDB.state == from_state,
                )
                .values(state=to_state)
            )
            updated = result.rowcount == 1
            if updated:
                logger.info(f"Instance {instance_id}: {from_state.value} -> {to_state.value}")
            return updated

    async def get_active_for_org(
        self,
        org_id: str,
        team_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[StandupInstanceDB]:
        """Pending and collecting instances, newest first."""
        async with self.db.session() as session:
            query = (
                select(StandupInstanceDB)
                .join(TeamDB, TeamDB.id == StandupInstanceDB.team_id)
                .where(
                    TeamDB.org_id == org_id,
                    StandupInstanceDB.state.in_([StandupStateEnum.PENDING, StandupStateEnum.COLLECTING]),
                )
            )
            if team_id:
                query = query.where(StandupInstanceDB.team_id == team_id)

            result = await session.execute(
                query.order_by(StandupInstanceDB.target_date.desc(), StandupInstanceDB.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    async def get_by_state(self, state: StandupStateEnum) -> List[StandupInstanceDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupInstanceDB)
                .where(StandupInstanceDB.state == state)
                .order_by(StandupInstanceDB.created_at)
            )
            return list(result.scalars().all())

    async def get_for_team_in_range(
        self,
        team_id: str,
        org_id: str,
        start_date: date,
        end_date: date,
    ) -> List[StandupInstanceDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupInstanceDB)
                .join(TeamDB, TeamDB.id == StandupInstanceDB.team_id)
                .where(
                    StandupInstanceDB.team_id == team_id,
                    TeamDB.org_id == org_id,
                    StandupInstanceDB.target_date >= start_date,
                    StandupInstanceDB.target_date <= end_date,
                )
                .order_by(StandupInstanceDB.target_date.desc())
            )
            return list(result.scalars().all())

    async def count_by_state_for_date(self, target_date: date) -> Dict[str, int]:
        async with self.db.session() as session:
            result = await session.execute(
                select(StandupInstanceDB.state, func.count())
                .where(StandupInstanceDB.target_date == target_date)
                .group_by(StandupInstanceDB.state)
            )
            counts = {state.value: 0 for state in StandupStateEnum}
            for state, count in result.all():
                counts[StandupStateEnum(state).value] = count
            return counts


# Singleton
_instance_repo: Optional[StandupInstanceRepository] = None


def get_instance_repository() -> StandupInstanceRepository:
    """Get the standup instance repository singleton."""
    global _instance_repo
    if _instance_repo is None:
        _instance_repo = StandupInstanceRepository()
    return _instance_repo
