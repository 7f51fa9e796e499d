"""
In-memory repositories for service tests.

They expose the same async methods as the SQLAlchemy repositories and keep
the same guarantees: one instance per (team, date), answers keyed by
(instance, member, question index), compare-and-set state changes.
"""

import copy
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import pytz

from src.database.exceptions import DatabaseConstraintError, DatabaseOperationError
from src.database.models import (
    AnswerDB,
    DeliveryTypeEnum,
    StandupConfigDB,
    StandupInstanceDB,
    StandupStateEnum,
    TeamDB,
    TeamMemberDB,
)
from src.database.repositories.answers import dedupe_answers

TOKEN_SECRET = "test-magic-token-secret-0123456789abcdef"

QUESTIONS = [
    "What did you accomplish yesterday?",
    "What will you work on today?",
    "Are there any blockers or impediments?",
]

# Monday 2 March 2026, 12:00 UTC
T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=pytz.UTC)


def _id() -> str:
    return str(uuid.uuid4())


class FakeClock:
    """Settable clock; call it to read the current instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeTeamRepository:
    def __init__(self):
        self.teams: Dict[str, TeamDB] = {}
        self.members: Dict[str, TeamMemberDB] = {}
        self.configs: Dict[str, StandupConfigDB] = {}
        self.rosters: Dict[str, List[str]] = {}

    # Seeding helpers

    def add_team(self, org_id: str = "org-1", timezone: str = "UTC", name: str = "Team") -> TeamDB:
        team = TeamDB(id=_id(), org_id=org_id, name=name, timezone=timezone, active_config_id=None)
        self.teams[team.id] = team
        return team

    def add_member_sync(
        self,
        team: TeamDB,
        name: Optional[str] = None,
        integration_name: Optional[str] = None,
        platform_user_id: Optional[str] = None,
        fallback_user_id: Optional[str] = None,
        active: bool = True,
    ) -> TeamMemberDB:
        member = TeamMemberDB(
            id=_id(),
            team_id=team.id,
            name=name,
            integration_name=integration_name,
            platform_user_id=platform_user_id,
            fallback_user_id=fallback_user_id,
            active=active,
        )
        self.members[member.id] = member
        return member

    def add_config(
        self,
        team: TeamDB,
        questions,
        weekdays,
        members,
        time_local: str = "09:00",
        response_timeout_hours: int = 2,
        reminder_minutes_before: int = 10,
        activate: bool = True,
    ) -> StandupConfigDB:
        config = StandupConfigDB(
            id=_id(),
            team_id=team.id,
            name="Daily Standup",
            questions=list(questions),
            weekdays=list(weekdays),
            time_local=time_local,
            response_timeout_hours=response_timeout_hours,
            reminder_minutes_before=reminder_minutes_before,
            delivery_type=DeliveryTypeEnum.CHANNEL,
            target_channel_id="C123",
        )
        self.configs[config.id] = config
        self.rosters[config.id] = [m.id for m in members]
        if activate:
            team.active_config_id = config.id
        return config

    # Repository interface

    async def get_team(self, team_id: str) -> Optional[TeamDB]:
        return self.teams.get(team_id)

    async def get_team_for_org(self, team_id: str, org_id: str) -> Optional[TeamDB]:
        team = self.teams.get(team_id)
        return team if team and team.org_id == org_id else None

    async def get_teams_with_active_config(self, org_id: Optional[str] = None) -> List[TeamDB]:
        return [
            t for t in self.teams.values()
            if t.active_config_id and (org_id is None or t.org_id == org_id)
        ]

    async def get_active_config(self, team_id: str) -> Optional[StandupConfigDB]:
        team = self.teams.get(team_id)
        if not team or not team.active_config_id:
            return None
        return self.configs.get(team.active_config_id)

    async def get_config(self, config_id: str) -> Optional[StandupConfigDB]:
        return self.configs.get(config_id)

    async def create_config(self, team_id: str, questions, weekdays, time_local, member_ids, **kwargs):
        team = self.teams.get(team_id)
        if team is None:
            raise DatabaseOperationError(f"Team {team_id} not found")
        activate = kwargs.pop("activate", True)
        config = self.add_config(
            team,
            questions,
            sorted(weekdays),
            [self.members[m] for m in member_ids],
            time_local=time_local,
            response_timeout_hours=kwargs.get("response_timeout_hours", 2),
            reminder_minutes_before=kwargs.get("reminder_minutes_before", 10),
            activate=activate,
        )
        config.name = kwargs.get("name", "Daily Standup")
        config.delivery_type = kwargs.get("delivery_type", DeliveryTypeEnum.CHANNEL)
        config.target_channel_id = kwargs.get("target_channel_id")
        return config

    async def update_config(self, config_id: str, updates: dict) -> bool:
        config = self.configs.get(config_id)
        if not config:
            return False
        for key, value in updates.items():
            setattr(config, key, value)
        return True

    async def get_active_member(self, team_id: str, member_id: str) -> Optional[TeamMemberDB]:
        member = self.members.get(member_id)
        if member and member.team_id == team_id and member.active:
            return member
        return None

    async def get_active_members(self, team_id: str) -> List[TeamMemberDB]:
        return [m for m in self.members.values() if m.team_id == team_id and m.active]

    async def get_participating_members(self, config_id: str) -> List[TeamMemberDB]:
        return [
            self.members[m]
            for m in self.rosters.get(config_id, [])
            if self.members[m].active
        ]


class FakeInstanceRepository:
    def __init__(self, teams: FakeTeamRepository):
        self.teams = teams
        self.instances: Dict[str, StandupInstanceDB] = {}
        self.create_calls = 0

    async def create(self, team_id, target_date, config_snapshot, created_at=None, state=StandupStateEnum.PENDING):
        self.create_calls += 1
        if any(i.team_id == team_id and i.target_date == target_date for i in self.instances.values()):
            raise DatabaseConstraintError(f"Standup instance already exists for team {team_id} on {target_date}")

        instance = StandupInstanceDB(
            id=_id(),
            team_id=team_id,
            target_date=target_date,
            state=state,
            config_snapshot=copy.deepcopy(config_snapshot),
            created_at=created_at or datetime.now(pytz.UTC),
        )
        self.instances[instance.id] = instance
        return instance

    async def get_by_id(self, instance_id: str) -> Optional[StandupInstanceDB]:
        return self.instances.get(instance_id)

    async def get_for_org(self, instance_id: str, org_id: str) -> Optional[StandupInstanceDB]:
        instance = self.instances.get(instance_id)
        if not instance:
            return None
        team = self.teams.teams.get(instance.team_id)
        return instance if team and team.org_id == org_id else None

    async def get_by_team_and_date(self, team_id, target_date) -> Optional[StandupInstanceDB]:
        for instance in self.instances.values():
            if instance.team_id == team_id and instance.target_date == target_date:
                return instance
        return None

    async def transition_state(self, instance_id, from_state, to_state) -> bool:
        instance = self.instances.get(instance_id)
        if not instance or instance.state != from_state:
            return False
        instance.state = to_state
        return True

    async def get_active_for_org(self, org_id, team_id=None, limit=50, offset=0):
        active = [
            i for i in self.instances.values()
            if self.teams.teams[i.team_id].org_id == org_id
            and i.state in (StandupStateEnum.PENDING, StandupStateEnum.COLLECTING)
            and (team_id is None or i.team_id == team_id)
        ]
        active.sort(key=lambda i: (i.target_date, i.created_at), reverse=True)
        return active[offset:offset + limit]

    async def get_by_state(self, state) -> List[StandupInstanceDB]:
        return sorted(
            (i for i in self.instances.values() if i.state == state),
            key=lambda i: i.created_at,
        )

    async def get_for_team_in_range(self, team_id, org_id, start_date, end_date):
        team = self.teams.teams.get(team_id)
        if not team or team.org_id != org_id:
            return []
        return sorted(
            (i for i in self.instances.values()
             if i.team_id == team_id and start_date <= i.target_date <= end_date),
            key=lambda i: i.target_date,
            reverse=True,
        )

    async def count_by_state_for_date(self, target_date) -> Dict[str, int]:
        counts = {state.value: 0 for state in StandupStateEnum}
        for instance in self.instances.values():
            if instance.target_date == target_date:
                counts[StandupStateEnum(instance.state).value] += 1
        return counts


class FakeAnswerRepository:
    def __init__(self):
        self.rows: Dict[Tuple[str, str, int], AnswerDB] = {}
        self.upsert_calls = 0
        self.fail_next_upsert = False

    async def upsert_many(self, instance_id, member_id, answers, submitted_at) -> int:
        self.upsert_calls += 1
        if self.fail_next_upsert:
            # Transaction rolled back before anything is visible
            self.fail_next_upsert = False
            raise DatabaseOperationError("simulated write failure")

        deduped = dedupe_answers(answers)
        for question_index, text in deduped:
            self.rows[(instance_id, member_id, question_index)] = AnswerDB(
                standup_instance_id=instance_id,
                team_member_id=member_id,
                question_index=question_index,
                text=text,
                submitted_at=submitted_at,
            )
        return len(deduped)

    async def get_for_instance(self, instance_id, member_id=None) -> List[AnswerDB]:
        return sorted(
            (a for (iid, mid, _), a in self.rows.items()
             if iid == instance_id and (member_id is None or mid == member_id)),
            key=lambda a: (a.team_member_id, a.question_index),
        )

    async def get_for_instances(self, instance_ids) -> List[AnswerDB]:
        ids = set(instance_ids)
        return [a for (iid, _, _), a in self.rows.items() if iid in ids]

    async def count_for_member(self, instance_id, member_id) -> int:
        return sum(1 for (iid, mid, _) in self.rows if iid == instance_id and mid == member_id)

    async def delete_for_member(self, instance_id, member_id) -> int:
        keys = [k for k in self.rows if k[0] == instance_id and k[1] == member_id]
        for key in keys:
            del self.rows[key]
        return len(keys)
