"""
Standup instance orchestration.

Creates at most one instance per (team, local date), batches creation across
every team with an active config, and moves instances through their
lifecycle. Creation for one team never blocks or aborts another.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Tuple, Union, Any

from config import settings
from ..database.exceptions import DatabaseConstraintError
from ..database.models import StandupInstanceDB, StandupStateEnum, TeamDB
from ..database.repositories.answers import AnswerRepository, get_answer_repository
from ..database.repositories.instances import StandupInstanceRepository, get_instance_repository
from ..database.repositories.teams import TeamRepository, get_team_repository
from ..utils.datetime_utils import ensure_aware_utc, local_date, utc_now
from .exceptions import ConflictError, NotFoundError, StandupError, ValidationFailedError
from .participation import ParticipationCalculator, ParticipationReport
from .schedule import ScheduleEvaluator, StandupSchedule, response_deadline, standup_start_time
from .snapshot import ConfigSnapshot, ParticipantSnapshot, build_config_snapshot
from .state_machine import coerce_state, validate_transition

logger = logging.getLogger(__name__)

SKIP_NOT_SCHEDULED = "not scheduled for this weekday"
SKIP_ALREADY_EXISTS = "instance already exists for this date"
SKIP_NOT_DUE = "start time not reached"


@dataclass
class InstanceCreationResult:
    team_id: str
    target_date: date
    instance_id: Optional[str] = None
    created: bool = False
    skip_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.instance_id is None


@dataclass
class BatchCreationResult:
    created: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": list(self.created),
            "skipped": [{"team_id": t, "reason": r} for t, r in self.skipped],
            "failed": [{"team_id": t, "reason": r} for t, r in self.failed],
        }


class StandupInstanceService:
    """Instance orchestrator and lifecycle manager."""

    def __init__(
        self,
        team_repo: Optional[TeamRepository] = None,
        instance_repo: Optional[StandupInstanceRepository] = None,
        answer_repo: Optional[AnswerRepository] = None,
        clock: Callable[[], datetime] = utc_now,
        batch_concurrency: Optional[int] = None,
    ):
        self.teams = team_repo or get_team_repository()
        self.instances = instance_repo or get_instance_repository()
        self.answers = answer_repo or get_answer_repository()
        self.clock = clock
        self.batch_concurrency = batch_concurrency or settings.instance_batch_concurrency

    # ==================== CREATION ====================

    async def create_instance(
        self,
        team_id: str,
        target: Union[date, datetime],
        actor_user_id: Optional[str] = None,
        org_id: Optional[str] = None,
    ) -> InstanceCreationResult:
        """
        Create the team's instance for the local date of ``target`` (idempotent).

        A datetime is an instant and is mapped to the team's local calendar
        date; a date is used as-is. An existing instance for that date is
        returned unchanged.

        Raises:
            NotFoundError: unknown team, or outside ``org_id`` when given
            ValidationFailedError: no active config, zero questions or zero participants
            ConflictError: another caller created the same instance concurrently
        """
        if org_id is None:
            team = await self.teams.get_team(team_id)
        else:
            team = await self.teams.get_team_for_org(team_id, org_id)
        if not team:
            raise NotFoundError("Team not found")

        target_date = local_date(target, team.timezone)

        existing = await self.instances.get_by_team_and_date(team_id, target_date)
        if existing:
            logger.info(f"Instance {existing.id} already exists for team {team_id} on {target_date}")
            return InstanceCreationResult(
                team_id=team_id,
                target_date=target_date,
                instance_id=existing.id,
                created=False,
            )

        config = await self.teams.get_active_config(team_id)
        if not config:
            raise ValidationFailedError("No active standup configuration found for team")

        schedule = StandupSchedule.from_config(team, config)
        if not ScheduleEvaluator.should_run_on(schedule, target_date):
            logger.info(f"Skipping team {team_id} on {target_date}: {SKIP_NOT_SCHEDULED}")
            return InstanceCreationResult(
                team_id=team_id,
                target_date=target_date,
                skip_reason=SKIP_NOT_SCHEDULED,
            )

        members = await self.teams.get_participating_members(config.id)
        if not config.questions:
            raise ValidationFailedError("Standup configuration has no questions")
        if not members:
            raise ValidationFailedError("Standup configuration has no active participants")

        snapshot = build_config_snapshot(team, config, members)

        try:
            instance = await self.instances.create(
                team_id=team_id,
                target_date=target_date,
                config_snapshot=snapshot.to_dict(),
                created_at=ensure_aware_utc(self.clock()),
                state=StandupStateEnum.PENDING,
            )
        except DatabaseConstraintError as e:
            raise ConflictError(str(e))

        logger.info(
            f"Standup instance {instance.id} created for team {team_id} on {target_date} "
            f"by {actor_user_id or 'system'} ({len(members)} participants)"
        )
        return InstanceCreationResult(
            team_id=team_id,
            target_date=target_date,
            instance_id=instance.id,
            created=True,
        )

    async def create_instances_for_date(
        self,
        target: Union[date, datetime],
        org_id: Optional[str] = None,
    ) -> BatchCreationResult:
        """
        Create instances for every team with an active config, within ``org_id`` when given.

        Teams are processed independently and concurrently. Any error for
        one team is recorded in ``failed`` and the rest carry on.
        """
        teams = await self.teams.get_teams_with_active_config(org_id)
        logger.info(f"Creating standup instances for {target} across {len(teams)} teams")

        batch = await self._create_for_teams(teams, target)

        logger.info(
            f"Completed instances for {target}: created={len(batch.created)}, "
            f"skipped={len(batch.skipped)}, failed={len(batch.failed)}"
        )
        return batch

    async def create_due_instances(self, now: Optional[datetime] = None) -> BatchCreationResult:
        """
        Create today's instance for every team whose local start time has arrived.

        Called by the scheduler tick, so the response window of a scheduled
        instance starts at the team's standup time. Teams still before their
        start time are skipped and picked up by a later tick.
        """
        now = ensure_aware_utc(now or self.clock())
        teams = await self.teams.get_teams_with_active_config()

        batch = await self._create_for_teams(teams, now, due_at=now)

        if batch.created or batch.failed:
            logger.info(
                f"Created {len(batch.created)} due standup instances ({len(batch.failed)} failed)"
            )
        return batch

    async def _create_for_teams(
        self,
        teams: List[TeamDB],
        target: Union[date, datetime],
        due_at: Optional[datetime] = None,
    ) -> BatchCreationResult:
        semaphore = asyncio.Semaphore(self.batch_concurrency)

        async def process(team: TeamDB) -> Tuple[str, str, str]:
            async with semaphore:
                try:
                    if due_at is not None and not await self._start_time_reached(team, due_at):
                        return team.id, "skipped", SKIP_NOT_DUE
                    result = await self.create_instance(team.id, target)
                except ConflictError:
                    return team.id, "skipped", SKIP_ALREADY_EXISTS
                except StandupError as e:
                    logger.error(f"Failed to create instance for team {team.id}: {e.message}")
                    return team.id, "failed", e.message
                except Exception as e:
                    logger.error(f"Failed to create instance for team {team.id}: {e}", exc_info=True)
                    return team.id, "failed", str(e) or type(e).__name__

                if result.created:
                    return team.id, "created", result.instance_id
                return team.id, "skipped", result.skip_reason or SKIP_ALREADY_EXISTS

        outcomes = await asyncio.gather(*(process(team) for team in teams))

        batch = BatchCreationResult()
        for team_id, outcome, detail in outcomes:
            if outcome == "created":
                batch.created.append(detail)
            elif outcome == "skipped":
                batch.skipped.append((team_id, detail))
            else:
                batch.failed.append((team_id, detail))
        return batch

    async def _start_time_reached(self, team: TeamDB, now: datetime) -> bool:
        config = await self.teams.get_active_config(team.id)
        if not config:
            return False
        schedule = StandupSchedule.from_config(team, config)
        return ScheduleEvaluator.start_time(schedule, local_date(now, team.timezone)) <= now

    async def should_create_standup_today(self, team_id: str, moment: Union[date, datetime]) -> bool:
        team = await self.teams.get_team(team_id)
        if not team:
            return False
        config = await self.teams.get_active_config(team_id)
        if not config:
            return False
        return ScheduleEvaluator.should_run_on(StandupSchedule.from_config(team, config), moment)

    async def calculate_next_standup_date(self, team_id: str) -> Optional[date]:
        team = await self.teams.get_team(team_id)
        if not team:
            return None
        config = await self.teams.get_active_config(team_id)
        if not config:
            return None
        return ScheduleEvaluator.next_run_after(StandupSchedule.from_config(team, config), self.clock())

    # ==================== STATE ====================

    async def update_instance_state(
        self,
        instance_id: str,
        new_state: Union[str, StandupStateEnum],
        actor_user_id: str,
        org_id: str,
    ) -> StandupStateEnum:
        """
        Move an instance to ``new_state`` if the transition table allows it.

        Raises:
            NotFoundError: instance missing or outside ``org_id``
            ValidationFailedError: transition not allowed
        """
        instance = await self.instances.get_for_org(instance_id, org_id)
        if not instance:
            raise NotFoundError("Standup instance not found")

        old_state = coerce_state(instance.state)
        target = validate_transition(old_state, new_state)

        if not await self.instances.transition_state(instance_id, old_state, target):
            current = await self.instances.get_by_id(instance_id)
            current_state = coerce_state(current.state) if current else old_state
            validate_transition(current_state, target)
            raise ConflictError(f"Standup instance {instance_id} changed state concurrently")

        logger.info(
            f"Instance {instance_id} state {old_state.value} -> {target.value} by {actor_user_id}"
        )
        return target

    async def start_collection(self, instance_id: str) -> bool:
        """pending -> collecting. No-op (False) if the instance is not pending."""
        return await self._advance(instance_id, StandupStateEnum.PENDING, StandupStateEnum.COLLECTING)

    async def close_collection(self, instance_id: str) -> bool:
        """collecting -> posted. No-op (False) if the instance is not collecting."""
        return await self._advance(instance_id, StandupStateEnum.COLLECTING, StandupStateEnum.POSTED)

    async def _advance(
        self,
        instance_id: str,
        expected: StandupStateEnum,
        target: StandupStateEnum,
    ) -> bool:
        instance = await self.instances.get_by_id(instance_id)
        if not instance:
            logger.error(f"Instance {instance_id} not found")
            return False

        current = coerce_state(instance.state)
        if current != expected:
            logger.warning(
                f"Instance {instance_id} not in {expected.value} state (currently {current.value})"
            )
            return False

        return await self.instances.transition_state(instance_id, expected, target)

    async def open_due_instances(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Start collection for pending instances whose local start time has passed.

        An instance whose response deadline is already behind ``now`` is never
        opened: it is moved straight through to posted and counted as expired.
        """
        now = ensure_aware_utc(now or self.clock())
        opened, expired, failed = 0, 0, 0

        for instance in await self.instances.get_by_state(StandupStateEnum.PENDING):
            try:
                snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
                start = standup_start_time(snapshot, instance.target_date)
                if start > now:
                    continue
                deadline = response_deadline(instance.created_at, snapshot.response_timeout_hours)
                if deadline <= now:
                    logger.warning(
                        f"Instance {instance.id} reached its start time after its response "
                        f"deadline ({deadline.isoformat()}); closing without collection"
                    )
                    if await self.start_collection(instance.id) and await self.close_collection(instance.id):
                        expired += 1
                elif await self.start_collection(instance.id):
                    opened += 1
            except Exception as e:
                failed += 1
                logger.error(f"Failed to open instance {instance.id}: {e}", exc_info=True)

        if opened or expired or failed:
            logger.info(f"Opened {opened} standup instances ({expired} expired, {failed} failed)")
        return {"opened": opened, "expired": expired, "failed": failed}

    async def close_expired_instances(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Close collecting instances whose response deadline has passed."""
        now = ensure_aware_utc(now or self.clock())
        closed, failed = 0, 0

        for instance in await self.instances.get_by_state(StandupStateEnum.COLLECTING):
            try:
                snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
                deadline = response_deadline(instance.created_at, snapshot.response_timeout_hours)
                if deadline <= now and await self.close_collection(instance.id):
                    closed += 1
            except Exception as e:
                failed += 1
                logger.error(f"Failed to close instance {instance.id}: {e}", exc_info=True)

        if closed or failed:
            logger.info(f"Closed {closed} standup instances ({failed} failed)")
        return {"closed": closed, "failed": failed}

    # ==================== READS ====================

    async def get_participation(self, instance_id: str, org_id: str) -> ParticipationReport:
        instance = await self.instances.get_for_org(instance_id, org_id)
        if not instance:
            raise NotFoundError("Standup instance not found")

        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        answers = await self.answers.get_for_instance(instance_id)
        calculator = ParticipationCalculator(snapshot, answers)
        return calculator.report(
            instance_id=instance.id,
            state=instance.state,
            created_at=instance.created_at,
            now=self.clock(),
            target_date=instance.target_date,
        )

    async def is_instance_complete(self, instance_id: str) -> bool:
        instance = await self.instances.get_by_id(instance_id)
        if not instance:
            return False

        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        answers = await self.answers.get_for_instance(instance_id)
        return ParticipationCalculator(snapshot, answers).is_instance_complete()

    async def get_participating_members(self, instance_id: str) -> List[ParticipantSnapshot]:
        instance = await self.instances.get_by_id(instance_id)
        if not instance:
            raise NotFoundError("Standup instance not found")
        return list(ConfigSnapshot.from_dict(instance.config_snapshot).participating_members)

    async def get_standup_start_time(self, instance_id: str) -> Optional[datetime]:
        instance = await self.instances.get_by_id(instance_id)
        if not instance:
            return None
        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        return standup_start_time(snapshot, instance.target_date)

    async def get_active_instances(
        self,
        org_id: str,
        team_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        instances = await self.instances.get_active_for_org(org_id, team_id, limit, offset)
        answers = await self.answers.get_for_instances([i.id for i in instances])

        by_instance: Dict[str, list] = {}
        for answer in answers:
            by_instance.setdefault(answer.standup_instance_id, []).append(answer)

        return [self._summarize(i, by_instance.get(i.id, [])) for i in instances]

    async def get_instance_details(self, instance_id: str, org_id: str) -> Dict[str, Any]:
        instance = await self.instances.get_for_org(instance_id, org_id)
        if not instance:
            raise NotFoundError("Standup instance not found")

        answers = await self.answers.get_for_instance(instance_id)
        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)

        details = self._summarize(instance, answers)
        details["config_snapshot"] = snapshot.to_dict()
        details["answers"] = [
            {
                "question_index": a.question_index,
                "text": a.text,
                "submitted_at": a.submitted_at,
                "team_member": {
                    "id": a.team_member_id,
                    "name": member.name if member else "Unknown",
                    "platform_user_id": member.platform_user_id if member else "",
                },
            }
            for a in sorted(answers, key=lambda a: (a.submitted_at, a.question_index))
            for member in [snapshot.get_member(a.team_member_id)]
        ]
        return details

    async def get_scheduling_status(self, target_date: date) -> Dict[str, Any]:
        teams = await self.teams.get_teams_with_active_config()
        counts = await self.instances.count_by_state_for_date(target_date)
        return {
            "date": target_date.isoformat(),
            "teams_with_active_config": len(teams),
            "instances_created": sum(counts.values()),
            "instances_pending": counts.get(StandupStateEnum.PENDING.value, 0),
            "instances_collecting": counts.get(StandupStateEnum.COLLECTING.value, 0),
            "instances_posted": counts.get(StandupStateEnum.POSTED.value, 0),
        }

    def _summarize(self, instance: StandupInstanceDB, answers: list) -> Dict[str, Any]:
        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        stats = ParticipationCalculator(snapshot, answers).completion_stats()
        return {
            "id": instance.id,
            "team_id": instance.team_id,
            "target_date": instance.target_date.isoformat(),
            "state": coerce_state(instance.state).value,
            "created_at": instance.created_at,
            "total_members": stats.total_members,
            "responded_members": stats.responded_members,
            "response_rate": stats.response_rate,
        }


# Singleton
_instance_service: Optional[StandupInstanceService] = None


def get_instance_service() -> StandupInstanceService:
    """Get the standup instance service singleton."""
    global _instance_service
    if _instance_service is None:
        _instance_service = StandupInstanceService()
    return _instance_service
