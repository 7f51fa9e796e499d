"""
Magic tokens for link-based standup submission.

A magic token is a signed, stateless capability: it lets one member submit
answers to one instance until it expires, without a login session. Nothing
is stored server-side; validity is signature + expiry, and at validation
time the token is re-bound to the instance and an active roster membership.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

import jwt
import pytz

from config import settings
from ..database.models import StandupInstanceDB, TeamMemberDB
from ..database.repositories.instances import StandupInstanceRepository, get_instance_repository
from ..database.repositories.teams import TeamRepository, get_team_repository
from ..utils.datetime_utils import ensure_aware_utc, utc_now
from .exceptions import ForbiddenError, NotFoundError, ValidationFailedError
from .schedule import response_deadline
from .snapshot import ConfigSnapshot
from .state_machine import coerce_state

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ["standup_instance_id", "team_member_id", "platform_user_id", "org_id", "iat", "exp"]


@dataclass(frozen=True)
class MagicTokenPayload:
    standup_instance_id: str
    team_member_id: str
    platform_user_id: str
    org_id: str
    issued_at: datetime
    expires_at: datetime

    def to_claims(self) -> dict:
        return {
            "standup_instance_id": self.standup_instance_id,
            "team_member_id": self.team_member_id,
            "platform_user_id": self.platform_user_id,
            "org_id": self.org_id,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }

    @classmethod
    def from_claims(cls, claims: dict) -> "MagicTokenPayload":
        return cls(
            standup_instance_id=str(claims["standup_instance_id"]),
            team_member_id=str(claims["team_member_id"]),
            platform_user_id=str(claims["platform_user_id"]),
            org_id=str(claims["org_id"]),
            issued_at=datetime.fromtimestamp(int(claims["iat"]), tz=pytz.UTC),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=pytz.UTC),
        )


@dataclass
class IssuedToken:
    team_member_id: str
    member_name: str
    token: str
    expires_at: datetime
    submission_url: str


@dataclass
class TokenIssueResult:
    tokens: List[IssuedToken] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)


class MagicTokenCodec:
    """HS256 signing and verification of magic token payloads."""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.secret = secret or settings.magic_token_secret
        self.algorithm = algorithm or settings.magic_token_algorithm
        self.clock = clock

    def encode(self, payload: MagicTokenPayload) -> str:
        return jwt.encode(payload.to_claims(), self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Optional[MagicTokenPayload]:
        """
        Verify signature and expiry.

        Returns:
            The full payload, or None for any bad signature, malformed token
            or expired token. Never a partial payload.
        """
        if not token:
            return None

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                # expiry is checked against the injected clock below
                options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
            )
            payload = MagicTokenPayload.from_claims(claims)
        except jwt.PyJWTError as e:
            logger.warning(f"Magic token rejected: {e}")
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Magic token has malformed claims: {e}")
            return None

        now = ensure_aware_utc(self.clock())
        if now >= payload.expires_at:
            logger.warning(
                f"Magic token expired for instance {payload.standup_instance_id} "
                f"at {payload.expires_at.isoformat()}"
            )
            return None

        return payload


class MagicTokenService:
    """Issues magic tokens for an instance's roster and validates presented tokens."""

    def __init__(
        self,
        instance_repo: Optional[StandupInstanceRepository] = None,
        team_repo: Optional[TeamRepository] = None,
        codec: Optional[MagicTokenCodec] = None,
        clock: Callable[[], datetime] = utc_now,
        base_url: Optional[str] = None,
        default_hours: Optional[int] = None,
    ):
        self.instances = instance_repo or get_instance_repository()
        self.teams = team_repo or get_team_repository()
        self.clock = clock
        self.codec = codec or MagicTokenCodec(clock=clock)
        self.base_url = (base_url or settings.app_url).rstrip("/")
        self.default_hours = default_hours or settings.magic_token_default_hours

    def submission_url(self, token: str) -> str:
        return f"{self.base_url}/standup/respond/{token}"

    def issue_token(
        self,
        instance: StandupInstanceDB,
        member: TeamMemberDB,
        org_id: str,
        now: Optional[datetime] = None,
    ) -> IssuedToken:
        """
        Sign a token for one member.

        ``expires_at`` is ``now`` plus the snapshot's response timeout (or the
        configured default), capped at the instance's response deadline.

        Raises:
            ValidationFailedError: the response window has already closed
            ForbiddenError: the member is not in the instance snapshot
        """
        now = ensure_aware_utc(now or self.clock())
        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        deadline = response_deadline(instance.created_at, snapshot.response_timeout_hours)
        hours = snapshot.response_timeout_hours or self.default_hours
        expires_at = min(now + timedelta(hours=hours), deadline)

        # Token timestamps have second precision
        issued_at = now.replace(microsecond=0)
        expires_at = expires_at.replace(microsecond=0)
        if expires_at <= issued_at:
            raise ValidationFailedError(
                f"Response window for instance {instance.id} closed at {deadline.isoformat()}"
            )

        participant = snapshot.get_member(member.id)
        if participant is None:
            raise ForbiddenError(
                f"Team member {member.id} is not a participant in instance {instance.id}"
            )

        payload = MagicTokenPayload(
            standup_instance_id=instance.id,
            team_member_id=member.id,
            platform_user_id=participant.platform_user_id,
            org_id=org_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        token = self.codec.encode(payload)

        logger.info(
            f"Issued magic token for member {member.id} in instance {instance.id}, "
            f"expires {expires_at.isoformat()}"
        )
        return IssuedToken(
            team_member_id=member.id,
            member_name=participant.name,
            token=token,
            expires_at=expires_at,
            submission_url=self.submission_url(token),
        )

    async def issue_tokens_for_instance(self, instance_id: str, org_id: str) -> TokenIssueResult:
        """
        Issue tokens for every active participant of an instance.

        A failure for one member is recorded and does not stop the others.

        Raises:
            NotFoundError: instance missing or outside ``org_id``
        """
        instance = await self.instances.get_for_org(instance_id, org_id)
        if not instance:
            raise NotFoundError("Standup instance not found")

        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        roster_ids = set(snapshot.member_ids)
        active_members = await self.teams.get_active_members(instance.team_id)
        participants = [m for m in active_members if m.id in roster_ids]

        now = ensure_aware_utc(self.clock())
        result = TokenIssueResult()
        for member in participants:
            try:
                result.tokens.append(self.issue_token(instance, member, org_id, now))
            except Exception as e:
                logger.error(
                    f"Failed to issue magic token for member {member.id} in instance {instance_id}: {e}",
                    exc_info=True,
                )
                result.failed.append((member.id, str(e)))

        logger.info(
            f"Magic tokens for instance {instance_id}: {len(result.tokens)} issued, "
            f"{len(result.failed)} failed, {len(roster_ids) - len(participants)} inactive"
        )
        return result

    async def validate_token(
        self,
        token: str,
        expected_instance_id: Optional[str] = None,
    ) -> Optional[MagicTokenPayload]:
        """
        Validate a presented token.

        Checks signature and expiry, then that the instance still exists in
        the token's org, that the member is still active in the team and on
        the instance roster, and (if given) that the token is for
        ``expected_instance_id``. Never extends or refreshes the token.

        Returns:
            The decoded payload, or None for "invalid or expired"
        """
        payload = self.codec.decode(token)
        if payload is None:
            return None

        if expected_instance_id is not None and payload.standup_instance_id != expected_instance_id:
            logger.warning(
                f"Magic token for instance {payload.standup_instance_id} presented for {expected_instance_id}"
            )
            return None

        instance = await self.instances.get_for_org(payload.standup_instance_id, payload.org_id)
        if not instance:
            logger.warning(f"Magic token validation failed: instance {payload.standup_instance_id} not found")
            return None

        member = await self.teams.get_active_member(instance.team_id, payload.team_member_id)
        if not member:
            logger.warning(f"Magic token validation failed: member {payload.team_member_id} not active")
            return None

        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        if payload.team_member_id not in snapshot.member_ids:
            logger.warning(
                f"Magic token validation failed: member {payload.team_member_id} "
                f"not on roster of instance {instance.id}"
            )
            return None

        return payload

    async def get_standup_info_for_token(self, payload: MagicTokenPayload) -> Optional[dict]:
        """What a response form needs: instance, team, member and questions."""
        instance = await self.instances.get_for_org(payload.standup_instance_id, payload.org_id)
        if not instance:
            return None

        team = await self.teams.get_team(instance.team_id)
        member = await self.teams.get_active_member(instance.team_id, payload.team_member_id)
        if not team or not member:
            return None

        snapshot = ConfigSnapshot.from_dict(instance.config_snapshot)
        participant = snapshot.get_member(member.id)
        if participant is None:
            return None

        return {
            "instance": {
                "id": instance.id,
                "target_date": instance.target_date,
                "created_at": instance.created_at,
                "state": coerce_state(instance.state).value,
                "timeout_at": response_deadline(instance.created_at, snapshot.response_timeout_hours),
            },
            "team": {"id": team.id, "name": team.name},
            "member": {
                "id": member.id,
                "name": participant.name,
                "platform_user_id": participant.platform_user_id,
            },
            "questions": list(snapshot.questions),
        }


# Singleton
_magic_token_service: Optional[MagicTokenService] = None


def get_magic_token_service() -> MagicTokenService:
    """Get the magic token service singleton."""
    global _magic_token_service
    if _magic_token_service is None:
        _magic_token_service = MagicTokenService()
    return _magic_token_service
