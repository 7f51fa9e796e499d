"""
Web routes for standup instances, answers and magic tokens.

Thin layer: every route delegates to a standup service and maps the
service's errors to HTTP status codes.
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException

from ..models.api_validation import (
    CreateInstanceRequest,
    CreateInstancesForDateRequest,
    StateUpdateRequest,
    SubmitAnswersRequest,
    TokenSubmitRequest,
    TokenValidateRequest,
)
from ..standups.answers import AnswerCollectionService, get_answer_service
from ..standups.exceptions import StandupError
from ..standups.instances import StandupInstanceService, get_instance_service
from ..standups.tokens import MagicTokenService, get_magic_token_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/standups", tags=["standups"])


def _http_error(e: StandupError) -> HTTPException:
    if e.status_code >= 500:
        logger.error(f"Standup error {e.code}: {e.message}")
    return HTTPException(status_code=e.status_code, detail=e.to_dict())


async def get_org_id(x_org_id: str = Header(..., min_length=1, max_length=64)) -> str:
    """Organization scope of the caller."""
    return x_org_id


# ============================================================================
# Instances
# ============================================================================

@router.post("/instances")
async def create_instance(
    data: CreateInstanceRequest,
    org_id: str = Depends(get_org_id),
    service: StandupInstanceService = Depends(get_instance_service),
):
    """Create (or return the existing) instance for a team and date."""
    try:
        result = await service.create_instance(
            data.team_id, data.target_date, actor_user_id=data.actor_user_id, org_id=org_id
        )
    except StandupError as e:
        raise _http_error(e)

    return {
        "team_id": result.team_id,
        "target_date": result.target_date.isoformat(),
        "instance_id": result.instance_id,
        "created": result.created,
        "skip_reason": result.skip_reason,
    }


@router.post("/instances/batch")
async def create_instances_for_date(
    data: CreateInstancesForDateRequest,
    org_id: str = Depends(get_org_id),
    service: StandupInstanceService = Depends(get_instance_service),
):
    """Create instances for every team in the caller's org with an active config."""
    result = await service.create_instances_for_date(data.target_date, org_id=org_id)
    return result.to_dict()


@router.patch("/instances/{instance_id}/state")
async def update_instance_state(
    instance_id: str,
    data: StateUpdateRequest,
    org_id: str = Depends(get_org_id),
    service: StandupInstanceService = Depends(get_instance_service),
):
    try:
        state = await service.update_instance_state(
            instance_id, data.state.value, data.actor_user_id, org_id
        )
    except StandupError as e:
        raise _http_error(e)

    return {"success": True, "instance_id": instance_id, "state": state.value}


@router.get("/instances/{instance_id}/participation")
async def get_participation(
    instance_id: str,
    org_id: str = Depends(get_org_id),
    service: StandupInstanceService = Depends(get_instance_service),
):
    try:
        report = await service.get_participation(instance_id, org_id)
    except StandupError as e:
        raise _http_error(e)

    return report.to_dict()


# ============================================================================
# Answers
# ============================================================================

@router.post("/instances/{instance_id}/answers")
async def submit_answers(
    instance_id: str,
    data: SubmitAnswersRequest,
    org_id: str = Depends(get_org_id),
    service: AnswerCollectionService = Depends(get_answer_service),
):
    try:
        result = await service.submit_answers(
            instance_id, data.team_member_id, data.answers, org_id
        )
    except StandupError as e:
        raise _http_error(e)

    return {"success": True, "answers_written": result.answers_written}


@router.post("/respond")
async def submit_answers_with_token(
    data: TokenSubmitRequest,
    service: AnswerCollectionService = Depends(get_answer_service),
):
    """Submit answers through a magic link. No org header: the token carries the scope."""
    try:
        result = await service.submit_answers_with_token(data.token, data.answers)
    except StandupError as e:
        raise _http_error(e)

    return {"success": True, "answers_written": result.answers_written}


# ============================================================================
# Magic tokens
# ============================================================================

@router.post("/instances/{instance_id}/tokens")
async def issue_tokens(
    instance_id: str,
    org_id: str = Depends(get_org_id),
    service: MagicTokenService = Depends(get_magic_token_service),
):
    try:
        result = await service.issue_tokens_for_instance(instance_id, org_id)
    except StandupError as e:
        raise _http_error(e)

    return {
        "tokens": [
            {
                "team_member_id": t.team_member_id,
                "member_name": t.member_name,
                "token": t.token,
                "expires_at": t.expires_at.isoformat(),
                "submission_url": t.submission_url,
            }
            for t in result.tokens
        ],
        "failed": [{"team_member_id": m, "reason": r} for m, r in result.failed],
    }


@router.post("/tokens/validate")
async def validate_token(
    data: TokenValidateRequest,
    service: MagicTokenService = Depends(get_magic_token_service),
):
    payload = await service.validate_token(data.token, data.standup_instance_id)
    if payload is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHENTICATED", "message": "Invalid or expired magic token"},
        )

    return {
        "valid": True,
        "standup_instance_id": payload.standup_instance_id,
        "team_member_id": payload.team_member_id,
        "platform_user_id": payload.platform_user_id,
        "org_id": payload.org_id,
        "expires_at": payload.expires_at.isoformat(),
    }


@router.get("/respond/{token}")
async def get_standup_for_token(
    token: str,
    service: MagicTokenService = Depends(get_magic_token_service),
):
    """What a response form needs to render."""
    payload = await service.validate_token(token)
    info = await service.get_standup_info_for_token(payload) if payload else None
    if info is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHENTICATED", "message": "Invalid or expired magic token"},
        )
    return info
