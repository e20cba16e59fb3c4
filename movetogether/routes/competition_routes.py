"""
Competition Routes
Draft lifecycle, competition lookup and invitation creation
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List, Optional

from movetogether.models.competition import CompetitionDraftCreate, CompetitionDraftUpdate
from movetogether.routes.dependencies import get_backend, get_current_user_id
from movetogether.services.backend.mongo import MongoCompetitionBackend
from movetogether.utils.response import success_response, error_response, unauthorized_response

router = APIRouter(prefix="/competitions", tags=["Competitions"])


class CompetitionCreateRequest(CompetitionDraftCreate):
    """Draft creation body; is_draft=False creates a finalized competition directly"""
    is_draft: bool = True


class InvitationCreateRequest(BaseModel):
    invitee_ids: List[str] = Field(default_factory=list)


def failure_status(message: Optional[str]) -> int:
    """HTTP status for a backend failure message"""
    text = (message or "").lower()
    if "not found" in text:
        return 404
    if "only the competition creator" in text:
        return 403
    return 400


@router.post("/drafts")
async def create_draft(
    request: CompetitionCreateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """
    Create a competition from the info step.
    Drafts are only visible to their creator until finalized.
    """
    if not user_id:
        return unauthorized_response()

    config = CompetitionDraftCreate.model_validate(request.model_dump(exclude={"is_draft"}))
    result = await backend.create_competition(config, user_id, is_draft=request.is_draft)
    if not result.success:
        return error_response(message=result.error_message or "Failed to create competition")

    return success_response(
        message="Draft created" if request.is_draft else "Competition created",
        data={"competition_id": result.competition_id},
        status_code=201
    )


@router.patch("/drafts/{competition_id}")
async def update_draft(
    competition_id: str,
    changes: CompetitionDraftUpdate,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Apply team and prize pool configuration to a draft"""
    if not user_id:
        return unauthorized_response()

    result = await backend.update_draft_competition(competition_id, user_id, changes)
    if not result.success:
        return error_response(message=result.error_message, status_code=failure_status(result.error_message))

    return success_response(message="Draft updated")


@router.delete("/drafts/{competition_id}")
async def delete_draft(
    competition_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Delete a draft owned by the caller. Finalized competitions are never deleted here."""
    if not user_id:
        return unauthorized_response()

    competition = await backend.fetch_competition(competition_id, user_id)
    if competition is None:
        return error_response(message="Competition not found", status_code=404)
    if competition.creator_id != user_id:
        return error_response(message="Only the competition creator can change a draft", status_code=403)
    if not competition.is_draft:
        return error_response(message="Only drafts can be deleted")
    if await backend.ledger.has_paid_prize_pool(competition_id):
        return error_response(message="Drafts with a paid prize pool can't be deleted")

    await backend.delete_draft_competition(competition_id, user_id)
    return success_response(message="Draft deleted")


@router.post("/drafts/{competition_id}/finalize")
async def finalize_draft(
    competition_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Finalize a draft. Finalizing twice is a no-op."""
    if not user_id:
        return unauthorized_response()

    result = await backend.finalize_draft_competition(competition_id, user_id)
    if not result.success:
        return error_response(message=result.error_message, status_code=failure_status(result.error_message))

    competition = await backend.fetch_competition(competition_id, user_id)
    return success_response(
        message="Competition finalized",
        data={
            "competition_id": competition_id,
            "status": competition.status.value if competition else None
        }
    )


@router.get("")
async def list_competitions(
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Competitions the caller created or joined (drafts excluded)"""
    if not user_id:
        return unauthorized_response()

    competitions = await backend.fetch_user_competitions(user_id)
    return success_response(
        message="Competitions retrieved successfully",
        data=[c.model_dump(mode="json") for c in competitions]
    )


@router.get("/{competition_id}")
async def get_competition(
    competition_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    if not user_id:
        return unauthorized_response()

    competition = await backend.fetch_competition(competition_id, user_id)
    if competition is None:
        return error_response(message="Competition not found", status_code=404)

    return success_response(
        message="Competition retrieved successfully",
        data=competition.model_dump(mode="json")
    )


@router.post("/{competition_id}/invitations")
async def create_invitations(
    competition_id: str,
    request: InvitationCreateRequest,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """
    Invite friends to a finalized competition.
    Invitees that were already invited are skipped.
    """
    if not user_id:
        return unauthorized_response()

    competition = await backend.fetch_competition(competition_id, user_id)
    if competition is None:
        return error_response(message="Competition not found", status_code=404)
    if competition.creator_id != user_id and user_id not in competition.participant_ids:
        return error_response(message="Only participants can invite friends", status_code=403)

    result = await backend.create_invitations(competition_id, user_id, request.invitee_ids)
    if not result.success:
        return error_response(message=result.error_message, status_code=failure_status(result.error_message))

    return success_response(message="Invitations sent", status_code=201)
