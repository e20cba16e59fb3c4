from fastapi import APIRouter, Depends
from typing import Optional

from movetogether.routes.dependencies import get_backend, get_current_user_id
from movetogether.services.backend.mongo import MongoCompetitionBackend
from movetogether.utils.response import success_response, error_response, unauthorized_response

router = APIRouter(prefix="/profiles", tags=["User Profile"])


@router.get("/me/fair-play")
async def get_fair_play(
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Whether the caller has acknowledged the fair play rules"""
    if not user_id:
        return unauthorized_response()

    acknowledged = await backend.has_acknowledged_fair_play(user_id)
    return success_response(
        message="Fair play status retrieved",
        data={"acknowledged": acknowledged}
    )


@router.post("/me/fair-play")
async def acknowledge_fair_play(
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Record the one-time fair play acknowledgement"""
    if not user_id:
        return unauthorized_response()

    result = await backend.acknowledge_fair_play(user_id)
    if not result.success:
        return error_response(message=result.error_message or "Failed to save acknowledgement")
    return success_response(message="Fair play acknowledged", data={"acknowledged": True})
