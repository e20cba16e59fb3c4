"""
Invitation Routes
Pending invitations and the responses an invitee can give
"""
from fastapi import APIRouter, Depends
from typing import Optional

from movetogether.models.outcomes import AcceptStatus
from movetogether.routes.competition_routes import failure_status
from movetogether.routes.dependencies import get_backend, get_current_user_id
from movetogether.services.backend.mongo import MongoCompetitionBackend
from movetogether.utils.response import success_response, error_response, unauthorized_response

router = APIRouter(prefix="/invitations", tags=["Invitations"])


async def check_invitee(backend: MongoCompetitionBackend, invitation_id: str, user_id: str):
    """Returns an error response unless the caller is the invitee"""
    invitation = await backend.get_invitation(invitation_id)
    if invitation is None:
        return error_response(message="Invitation not found", status_code=404)
    if invitation.invitee_id != user_id:
        return error_response(message="This invitation belongs to someone else", status_code=403)
    return None


@router.get("/pending")
async def get_pending_invitations(
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    if not user_id:
        return unauthorized_response()

    invitations = await backend.fetch_pending_invitations(user_id)
    return success_response(
        message="Invitations retrieved successfully",
        data=[i.model_dump(mode="json") for i in invitations]
    )


@router.post("/{invitation_id}/accept")
async def accept_invitation(
    invitation_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """
    Accept an invitation.

    For buy-in competitions nothing changes yet: the response carries
    requires_buy_in and the amount, and the invitee answers with
    confirm-buy-in or accept-without-buy-in.
    """
    if not user_id:
        return unauthorized_response()

    denied = await check_invitee(backend, invitation_id, user_id)
    if denied:
        return denied

    result = await backend.accept_invitation(invitation_id)
    if result.requires_buy_in:
        return success_response(
            message="Buy-in required to join the prize pool",
            data={
                "requires_buy_in": True,
                "buy_in_amount": result.buy_in_amount,
                "competition_id": result.competition_id
            }
        )
    if result.status == AcceptStatus.ERROR:
        return error_response(message=result.error_message, status_code=failure_status(result.error_message))

    return success_response(
        message="Invitation accepted",
        data={"requires_buy_in": False, "competition_id": result.competition_id}
    )


@router.post("/{invitation_id}/confirm-buy-in")
async def confirm_buy_in(
    invitation_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Complete an acceptance once the buy-in payment is recorded by the processor webhook"""
    if not user_id:
        return unauthorized_response()

    denied = await check_invitee(backend, invitation_id, user_id)
    if denied:
        return denied

    result = await backend.confirm_buy_in_acceptance(invitation_id)
    if not result.success:
        return error_response(message=result.error_message, status_code=failure_status(result.error_message))
    return success_response(message="Joined competition with buy-in")


@router.post("/{invitation_id}/accept-without-buy-in")
async def accept_without_buy_in(
    invitation_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    """Join as a competitor who is not eligible for payouts"""
    if not user_id:
        return unauthorized_response()

    denied = await check_invitee(backend, invitation_id, user_id)
    if denied:
        return denied

    result = await backend.accept_invitation_without_buy_in(invitation_id)
    if not result.success:
        return error_response(message=result.error_message, status_code=failure_status(result.error_message))
    return success_response(message="Joined competition without prize pool")


@router.post("/{invitation_id}/decline")
async def decline_invitation(
    invitation_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    backend: MongoCompetitionBackend = Depends(get_backend)
):
    if not user_id:
        return unauthorized_response()

    denied = await check_invitee(backend, invitation_id, user_id)
    if denied:
        return denied

    result = await backend.decline_invitation(invitation_id)
    if not result.success:
        return error_response(message=result.error_message, status_code=failure_status(result.error_message))
    return success_response(message="Invitation declined")
