"""
HTTP Competition Backend
Client-side implementation of CompetitionBackend over the /api routes
"""
import os
import logging
import httpx
from typing import Any, Dict, List, Optional, Tuple
from dotenv import load_dotenv

from movetogether.models.competition import (
    CompetitionDraftCreate,
    CompetitionDraftUpdate,
    CompetitionRecord,
)
from movetogether.models.invitation import Invitation
from movetogether.models.outcomes import (
    AcceptInvitationResult,
    AcceptStatus,
    BackendResult,
    CreateDraftResult,
)
from movetogether.services.backend.base import CompetitionBackend

load_dotenv()

logger = logging.getLogger(__name__)

BACKEND_BASE_URL = os.getenv("BACKEND_BASE_URL", "http://localhost:8000")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))


class HttpCompetitionBackend(CompetitionBackend):
    """
    Talks to the competition API with the caller's access token.

    The server identifies the requester from the token; requester ids are
    accepted here to satisfy the backend contract.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = BACKEND_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS
    ):
        self.access_token = access_token
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None
    ) -> Tuple[bool, Any, str]:
        """
        Send a request and unwrap the response envelope.

        Returns:
            Tuple of (success, data, message)
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport
            ) as client:
                response = await client.request(method, path, headers=self._get_headers(), json=json)

            try:
                body = response.json()
            except ValueError:
                body = {}

            success = response.is_success and body.get("success", False)
            message = body.get("message") or f"Request failed with status {response.status_code}"
            return success, body.get("data"), message

        except httpx.HTTPError as e:
            logger.warning(f"[WARN] {method} {path} failed: {str(e)}")
            return False, None, str(e) or "Network error"

    async def create_competition(
        self,
        config: CompetitionDraftCreate,
        creator_id: str,
        is_draft: bool = True
    ) -> CreateDraftResult:
        payload = config.model_dump(mode="json")
        payload["is_draft"] = is_draft
        success, data, message = await self._request("POST", "/api/competitions/drafts", payload)
        if not success or not data:
            return CreateDraftResult(success=False, error_message=message)
        return CreateDraftResult(success=True, competition_id=data["competition_id"])

    async def update_draft_competition(
        self,
        competition_id: str,
        requester_id: str,
        changes: CompetitionDraftUpdate
    ) -> BackendResult:
        success, _, message = await self._request(
            "PATCH",
            f"/api/competitions/drafts/{competition_id}",
            changes.model_dump(mode="json", exclude_unset=True)
        )
        return BackendResult(success=success, error_message=None if success else message)

    async def delete_draft_competition(self, competition_id: str, requester_id: str) -> None:
        success, _, message = await self._request("DELETE", f"/api/competitions/drafts/{competition_id}")
        if not success:
            logger.warning(f"[WARN] Draft {competition_id} not deleted: {message}")

    async def finalize_draft_competition(self, competition_id: str, requester_id: str) -> BackendResult:
        success, _, message = await self._request("POST", f"/api/competitions/drafts/{competition_id}/finalize")
        return BackendResult(success=success, error_message=None if success else message)

    async def fetch_competition(self, competition_id: str, requester_id: str) -> Optional[CompetitionRecord]:
        success, data, _ = await self._request("GET", f"/api/competitions/{competition_id}")
        if not success or not data:
            return None
        return CompetitionRecord.model_validate(data)

    async def fetch_user_competitions(self, user_id: str) -> List[CompetitionRecord]:
        success, data, _ = await self._request("GET", "/api/competitions")
        if not success or not data:
            return []
        return [CompetitionRecord.model_validate(item) for item in data]

    async def create_invitations(
        self,
        competition_id: str,
        inviter_id: str,
        invitee_ids: List[str]
    ) -> BackendResult:
        success, _, message = await self._request(
            "POST",
            f"/api/competitions/{competition_id}/invitations",
            {"invitee_ids": list(invitee_ids)}
        )
        return BackendResult(success=success, error_message=None if success else message)

    async def fetch_pending_invitations(self, user_id: str) -> List[Invitation]:
        success, data, _ = await self._request("GET", "/api/invitations/pending")
        if not success or not data:
            return []
        return [Invitation.model_validate(item) for item in data]

    async def accept_invitation(self, invitation_id: str) -> AcceptInvitationResult:
        success, data, message = await self._request("POST", f"/api/invitations/{invitation_id}/accept")
        if not success or not data:
            return AcceptInvitationResult(status=AcceptStatus.ERROR, error_message=message)

        if data.get("requires_buy_in"):
            return AcceptInvitationResult(
                status=AcceptStatus.REQUIRES_BUY_IN,
                competition_id=data.get("competition_id"),
                buy_in_amount=data.get("buy_in_amount"),
            )
        return AcceptInvitationResult(status=AcceptStatus.ACCEPTED, competition_id=data.get("competition_id"))

    async def confirm_buy_in_acceptance(self, invitation_id: str) -> BackendResult:
        success, _, message = await self._request("POST", f"/api/invitations/{invitation_id}/confirm-buy-in")
        return BackendResult(success=success, error_message=None if success else message)

    async def accept_invitation_without_buy_in(self, invitation_id: str) -> BackendResult:
        success, _, message = await self._request("POST", f"/api/invitations/{invitation_id}/accept-without-buy-in")
        return BackendResult(success=success, error_message=None if success else message)

    async def decline_invitation(self, invitation_id: str) -> BackendResult:
        success, _, message = await self._request("POST", f"/api/invitations/{invitation_id}/decline")
        return BackendResult(success=success, error_message=None if success else message)

    async def has_acknowledged_fair_play(self, user_id: str) -> bool:
        success, data, _ = await self._request("GET", "/api/profiles/me/fair-play")
        return bool(success and data and data.get("acknowledged"))

    async def acknowledge_fair_play(self, user_id: str) -> BackendResult:
        success, _, message = await self._request("POST", "/api/profiles/me/fair-play")
        return BackendResult(success=success, error_message=None if success else message)
