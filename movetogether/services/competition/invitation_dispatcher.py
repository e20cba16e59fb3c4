"""
Invitation Dispatcher
Creates invitations for a finalized competition
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Set

from movetogether.services.backend.base import CompetitionBackend

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    success: bool
    invited_count: int = 0
    error_message: Optional[str] = None


class InvitationDispatcher:
    """
    Sends the invitee set gathered by the wizard, once per competition.

    Failures are logged and reported; nothing is retried here. Reminders
    and re-sends belong to the notification side.
    """

    def __init__(self, backend: CompetitionBackend):
        self.backend = backend
        self._dispatched: Set[str] = set()

    async def dispatch(
        self,
        competition_id: str,
        inviter_id: str,
        invitee_ids: Iterable[str]
    ) -> DispatchResult:
        invitees = [i for i in dict.fromkeys(invitee_ids) if i and i != inviter_id]

        if competition_id in self._dispatched:
            return DispatchResult(success=True)
        self._dispatched.add(competition_id)

        if not invitees:
            return DispatchResult(success=True)

        try:
            result = await self.backend.create_invitations(competition_id, inviter_id, invitees)
        except Exception as e:
            logger.error(f"Error dispatching invitations for {competition_id}: {str(e)}")
            return DispatchResult(success=False, error_message=str(e))

        if not result.success:
            logger.error(f"Failed to create invitations for {competition_id}: {result.error_message}")
            return DispatchResult(success=False, error_message=result.error_message)

        logger.info(f"Invited {len(invitees)} friends to competition {competition_id}")
        return DispatchResult(success=True, invited_count=len(invitees))
