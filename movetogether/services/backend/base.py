"""
Competition Backend
Abstract contract for the remote operations the competition flows consume
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from movetogether.models.competition import (
    CompetitionDraftCreate,
    CompetitionDraftUpdate,
    CompetitionRecord,
)
from movetogether.models.invitation import Invitation
from movetogether.models.outcomes import (
    AcceptInvitationResult,
    BackendResult,
    CreateDraftResult,
)


class CompetitionBackend(ABC):
    """
    Abstract base class for competition backends.
    Implementations never raise for expected failures; they return results.
    """

    @abstractmethod
    async def create_competition(
        self,
        config: CompetitionDraftCreate,
        creator_id: str,
        is_draft: bool = True
    ) -> CreateDraftResult:
        """Create a competition (as a draft unless told otherwise)"""
        pass

    @abstractmethod
    async def update_draft_competition(
        self,
        competition_id: str,
        requester_id: str,
        changes: CompetitionDraftUpdate
    ) -> BackendResult:
        """Apply configuration to a draft owned by the requester"""
        pass

    @abstractmethod
    async def delete_draft_competition(self, competition_id: str, requester_id: str) -> None:
        """Best-effort delete of a draft; errors are swallowed"""
        pass

    @abstractmethod
    async def finalize_draft_competition(self, competition_id: str, requester_id: str) -> BackendResult:
        """Flip a draft to its non-draft status"""
        pass

    @abstractmethod
    async def fetch_competition(self, competition_id: str, requester_id: str) -> Optional[CompetitionRecord]:
        pass

    @abstractmethod
    async def fetch_user_competitions(self, user_id: str) -> List[CompetitionRecord]:
        """Non-draft competitions the user created or joined"""
        pass

    @abstractmethod
    async def create_invitations(
        self,
        competition_id: str,
        inviter_id: str,
        invitee_ids: List[str]
    ) -> BackendResult:
        pass

    @abstractmethod
    async def fetch_pending_invitations(self, user_id: str) -> List[Invitation]:
        pass

    @abstractmethod
    async def accept_invitation(self, invitation_id: str) -> AcceptInvitationResult:
        """Accept, or report that a buy-in decision is required"""
        pass

    @abstractmethod
    async def confirm_buy_in_acceptance(self, invitation_id: str) -> BackendResult:
        """Complete an acceptance once the invitee's buy-in payment is recorded"""
        pass

    @abstractmethod
    async def accept_invitation_without_buy_in(self, invitation_id: str) -> BackendResult:
        """Join as a competitor excluded from payouts"""
        pass

    @abstractmethod
    async def decline_invitation(self, invitation_id: str) -> BackendResult:
        pass

    @abstractmethod
    async def has_acknowledged_fair_play(self, user_id: str) -> bool:
        pass

    @abstractmethod
    async def acknowledge_fair_play(self, user_id: str) -> BackendResult:
        pass
