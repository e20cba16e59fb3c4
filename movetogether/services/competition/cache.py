"""
Local competition list and pending invitation inbox
"""
from typing import List, Optional

from movetogether.models.competition import CompetitionRecord
from movetogether.models.invitation import Invitation
from movetogether.services.backend.base import CompetitionBackend


class CompetitionCache:
    """The user's competition list as shown on the home screen"""

    def __init__(self, backend: CompetitionBackend):
        self.backend = backend
        self.competitions: List[CompetitionRecord] = []

    def prepend(self, competition: CompetitionRecord):
        self.competitions = [competition] + [c for c in self.competitions if c.id != competition.id]

    def get(self, competition_id: str) -> Optional[CompetitionRecord]:
        return next((c for c in self.competitions if c.id == competition_id), None)

    async def refresh(self, user_id: str) -> List[CompetitionRecord]:
        self.competitions = await self.backend.fetch_user_competitions(user_id)
        return self.competitions


class InvitationInbox:
    """Pending invitations of the signed-in user"""

    def __init__(self, backend: CompetitionBackend):
        self.backend = backend
        self.pending: List[Invitation] = []

    def get(self, invitation_id: str) -> Optional[Invitation]:
        return next((i for i in self.pending if i.id == invitation_id), None)

    def remove(self, invitation_id: str):
        self.pending = [i for i in self.pending if i.id != invitation_id]

    async def refresh(self, user_id: str) -> List[Invitation]:
        self.pending = await self.backend.fetch_pending_invitations(user_id)
        return self.pending
