"""
Invitation Models
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from enum import Enum

from movetogether.models.competition import CompetitionRecord


class InvitationState(str, Enum):
    """
    Invitation state machine

    State Transitions:
    - PENDING -> DECLINED
    - PENDING -> ACCEPTED (no pool required, or buy-in paid)
    - PENDING -> ACCEPTED_WITHOUT_POOL (explicit opt-out of the buy-in)
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    ACCEPTED_WITHOUT_POOL = "accepted_without_pool"
    DECLINED = "declined"


class Invitation(BaseModel):
    id: str
    competition_id: str
    inviter_id: str
    invitee_id: str
    state: InvitationState = InvitationState.PENDING
    competition: Optional[CompetitionRecord] = None
    invited_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.state == InvitationState.PENDING
