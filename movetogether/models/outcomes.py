"""
Backend call outcomes
Every backend operation returns one of these instead of raising
"""
from dataclasses import dataclass
from typing import Optional
from enum import Enum


@dataclass
class BackendResult:
    """Result of a backend mutation"""
    success: bool
    error_message: Optional[str] = None


@dataclass
class CreateDraftResult:
    """Result of creating a draft competition"""
    success: bool
    competition_id: Optional[str] = None
    error_message: Optional[str] = None


class AcceptStatus(str, Enum):
    ACCEPTED = "accepted"
    REQUIRES_BUY_IN = "requires_buy_in"
    ERROR = "error"


@dataclass
class AcceptInvitationResult:
    """Result of accepting an invitation"""
    status: AcceptStatus
    competition_id: Optional[str] = None
    buy_in_amount: Optional[float] = None
    error_message: Optional[str] = None

    @property
    def requires_buy_in(self) -> bool:
        return self.status == AcceptStatus.REQUIRES_BUY_IN
