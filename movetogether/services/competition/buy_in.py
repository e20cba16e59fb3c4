"""
Buy-In Choice Resolver

Acceptance side of buy-in prize pools. Accepting an invitation to a buy-in
competition does not join right away: the invitee must either pay the
buy-in or explicitly join without contributing. Until one of those
succeeds the invitation stays pending.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set

from movetogether.models.invitation import InvitationState
from movetogether.models.outcomes import AcceptStatus
from movetogether.services.backend.base import CompetitionBackend
from movetogether.services.competition.cache import CompetitionCache, InvitationInbox
from movetogether.services.competition.fair_play import FairPlayGate
from movetogether.services.payment.orchestrator import PaymentOrchestrator

logger = logging.getLogger(__name__)


class ResolutionStatus(str, Enum):
    ACCEPTED = "accepted"
    ACCEPTED_WITHOUT_POOL = "accepted_without_pool"
    DECLINED = "declined"
    CHOICE_REQUIRED = "choice_required"  # Pay or join without, nothing decided yet
    FAIR_PLAY_DECLINED = "fair_play_declined"
    PAYMENT_CANCELLED = "payment_cancelled"
    PAYMENT_FAILED = "payment_failed"
    ERROR = "error"
    BUSY = "busy"


@dataclass
class Resolution:
    status: ResolutionStatus
    invitation_id: str
    competition_id: Optional[str] = None
    buy_in_amount: Optional[float] = None
    error_message: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.status in (
            ResolutionStatus.ACCEPTED,
            ResolutionStatus.ACCEPTED_WITHOUT_POOL,
            ResolutionStatus.DECLINED,
        )


@dataclass
class _PendingChoice:
    competition_id: Optional[str]
    buy_in_amount: float


class BuyInChoiceResolver:
    """
    Invitation acceptance controller for the signed-in user.

    Flow:
    1. accept() -> ACCEPTED, or CHOICE_REQUIRED with the buy-in amount
    2. pay_and_join() or join_without_pool() resolves the choice
    3. A resolved invitation leaves the inbox and the competition list is refreshed
    """

    def __init__(
        self,
        backend: CompetitionBackend,
        payments: PaymentOrchestrator,
        inbox: InvitationInbox,
        cache: CompetitionCache,
        user_id: str,
        fair_play: Optional[FairPlayGate] = None
    ):
        self.backend = backend
        self.payments = payments
        self.inbox = inbox
        self.cache = cache
        self.user_id = user_id
        self.fair_play = fair_play

        self.states: Dict[str, InvitationState] = {}
        self._awaiting: Dict[str, _PendingChoice] = {}
        self._paid: Set[str] = set()
        self._busy: Set[str] = set()

    def awaiting_choice(self, invitation_id: str) -> bool:
        return invitation_id in self._awaiting

    async def accept(self, invitation_id: str) -> Resolution:
        if invitation_id in self._busy:
            return Resolution(ResolutionStatus.BUSY, invitation_id)

        self._busy.add(invitation_id)
        try:
            result = await self.backend.accept_invitation(invitation_id)
        finally:
            self._busy.discard(invitation_id)

        if result.requires_buy_in:
            if not result.buy_in_amount:
                return Resolution(
                    ResolutionStatus.ERROR,
                    invitation_id,
                    result.competition_id,
                    error_message="Buy-in amount missing"
                )
            self._awaiting[invitation_id] = _PendingChoice(result.competition_id, result.buy_in_amount)
            return Resolution(
                ResolutionStatus.CHOICE_REQUIRED,
                invitation_id,
                result.competition_id,
                buy_in_amount=result.buy_in_amount
            )

        if result.status == AcceptStatus.ERROR:
            return Resolution(
                ResolutionStatus.ERROR,
                invitation_id,
                result.competition_id,
                error_message=result.error_message or "Failed to accept invitation"
            )

        await self._resolved(invitation_id, InvitationState.ACCEPTED)
        return Resolution(ResolutionStatus.ACCEPTED, invitation_id, result.competition_id)

    async def pay_and_join(self, invitation_id: str) -> Resolution:
        """
        Charge the buy-in and complete the acceptance.

        A charge that succeeded is never repeated; if confirming the
        acceptance fails, calling again only retries the confirmation.
        """
        choice = self._awaiting.get(invitation_id)
        if choice is None:
            return Resolution(ResolutionStatus.ERROR, invitation_id, error_message="No buy-in decision pending")
        if invitation_id in self._busy:
            return Resolution(ResolutionStatus.BUSY, invitation_id)

        self._busy.add(invitation_id)
        try:
            if invitation_id not in self._paid:
                if self.fair_play is not None and not await self.fair_play.check(self.user_id):
                    return Resolution(ResolutionStatus.FAIR_PLAY_DECLINED, invitation_id, choice.competition_id)

                charge = await self.payments.charge_buy_in(
                    choice.competition_id or "", invitation_id, choice.buy_in_amount
                )
                if charge.cancelled:
                    return Resolution(ResolutionStatus.PAYMENT_CANCELLED, invitation_id, choice.competition_id)
                if charge.failed:
                    return Resolution(
                        ResolutionStatus.PAYMENT_FAILED,
                        invitation_id,
                        choice.competition_id,
                        error_message=charge.reason
                    )
                self._paid.add(invitation_id)

            confirmed = await self.backend.confirm_buy_in_acceptance(invitation_id)
            if not confirmed.success:
                logger.error(f"[PAYMENT] Buy-in paid but acceptance failed for {invitation_id}: {confirmed.error_message}")
                return Resolution(
                    ResolutionStatus.ERROR,
                    invitation_id,
                    choice.competition_id,
                    error_message=confirmed.error_message or "Failed to join competition"
                )
        finally:
            self._busy.discard(invitation_id)

        await self._resolved(invitation_id, InvitationState.ACCEPTED)
        return Resolution(ResolutionStatus.ACCEPTED, invitation_id, choice.competition_id)

    async def join_without_pool(self, invitation_id: str) -> Resolution:
        choice = self._awaiting.get(invitation_id)
        if choice is None:
            return Resolution(ResolutionStatus.ERROR, invitation_id, error_message="No buy-in decision pending")
        if invitation_id in self._paid:
            # Already charged; finish the paid acceptance instead
            return await self.pay_and_join(invitation_id)
        if invitation_id in self._busy:
            return Resolution(ResolutionStatus.BUSY, invitation_id)

        self._busy.add(invitation_id)
        try:
            result = await self.backend.accept_invitation_without_buy_in(invitation_id)
        finally:
            self._busy.discard(invitation_id)

        if not result.success:
            return Resolution(
                ResolutionStatus.ERROR,
                invitation_id,
                choice.competition_id,
                error_message=result.error_message or "Failed to join competition"
            )

        await self._resolved(invitation_id, InvitationState.ACCEPTED_WITHOUT_POOL)
        return Resolution(ResolutionStatus.ACCEPTED_WITHOUT_POOL, invitation_id, choice.competition_id)

    async def decline(self, invitation_id: str) -> Resolution:
        if invitation_id in self._busy:
            return Resolution(ResolutionStatus.BUSY, invitation_id)

        self._busy.add(invitation_id)
        try:
            result = await self.backend.decline_invitation(invitation_id)
        finally:
            self._busy.discard(invitation_id)

        if not result.success:
            return Resolution(
                ResolutionStatus.ERROR,
                invitation_id,
                error_message=result.error_message or "Failed to decline invitation"
            )

        await self._resolved(invitation_id, InvitationState.DECLINED)
        return Resolution(ResolutionStatus.DECLINED, invitation_id)

    async def _resolved(self, invitation_id: str, state: InvitationState):
        self.states[invitation_id] = state
        self._awaiting.pop(invitation_id, None)
        self._paid.discard(invitation_id)
        self.inbox.remove(invitation_id)

        if state == InvitationState.DECLINED:
            return
        try:
            await self.cache.refresh(self.user_id)
        except Exception as e:
            logger.error(f"Failed to refresh competitions after joining: {str(e)}")
