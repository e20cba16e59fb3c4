"""
Shared test fixtures and in-memory collaborators.

Provides a recording competition backend, a scripted payment sheet and
intent client, and wizard/resolver factories wired to them.
"""
import asyncio
import itertools
from datetime import date, timedelta
from typing import Dict, List, Optional, Set

import pytest

from movetogether.models.competition import (
    CompetitionDraftCreate,
    CompetitionDraftUpdate,
    CompetitionRecord,
    CompetitionStatus,
)
from movetogether.models.invitation import Invitation
from movetogether.models.outcomes import (
    AcceptInvitationResult,
    AcceptStatus,
    BackendResult,
    CreateDraftResult,
)
from movetogether.models.payment import ChargeRequest, PaymentIntent, SheetResult
from movetogether.services.backend.base import CompetitionBackend
from movetogether.services.competition.buy_in import BuyInChoiceResolver
from movetogether.services.competition.cache import CompetitionCache, InvitationInbox
from movetogether.services.competition.fair_play import FairPlayGate
from movetogether.services.competition.wizard import CompetitionWizard
from movetogether.services.payment.gateways.base import PaymentSheet
from movetogether.services.payment.orchestrator import PaymentOrchestrator


CREATOR_ID = "user-creator"
INVITEE_ID = "user-invitee"


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeBackend(CompetitionBackend):
    """
    In-memory backend that records every call.

    Put a method name in `fail` to make it return a failure.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.fail: Set[str] = set()
        self.competitions: Dict[str, dict] = {}
        self.accept_results: Dict[str, AcceptInvitationResult] = {}
        self.acknowledged: Set[str] = set()
        self._ids = itertools.count(1)

    def _record(self, name: str, *args):
        self.calls.append((name,) + args)

    def calls_to(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    @property
    def live_drafts(self) -> List[str]:
        return [cid for cid, c in self.competitions.items() if c["status"] == CompetitionStatus.DRAFT]

    async def create_competition(self, config: CompetitionDraftCreate, creator_id: str, is_draft: bool = True):
        self._record("create_competition", config, creator_id, is_draft)
        if "create_competition" in self.fail:
            return CreateDraftResult(success=False, error_message="Network error")

        competition_id = f"comp-{next(self._ids)}"
        self.competitions[competition_id] = {
            "config": config,
            "creator_id": creator_id,
            "status": CompetitionStatus.DRAFT if is_draft else CompetitionStatus.ACTIVE,
            "changes": None,
        }
        return CreateDraftResult(success=True, competition_id=competition_id)

    async def update_draft_competition(self, competition_id: str, requester_id: str, changes: CompetitionDraftUpdate):
        self._record("update_draft_competition", competition_id, requester_id, changes)
        if "update_draft_competition" in self.fail:
            return BackendResult(success=False, error_message="Network error")
        self.competitions[competition_id]["changes"] = changes
        return BackendResult(success=True)

    async def delete_draft_competition(self, competition_id: str, requester_id: str) -> None:
        self._record("delete_draft_competition", competition_id, requester_id)
        if "delete_draft_competition" in self.fail:
            return
        competition = self.competitions.get(competition_id)
        if competition and competition["status"] == CompetitionStatus.DRAFT:
            del self.competitions[competition_id]

    async def finalize_draft_competition(self, competition_id: str, requester_id: str):
        self._record("finalize_draft_competition", competition_id, requester_id)
        if "finalize_draft_competition" in self.fail:
            return BackendResult(success=False, error_message="Network error")
        self.competitions[competition_id]["status"] = CompetitionStatus.ACTIVE
        return BackendResult(success=True)

    async def fetch_competition(self, competition_id: str, requester_id: str) -> Optional[CompetitionRecord]:
        self._record("fetch_competition", competition_id, requester_id)
        competition = self.competitions.get(competition_id)
        if competition is None or "fetch_competition" in self.fail:
            return None

        config = competition["config"]
        changes = competition["changes"] or CompetitionDraftUpdate()
        return CompetitionRecord(
            id=competition_id,
            name=config.name,
            status=competition["status"],
            creator_id=competition["creator_id"],
            schedule=config.schedule,
            scoring_type=config.scoring_type,
            is_team_competition=config.is_team_competition,
            team_config=changes.team_config,
            prize_pool=changes.prize_pool,
            participant_ids=[competition["creator_id"]],
        )

    async def fetch_user_competitions(self, user_id: str) -> List[CompetitionRecord]:
        self._record("fetch_user_competitions", user_id)
        records = []
        for competition_id, competition in self.competitions.items():
            if competition["status"] != CompetitionStatus.DRAFT:
                records.append(await self.fetch_competition(competition_id, user_id))
        return records

    async def create_invitations(self, competition_id: str, inviter_id: str, invitee_ids: List[str]):
        self._record("create_invitations", competition_id, inviter_id, list(invitee_ids))
        if "create_invitations" in self.fail:
            return BackendResult(success=False, error_message="Network error")
        return BackendResult(success=True)

    async def fetch_pending_invitations(self, user_id: str) -> List[Invitation]:
        self._record("fetch_pending_invitations", user_id)
        return []

    async def accept_invitation(self, invitation_id: str) -> AcceptInvitationResult:
        self._record("accept_invitation", invitation_id)
        if "accept_invitation" in self.fail:
            return AcceptInvitationResult(status=AcceptStatus.ERROR, error_message="Network error")
        return self.accept_results.get(
            invitation_id,
            AcceptInvitationResult(status=AcceptStatus.ACCEPTED, competition_id="comp-x")
        )

    async def confirm_buy_in_acceptance(self, invitation_id: str):
        self._record("confirm_buy_in_acceptance", invitation_id)
        if "confirm_buy_in_acceptance" in self.fail:
            return BackendResult(success=False, error_message="Network error")
        return BackendResult(success=True)

    async def accept_invitation_without_buy_in(self, invitation_id: str):
        self._record("accept_invitation_without_buy_in", invitation_id)
        if "accept_invitation_without_buy_in" in self.fail:
            return BackendResult(success=False, error_message="Network error")
        return BackendResult(success=True)

    async def decline_invitation(self, invitation_id: str):
        self._record("decline_invitation", invitation_id)
        if "decline_invitation" in self.fail:
            return BackendResult(success=False, error_message="Network error")
        return BackendResult(success=True)

    async def has_acknowledged_fair_play(self, user_id: str) -> bool:
        self._record("has_acknowledged_fair_play", user_id)
        return user_id in self.acknowledged

    async def acknowledge_fair_play(self, user_id: str):
        self._record("acknowledge_fair_play", user_id)
        if "acknowledge_fair_play" in self.fail:
            return BackendResult(success=False, error_message="Network error")
        self.acknowledged.add(user_id)
        return BackendResult(success=True)


class FakeSheet(PaymentSheet):
    """
    Scripted payment sheet.

    `outcomes` is consumed one per presentation; an empty list completes.
    Set `gate` to hold presentations until the event is set.
    """

    def __init__(self, platform_available: bool = True):
        self.platform_available = platform_available
        self.outcomes: List[SheetResult] = []
        self.presented: List[tuple] = []
        self.gate: Optional[asyncio.Event] = None

    async def _next(self) -> SheetResult:
        if self.gate is not None:
            await self.gate.wait()
        if self.outcomes:
            return self.outcomes.pop(0)
        return SheetResult(completed=True)

    async def platform_pay_available(self) -> bool:
        return self.platform_available

    async def present_platform_pay(self, client_secret: str, amount: float, label: str) -> SheetResult:
        self.presented.append(("platform_pay", client_secret, amount, label))
        return await self._next()

    async def present_card_entry(self, client_secret: str) -> SheetResult:
        self.presented.append(("card", client_secret))
        return await self._next()


class FakeIntents:
    """Payment intent client that never touches the network"""

    def __init__(self):
        self.requests: List[ChargeRequest] = []
        self.error_message: Optional[str] = None

    async def create_intent(self, request: ChargeRequest) -> PaymentIntent:
        self.requests.append(request)
        if self.error_message:
            return PaymentIntent(success=False, error_message=self.error_message)
        return PaymentIntent(
            success=True,
            client_secret=f"secret-{len(self.requests)}",
            amount=request.total_charge
        )


class ScriptedPrompt:
    """Fair play prompt answering with a fixed choice"""

    def __init__(self, agree: bool = True):
        self.agree = agree
        self.shown = 0

    async def __call__(self) -> bool:
        self.shown += 1
        return self.agree


def payment_event(
    payment_intent_id: str,
    metadata: Dict[str, str],
    event_type: str = "payment_intent.succeeded",
    amount_cents: int = 0
) -> dict:
    """A processor payment_intent webhook event"""
    return {
        "type": event_type,
        "data": {"object": {"id": payment_intent_id, "amount": amount_cents, "metadata": metadata}},
    }


def prize_pool_paid_event(payment_intent_id: str, competition_id: str, user_id: str, prize_pool: dict) -> dict:
    mode = prize_pool.get("mode", "creator_funded")
    metadata = {
        "type": "prize_pool",
        "competition_id": competition_id,
        "user_id": user_id,
        "pool_type": mode,
        "prize_amount": str(prize_pool.get("buy_in_amount") if mode == "buy_in" else prize_pool.get("amount")),
    }
    if mode == "buy_in":
        metadata["buy_in_amount"] = str(prize_pool["buy_in_amount"])
    return payment_event(payment_intent_id, metadata)


def buy_in_paid_event(payment_intent_id: str, competition_id: str, invitation_id: str, user_id: str, amount) -> dict:
    return payment_event(payment_intent_id, {
        "type": "buy_in_join",
        "competition_id": competition_id,
        "invitation_id": invitation_id,
        "user_id": user_id,
        "buy_in_amount": str(amount),
    })


CANCELLED = SheetResult(completed=False, error_code="Canceled", error_message="The payment was canceled")
DECLINED = SheetResult(completed=False, error_code="Failed", error_message="Your card was declined")


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def sheet():
    return FakeSheet()


@pytest.fixture
def intents():
    return FakeIntents()


@pytest.fixture
def prompt():
    return ScriptedPrompt(agree=True)


@pytest.fixture
def payments(intents, sheet):
    return PaymentOrchestrator(intents, sheet)


@pytest.fixture
def fair_play(backend, prompt):
    return FairPlayGate(backend, prompt)


@pytest.fixture
def cache(backend):
    return CompetitionCache(backend)


@pytest.fixture
def inbox(backend):
    return InvitationInbox(backend)


@pytest.fixture
def wizard(backend, payments, fair_play, cache):
    wizard = CompetitionWizard(backend, payments, fair_play, cache, CREATOR_ID)
    wizard.update_info(
        name="Weekend Warriors",
        start_date=date.today() + timedelta(days=1),
        end_date=date.today() + timedelta(days=8),
    )
    return wizard


@pytest.fixture
def resolver(backend, payments, inbox, cache, fair_play):
    return BuyInChoiceResolver(backend, payments, inbox, cache, INVITEE_ID, fair_play=fair_play)
