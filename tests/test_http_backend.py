"""
Tests for the HTTP competition backend client.

Envelope handling is tested against httpx.MockTransport; the end-to-end
flows run the client against the FastAPI app through httpx.ASGITransport.
"""
import json
from datetime import date

import httpx
import pytest
from mongomock_motor import AsyncMongoMockClient

from movetogether.main import app
from movetogether.models.competition import (
    CompetitionDraftCreate,
    CompetitionDraftUpdate,
    CompetitionStatus,
    PoolMode,
    Schedule,
)
from movetogether.models.outcomes import AcceptStatus
from movetogether.routes.dependencies import get_database
from movetogether.services.auth.security import SecurityService
from movetogether.services.backend.http import HttpCompetitionBackend
from movetogether.services.competition.buy_in import BuyInChoiceResolver, ResolutionStatus
from movetogether.services.competition.cache import CompetitionCache, InvitationInbox
from movetogether.services.competition.fair_play import FairPlayGate
from movetogether.services.competition.wizard import CompetitionWizard, ConfirmStatus, WizardStep
from movetogether.services.payment import ledger as payment_ledger
from movetogether.services.payment.ledger import PaymentLedger
from movetogether.services.payment.orchestrator import PaymentOrchestrator
from tests.conftest import FakeIntents, FakeSheet, ScriptedPrompt, prize_pool_paid_event

CREATOR = "creator-1"
FRIEND = "friend-1"


def mock_backend(handler) -> HttpCompetitionBackend:
    return HttpCompetitionBackend("token-1", base_url="https://api.test", transport=httpx.MockTransport(handler))


def draft_config():
    return CompetitionDraftCreate(
        name="Weekend Warriors",
        schedule=Schedule(start_date=date(2024, 1, 1), end_date=date(2024, 1, 8)),
    )


class TestEnvelope:

    @pytest.mark.asyncio
    async def test_create_sends_config_and_reads_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.read())
            return httpx.Response(201, json={"success": True, "message": "Draft created", "data": {"competition_id": "c1"}})

        result = await mock_backend(handler).create_competition(draft_config(), CREATOR)

        assert result.success
        assert result.competition_id == "c1"
        assert seen["method"] == "POST"
        assert seen["path"] == "/api/competitions/drafts"
        assert seen["auth"] == "Bearer token-1"
        assert seen["body"]["is_draft"] is True
        assert seen["body"]["schedule"]["start_date"] == "2024-01-01"

    @pytest.mark.asyncio
    async def test_error_envelope_message_is_surfaced(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"success": False, "message": "Competition not found"})

        result = await mock_backend(handler).finalize_draft_competition("c1", CREATOR)

        assert not result.success
        assert result.error_message == "Competition not found"

    @pytest.mark.asyncio
    async def test_non_json_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        result = await mock_backend(handler).decline_invitation("i1")

        assert not result.success
        assert result.error_message == "Request failed with status 502"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out")

        backend = mock_backend(handler)

        assert not (await backend.create_competition(draft_config(), CREATOR)).success
        assert await backend.fetch_competition("c1", CREATOR) is None
        assert await backend.fetch_pending_invitations(FRIEND) == []
        assert await backend.has_acknowledged_fair_play(CREATOR) is False
        # Delete never raises
        await backend.delete_draft_competition("c1", CREATOR)

    @pytest.mark.asyncio
    async def test_accept_requires_buy_in(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "success": True,
                "message": "Buy-in required to join the prize pool",
                "data": {"requires_buy_in": True, "buy_in_amount": 10, "competition_id": "c1"}
            })

        result = await mock_backend(handler).accept_invitation("i1")

        assert result.status == AcceptStatus.REQUIRES_BUY_IN
        assert result.buy_in_amount == 10
        assert result.competition_id == "c1"

    @pytest.mark.asyncio
    async def test_update_sends_only_given_sections(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.read())
            return httpx.Response(200, json={"success": True, "message": "Draft updated"})

        result = await mock_backend(handler).update_draft_competition(
            "c1", CREATOR, CompetitionDraftUpdate(prize_pool={"amount": 20})
        )

        assert result.success
        assert seen["method"] == "PATCH"
        assert list(seen["body"]) == ["prize_pool"]


# =============================================================================
# END TO END OVER ASGI
# =============================================================================

@pytest.fixture
def api_db(monkeypatch):
    monkeypatch.setattr(payment_ledger, "PAYMENT_CONFIRMATION_WAIT_SECONDS", 0)
    db = AsyncMongoMockClient()["movetogether_e2e"]
    app.dependency_overrides[get_database] = lambda: db
    yield db
    app.dependency_overrides.clear()


def client_backend(user_id: str) -> HttpCompetitionBackend:
    token = SecurityService.create_access_token({"sub": user_id})
    return HttpCompetitionBackend(token, base_url="http://testserver", transport=httpx.ASGITransport(app=app))


class LedgerIntents(FakeIntents):
    """Intent client whose payments land in the ledger the way the processor webhook records them"""

    def __init__(self, db, user_id: str):
        super().__init__()
        self.ledger = PaymentLedger(db)
        self.user_id = user_id

    async def create_intent(self, request):
        intent = await super().create_intent(request)
        prize_pool = {"mode": request.pool_type.value, "amount": request.amount, "buy_in_amount": request.buy_in_amount}
        event = prize_pool_paid_event(f"pi_{len(self.requests)}", request.competition_id, self.user_id, prize_pool)
        await self.ledger.record_event(event)
        return intent


def build_wizard(backend, prompt=None, sheet=None, intents=None):
    payments = PaymentOrchestrator(intents or FakeIntents(), sheet or FakeSheet())
    fair_play = FairPlayGate(backend, prompt or ScriptedPrompt())
    return CompetitionWizard(backend, payments, fair_play, CompetitionCache(backend), CREATOR)


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_wizard_creates_and_invites(self, api_db):
        backend = client_backend(CREATOR)
        wizard = build_wizard(backend, intents=LedgerIntents(api_db, CREATOR))
        wizard.update_info(name="Weekend Warriors", start_date=date(2024, 1, 1), end_date=date(2024, 1, 8))

        await wizard.next()
        await wizard.back()
        assert await api_db.competitions.count_documents({}) == 0

        await wizard.next()
        wizard.configure_prize_pool(True, amount=50)
        wizard.set_invitees([FRIEND])
        await wizard.next()
        await wizard.next()
        assert wizard.step == WizardStep.REVIEW

        result = await wizard.confirm()

        assert result.status == ConfirmStatus.FINALIZED
        assert result.invitations_sent is True
        assert result.competition.status == CompetitionStatus.ACTIVE
        assert result.competition.prize_pool.amount == 50
        assert await api_db.competitions.count_documents({}) == 1
        assert await backend.has_acknowledged_fair_play(CREATOR) is True

        pending = await client_backend(FRIEND).fetch_pending_invitations(FRIEND)
        assert [i.competition_id for i in pending] == [result.competition_id]

    @pytest.mark.asyncio
    async def test_finalize_waits_for_recorded_payment(self, api_db):
        intents = FakeIntents()
        wizard = build_wizard(client_backend(CREATOR), intents=intents)
        wizard.update_info(name="Weekend Warriors", start_date=date(2024, 1, 1), end_date=date(2024, 1, 8))
        await wizard.next()
        wizard.configure_prize_pool(True, amount=50)
        await wizard.next()
        await wizard.next()

        first = await wizard.confirm()

        assert first.status == ConfirmStatus.FINALIZE_FAILED
        assert first.error_message == "Prize pool payment has not been confirmed yet"

        event = prize_pool_paid_event("pi_late", first.competition_id, CREATOR, {"amount": 50})
        await PaymentLedger(api_db).record_event(event)
        second = await wizard.confirm()

        assert second.status == ConfirmStatus.FINALIZED
        assert len(intents.requests) == 1

    @pytest.mark.asyncio
    async def test_abandoned_wizard_leaves_nothing(self, api_db):
        wizard = build_wizard(client_backend(CREATOR))
        wizard.update_info(name="Weekend Warriors", start_date=date(2024, 1, 1), end_date=date(2024, 1, 8))
        await wizard.next()
        assert await api_db.competitions.count_documents({}) == 1

        assert await wizard.abandon() is True
        assert await api_db.competitions.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_invitee_joins_buy_in_competition_without_pool(self, api_db):
        wizard = build_wizard(client_backend(CREATOR), intents=LedgerIntents(api_db, CREATOR))
        wizard.update_info(name="Buy-In Battle", start_date=date(2024, 1, 1), end_date=date(2024, 1, 8))
        await wizard.next()
        wizard.configure_prize_pool(True, mode=PoolMode.BUY_IN, buy_in_amount=10)
        wizard.set_invitees([FRIEND])
        await wizard.next()
        await wizard.next()
        created = await wizard.confirm()
        assert created.status == ConfirmStatus.FINALIZED

        friend_backend = client_backend(FRIEND)
        inbox = InvitationInbox(friend_backend)
        cache = CompetitionCache(friend_backend)
        await inbox.refresh(FRIEND)
        intents = FakeIntents()
        resolver = BuyInChoiceResolver(
            friend_backend, PaymentOrchestrator(intents, FakeSheet()), inbox, cache, FRIEND
        )
        invitation_id = inbox.pending[0].id

        choice = await resolver.accept(invitation_id)
        assert choice.status == ResolutionStatus.CHOICE_REQUIRED
        assert choice.buy_in_amount == 10

        joined = await resolver.join_without_pool(invitation_id)

        assert joined.status == ResolutionStatus.ACCEPTED_WITHOUT_POOL
        assert inbox.pending == []
        assert [c.id for c in cache.competitions] == [created.competition_id]
        assert intents.requests == []
        membership = await api_db.competition_participants.find_one({"user_id": FRIEND})
        assert membership["pool_eligible"] is False
