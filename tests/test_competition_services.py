"""
Tests for the draft store, invitation dispatcher, fair play gate and caches.
"""
from datetime import date

import pytest

from movetogether.models.competition import CompetitionDraftCreate, Schedule
from movetogether.services.competition.draft_store import DraftStore
from movetogether.services.competition.fair_play import FairPlayGate
from movetogether.services.competition.invitation_dispatcher import InvitationDispatcher
from tests.conftest import CREATOR_ID, ScriptedPrompt


def draft_config(name="Weekend Warriors"):
    return CompetitionDraftCreate(
        name=name,
        schedule=Schedule(start_date=date(2024, 1, 1), end_date=date(2024, 1, 8)),
    )


class TestDraftStore:

    @pytest.mark.asyncio
    async def test_create_reuses_held_draft(self, backend):
        store = DraftStore(backend, CREATOR_ID)

        first = await store.create(draft_config())
        second = await store.create(draft_config("Other"))

        assert first.competition_id == second.competition_id
        assert len(backend.calls_to("create_competition")) == 1

    @pytest.mark.asyncio
    async def test_finalize_is_idempotent(self, backend):
        store = DraftStore(backend, CREATOR_ID)
        await store.create(draft_config())

        assert (await store.finalize()).success
        assert (await store.finalize()).success
        assert len(backend.calls_to("finalize_draft_competition")) == 1

    @pytest.mark.asyncio
    async def test_discard_after_finalize_is_a_no_op(self, backend):
        store = DraftStore(backend, CREATOR_ID)
        await store.create(draft_config())
        await store.finalize()

        assert await store.discard() is False
        assert backend.calls_to("delete_draft_competition") == []

    @pytest.mark.asyncio
    async def test_finalize_without_draft(self, backend):
        store = DraftStore(backend, CREATOR_ID)

        result = await store.finalize()

        assert not result.success
        assert backend.calls == []


class TestInvitationDispatcher:

    @pytest.mark.asyncio
    async def test_dedupes_and_drops_inviter(self, backend):
        dispatcher = InvitationDispatcher(backend)

        result = await dispatcher.dispatch("comp-1", CREATOR_ID, ["a", "b", "a", CREATOR_ID, ""])

        assert result.success
        assert result.invited_count == 2
        assert backend.calls_to("create_invitations") == [("create_invitations", "comp-1", CREATOR_ID, ["a", "b"])]

    @pytest.mark.asyncio
    async def test_empty_set_makes_no_call(self, backend):
        result = await InvitationDispatcher(backend).dispatch("comp-1", CREATOR_ID, [])

        assert result.success
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_dispatches_once_per_competition(self, backend):
        dispatcher = InvitationDispatcher(backend)

        await dispatcher.dispatch("comp-1", CREATOR_ID, ["a"])
        await dispatcher.dispatch("comp-1", CREATOR_ID, ["a", "b"])

        assert len(backend.calls_to("create_invitations")) == 1

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_retried(self, backend):
        backend.fail.add("create_invitations")
        dispatcher = InvitationDispatcher(backend)

        first = await dispatcher.dispatch("comp-1", CREATOR_ID, ["a"])
        second = await dispatcher.dispatch("comp-1", CREATOR_ID, ["a"])

        assert not first.success
        assert first.error_message == "Network error"
        assert second.success
        assert len(backend.calls_to("create_invitations")) == 1


class TestFairPlayGate:

    @pytest.mark.asyncio
    async def test_stored_acknowledgement_skips_prompt(self, backend):
        backend.acknowledged.add(CREATOR_ID)
        prompt = ScriptedPrompt()

        assert await FairPlayGate(backend, prompt).check(CREATOR_ID) is True
        assert prompt.shown == 0

    @pytest.mark.asyncio
    async def test_agreement_is_recorded(self, backend):
        prompt = ScriptedPrompt(agree=True)
        gate = FairPlayGate(backend, prompt)

        assert await gate.check(CREATOR_ID) is True
        assert await gate.check(CREATOR_ID) is True
        assert prompt.shown == 1
        assert CREATOR_ID in backend.acknowledged

    @pytest.mark.asyncio
    async def test_refusal_is_not_recorded(self, backend):
        prompt = ScriptedPrompt(agree=False)
        gate = FairPlayGate(backend, prompt)

        assert await gate.check(CREATOR_ID) is False
        assert await gate.check(CREATOR_ID) is False
        assert prompt.shown == 2
        assert backend.calls_to("acknowledge_fair_play") == []

    @pytest.mark.asyncio
    async def test_failed_save_still_lets_user_continue(self, backend):
        backend.fail.add("acknowledge_fair_play")
        gate = FairPlayGate(backend, ScriptedPrompt(agree=True))

        assert await gate.check(CREATOR_ID) is True


class TestCaches:

    @pytest.mark.asyncio
    async def test_prepend_replaces_existing_entry(self, backend, cache):
        store = DraftStore(backend, CREATOR_ID)
        await store.create(draft_config())
        await store.finalize()
        record = await backend.fetch_competition(store.competition_id, CREATOR_ID)

        cache.prepend(record)
        cache.prepend(record)

        assert len(cache.competitions) == 1
        assert cache.get(record.id) is record

    @pytest.mark.asyncio
    async def test_refresh_excludes_drafts(self, backend, cache):
        await DraftStore(backend, CREATOR_ID).create(draft_config())

        assert await cache.refresh(CREATOR_ID) == []
