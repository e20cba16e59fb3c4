"""
Draft Store
Holds the single draft competition of a wizard session
"""
from typing import Optional

from movetogether.models.competition import CompetitionDraftCreate, CompetitionDraftUpdate
from movetogether.models.outcomes import BackendResult, CreateDraftResult
from movetogether.services.backend.base import CompetitionBackend


class DraftStore:
    """
    Session-scoped draft state.

    At most one draft id is held at a time. Once finalized is set the draft
    is durable and discard() becomes a no-op.
    """

    def __init__(self, backend: CompetitionBackend, requester_id: str):
        self.backend = backend
        self.requester_id = requester_id
        self.competition_id: Optional[str] = None
        self.finalized = False

    @property
    def has_draft(self) -> bool:
        return self.competition_id is not None

    async def create(self, config: CompetitionDraftCreate) -> CreateDraftResult:
        """Create the draft, or return the one already held"""
        if self.competition_id is not None:
            return CreateDraftResult(success=True, competition_id=self.competition_id)

        result = await self.backend.create_competition(config, self.requester_id, is_draft=True)
        if result.success and result.competition_id:
            self.competition_id = result.competition_id
        elif result.success:
            return CreateDraftResult(success=False, error_message="Backend returned no competition id")
        return result

    async def apply(self, changes: CompetitionDraftUpdate) -> BackendResult:
        if self.competition_id is None:
            return BackendResult(success=False, error_message="No draft to update")
        return await self.backend.update_draft_competition(self.competition_id, self.requester_id, changes)

    async def finalize(self) -> BackendResult:
        if self.finalized:
            return BackendResult(success=True)
        if self.competition_id is None:
            return BackendResult(success=False, error_message="No draft to finalize")

        result = await self.backend.finalize_draft_competition(self.competition_id, self.requester_id)
        if result.success:
            # Set before anything else runs so teardown never deletes a finalized competition
            self.finalized = True
        return result

    async def discard(self) -> bool:
        """
        Best-effort delete of the held draft.

        The id is released before the delete is issued, so a failed delete
        never leaves a stale reference behind.
        """
        if self.finalized or self.competition_id is None:
            return False

        competition_id = self.competition_id
        self.competition_id = None
        await self.backend.delete_draft_competition(competition_id, self.requester_id)
        return True
