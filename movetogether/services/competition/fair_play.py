"""
Fair Play Gate
One-time-per-account acknowledgement before any financial commitment
"""
import logging
from typing import Awaitable, Callable, Set

from movetogether.services.backend.base import CompetitionBackend

logger = logging.getLogger(__name__)

# Shows the fair play reminder; resolves True when the user agrees
FairPlayPrompt = Callable[[], Awaitable[bool]]


class FairPlayGate:

    def __init__(self, backend: CompetitionBackend, prompt: FairPlayPrompt):
        self.backend = backend
        self.prompt = prompt
        self._acknowledged: Set[str] = set()

    async def check(self, user_id: str) -> bool:
        """
        True when the user has acknowledged fair play, prompting if needed.
        A refusal returns False and is not recorded.
        """
        if user_id in self._acknowledged:
            return True

        if await self.backend.has_acknowledged_fair_play(user_id):
            self._acknowledged.add(user_id)
            return True

        if not await self.prompt():
            return False

        result = await self.backend.acknowledge_fair_play(user_id)
        if not result.success:
            # The user agreed; they will simply be asked again next session
            logger.warning(f"[WARN] Could not record fair play for {user_id}: {result.error_message}")

        self._acknowledged.add(user_id)
        return True
