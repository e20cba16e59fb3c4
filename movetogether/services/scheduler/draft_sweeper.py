"""
Draft Sweeper Service

Removes drafts that no creation session will ever finish:
- the app was killed before the draft could be deleted
- the delete request itself failed

A draft counts as orphaned once it has not been touched for DRAFT_TTL_HOURS.
Invitations attached to it are removed with it. Drafts whose prize pool
was already paid for are kept and reported instead.
"""
import os
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Dict, Any, Optional
from datetime import datetime, timedelta
from dotenv import load_dotenv

from movetogether.models.competition import CompetitionStatus
from movetogether.services.payment.ledger import PaymentLedger

load_dotenv()

logger = logging.getLogger(__name__)

DRAFT_TTL_HOURS = int(os.getenv("DRAFT_TTL_HOURS", "24"))


class DraftSweeper:
    """Background job handler for orphaned draft cleanup"""

    def __init__(self, db: AsyncIOMotorDatabase, ttl_hours: int = DRAFT_TTL_HOURS):
        self.db = db
        self.competitions = db.competitions
        self.invitations = db.competition_invitations
        self.participants = db.competition_participants
        self.ledger = PaymentLedger(db)
        self.ttl = timedelta(hours=ttl_hours)

    async def sweep_orphaned_drafts(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Delete drafts whose updated_at is older than the TTL.

        Returns:
            Dict with processed count, deleted ids, paid drafts kept and errors
        """
        now = now or datetime.utcnow()
        cutoff = now - self.ttl
        results = {
            "processed": 0,
            "deleted": [],
            "kept_paid": [],
            "errors": []
        }

        try:
            stale_drafts = await self.competitions.find({
                "status": CompetitionStatus.DRAFT.value,
                "updated_at": {"$lt": cutoff}
            }).to_list(length=500)

            for draft in stale_drafts:
                competition_id = str(draft["_id"])

                try:
                    if await self.ledger.has_paid_prize_pool(competition_id):
                        results["kept_paid"].append(competition_id)
                        logger.warning(f"[SCHEDULER] Draft {competition_id} has a paid prize pool, not sweeping")
                        continue

                    # Status filter again: the draft may have been finalized meanwhile
                    deleted = await self.competitions.delete_one({
                        "_id": draft["_id"],
                        "status": CompetitionStatus.DRAFT.value
                    })
                    if not deleted.deleted_count:
                        continue

                    await self.invitations.delete_many({"competition_id": competition_id})
                    await self.participants.delete_many({"competition_id": competition_id})

                    results["deleted"].append(competition_id)
                    results["processed"] += 1

                except Exception as e:
                    results["errors"].append({
                        "competition_id": competition_id,
                        "error": str(e)
                    })
                    logger.error(f"[SCHEDULER] Failed to sweep draft {competition_id}: {str(e)}")

        except Exception as e:
            logger.error(f"[SCHEDULER] sweep_orphaned_drafts failed: {str(e)}")
            results["errors"].append({"error": str(e)})

        return results
