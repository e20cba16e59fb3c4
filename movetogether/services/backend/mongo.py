"""
MongoDB Competition Backend
Draft lifecycle, invitations and fair-play acknowledgements stored with Motor
"""
import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import List, Optional, Dict, Any
from datetime import datetime, date, time
from bson import ObjectId

from movetogether.models.competition import (
    CompetitionDraftCreate,
    CompetitionDraftUpdate,
    CompetitionRecord,
    CompetitionStatus,
    PoolMode,
    Schedule,
)
from movetogether.models.invitation import Invitation, InvitationState
from movetogether.models.outcomes import (
    AcceptInvitationResult,
    AcceptStatus,
    BackendResult,
    CreateDraftResult,
)
from movetogether.services.backend.base import CompetitionBackend
from movetogether.services.payment.ledger import PaymentLedger

logger = logging.getLogger(__name__)


def _to_datetime(value: date) -> datetime:
    """BSON has no date type; store dates as midnight datetimes"""
    return datetime.combine(value, time.min)


def _to_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


class MongoCompetitionBackend(CompetitionBackend):
    """
    Competition backend on MongoDB.

    Collections:
    - competitions: competition documents (drafts included)
    - competition_participants: one document per joined user
    - competition_invitations: invitations with their state
    - profiles: per-user flags (fair play acknowledgement)

    Prize pool finalization and paid buy-ins are checked against the
    payment ledger (prize_payments).
    """

    def __init__(self, db: AsyncIOMotorDatabase, payment_wait_seconds: Optional[float] = None):
        self.db = db
        self.ledger = PaymentLedger(db, wait_seconds=payment_wait_seconds)
        self.competitions = db.competitions
        self.participants = db.competition_participants
        self.invitations = db.competition_invitations
        self.profiles = db.profiles

    @staticmethod
    def initial_status(schedule: Schedule, today: Optional[date] = None) -> CompetitionStatus:
        """Status a competition gets when it stops being a draft"""
        today = today or datetime.utcnow().date()
        return CompetitionStatus.UPCOMING if schedule.start_date > today else CompetitionStatus.ACTIVE

    def _to_record(self, competition: Dict[str, Any], participant_ids: List[str]) -> CompetitionRecord:
        return CompetitionRecord(
            id=str(competition["_id"]),
            name=competition["name"],
            description=competition.get("description", ""),
            status=competition["status"],
            creator_id=competition["creator_id"],
            schedule=Schedule(
                start_date=_to_date(competition["start_date"]),
                end_date=_to_date(competition["end_date"]),
                repeat=competition.get("repeat", "none"),
            ),
            type=competition.get("type", "custom"),
            visibility=competition.get("visibility", "private"),
            scoring_type=competition.get("scoring_type", "ring_close"),
            scoring_config=competition.get("scoring_config"),
            is_team_competition=competition.get("is_team_competition", False),
            team_config=competition.get("team_config"),
            prize_pool=competition.get("prize_pool"),
            participant_ids=participant_ids,
            created_at=competition.get("created_at"),
            updated_at=competition.get("updated_at"),
            finalized_at=competition.get("finalized_at"),
        )

    async def _participant_ids(self, competition_id: str) -> List[str]:
        participants = await self.participants.find({"competition_id": competition_id}).to_list(length=None)
        return [p["user_id"] for p in participants]

    async def _add_participant(self, competition_id: str, user_id: str, pool_eligible: bool, buy_in_paid: bool = False):
        await self.participants.update_one(
            {"competition_id": competition_id, "user_id": user_id},
            {"$set": {
                "pool_eligible": pool_eligible,
                "buy_in_paid": buy_in_paid,
            }, "$setOnInsert": {
                "joined_at": datetime.utcnow(),
            }},
            upsert=True
        )

    async def _get_draft_for_owner(self, competition_id: str, requester_id: str):
        """Returns (draft, error_message)"""
        competition = await self.competitions.find_one({"_id": ObjectId(competition_id)})
        if not competition:
            return None, "Competition not found"
        if competition["creator_id"] != requester_id:
            return None, "Only the competition creator can change a draft"
        return competition, None

    # ------------------------------------------------------------------
    # Draft lifecycle
    # ------------------------------------------------------------------

    async def create_competition(
        self,
        config: CompetitionDraftCreate,
        creator_id: str,
        is_draft: bool = True
    ) -> CreateDraftResult:
        try:
            now = datetime.utcnow()
            schedule = config.schedule
            status = CompetitionStatus.DRAFT if is_draft else self.initial_status(schedule)

            competition = {
                "name": config.name,
                "description": schedule.description(),
                "status": status.value,
                "creator_id": creator_id,
                "start_date": _to_datetime(schedule.start_date),
                "end_date": _to_datetime(schedule.end_date),
                "repeat": schedule.repeat.value,
                "type": schedule.competition_type().value,
                "visibility": config.visibility.value,
                "scoring_type": config.scoring_type.value,
                "scoring_config": config.scoring_config.model_dump(mode="json") if config.scoring_config else None,
                "is_team_competition": config.is_team_competition,
                "team_config": None,
                "prize_pool": None,
                "created_at": now,
                "updated_at": now,
                "finalized_at": None if is_draft else now,
            }

            result = await self.competitions.insert_one(competition)
            competition_id = str(result.inserted_id)

            if not is_draft:
                await self._add_participant(competition_id, creator_id, pool_eligible=True)

            return CreateDraftResult(success=True, competition_id=competition_id)

        except Exception as e:
            logger.error(f"Error creating competition: {str(e)}")
            return CreateDraftResult(success=False, error_message=f"Failed to create competition: {str(e)}")

    async def update_draft_competition(
        self,
        competition_id: str,
        requester_id: str,
        changes: CompetitionDraftUpdate
    ) -> BackendResult:
        try:
            competition, error = await self._get_draft_for_owner(competition_id, requester_id)
            if error:
                return BackendResult(success=False, error_message=error)

            if competition["status"] != CompetitionStatus.DRAFT:
                return BackendResult(success=False, error_message="Only drafts can be changed here")

            # Only the sections the caller sent; nested defaults are kept
            dumped = changes.model_dump(mode="json")
            update = {name: dumped[name] for name in changes.model_fields_set}
            update["updated_at"] = datetime.utcnow()

            await self.competitions.update_one(
                {"_id": ObjectId(competition_id), "status": CompetitionStatus.DRAFT.value},
                {"$set": update}
            )
            return BackendResult(success=True)

        except Exception as e:
            logger.error(f"Error updating draft {competition_id}: {str(e)}")
            return BackendResult(success=False, error_message=f"Failed to update draft: {str(e)}")

    async def delete_draft_competition(self, competition_id: str, requester_id: str) -> None:
        try:
            if await self.ledger.has_paid_prize_pool(competition_id):
                logger.warning(f"[WARN] Draft {competition_id} has a paid prize pool, not deleting")
                return

            result = await self.competitions.delete_one({
                "_id": ObjectId(competition_id),
                "creator_id": requester_id,
                "status": CompetitionStatus.DRAFT.value
            })

            if result.deleted_count:
                await self.invitations.delete_many({"competition_id": competition_id})
                await self.participants.delete_many({"competition_id": competition_id})

        except Exception as e:
            logger.warning(f"[WARN] Failed to delete draft {competition_id}: {str(e)}")

    async def finalize_draft_competition(self, competition_id: str, requester_id: str) -> BackendResult:
        """
        Finalize a draft (DRAFT -> UPCOMING/ACTIVE).

        Finalizing an already finalized competition succeeds without changes,
        so a retried confirm cannot finalize twice. A draft with a prize pool
        only finalizes once the ledger holds the creator's payment for
        exactly that pool.
        """
        try:
            competition, error = await self._get_draft_for_owner(competition_id, requester_id)
            if error:
                return BackendResult(success=False, error_message=error)

            if competition["status"] != CompetitionStatus.DRAFT:
                return BackendResult(success=True)

            prize_pool = competition.get("prize_pool")
            if prize_pool:
                paid = await self.ledger.wait_for_payment(
                    lambda: self.ledger.prize_pool_paid(competition_id, requester_id, prize_pool)
                )
                if not paid:
                    return BackendResult(
                        success=False,
                        error_message="Prize pool payment has not been confirmed yet"
                    )

            schedule = Schedule(
                start_date=_to_date(competition["start_date"]),
                end_date=_to_date(competition["end_date"]),
            )
            now = datetime.utcnow()

            result = await self.competitions.update_one(
                {"_id": ObjectId(competition_id), "status": CompetitionStatus.DRAFT.value},
                {"$set": {
                    "status": self.initial_status(schedule).value,
                    "finalized_at": now,
                    "updated_at": now
                }}
            )
            if result.modified_count:
                await self._add_participant(competition_id, requester_id, pool_eligible=True)

            return BackendResult(success=True)

        except Exception as e:
            logger.error(f"Error finalizing draft {competition_id}: {str(e)}")
            return BackendResult(success=False, error_message=f"Failed to finalize competition: {str(e)}")

    async def fetch_competition(self, competition_id: str, requester_id: str) -> Optional[CompetitionRecord]:
        try:
            competition = await self.competitions.find_one({"_id": ObjectId(competition_id)})
            if not competition:
                return None

            # Drafts are invisible to everyone but their creator
            if competition["status"] == CompetitionStatus.DRAFT and competition["creator_id"] != requester_id:
                return None

            return self._to_record(competition, await self._participant_ids(competition_id))

        except Exception as e:
            logger.error(f"Error fetching competition {competition_id}: {str(e)}")
            return None

    async def fetch_user_competitions(self, user_id: str) -> List[CompetitionRecord]:
        try:
            memberships = await self.participants.find({"user_id": user_id}).to_list(length=None)
            joined_ids = [ObjectId(m["competition_id"]) for m in memberships]

            competitions = await self.competitions.find({
                "status": {"$ne": CompetitionStatus.DRAFT.value},
                "$or": [
                    {"creator_id": user_id},
                    {"_id": {"$in": joined_ids}}
                ]
            }).sort("start_date", -1).to_list(length=None)

            records = []
            for competition in competitions:
                participant_ids = await self._participant_ids(str(competition["_id"]))
                records.append(self._to_record(competition, participant_ids))
            return records

        except Exception as e:
            logger.error(f"Error fetching competitions for {user_id}: {str(e)}")
            return []

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def get_invitation(self, invitation_id: str) -> Optional[Invitation]:
        try:
            invitation = await self.invitations.find_one({"_id": ObjectId(invitation_id)})
        except Exception as e:
            logger.error(f"Error fetching invitation {invitation_id}: {str(e)}")
            return None

        if not invitation:
            return None
        return self._to_invitation(invitation)

    def _to_invitation(self, invitation: Dict[str, Any], competition: Optional[CompetitionRecord] = None) -> Invitation:
        return Invitation(
            id=str(invitation["_id"]),
            competition_id=invitation["competition_id"],
            inviter_id=invitation["inviter_id"],
            invitee_id=invitation["invitee_id"],
            state=invitation["state"],
            competition=competition,
            invited_at=invitation.get("invited_at"),
            responded_at=invitation.get("responded_at"),
        )

    async def create_invitations(
        self,
        competition_id: str,
        inviter_id: str,
        invitee_ids: List[str]
    ) -> BackendResult:
        try:
            # Filter out the inviter and duplicates, keep order
            filtered = [i for i in dict.fromkeys(invitee_ids or []) if i != inviter_id]
            if not filtered:
                return BackendResult(success=True)

            competition = await self.competitions.find_one({"_id": ObjectId(competition_id)})
            if not competition:
                return BackendResult(success=False, error_message="Competition not found")
            if competition["status"] == CompetitionStatus.DRAFT:
                return BackendResult(
                    success=False,
                    error_message="Competition must be finalized before sending invitations"
                )

            existing = await self.invitations.find({
                "competition_id": competition_id,
                "invitee_id": {"$in": filtered}
            }).to_list(length=None)
            existing_ids = {inv["invitee_id"] for inv in existing}

            now = datetime.utcnow()
            records = [
                {
                    "competition_id": competition_id,
                    "inviter_id": inviter_id,
                    "invitee_id": invitee_id,
                    "state": InvitationState.PENDING.value,
                    "invited_at": now,
                    "responded_at": None,
                }
                for invitee_id in filtered
                if invitee_id not in existing_ids
            ]

            if records:
                await self.invitations.insert_many(records)

            return BackendResult(success=True)

        except Exception as e:
            logger.error(f"Error creating invitations for {competition_id}: {str(e)}")
            return BackendResult(success=False, error_message=f"Failed to create invitations: {str(e)}")

    async def fetch_pending_invitations(self, user_id: str) -> List[Invitation]:
        try:
            invitations = await self.invitations.find({
                "invitee_id": user_id,
                "state": InvitationState.PENDING.value
            }).sort("invited_at", -1).to_list(length=None)

            result = []
            for invitation in invitations:
                competition = await self.fetch_competition(invitation["competition_id"], user_id)
                result.append(self._to_invitation(invitation, competition))
            return result

        except Exception as e:
            logger.error(f"Error fetching invitations for {user_id}: {str(e)}")
            return []

    async def _get_pending(self, invitation_id: str):
        """Returns (invitation, competition, error_message)"""
        invitation = await self.invitations.find_one({"_id": ObjectId(invitation_id)})
        if not invitation:
            return None, None, "Invitation not found"
        if invitation["state"] != InvitationState.PENDING.value:
            return None, None, "Invitation has already been answered"

        competition = await self.competitions.find_one({"_id": ObjectId(invitation["competition_id"])})
        if not competition:
            return None, None, "Competition not found"
        return invitation, competition, None

    async def _respond(self, invitation: Dict[str, Any], state: InvitationState) -> bool:
        """Move a pending invitation to its final state. False if someone else answered first."""
        result = await self.invitations.update_one(
            {"_id": invitation["_id"], "state": InvitationState.PENDING.value},
            {"$set": {"state": state.value, "responded_at": datetime.utcnow()}}
        )
        return result.modified_count == 1

    async def accept_invitation(self, invitation_id: str) -> AcceptInvitationResult:
        try:
            invitation, competition, error = await self._get_pending(invitation_id)
            if error:
                return AcceptInvitationResult(status=AcceptStatus.ERROR, error_message=error)

            competition_id = invitation["competition_id"]
            prize_pool = competition.get("prize_pool") or {}

            if prize_pool.get("mode") == PoolMode.BUY_IN.value:
                return AcceptInvitationResult(
                    status=AcceptStatus.REQUIRES_BUY_IN,
                    competition_id=competition_id,
                    buy_in_amount=prize_pool.get("buy_in_amount"),
                )

            if not await self._respond(invitation, InvitationState.ACCEPTED):
                return AcceptInvitationResult(
                    status=AcceptStatus.ERROR,
                    error_message="Invitation has already been answered"
                )
            await self._add_participant(competition_id, invitation["invitee_id"], pool_eligible=True)

            return AcceptInvitationResult(status=AcceptStatus.ACCEPTED, competition_id=competition_id)

        except Exception as e:
            logger.error(f"Error accepting invitation {invitation_id}: {str(e)}")
            return AcceptInvitationResult(status=AcceptStatus.ERROR, error_message=str(e))

    async def confirm_buy_in_acceptance(self, invitation_id: str) -> BackendResult:
        """Accept with pool eligibility once the invitee's buy-in payment is in the ledger"""
        try:
            invitation, competition, error = await self._get_pending(invitation_id)
            if error:
                return BackendResult(success=False, error_message=error)

            prize_pool = competition.get("prize_pool") or {}
            if prize_pool.get("mode") != PoolMode.BUY_IN.value:
                return BackendResult(success=False, error_message="This competition has no buy-in")

            paid = await self.ledger.wait_for_payment(
                lambda: self.ledger.buy_in_paid(invitation_id, invitation["invitee_id"], prize_pool.get("buy_in_amount"))
            )
            if not paid:
                return BackendResult(success=False, error_message="Buy-in payment has not been confirmed yet")

            if not await self._respond(invitation, InvitationState.ACCEPTED):
                return BackendResult(success=False, error_message="Invitation has already been answered")
            await self._add_participant(
                invitation["competition_id"],
                invitation["invitee_id"],
                pool_eligible=True,
                buy_in_paid=True
            )
            return BackendResult(success=True)

        except Exception as e:
            logger.error(f"Error confirming buy-in for {invitation_id}: {str(e)}")
            return BackendResult(success=False, error_message=str(e))

    async def accept_invitation_without_buy_in(self, invitation_id: str) -> BackendResult:
        try:
            invitation, competition, error = await self._get_pending(invitation_id)
            if error:
                return BackendResult(success=False, error_message=error)

            if not await self._respond(invitation, InvitationState.ACCEPTED_WITHOUT_POOL):
                return BackendResult(success=False, error_message="Invitation has already been answered")
            await self._add_participant(invitation["competition_id"], invitation["invitee_id"], pool_eligible=False)
            return BackendResult(success=True)

        except Exception as e:
            logger.error(f"Error joining without buy-in for {invitation_id}: {str(e)}")
            return BackendResult(success=False, error_message=str(e))

    async def decline_invitation(self, invitation_id: str) -> BackendResult:
        try:
            invitation, _, error = await self._get_pending(invitation_id)
            if error:
                return BackendResult(success=False, error_message=error)

            if not await self._respond(invitation, InvitationState.DECLINED):
                return BackendResult(success=False, error_message="Invitation has already been answered")
            return BackendResult(success=True)

        except Exception as e:
            logger.error(f"Error declining invitation {invitation_id}: {str(e)}")
            return BackendResult(success=False, error_message=str(e))

    # ------------------------------------------------------------------
    # Fair play
    # ------------------------------------------------------------------

    async def has_acknowledged_fair_play(self, user_id: str) -> bool:
        try:
            profile = await self.profiles.find_one({"user_id": user_id})
            return bool(profile and profile.get("fair_play_acknowledged"))
        except Exception as e:
            logger.error(f"Error checking fair play for {user_id}: {str(e)}")
            return False

    async def acknowledge_fair_play(self, user_id: str) -> BackendResult:
        try:
            await self.profiles.update_one(
                {"user_id": user_id},
                {"$set": {
                    "fair_play_acknowledged": True,
                    "fair_play_acknowledged_at": datetime.utcnow()
                }},
                upsert=True
            )
            return BackendResult(success=True)
        except Exception as e:
            logger.error(f"Error recording fair play for {user_id}: {str(e)}")
            return BackendResult(success=False, error_message=str(e))
