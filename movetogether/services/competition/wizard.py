"""
Competition Wizard

Drives competition creation step by step:
- individual: info -> prize -> invite -> review -> finalized
- team:       info -> teams -> prize -> invite -> review -> finalized

The draft is created when leaving info and is the only competition the
session ever creates. Going back to info deletes it unless it was already
paid for; a paid prize pool cannot be changed either. Confirming on review
runs fair play, the prize pool charge, finalization and then invitations,
in that order. Tearing the wizard down before finalization deletes the draft.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List, Optional

from pydantic import ValidationError

from movetogether.models.competition import (
    CompetitionDraftCreate,
    CompetitionDraftUpdate,
    CompetitionRecord,
    PoolMode,
    PrizePoolConfig,
    RepeatOption,
    Schedule,
    ScoringConfig,
    ScoringType,
    Team,
    TeamConfig,
    Visibility,
)
from movetogether.services.backend.base import CompetitionBackend
from movetogether.services.competition.cache import CompetitionCache
from movetogether.services.competition.draft_store import DraftStore
from movetogether.services.competition.fair_play import FairPlayGate
from movetogether.services.competition.invitation_dispatcher import InvitationDispatcher
from movetogether.services.payment.fees import calculate_charge, validate_prize_amount
from movetogether.services.payment.orchestrator import PaymentOrchestrator

logger = logging.getLogger(__name__)


class WizardStep(str, Enum):
    INFO = "info"
    TEAMS = "teams"
    PRIZE = "prize"
    INVITE = "invite"
    REVIEW = "review"
    FINALIZED = "finalized"


class StepStatus(str, Enum):
    OK = "ok"
    VALIDATION_ERROR = "validation_error"
    BACKEND_ERROR = "backend_error"
    BUSY = "busy"
    CLOSED = "closed"


class ConfirmStatus(str, Enum):
    FINALIZED = "finalized"
    FAIR_PLAY_DECLINED = "fair_play_declined"
    PAYMENT_CANCELLED = "payment_cancelled"
    PAYMENT_FAILED = "payment_failed"
    FINALIZE_FAILED = "finalize_failed"
    PRIZE_POOL_LOCKED = "prize_pool_locked"
    NOT_ON_REVIEW = "not_on_review"
    BUSY = "busy"
    CLOSED = "closed"


@dataclass
class StepResult:
    status: StepStatus
    step: WizardStep
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.OK


@dataclass
class ConfirmResult:
    status: ConfirmStatus
    competition_id: Optional[str] = None
    competition: Optional[CompetitionRecord] = None
    error_message: Optional[str] = None
    invitations_sent: bool = False


@dataclass
class ReviewSummary:
    action_label: str
    wants_prize_pool: bool
    amount: float = 0.0
    processor_fee: float = 0.0
    total_charge: float = 0.0
    invitee_count: int = 0


@dataclass
class WizardForm:
    """In-memory form fields; nothing here reaches the backend before info -> next"""
    name: str = ""
    start_date: date = field(default_factory=date.today)
    end_date: date = field(default_factory=lambda: date.today() + timedelta(days=7))
    repeat: RepeatOption = RepeatOption.NONE
    visibility: Visibility = Visibility.PRIVATE
    scoring_type: ScoringType = ScoringType.RING_CLOSE
    scoring_config: Optional[ScoringConfig] = None
    is_team_competition: bool = False

    teams: List[Team] = field(default_factory=list)

    wants_prize_pool: bool = False
    pool_mode: PoolMode = PoolMode.CREATOR_FUNDED
    prize_amount: Optional[float] = None
    buy_in_amount: Optional[float] = None
    payout_structure: Dict[str, float] = field(default_factory=lambda: {"first": 100})

    invitee_ids: List[str] = field(default_factory=list)


INFO_FIELDS = {
    "name", "start_date", "end_date", "repeat", "visibility",
    "scoring_type", "scoring_config", "is_team_competition",
}


PRIZE_POOL_LOCKED_MESSAGE = "The prize pool is already paid for and can't be changed"


def _validation_message(error: ValidationError) -> str:
    message = error.errors()[0]["msg"]
    return message.replace("Value error, ", "", 1)


class CompetitionWizard:
    """
    Competition creation controller.

    Each wizard instance is one creation session with its own draft. All
    backend and payment outcomes are returned as results; nothing raises
    past this class.
    """

    def __init__(
        self,
        backend: CompetitionBackend,
        payments: PaymentOrchestrator,
        fair_play: FairPlayGate,
        cache: CompetitionCache,
        user_id: str
    ):
        self.backend = backend
        self.payments = payments
        self.fair_play = fair_play
        self.cache = cache
        self.user_id = user_id

        self.form = WizardForm()
        self.step = WizardStep.INFO
        self.drafts = DraftStore(backend, user_id)
        self.invitations = InvitationDispatcher(backend)

        self.busy = False
        self.closed = False
        self._charged_for: Optional[str] = None
        self._charged_pool: Optional[PrizePoolConfig] = None
        self._confirm_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Form editing (local only)
    # ------------------------------------------------------------------

    @property
    def paid(self) -> bool:
        """True once the current draft's prize pool has been charged"""
        return self._charged_for is not None and self._charged_for == self.drafts.competition_id

    def steps(self) -> List[WizardStep]:
        if self.form.is_team_competition:
            return [WizardStep.INFO, WizardStep.TEAMS, WizardStep.PRIZE, WizardStep.INVITE, WizardStep.REVIEW]
        return [WizardStep.INFO, WizardStep.PRIZE, WizardStep.INVITE, WizardStep.REVIEW]

    def update_info(self, **fields) -> StepResult:
        unknown = set(fields) - INFO_FIELDS
        if unknown:
            raise ValueError(f"Unknown info fields: {sorted(unknown)}")

        if self.step != WizardStep.INFO:
            return StepResult(
                StepStatus.VALIDATION_ERROR,
                self.step,
                "Go back to the first step to change competition details"
            )

        for name, value in fields.items():
            setattr(self.form, name, value)
        return StepResult(StepStatus.OK, self.step)

    def set_teams(self, teams: List[Team]):
        self.form.teams = list(teams)

    def configure_prize_pool(
        self,
        wants_prize_pool: bool,
        mode: PoolMode = PoolMode.CREATOR_FUNDED,
        amount: Optional[float] = None,
        buy_in_amount: Optional[float] = None,
        payout_structure: Optional[Dict[str, float]] = None
    ) -> StepResult:
        if self.paid:
            return StepResult(StepStatus.VALIDATION_ERROR, self.step, PRIZE_POOL_LOCKED_MESSAGE)

        self.form.wants_prize_pool = wants_prize_pool
        self.form.pool_mode = mode
        self.form.prize_amount = amount
        self.form.buy_in_amount = buy_in_amount
        if payout_structure is not None:
            self.form.payout_structure = dict(payout_structure)
        return StepResult(StepStatus.OK, self.step)

    def toggle_invitee(self, user_id: str):
        if not user_id or user_id == self.user_id:
            return
        if user_id in self.form.invitee_ids:
            self.form.invitee_ids.remove(user_id)
        else:
            self.form.invitee_ids.append(user_id)

    def set_invitees(self, user_ids: List[str]):
        self.form.invitee_ids = [u for u in dict.fromkeys(user_ids) if u and u != self.user_id]

    # ------------------------------------------------------------------
    # Derived configuration
    # ------------------------------------------------------------------

    def _draft_config(self) -> CompetitionDraftCreate:
        return CompetitionDraftCreate(
            name=self.form.name,
            schedule=Schedule(
                start_date=self.form.start_date,
                end_date=self.form.end_date,
                repeat=self.form.repeat,
            ),
            visibility=self.form.visibility,
            scoring_type=self.form.scoring_type,
            scoring_config=self.form.scoring_config,
            is_team_competition=self.form.is_team_competition,
        )

    def _team_config(self) -> Optional[TeamConfig]:
        if not self.form.is_team_competition:
            return None
        return TeamConfig(team_count=len(self.form.teams), teams=self.form.teams)

    def _prize_pool(self) -> Optional[PrizePoolConfig]:
        if not self.form.wants_prize_pool:
            return None
        return PrizePoolConfig(
            mode=self.form.pool_mode,
            amount=self.form.prize_amount if self.form.pool_mode == PoolMode.CREATOR_FUNDED else None,
            buy_in_amount=self.form.buy_in_amount if self.form.pool_mode == PoolMode.BUY_IN else None,
            payout_structure=self.form.payout_structure,
        )

    def review_summary(self) -> ReviewSummary:
        invitee_count = len(self.form.invitee_ids)
        try:
            prize_pool = self._prize_pool()
        except ValidationError:
            prize_pool = None

        if prize_pool is None:
            return ReviewSummary(
                action_label="Create Competition",
                wants_prize_pool=False,
                invitee_count=invitee_count
            )

        fees = calculate_charge(prize_pool.effective_amount)
        return ReviewSummary(
            action_label=f"Pay ${fees.total_charge:.2f}",
            wants_prize_pool=True,
            amount=fees.amount,
            processor_fee=fees.processor_fee,
            total_charge=fees.total_charge,
            invitee_count=invitee_count
        )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _refuse(self) -> Optional[StepResult]:
        if self.closed:
            return StepResult(StepStatus.CLOSED, self.step, "This competition setup was closed")
        if self.busy:
            return StepResult(StepStatus.BUSY, self.step)
        return None

    async def next(self) -> StepResult:
        refused = self._refuse()
        if refused:
            return refused

        if self.step == WizardStep.INFO:
            return await self._submit_info()
        if self.step == WizardStep.TEAMS:
            return self._submit_teams()
        if self.step == WizardStep.PRIZE:
            return self._submit_prize()
        if self.step == WizardStep.INVITE:
            self.step = WizardStep.REVIEW
            return StepResult(StepStatus.OK, self.step)

        return StepResult(StepStatus.VALIDATION_ERROR, self.step, "Confirm on the review step to finish")

    async def back(self) -> StepResult:
        refused = self._refuse()
        if refused:
            return refused

        if self.step in (WizardStep.INFO, WizardStep.FINALIZED):
            return StepResult(StepStatus.OK, self.step)

        steps = self.steps()
        previous = steps[steps.index(self.step) - 1]

        if previous == WizardStep.INFO:
            if self.paid:
                return StepResult(
                    StepStatus.VALIDATION_ERROR,
                    self.step,
                    "This competition is already paid for and can't go back to the first step"
                )
            self.busy = True
            try:
                await self.drafts.discard()
            finally:
                self.busy = False

        self.step = previous
        return StepResult(StepStatus.OK, self.step)

    async def _submit_info(self) -> StepResult:
        if not self.form.name.strip():
            return StepResult(StepStatus.VALIDATION_ERROR, self.step, "Competition name is required")
        if self.form.start_date >= self.form.end_date:
            return StepResult(StepStatus.VALIDATION_ERROR, self.step, "End date must be after start date")

        try:
            config = self._draft_config()
        except ValidationError as e:
            return StepResult(StepStatus.VALIDATION_ERROR, self.step, _validation_message(e))

        self.busy = True
        try:
            result = await self.drafts.create(config)
        finally:
            self.busy = False

        if not result.success:
            return StepResult(
                StepStatus.BACKEND_ERROR,
                self.step,
                result.error_message or "Failed to create competition"
            )

        self.step = WizardStep.TEAMS if self.form.is_team_competition else WizardStep.PRIZE
        return StepResult(StepStatus.OK, self.step)

    def _submit_teams(self) -> StepResult:
        try:
            self._team_config()
        except ValidationError as e:
            return StepResult(StepStatus.VALIDATION_ERROR, self.step, _validation_message(e))

        self.step = WizardStep.PRIZE
        return StepResult(StepStatus.OK, self.step)

    def _submit_prize(self) -> StepResult:
        if self.form.wants_prize_pool:
            amount = self.form.buy_in_amount if self.form.pool_mode == PoolMode.BUY_IN else self.form.prize_amount
            validation = validate_prize_amount(amount, self.form.pool_mode)
            if not validation.is_valid:
                return StepResult(StepStatus.VALIDATION_ERROR, self.step, validation.reason)

            try:
                self._prize_pool()
            except ValidationError as e:
                return StepResult(StepStatus.VALIDATION_ERROR, self.step, _validation_message(e))

        self.step = WizardStep.INVITE
        return StepResult(StepStatus.OK, self.step)

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    async def confirm(self) -> ConfirmResult:
        """
        Fund (if needed) and finalize the draft, then send invitations.

        The work runs in its own task so that abandon() can wait for an
        in-flight confirm instead of racing it.
        """
        if self.closed:
            return ConfirmResult(ConfirmStatus.CLOSED)
        if self.step != WizardStep.REVIEW:
            return ConfirmResult(ConfirmStatus.NOT_ON_REVIEW)
        if self.busy:
            return ConfirmResult(ConfirmStatus.BUSY)

        self.busy = True
        self._confirm_task = asyncio.ensure_future(self._confirm())
        return await asyncio.shield(self._confirm_task)

    async def _confirm(self) -> ConfirmResult:
        try:
            competition_id = self.drafts.competition_id
            if competition_id is None:
                return ConfirmResult(ConfirmStatus.FINALIZE_FAILED, error_message="No draft to finalize")

            try:
                prize_pool = self._prize_pool()
                team_config = self._team_config()
            except ValidationError as e:
                return ConfirmResult(ConfirmStatus.FINALIZE_FAILED, competition_id, error_message=_validation_message(e))

            # A paid draft only finalizes with exactly the pool that was charged
            if self.paid and prize_pool != self._charged_pool:
                return ConfirmResult(
                    ConfirmStatus.PRIZE_POOL_LOCKED,
                    competition_id,
                    error_message=PRIZE_POOL_LOCKED_MESSAGE
                )

            if prize_pool is not None:
                if not await self.fair_play.check(self.user_id):
                    return ConfirmResult(ConfirmStatus.FAIR_PLAY_DECLINED, competition_id)

                if not self.paid:
                    charge = await self.payments.charge(
                        competition_id,
                        prize_pool.amount,
                        prize_pool.payout_structure,
                        prize_pool.mode,
                        prize_pool.buy_in_amount,
                    )
                    if charge.cancelled:
                        return ConfirmResult(ConfirmStatus.PAYMENT_CANCELLED, competition_id)
                    if charge.failed:
                        return ConfirmResult(ConfirmStatus.PAYMENT_FAILED, competition_id, error_message=charge.reason)
                    self._charged_for = competition_id
                    self._charged_pool = prize_pool

            if not self.drafts.finalized:
                applied = await self.drafts.apply(
                    CompetitionDraftUpdate(team_config=team_config, prize_pool=prize_pool)
                )
                if not applied.success:
                    return ConfirmResult(
                        ConfirmStatus.FINALIZE_FAILED,
                        competition_id,
                        error_message=applied.error_message or "Failed to save competition settings"
                    )

            finalized = await self.drafts.finalize()
            if not finalized.success:
                return ConfirmResult(
                    ConfirmStatus.FINALIZE_FAILED,
                    competition_id,
                    error_message=finalized.error_message or "Failed to create competition"
                )
            self.step = WizardStep.FINALIZED

            dispatch = await self.invitations.dispatch(competition_id, self.user_id, self.form.invitee_ids)

            competition = await self.backend.fetch_competition(competition_id, self.user_id)
            if competition is not None:
                self.cache.prepend(competition)
            else:
                logger.error(f"Failed to fetch created competition {competition_id}")

            return ConfirmResult(
                ConfirmStatus.FINALIZED,
                competition_id,
                competition=competition,
                invitations_sent=dispatch.success and dispatch.invited_count > 0
            )

        except Exception as e:
            logger.error(f"Unexpected error confirming competition: {str(e)}")
            if self.drafts.finalized:
                # Finalized is final; only the follow-up work failed
                self.step = WizardStep.FINALIZED
                return ConfirmResult(ConfirmStatus.FINALIZED, self.drafts.competition_id, error_message=str(e))
            return ConfirmResult(ConfirmStatus.FINALIZE_FAILED, self.drafts.competition_id, error_message=str(e))

        finally:
            self.busy = False

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def abandon(self) -> "asyncio.Task[bool]":
        """
        Called by the owning screen when it goes away.

        Returns a task resolving to True when a draft delete was issued.
        Callers may ignore it; the outcome is logged.
        """
        self.closed = True
        task = asyncio.ensure_future(self._cleanup())
        task.add_done_callback(self._log_cleanup)
        return task

    async def _cleanup(self) -> bool:
        if self._confirm_task is not None and not self._confirm_task.done():
            # A charge may be in flight; let confirm settle before deciding
            await asyncio.wait([self._confirm_task])

        if self.drafts.finalized:
            return False
        if self.paid:
            logger.warning(f"[PAYMENT] Keeping paid draft {self.drafts.competition_id} after abandon")
            return False
        return await self.drafts.discard()

    def _log_cleanup(self, task: "asyncio.Task[bool]"):
        if task.cancelled():
            logger.warning("[WARN] Draft cleanup was cancelled")
        elif task.exception() is not None:
            logger.warning(f"[WARN] Draft cleanup failed: {task.exception()}")
        elif task.result():
            logger.info("Abandoned draft deleted")
