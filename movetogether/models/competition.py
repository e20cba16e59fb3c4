"""
Competition Models
Draft lifecycle, schedule, scoring, teams and prize pool configuration
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import date, datetime
from enum import Enum


class CompetitionStatus(str, Enum):
    """
    Competition status types

    State Transitions:
    - DRAFT -> UPCOMING (finalized, start_date in the future)
    - DRAFT -> ACTIVE (finalized, start_date today or earlier)
    - DRAFT -> deleted (abandoned or swept)
    - UPCOMING -> ACTIVE -> COMPLETED
    """
    DRAFT = "draft"  # Only visible to its creator
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class RepeatOption(str, Enum):
    NONE = "none"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class CompetitionType(str, Enum):
    """Derived from the schedule duration"""
    WEEKEND = "weekend"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class ScoringType(str, Enum):
    RING_CLOSE = "ring_close"
    PERCENTAGE = "percentage"
    RAW_NUMBERS = "raw_numbers"
    STEP_COUNT = "step_count"
    WORKOUT = "workout"


class WorkoutType(str, Enum):
    CYCLING = "cycling"
    RUNNING = "running"
    SWIMMING = "swimming"
    WALKING = "walking"


class WorkoutMetric(str, Enum):
    DISTANCE = "distance"
    HEART_RATE = "heart_rate"
    STEPS = "steps"


class PoolMode(str, Enum):
    """Prize pool funding mode"""
    CREATOR_FUNDED = "creator_funded"
    BUY_IN = "buy_in"


# Payout presets offered by the prize step
PAYOUT_PRESETS: List[Dict[str, int]] = [
    {"first": 100},
    {"first": 70, "second": 30},
    {"first": 50, "second": 30, "third": 20},
]

MIN_TEAMS = 2
MAX_TEAMS = 4


class ScoringConfig(BaseModel):
    """Variant payload for the scoring type (only workout scoring uses it)"""
    workout_types: List[WorkoutType] = []
    workout_metric: WorkoutMetric = WorkoutMetric.DISTANCE


class Schedule(BaseModel):
    start_date: date
    end_date: date
    repeat: RepeatOption = RepeatOption.NONE

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def competition_type(self) -> CompetitionType:
        """Weekend: 2 days starting Saturday, weekly: 7 days, monthly: 28-31 days"""
        days = self.duration_days
        if days == 2 and self.start_date.weekday() == 5:
            return CompetitionType.WEEKEND
        if days == 7:
            return CompetitionType.WEEKLY
        if 28 <= days <= 31:
            return CompetitionType.MONTHLY
        return CompetitionType.CUSTOM

    def description(self) -> str:
        kind = self.competition_type()
        if kind == CompetitionType.WEEKEND:
            return "Close your rings all weekend!"
        if kind == CompetitionType.WEEKLY:
            return "A full week of competition!"
        if kind == CompetitionType.MONTHLY:
            return "A month-long challenge!"
        return f"{self.duration_days}-day challenge"


class Team(BaseModel):
    name: str = Field(..., min_length=1, max_length=30)
    color: str = "#FA114F"
    emoji: str = ""
    member_ids: List[str] = []


class TeamConfig(BaseModel):
    """Team roster. Each participant belongs to at most one team."""
    team_count: int = Field(..., ge=MIN_TEAMS, le=MAX_TEAMS)
    teams: List[Team]

    @model_validator(mode="after")
    def check_teams(self):
        if len(self.teams) != self.team_count:
            raise ValueError(f"Expected {self.team_count} teams, got {len(self.teams)}")

        names = [team.name.strip().lower() for team in self.teams]
        if len(set(names)) != len(names):
            raise ValueError("Team names must be unique")

        seen = set()
        for team in self.teams:
            for member_id in team.member_ids:
                if member_id in seen:
                    raise ValueError(f"Participant {member_id} is assigned to more than one team")
                seen.add(member_id)
        return self


class PrizePoolConfig(BaseModel):
    """
    Prize pool configuration.

    creator_funded: the creator pays `amount` once.
    buy_in: every participant (creator included) pays `buy_in_amount`.
    """
    mode: PoolMode = PoolMode.CREATOR_FUNDED
    amount: Optional[float] = Field(None, gt=0)
    buy_in_amount: Optional[float] = Field(None, gt=0)
    payout_structure: Dict[str, float] = Field(default_factory=lambda: {"first": 100})

    @field_validator("payout_structure")
    @classmethod
    def check_payout(cls, value: Dict[str, float]) -> Dict[str, float]:
        if not value:
            raise ValueError("Payout structure cannot be empty")
        if any(pct <= 0 for pct in value.values()):
            raise ValueError("Payout percentages must be positive")
        if round(sum(value.values()), 2) != 100:
            raise ValueError("Payout percentages must sum to 100")
        return value

    @model_validator(mode="after")
    def check_amount_for_mode(self):
        if self.mode == PoolMode.CREATOR_FUNDED and self.amount is None:
            raise ValueError("Creator-funded prize pools need an amount")
        if self.mode == PoolMode.BUY_IN and self.buy_in_amount is None:
            raise ValueError("Buy-in prize pools need a buy-in amount")
        return self

    @property
    def effective_amount(self) -> float:
        """Amount the creator is charged before fees"""
        if self.mode == PoolMode.BUY_IN:
            return self.buy_in_amount
        return self.amount


class CompetitionDraftCreate(BaseModel):
    """Configuration sent with the draft creation call (info step fields)"""
    name: str = Field(..., min_length=1, max_length=100)
    schedule: Schedule
    visibility: Visibility = Visibility.PRIVATE
    scoring_type: ScoringType = ScoringType.RING_CLOSE
    scoring_config: Optional[ScoringConfig] = None
    is_team_competition: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Competition name is required")
        return value

    @model_validator(mode="after")
    def check_scoring(self):
        if self.scoring_type == ScoringType.WORKOUT:
            if not self.scoring_config or not self.scoring_config.workout_types:
                raise ValueError("Select at least one workout type for workout scoring")
        return self


class CompetitionDraftUpdate(BaseModel):
    """Configuration collected after the info step, applied right before finalizing"""
    team_config: Optional[TeamConfig] = None
    prize_pool: Optional[PrizePoolConfig] = None


class CompetitionRecord(BaseModel):
    """Full competition record as returned by the backend"""
    id: str
    name: str
    description: str = ""
    status: CompetitionStatus
    creator_id: str
    schedule: Schedule
    type: CompetitionType = CompetitionType.CUSTOM
    visibility: Visibility = Visibility.PRIVATE
    scoring_type: ScoringType = ScoringType.RING_CLOSE
    scoring_config: Optional[ScoringConfig] = None
    is_team_competition: bool = False
    team_config: Optional[TeamConfig] = None
    prize_pool: Optional[PrizePoolConfig] = None
    participant_ids: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None

    @property
    def is_draft(self) -> bool:
        return self.status == CompetitionStatus.DRAFT

    @property
    def requires_buy_in(self) -> bool:
        return self.prize_pool is not None and self.prize_pool.mode == PoolMode.BUY_IN
