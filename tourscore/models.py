from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from tourscore.settings import (
    HOLES_PER_ROUND,
    MAX_COURSE_RATING,
    MAX_HANDICAP_INDEX,
    MAX_HOLE_STROKES,
    MAX_PAR,
    MAX_SLOPE_RATING,
    MIN_COURSE_RATING,
    MIN_HANDICAP_INDEX,
    MIN_PAR,
    MIN_SLOPE_RATING,
    STANDARD_SLOPE_RATING,
    UNREPORTED_HOLE,
)


class ScoringMode(str, Enum):
    GROSS = "gross"
    NET = "net"
    BOTH = "both"


class ScoringType(str, Enum):
    GROSS = "gross"
    NET = "net"


class StartMode(str, Enum):
    SCHEDULED = "scheduled"
    OPEN = "open"


class TeamStatus(str, Enum):
    FINISHED = "FINISHED"
    IN_PROGRESS = "IN_PROGRESS"
    NOT_STARTED = "NOT_STARTED"


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


class Course(BaseModel):
    id: int
    name: str = ""
    pars: list[int]
    # Kept raw; checked only when net scoring needs it.
    stroke_index: Optional[list[int]] = None

    @field_validator("pars")
    @classmethod
    def _check_pars(cls, pars: list[int]) -> list[int]:
        if len(pars) != HOLES_PER_ROUND:
            raise ValueError(f"pars must have exactly {HOLES_PER_ROUND} values, got {len(pars)}")
        for hole, par in enumerate(pars, 1):
            if not MIN_PAR <= par <= MAX_PAR:
                raise ValueError(f"par for hole {hole} must be between {MIN_PAR} and {MAX_PAR}, got {par}")
        return pars

    @property
    def total_par(self) -> int:
        return sum(self.pars)


class TeeRating(BaseModel):
    course_rating: float = Field(ge=MIN_COURSE_RATING, le=MAX_COURSE_RATING)
    slope_rating: int = Field(default=STANDARD_SLOPE_RATING, ge=MIN_SLOPE_RATING, le=MAX_SLOPE_RATING)
    gender: Optional[str] = None


class Tee(BaseModel):
    id: int
    name: str = ""
    course_rating: Optional[float] = Field(default=None, ge=MIN_COURSE_RATING, le=MAX_COURSE_RATING)
    slope_rating: Optional[int] = Field(default=None, ge=MIN_SLOPE_RATING, le=MAX_SLOPE_RATING)
    ratings: list[TeeRating] = Field(default_factory=list)

    def effective_rating(self, default_course_rating: float, gender: str = "men") -> TeeRating:
        """Pick the rating for ``gender``, then the first listed rating, then the legacy columns."""
        for rating in self.ratings:
            if rating.gender == gender:
                return rating
        if self.ratings:
            return self.ratings[0]
        # par fallback can sit outside the rating range
        return TeeRating.model_construct(
            course_rating=float(self.course_rating or default_course_rating),
            slope_rating=self.slope_rating or STANDARD_SLOPE_RATING,
            gender=None,
        )


class PointTemplate(BaseModel):
    id: int
    name: str = ""
    points: dict[str, int]

    def points_for(self, position: int) -> int:
        key = str(position)
        if key in self.points:
            return self.points[key]
        return self.points.get("default", 0)


class Participant(BaseModel):
    id: int
    player_id: Optional[int] = None
    name: str = ""
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    start_time: Optional[str] = None
    score: list[int] = Field(default_factory=lambda: [0] * HOLES_PER_ROUND)
    manual_score_out: Optional[int] = Field(default=None, gt=0)
    manual_score_in: Optional[int] = Field(default=None, gt=0)
    manual_score_total: Optional[int] = Field(default=None, gt=0)
    handicap_index: Optional[float] = Field(default=None, ge=MIN_HANDICAP_INDEX, le=MAX_HANDICAP_INDEX)
    is_locked: bool = False
    is_dq: bool = False
    category_id: Optional[int] = None

    @field_validator("score")
    @classmethod
    def _check_score(cls, score: list[int]) -> list[int]:
        if not score:
            return [0] * HOLES_PER_ROUND
        if len(score) != HOLES_PER_ROUND:
            raise ValueError(f"score must have exactly {HOLES_PER_ROUND} holes, got {len(score)}")
        for hole, strokes in enumerate(score, 1):
            if strokes != UNREPORTED_HOLE and not 0 <= strokes <= MAX_HOLE_STROKES:
                raise ValueError(f"hole {hole} has an out-of-range value: {strokes}")
        return score

    @model_validator(mode="after")
    def _fill_manual_total(self) -> "Participant":
        halves = (self.manual_score_out, self.manual_score_in)
        if None in halves:
            return self
        combined = self.manual_score_out + self.manual_score_in
        if self.manual_score_total is None:
            self.manual_score_total = combined
        elif self.manual_score_total != combined:
            raise ValueError(
                f"manual total {self.manual_score_total} does not match out + in ({combined})"
            )
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.team_name or ""

    @property
    def has_manual_score(self) -> bool:
        return self.manual_score_total is not None


class Competition(BaseModel):
    id: int
    name: str = ""
    date: Optional[dt.date] = None
    course: Optional[Course] = None
    tee: Optional[Tee] = None
    category_tees: dict[int, Tee] = Field(default_factory=dict)
    tour_id: Optional[int] = None
    points_multiplier: float = 1.0
    start_mode: StartMode = StartMode.SCHEDULED
    open_start: Optional[dt.datetime] = None
    open_end: Optional[dt.datetime] = None
    scoring_mode: ScoringMode = ScoringMode.GROSS
    point_template: Optional[PointTemplate] = None
    is_results_final: bool = False
    results_finalized_at: Optional[dt.datetime] = None

    @field_validator("points_multiplier", mode="before")
    @classmethod
    def _default_multiplier(cls, value):
        # stored as NULL or 0 on older rows
        return value or 1.0

    @property
    def uses_net(self) -> bool:
        return self.scoring_mode != ScoringMode.GROSS


class Enrollment(BaseModel):
    player_id: int
    player_name: str = ""
    category_id: Optional[int] = None
    handicap_index: Optional[float] = None
    status: str = "active"


# ---------------------------------------------------------------------------
# Output records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreSummary:
    participant: Participant
    gross_total: int
    relative_to_par: int
    holes_played: int
    has_unreported_hole: bool
    is_finished: bool
    is_dnf: bool
    course_handicap: int | None = None
    net_total: int | None = None
    net_relative_to_par: int | None = None

    @property
    def participant_id(self) -> int:
        return self.participant.id

    @property
    def is_dq(self) -> bool:
        return self.participant.is_dq


@dataclass(frozen=True)
class Placement:
    position: int
    points: int


@dataclass(frozen=True)
class LeaderboardEntry:
    participant_id: int
    player_id: int | None
    name: str
    team_id: int | None
    team_name: str | None
    category_id: int | None
    start_time: str | None
    gross_total: int
    relative_to_par: int
    holes_played: int
    is_locked: bool
    is_dq: bool
    is_dnf: bool
    has_unreported_hole: bool
    course_handicap: int | None = None
    net_total: int | None = None
    net_relative_to_par: int | None = None
    position: int = 0
    points: int = 0
    net_position: int | None = None
    net_points: int | None = None
    is_projected: bool = True


@dataclass(frozen=True)
class ResultRow:
    competition_id: int
    participant_id: int
    player_id: int | None
    position: int
    points: int
    gross_score: int
    net_score: int | None
    relative_to_par: int
    scoring_type: ScoringType


@dataclass(frozen=True)
class TeamStanding:
    team_id: int
    team_name: str | None
    status: TeamStatus
    total_relative_score: int | None
    total_shots: int | None
    max_holes_completed: int
    start_time: str | None
    position: int = 0
    team_points: int | None = None


@dataclass(frozen=True)
class CompetitionBreakdown:
    competition_id: int
    competition_name: str
    competition_date: dt.date | None
    position: int
    points: int
    relative_to_par: int
    is_projected: bool


@dataclass(frozen=True)
class TourStanding:
    player_id: int
    player_name: str
    category_id: int | None
    total_points: int
    competitions_played: int
    position: int = 0
    competitions: tuple[CompetitionBreakdown, ...] = field(default_factory=tuple)
