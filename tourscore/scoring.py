from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, Mapping, Sequence

from tourscore.exceptions import CourseConfigurationError, ScoreValidationError
from tourscore.handicap import course_handicap, distribute_strokes, net_total, require_stroke_index
from tourscore.models import Competition, Participant, ScoreSummary, StartMode, TeeRating
from tourscore.settings import HOLES_PER_ROUND, MAX_HOLE_STROKES, STANDARD_SLOPE_RATING, UNREPORTED_HOLE

logger = logging.getLogger(__name__)


def holes_played(score: Sequence[int]) -> int:
    return sum(1 for strokes in score if strokes > 0 or strokes == UNREPORTED_HOLE)


def gross_score(score: Sequence[int]) -> int:
    return sum(strokes for strokes in score if strokes > 0)


def relative_to_par(score: Sequence[int], pars: Sequence[int]) -> int:
    return sum(strokes - par for strokes, par in zip(score, pars) if strokes > 0)


def has_unreported_hole(score: Sequence[int]) -> bool:
    return UNREPORTED_HOLE in score


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


def is_window_closed(competition: Competition, now: dt.datetime | None = None) -> bool:
    if competition.start_mode != StartMode.OPEN or competition.open_end is None:
        return False
    current = _as_utc(now or dt.datetime.now(dt.timezone.utc))
    return _as_utc(competition.open_end) < current


def effective_tee_rating(competition: Competition, participant: Participant) -> TeeRating:
    """Category tee first, then the competition tee, then a scratch rating for the course par."""
    total_par = competition.course.total_par
    if participant.category_id is not None and participant.category_id in competition.category_tees:
        return competition.category_tees[participant.category_id].effective_rating(total_par)
    if competition.tee is not None:
        return competition.tee.effective_rating(total_par)
    return TeeRating.model_construct(
        course_rating=float(total_par),
        slope_rating=STANDARD_SLOPE_RATING,
        gender=None,
    )


def resolve_handicap_index(
    participant: Participant,
    enrollment_handicaps: Mapping[int, float] | None = None,
) -> float | None:
    if participant.handicap_index is not None:
        return participant.handicap_index
    if enrollment_handicaps and participant.player_id is not None:
        return enrollment_handicaps.get(participant.player_id)
    return None


def _manual_summary(
    participant: Participant,
    total_par: int,
    playing_handicap: int | None,
) -> ScoreSummary:
    total = participant.manual_score_total
    net = rel_net = None
    if playing_handicap is not None:
        net = net_total(total, playing_handicap)
        rel_net = net - total_par
    return ScoreSummary(
        participant=participant,
        gross_total=total,
        relative_to_par=total - total_par,
        holes_played=HOLES_PER_ROUND,
        has_unreported_hole=False,
        is_finished=not participant.is_dq,
        is_dnf=False,
        course_handicap=playing_handicap,
        net_total=net,
        net_relative_to_par=rel_net,
    )


def _hole_by_hole_net(
    score: Sequence[int],
    pars: Sequence[int],
    played: int,
    gross: int,
    playing_handicap: int,
    stroke_index: Sequence[int],
) -> tuple[int, int]:
    strokes = distribute_strokes(playing_handicap, stroke_index)
    net_sum = 0
    par_played = 0
    for hole_score, par, given in zip(score, pars, strokes):
        if hole_score > 0:
            net_sum += hole_score - given
            par_played += par
    if played == HOLES_PER_ROUND:
        full_round = net_total(gross, playing_handicap)
        return full_round, full_round - par_played
    return net_sum, net_sum - par_played


def aggregate_score(
    participant: Participant,
    competition: Competition,
    *,
    handicap_index: float | None = None,
    stroke_index: Sequence[int] | None = None,
    window_closed: bool = False,
) -> ScoreSummary:
    course = competition.course
    if course is None:
        raise CourseConfigurationError(f"Competition {competition.id} has no course assigned")

    playing_handicap = None
    if handicap_index is not None and competition.uses_net:
        if stroke_index is None:
            stroke_index = require_stroke_index(course)
        rating = effective_tee_rating(competition, participant)
        playing_handicap = course_handicap(
            handicap_index,
            rating.slope_rating,
            rating.course_rating,
            course.total_par,
        )

    if participant.has_manual_score:
        return _manual_summary(participant, course.total_par, playing_handicap)

    score = participant.score
    played = holes_played(score)
    gross = gross_score(score)
    unreported = has_unreported_hole(score)

    net = rel_net = None
    if playing_handicap is not None and played > 0 and not unreported:
        net, rel_net = _hole_by_hole_net(score, course.pars, played, gross, playing_handicap, stroke_index)

    complete = played == HOLES_PER_ROUND and not unreported
    finished = (
        not participant.is_dq
        and complete
        and (participant.is_locked or window_closed)
    )
    return ScoreSummary(
        participant=participant,
        gross_total=gross,
        relative_to_par=relative_to_par(score, course.pars),
        holes_played=played,
        has_unreported_hole=unreported,
        is_finished=finished,
        is_dnf=window_closed and played < HOLES_PER_ROUND,
        course_handicap=playing_handicap,
        net_total=net,
        net_relative_to_par=rel_net,
    )


def aggregate_competition(
    competition: Competition,
    participants: Iterable[Participant],
    *,
    now: dt.datetime | None = None,
    enrollment_handicaps: Mapping[int, float] | None = None,
) -> list[ScoreSummary]:
    if competition.course is None:
        raise CourseConfigurationError(f"Competition {competition.id} has no course assigned")
    stroke_index = require_stroke_index(competition.course) if competition.uses_net else None
    window_closed = is_window_closed(competition, now)
    summaries = [
        aggregate_score(
            participant,
            competition,
            handicap_index=resolve_handicap_index(participant, enrollment_handicaps),
            stroke_index=stroke_index,
            window_closed=window_closed,
        )
        for participant in participants
    ]
    logger.debug(
        "Aggregated %d participants for competition %s (window closed: %s)",
        len(summaries),
        competition.id,
        window_closed,
    )
    return summaries


def record_hole_score(
    participant: Participant,
    hole_number: int,
    strokes: int,
    current_handicap_index: float | None = None,
) -> Participant:
    """
    Store ``strokes`` for ``hole_number`` (1-based) and return the updated participant.

    The player's handicap index is captured on the first non-zero entry and
    kept from then on, so later handicap revisions do not move an existing round.
    """
    if participant.is_locked:
        raise ScoreValidationError(f"Scorecard for participant {participant.id} is locked")
    if participant.is_dq:
        raise ScoreValidationError(f"Participant {participant.id} is disqualified")
    if not 1 <= hole_number <= HOLES_PER_ROUND:
        raise ScoreValidationError(f"Hole number must be between 1 and {HOLES_PER_ROUND}, got {hole_number}")
    if strokes != UNREPORTED_HOLE and not 0 <= strokes <= MAX_HOLE_STROKES:
        raise ScoreValidationError(f"Invalid score {strokes} for hole {hole_number}")

    is_first_score = not any(participant.score)
    score = list(participant.score)
    score[hole_number - 1] = strokes
    update: dict = {"score": score}
    if (
        is_first_score
        and strokes != 0
        and participant.handicap_index is None
        and current_handicap_index is not None
    ):
        update["handicap_index"] = current_handicap_index
    return participant.model_copy(update=update)


def record_manual_score(
    participant: Participant,
    out: int | None = None,
    in_: int | None = None,
    total: int | None = None,
) -> Participant:
    if participant.is_locked:
        raise ScoreValidationError(f"Scorecard for participant {participant.id} is locked")
    if total is None and (out is None or in_ is None):
        raise ScoreValidationError("Manual entry needs a total or both out and in")
    payload = participant.model_dump()
    payload.update(manual_score_out=out, manual_score_in=in_, manual_score_total=total)
    try:
        return Participant.model_validate(payload)
    except ValueError as exc:
        raise ScoreValidationError(str(exc)) from exc
