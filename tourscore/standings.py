"""Season standings for a tour: finalized results plus projections for live competitions."""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from tourscore.models import (
    Competition,
    CompetitionBreakdown,
    Enrollment,
    Participant,
    PointTemplate,
    ResultRow,
    ScoringType,
    TourStanding,
)
from tourscore.ranking import assign_positions, gross_value, net_value, rank_projected
from tourscore.scoring import aggregate_competition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TourEvent:
    competition: Competition
    participants: Sequence[Participant] = ()
    stored_results: Sequence[ResultRow] = ()


@dataclass
class _PlayerTally:
    player_id: int
    player_name: str
    category_id: int | None
    total_points: int = 0
    competitions: list[CompetitionBreakdown] = field(default_factory=list)


def _finalized_contributions(
    event: TourEvent,
    scoring_type: ScoringType,
) -> list[tuple[int, CompetitionBreakdown]]:
    competition = event.competition
    return [
        (
            row.player_id,
            CompetitionBreakdown(
                competition_id=competition.id,
                competition_name=competition.name,
                competition_date=competition.date,
                position=row.position,
                points=row.points,
                relative_to_par=row.relative_to_par,
                is_projected=False,
            ),
        )
        for row in event.stored_results
        if row.scoring_type == scoring_type and row.player_id is not None
    ]


def _projected_contributions(
    event: TourEvent,
    scoring_type: ScoringType,
    *,
    number_of_players: int,
    point_template: PointTemplate | None,
    enrollment_handicaps: dict[int, float],
    today: dt.date,
    now: dt.datetime | None,
) -> list[tuple[int, CompetitionBreakdown]]:
    competition = event.competition
    if scoring_type == ScoringType.NET and not competition.uses_net:
        logger.debug("Skipping competition %s: not scored net", competition.id)
        return []
    players = [participant for participant in event.participants if participant.player_id is not None]
    summaries = aggregate_competition(
        competition,
        players,
        now=now,
        enrollment_handicaps=enrollment_handicaps,
    )
    is_past = competition.date is not None and competition.date < today
    if not is_past and not any(summary.is_finished for summary in summaries):
        logger.debug("Skipping competition %s: nothing to project yet", competition.id)
        return []

    score = net_value if scoring_type == ScoringType.NET else gross_value
    placements = rank_projected(
        summaries,
        score,
        number_of_players=number_of_players or None,
        template=competition.point_template or point_template,
        multiplier=competition.points_multiplier,
    )
    contributions = []
    for summary in summaries:
        placement = placements.get(summary.participant_id)
        if placement is None:
            continue
        contributions.append(
            (
                summary.participant.player_id,
                CompetitionBreakdown(
                    competition_id=competition.id,
                    competition_name=competition.name,
                    competition_date=competition.date,
                    position=placement.position,
                    points=placement.points,
                    relative_to_par=score(summary),
                    is_projected=True,
                ),
            )
        )
    return contributions


def build_tour_standings(
    events: Iterable[TourEvent],
    enrollments: Iterable[Enrollment],
    *,
    category_id: int | None = None,
    scoring_type: ScoringType = ScoringType.GROSS,
    point_template: PointTemplate | None = None,
    today: dt.date | None = None,
    now: dt.datetime | None = None,
) -> list[TourStanding]:
    """
    Sum each player's points over the tour.

    Finalized competitions contribute their stored rows as they are; live
    competitions are re-scored and contribute projected points once someone
    has finished or the competition date has passed. Standings order by
    points, then competitions played, then name; players level on both
    numbers share a position.
    """
    today = today or dt.date.today()
    active = [enrollment for enrollment in enrollments if enrollment.status == "active"]
    categories = {enrollment.player_id: enrollment.category_id for enrollment in active}
    names = {enrollment.player_id: enrollment.player_name for enrollment in active}
    handicaps = {
        enrollment.player_id: enrollment.handicap_index
        for enrollment in active
        if enrollment.handicap_index is not None
    }
    counted = [
        enrollment for enrollment in active if category_id is None or enrollment.category_id == category_id
    ]

    tallies: dict[int, _PlayerTally] = {}
    participant_names: dict[int, str] = defaultdict(str)
    for event in events:
        for participant in event.participants:
            if participant.player_id is not None and participant.name:
                participant_names[participant.player_id] = participant.name

        if event.competition.is_results_final:
            contributions = _finalized_contributions(event, scoring_type)
        else:
            contributions = _projected_contributions(
                event,
                scoring_type,
                number_of_players=len(counted),
                point_template=point_template,
                enrollment_handicaps=handicaps,
                today=today,
                now=now,
            )

        for player_id, breakdown in contributions:
            player_category = categories.get(player_id)
            if category_id is not None and player_category != category_id:
                continue
            tally = tallies.get(player_id)
            if tally is None:
                tally = _PlayerTally(
                    player_id=player_id,
                    player_name=names.get(player_id) or participant_names[player_id] or f"Player {player_id}",
                    category_id=player_category,
                )
                tallies[player_id] = tally
            tally.total_points += breakdown.points
            tally.competitions.append(breakdown)

    ordered = sorted(
        tallies.values(),
        key=lambda tally: (-tally.total_points, -len(tally.competitions), tally.player_name.casefold()),
    )
    positions = assign_positions(ordered, lambda tally: (tally.total_points, len(tally.competitions)))
    logger.info("Built tour standings for %d players (%s)", len(ordered), scoring_type.value)
    return [
        TourStanding(
            player_id=tally.player_id,
            player_name=tally.player_name,
            category_id=tally.category_id,
            total_points=tally.total_points,
            competitions_played=len(tally.competitions),
            position=position,
            competitions=tuple(tally.competitions),
        )
        for tally, position in zip(ordered, positions)
    ]
