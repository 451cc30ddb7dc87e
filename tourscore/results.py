"""
Live leaderboards and the finalized result snapshot.

A competition is either live (placements are projected from the current
scorecards on every call) or finalized (placements come from the stored
result rows). Finalizing replaces every stored row of the competition in one
unit of work; running it again after score corrections is how a finalized
competition gets updated.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import replace
from typing import Callable, Iterable, Mapping, Protocol, Sequence

from tourscore.exceptions import CompetitionNotFoundError, NothingToFinalizeError
from tourscore.models import (
    Competition,
    LeaderboardEntry,
    Participant,
    Placement,
    ResultRow,
    ScoreSummary,
    ScoringType,
)
from tourscore.ranking import (
    build_projected_leaderboard,
    gross_value,
    net_value,
    rank_final,
    sort_leaderboard,
    to_leaderboard_entry,
)
from tourscore.scoring import aggregate_competition

logger = logging.getLogger(__name__)

SCORING_TYPE_ORDER = {ScoringType.GROSS: 0, ScoringType.NET: 1}


class ResultStore(Protocol):
    def replace_results(
        self,
        competition_id: int,
        rows: Sequence[ResultRow],
        finalized_at: dt.datetime,
    ) -> None:
        """Delete every row of the competition, insert ``rows`` and flag it final, atomically."""

    def fetch_results(
        self,
        competition_id: int,
        scoring_type: ScoringType | None = None,
    ) -> list[ResultRow]:
        ...

    def is_finalized(self, competition_id: int) -> bool:
        ...


class MemoryResultStore:
    def __init__(self) -> None:
        self._rows: dict[int, tuple[ResultRow, ...]] = {}
        self._finalized_at: dict[int, dt.datetime] = {}

    def replace_results(
        self,
        competition_id: int,
        rows: Sequence[ResultRow],
        finalized_at: dt.datetime,
    ) -> None:
        self._rows[competition_id] = tuple(rows)
        self._finalized_at[competition_id] = finalized_at

    def fetch_results(
        self,
        competition_id: int,
        scoring_type: ScoringType | None = None,
    ) -> list[ResultRow]:
        rows = self._rows.get(competition_id, ())
        if scoring_type is not None:
            rows = tuple(row for row in rows if row.scoring_type == scoring_type)
        return sorted(rows, key=lambda row: (SCORING_TYPE_ORDER[row.scoring_type], row.position, row.participant_id))

    def is_finalized(self, competition_id: int) -> bool:
        return competition_id in self._finalized_at

    def finalized_at(self, competition_id: int) -> dt.datetime | None:
        return self._finalized_at.get(competition_id)


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _result_rows(
    competition_id: int,
    summaries: Iterable[ScoreSummary],
    placements: Mapping[int, Placement],
    scoring_type: ScoringType,
) -> list[ResultRow]:
    rows = []
    for summary in summaries:
        placement = placements.get(summary.participant_id)
        if placement is None:
            continue
        relative = net_value(summary) if scoring_type == ScoringType.NET else summary.relative_to_par
        rows.append(
            ResultRow(
                competition_id=competition_id,
                participant_id=summary.participant_id,
                player_id=summary.participant.player_id,
                position=placement.position,
                points=placement.points,
                gross_score=summary.gross_total,
                net_score=summary.net_total,
                relative_to_par=relative,
                scoring_type=scoring_type,
            )
        )
    return sorted(rows, key=lambda row: (row.position, row.participant_id))


class ResultFinalizer:
    def __init__(self, store: ResultStore, clock: Callable[[], dt.datetime] = _utcnow):
        self.store = store
        self.clock = clock

    def compute_results(
        self,
        competition: Competition,
        participants: Iterable[Participant],
        *,
        active_enrollments: int = 0,
        enrollment_handicaps: Mapping[int, float] | None = None,
    ) -> list[ResultRow]:
        if competition.course is None:
            raise CompetitionNotFoundError(f"Course not found for competition {competition.id}")
        entrants = [participant for participant in participants if participant.player_id is not None]
        if not entrants:
            raise NothingToFinalizeError(f"Competition {competition.id} has no participants to finalize")

        summaries = aggregate_competition(
            competition,
            entrants,
            now=self.clock(),
            enrollment_handicaps=enrollment_handicaps,
        )
        finishers = sum(1 for summary in summaries if summary.is_finished)
        if competition.tour_id is not None and active_enrollments:
            number_of_players = active_enrollments
        else:
            number_of_players = finishers

        options = {
            "number_of_players": number_of_players,
            "template": competition.point_template,
            "multiplier": competition.points_multiplier,
        }
        rows = _result_rows(
            competition.id,
            summaries,
            rank_final(summaries, gross_value, **options),
            ScoringType.GROSS,
        )
        if competition.uses_net:
            rows += _result_rows(
                competition.id,
                summaries,
                rank_final(summaries, net_value, **options),
                ScoringType.NET,
            )
        return rows

    def finalize(
        self,
        competition: Competition,
        participants: Iterable[Participant],
        *,
        active_enrollments: int = 0,
        enrollment_handicaps: Mapping[int, float] | None = None,
    ) -> list[ResultRow]:
        rows = self.compute_results(
            competition,
            participants,
            active_enrollments=active_enrollments,
            enrollment_handicaps=enrollment_handicaps,
        )
        self.store.replace_results(competition.id, rows, self.clock())
        logger.info(
            "Finalized competition %s: %d result rows (%s scoring)",
            competition.id,
            len(rows),
            competition.scoring_mode.value,
        )
        return rows

    recalculate = finalize

    def is_finalized(self, competition_id: int) -> bool:
        return self.store.is_finalized(competition_id)


def _stored_leaderboard(
    summaries: Iterable[ScoreSummary],
    stored: Iterable[ResultRow],
) -> list[LeaderboardEntry]:
    gross_rows = {row.participant_id: row for row in stored if row.scoring_type == ScoringType.GROSS}
    net_rows = {row.participant_id: row for row in stored if row.scoring_type == ScoringType.NET}
    entries = []
    for summary in sort_leaderboard(summaries):
        gross = gross_rows.get(summary.participant_id)
        net = net_rows.get(summary.participant_id)
        entries.append(
            replace(
                to_leaderboard_entry(summary),
                position=gross.position if gross else 0,
                points=gross.points if gross else 0,
                net_position=net.position if net else None,
                net_points=net.points if net else None,
                is_projected=False,
            )
        )
    return entries


def build_leaderboard(
    competition: Competition,
    participants: Iterable[Participant],
    *,
    store: ResultStore | None = None,
    now: dt.datetime | None = None,
    enrollment_handicaps: Mapping[int, float] | None = None,
    number_of_players: int | None = None,
) -> list[LeaderboardEntry]:
    summaries = aggregate_competition(
        competition,
        participants,
        now=now,
        enrollment_handicaps=enrollment_handicaps,
    )
    if competition.is_results_final and store is not None:
        return _stored_leaderboard(summaries, store.fetch_results(competition.id))
    return build_projected_leaderboard(summaries, competition, number_of_players)
