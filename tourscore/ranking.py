"""Leaderboard ordering, tie-aware positions and points."""

from __future__ import annotations

from dataclasses import replace
from itertools import groupby
from typing import Callable, Hashable, Iterable, Sequence, TypeVar

from tourscore.handicap import round_half_up
from tourscore.models import Competition, LeaderboardEntry, Placement, PointTemplate, ScoreSummary

T = TypeVar("T")
ScoreGetter = Callable[[ScoreSummary], int]


def gross_value(summary: ScoreSummary) -> int:
    return summary.relative_to_par


def net_value(summary: ScoreSummary) -> int:
    if summary.net_relative_to_par is None:
        return summary.relative_to_par
    return summary.net_relative_to_par


def leaderboard_sort_key(summary: ScoreSummary, score: ScoreGetter = gross_value) -> tuple:
    # DQ at the bottom (by name), DNF above them (most holes first), everyone else by score.
    if summary.is_dq:
        return (2, summary.participant.display_name.casefold())
    if summary.is_dnf:
        return (1, -summary.holes_played)
    return (0, score(summary))


def sort_leaderboard(
    summaries: Iterable[ScoreSummary],
    score: ScoreGetter = gross_value,
) -> list[ScoreSummary]:
    return sorted(summaries, key=lambda summary: leaderboard_sort_key(summary, score))


def assign_positions(items: Sequence[T], value: Callable[[T], Hashable]) -> list[int]:
    """
    Standard competition ranking over a pre-sorted sequence: equal values share
    the lower position and the next distinct value jumps to its index + 1 (1, 1, 3).
    """
    positions: list[int] = []
    previous = None
    for index, item in enumerate(items):
        current = value(item)
        if index == 0 or current != previous:
            position = index + 1
        positions.append(position)
        previous = current
    return positions


def default_points(position: int, number_of_players: int) -> int:
    if position <= 0:
        return 0
    if position == 1:
        return number_of_players + 2
    if position == 2:
        return number_of_players
    return max(0, number_of_players - (position - 1))


def base_points(position: int, number_of_players: int, template: PointTemplate | None = None) -> int:
    if position <= 0:
        return 0
    if template is not None:
        return template.points_for(position)
    return default_points(position, number_of_players)


def points_for_position(
    position: int,
    number_of_players: int,
    template: PointTemplate | None = None,
    multiplier: float = 1.0,
) -> int:
    return round_half_up(base_points(position, number_of_players, template) * multiplier)


def _finished_by_score(summaries: Iterable[ScoreSummary], score: ScoreGetter) -> list[ScoreSummary]:
    finished = [summary for summary in summaries if summary.is_finished]
    return sorted(finished, key=lambda summary: (score(summary), summary.participant.display_name.casefold()))


def rank_projected(
    summaries: Iterable[ScoreSummary],
    score: ScoreGetter = gross_value,
    *,
    number_of_players: int | None = None,
    template: PointTemplate | None = None,
    multiplier: float = 1.0,
) -> dict[int, Placement]:
    """Live placements: every finished player scores the points of its own position."""
    ordered = _finished_by_score(summaries, score)
    players = len(ordered) if number_of_players is None else number_of_players
    positions = assign_positions(ordered, score)
    return {
        summary.participant_id: Placement(
            position=position,
            points=points_for_position(position, players, template, multiplier),
        )
        for summary, position in zip(ordered, positions)
    }


def rank_final(
    summaries: Iterable[ScoreSummary],
    score: ScoreGetter = gross_value,
    *,
    number_of_players: int | None = None,
    template: PointTemplate | None = None,
    multiplier: float = 1.0,
) -> dict[int, Placement]:
    """
    Final placements. Tied players share the first position of their run and
    split the points of the positions the run covers (two players tied for
    2nd/3rd each get the rounded mean of the 2nd and 3rd place points).
    """
    ordered = _finished_by_score(summaries, score)
    players = len(ordered) if number_of_players is None else number_of_players
    placements: dict[int, Placement] = {}
    start = 0
    for _, run in groupby(ordered, key=score):
        group = list(run)
        covered = range(start + 1, start + len(group) + 1)
        pooled = sum(base_points(position, players, template) * multiplier for position in covered)
        shared = Placement(position=start + 1, points=round_half_up(pooled / len(group)))
        for summary in group:
            placements[summary.participant_id] = shared
        start += len(group)
    return placements


def to_leaderboard_entry(summary: ScoreSummary) -> LeaderboardEntry:
    participant = summary.participant
    return LeaderboardEntry(
        participant_id=participant.id,
        player_id=participant.player_id,
        name=participant.display_name,
        team_id=participant.team_id,
        team_name=participant.team_name,
        category_id=participant.category_id,
        start_time=participant.start_time,
        gross_total=summary.gross_total,
        relative_to_par=summary.relative_to_par,
        holes_played=summary.holes_played,
        is_locked=participant.is_locked,
        is_dq=participant.is_dq,
        is_dnf=summary.is_dnf,
        has_unreported_hole=summary.has_unreported_hole,
        course_handicap=summary.course_handicap,
        net_total=summary.net_total,
        net_relative_to_par=summary.net_relative_to_par,
    )


def build_projected_leaderboard(
    summaries: Iterable[ScoreSummary],
    competition: Competition,
    number_of_players: int | None = None,
) -> list[LeaderboardEntry]:
    ordered = sort_leaderboard(summaries)
    options = {
        "number_of_players": number_of_players,
        "template": competition.point_template,
        "multiplier": competition.points_multiplier,
    }
    gross = rank_projected(ordered, gross_value, **options)
    has_net = competition.uses_net and any(summary.net_relative_to_par is not None for summary in ordered)
    net = rank_projected(ordered, net_value, **options) if has_net else None

    entries: list[LeaderboardEntry] = []
    for summary in ordered:
        placement = gross.get(summary.participant_id, Placement(0, 0))
        entry = replace(
            to_leaderboard_entry(summary),
            position=placement.position,
            points=placement.points,
            is_projected=True,
        )
        if net is not None:
            net_placement = net.get(summary.participant_id, Placement(0, 0))
            entry = replace(entry, net_position=net_placement.position, net_points=net_placement.points)
        entries.append(entry)
    return entries
