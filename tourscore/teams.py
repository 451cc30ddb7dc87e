from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import replace
from functools import cmp_to_key
from typing import Iterable, Sequence

from tourscore.handicap import round_half_up
from tourscore.models import Competition, LeaderboardEntry, Participant, TeamStanding, TeamStatus
from tourscore.ranking import default_points
from tourscore.results import build_leaderboard

STATUS_PRIORITY = {
    TeamStatus.FINISHED: 0,
    TeamStatus.IN_PROGRESS: 1,
    TeamStatus.NOT_STARTED: 2,
}


def _counts_toward_total(entry: LeaderboardEntry) -> bool:
    return entry.holes_played > 0 and not entry.has_unreported_hole


def team_status(members: Sequence[LeaderboardEntry]) -> TeamStatus:
    if not any(member.holes_played > 0 for member in members):
        return TeamStatus.NOT_STARTED
    if all(member.is_locked and not member.has_unreported_hole for member in members):
        return TeamStatus.FINISHED
    return TeamStatus.IN_PROGRESS


def _member_scores(members: Sequence[LeaderboardEntry]) -> list[int]:
    return sorted(member.relative_to_par for member in members if _counts_toward_total(member))


def _compare_member_scores(a: list[int], b: list[int]) -> int:
    for index in range(max(len(a), len(b))):
        if index >= len(a):
            return 1
        if index >= len(b):
            return -1
        if a[index] != b[index]:
            return a[index] - b[index]
    return 0


def _summarize_team(team_id: int, members: list[LeaderboardEntry]) -> tuple[TeamStanding, list[int]]:
    status = team_status(members)
    counted = [member for member in members if _counts_toward_total(member)]
    started = [member for member in members if member.holes_played > 0]
    start_times = [member.start_time for member in members if member.start_time]
    has_started = status != TeamStatus.NOT_STARTED
    standing = TeamStanding(
        team_id=team_id,
        team_name=members[0].team_name,
        status=status,
        total_relative_score=sum(member.relative_to_par for member in counted) if has_started else None,
        total_shots=sum(member.gross_total for member in counted) if has_started else None,
        max_holes_completed=max((member.holes_played for member in started), default=0),
        start_time=min(start_times) if start_times else None,
    )
    return standing, _member_scores(members)


def _compare_teams(a: tuple[TeamStanding, list[int]], b: tuple[TeamStanding, list[int]]) -> int:
    team_a, scores_a = a
    team_b, scores_b = b
    if team_a.status != team_b.status:
        return STATUS_PRIORITY[team_a.status] - STATUS_PRIORITY[team_b.status]
    if team_a.status == TeamStatus.NOT_STARTED:
        return 0
    if team_a.total_relative_score != team_b.total_relative_score:
        return team_a.total_relative_score - team_b.total_relative_score
    return _compare_member_scores(scores_a, scores_b)


def build_team_standings(
    entries: Iterable[LeaderboardEntry],
    number_of_teams: int | None = None,
    points_multiplier: float = 1.0,
) -> list[TeamStanding]:
    """
    Roll individual leaderboard entries up into team standings.

    Finished teams rank ahead of teams still on the course regardless of
    score. Positions run strictly 1, 2, 3... in sort order; teams level on
    score do not share a position.
    """
    members_by_team: dict[int, list[LeaderboardEntry]] = defaultdict(list)
    for entry in entries:
        if entry.team_id is not None:
            members_by_team[entry.team_id].append(entry)

    summarized = [_summarize_team(team_id, members) for team_id, members in members_by_team.items()]
    ordered = [standing for standing, _ in sorted(summarized, key=cmp_to_key(_compare_teams))]

    teams = len(ordered) if number_of_teams is None else number_of_teams
    if teams <= 0:
        return ordered

    ranked: list[TeamStanding] = []
    for index, standing in enumerate(ordered):
        if standing.status == TeamStatus.NOT_STARTED:
            ranked.append(standing)
            continue
        position = index + 1
        ranked.append(
            replace(
                standing,
                position=position,
                team_points=round_half_up(default_points(position, teams) * points_multiplier),
            )
        )
    return ranked


def team_leaderboard(
    competition: Competition,
    participants: Sequence[Participant],
    *,
    now: dt.datetime | None = None,
) -> list[TeamStanding]:
    team_ids = {participant.team_id for participant in participants if participant.team_id is not None}
    entries = build_leaderboard(competition, participants, now=now)
    return build_team_standings(entries, len(team_ids), competition.points_multiplier)
