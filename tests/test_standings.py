import datetime as dt

import pytest

from tourscore.models import Course, Enrollment, ResultRow, ScoringType
from tourscore.results import MemoryResultStore, ResultFinalizer
from tourscore.standings import TourEvent, build_tour_standings

TODAY = dt.date(2025, 6, 1)


def result(competition_id, player_id, position, points, relative=0, scoring_type=ScoringType.GROSS):
    return ResultRow(
        competition_id=competition_id,
        participant_id=competition_id * 10 + player_id,
        player_id=player_id,
        position=position,
        points=points,
        gross_score=72 + relative,
        net_score=None,
        relative_to_par=relative,
        scoring_type=scoring_type,
    )


@pytest.fixture
def enrollments():
    return [
        Enrollment(player_id=1, player_name="Ann", category_id=10),
        Enrollment(player_id=2, player_name="Bob", category_id=10),
        Enrollment(player_id=3, player_name="Cat", category_id=20),
        Enrollment(player_id=4, player_name="Dan", category_id=20, status="withdrawn"),
    ]


@pytest.fixture
def season(make_competition, make_participant):
    spring = TourEvent(
        competition=make_competition(
            id=100, name="Spring", date=dt.date(2025, 5, 1), tour_id=1, is_results_final=True
        ),
        stored_results=[
            result(100, 1, 1, 5, -1),
            result(100, 2, 2, 3, 0),
            result(100, 2, 1, 5, -4, ScoringType.NET),
        ],
    )
    summer = TourEvent(
        competition=make_competition(id=200, name="Summer", date=TODAY, tour_id=1),
        participants=[
            make_participant(21, [4] * 17 + [3], player_id=2, name="Bob", is_locked=True),
            make_participant(22, [4] * 18, player_id=3, name="Cat", is_locked=True),
            make_participant(23, [4] * 9 + [0] * 9, player_id=1, name="Ann"),
        ],
    )
    autumn = TourEvent(
        competition=make_competition(id=300, name="Autumn", date=dt.date(2025, 7, 1), tour_id=1),
        participants=[make_participant(31, [4] * 3 + [0] * 15, player_id=1, name="Ann")],
    )
    return [spring, summer, autumn]


def test_final_and_projected_points_are_summed(season, enrollments):
    standings = build_tour_standings(season, enrollments, today=TODAY)
    assert [(s.player_name, s.total_points, s.competitions_played, s.position) for s in standings] == [
        ("Bob", 8, 2, 1),
        ("Ann", 5, 1, 2),
        ("Cat", 3, 1, 3),
    ]
    bob = standings[0]
    assert [(c.competition_name, c.points, c.is_projected) for c in bob.competitions] == [
        ("Spring", 3, False),
        ("Summer", 5, True),
    ]
    assert bob.competitions[1].relative_to_par == -1


def test_future_competition_without_finishers_is_skipped(season, enrollments):
    standings = build_tour_standings(season, enrollments, today=TODAY)
    names = {c.competition_name for standing in standings for c in standing.competitions}
    assert "Autumn" not in names


def test_category_filter_uses_category_enrollment_count(season, enrollments):
    standings = build_tour_standings(season, enrollments, category_id=10, today=TODAY)
    assert [(s.player_name, s.total_points) for s in standings] == [("Bob", 7), ("Ann", 5)]
    assert all(s.category_id == 10 for s in standings)


def test_net_standings_read_net_rows_and_skip_gross_competitions(season, enrollments):
    standings = build_tour_standings(season, enrollments, scoring_type=ScoringType.NET, today=TODAY)
    assert [(s.player_name, s.total_points) for s in standings] == [("Bob", 5)]
    assert [c.competition_name for c in standings[0].competitions] == ["Spring"]


def test_ties_need_equal_points_and_appearances(make_competition, enrollments):
    def final_event(competition_id, rows):
        competition = make_competition(id=competition_id, tour_id=1, is_results_final=True)
        return TourEvent(competition=competition, stored_results=rows)

    events = [
        final_event(1, [result(1, 2, 1, 5), result(1, 1, 1, 5)]),
        final_event(2, [result(2, 3, 1, 3)]),
        final_event(3, [result(3, 3, 2, 2)]),
    ]
    standings = build_tour_standings(events, enrollments, today=TODAY)
    assert [(s.player_name, s.position) for s in standings] == [("Cat", 1), ("Ann", 2), ("Bob", 2)]


def test_projection_uses_enrollment_handicap(make_competition, make_participant):
    enrollments = [
        Enrollment(player_id=1, player_name="Ann", handicap_index=20.0),
        Enrollment(player_id=2, player_name="Bob"),
    ]
    event = TourEvent(
        competition=make_competition(id=400, tour_id=1, scoring_mode="net"),
        participants=[
            make_participant(1, [5] * 18, name="Ann", is_locked=True),
            make_participant(2, [4] * 18, name="Bob", is_locked=True),
        ],
    )
    standings = build_tour_standings([event], enrollments, scoring_type=ScoringType.NET, today=TODAY)
    assert [(s.player_name, s.total_points) for s in standings] == [("Ann", 4), ("Bob", 2)]
    assert standings[0].competitions[0].relative_to_par == -2


def test_projection_applies_competition_multiplier(make_competition, make_participant, enrollments):
    event = TourEvent(
        competition=make_competition(id=500, tour_id=1, points_multiplier=2),
        participants=[make_participant(2, [4] * 18, name="Bob", is_locked=True)],
    )
    standings = build_tour_standings([event], enrollments, today=TODAY)
    assert standings[0].total_points == 10


def test_empty_tour():
    assert build_tour_standings([], [], today=TODAY) == []


@pytest.mark.parametrize(
    "scoring_mode, expected",
    [("gross", []), ("both", [("Ann", 4, 1), ("Bob", 2, 2)])],
)
def test_net_standings_unchanged_by_finalize(make_competition, make_participant, scoring_mode, expected):
    enrollments = [Enrollment(player_id=1, player_name="Ann"), Enrollment(player_id=2, player_name="Bob")]
    competition = make_competition(id=600, tour_id=1, scoring_mode=scoring_mode)
    participants = [
        make_participant(1, [5] * 18, name="Ann", handicap_index=20.0, is_locked=True),
        make_participant(2, [4] * 18, name="Bob", handicap_index=0.0, is_locked=True),
    ]

    def net_table(event):
        standings = build_tour_standings([event], enrollments, scoring_type=ScoringType.NET, today=TODAY)
        return [(s.player_name, s.total_points, s.position) for s in standings]

    live = net_table(TourEvent(competition=competition, participants=participants))

    store = MemoryResultStore()
    ResultFinalizer(store).finalize(competition, participants, active_enrollments=2)
    final = net_table(
        TourEvent(
            competition=competition.model_copy(update={"is_results_final": True}),
            participants=participants,
            stored_results=store.fetch_results(600),
        )
    )
    assert live == final == expected


def test_net_standings_ignore_gross_competition_without_stroke_index(make_competition, make_participant):
    event = TourEvent(
        competition=make_competition(id=700, tour_id=1, course=Course(id=2, pars=[4] * 18)),
        participants=[make_participant(1, [4] * 18, name="Ann", handicap_index=5.0, is_locked=True)],
    )
    enrollments = [Enrollment(player_id=1, player_name="Ann")]
    assert build_tour_standings([event], enrollments, scoring_type=ScoringType.NET, today=TODAY) == []
    assert build_tour_standings([event], enrollments, today=TODAY)[0].total_points == 3
