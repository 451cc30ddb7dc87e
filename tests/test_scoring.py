import datetime as dt

import pytest

from tourscore.exceptions import CourseConfigurationError, ScoreValidationError
from tourscore.models import Course, Tee
from tourscore.scoring import (
    aggregate_competition,
    aggregate_score,
    gross_score,
    has_unreported_hole,
    holes_played,
    is_window_closed,
    record_hole_score,
    record_manual_score,
    relative_to_par,
)

CLOSED_AT = dt.datetime(2025, 6, 1, 18, 0, tzinfo=dt.timezone.utc)
AFTER_CLOSE = CLOSED_AT + dt.timedelta(hours=1)


def test_round_metrics_ignore_unplayed_holes():
    score = [5, 4, 3] + [0] * 15
    assert holes_played(score) == 3
    assert gross_score(score) == 12
    assert relative_to_par(score, [4] * 18) == 0


def test_unreported_hole_counts_as_played_but_not_scored():
    score = [4] * 17 + [-1]
    assert holes_played(score) == 18
    assert gross_score(score) == 68
    assert relative_to_par(score, [4] * 18) == 0
    assert has_unreported_hole(score)


def test_locked_full_round_is_finished(make_competition, make_participant):
    summary = aggregate_score(make_participant(1, [5] * 18, is_locked=True), make_competition())
    assert summary.gross_total == 90
    assert summary.relative_to_par == 18
    assert summary.is_finished
    assert not summary.is_dnf


def test_unlocked_round_is_not_finished_while_window_open(make_competition, make_participant):
    summary = aggregate_score(make_participant(1, [5] * 18), make_competition())
    assert not summary.is_finished


def test_dq_is_never_finished(make_competition, make_participant):
    summary = aggregate_score(make_participant(1, [4] * 18, is_locked=True, is_dq=True), make_competition())
    assert not summary.is_finished


def test_net_full_round(make_competition, make_participant):
    competition = make_competition(
        scoring_mode="net",
        tee=Tee(id=1, course_rating=71.2, slope_rating=128),
    )
    participant = make_participant(1, [5] * 18, handicap_index=9.4, is_locked=True)
    summary = aggregate_score(participant, competition, handicap_index=9.4)
    assert summary.course_handicap == 10
    assert summary.net_total == 80
    assert summary.net_relative_to_par == 8


def test_per_hole_net_matches_full_round_net(make_competition, make_participant):
    competition = make_competition(scoring_mode="both")
    score = [5, 6, 4, 3, 5, 7, 4, 4, 5, 6, 4, 5, 3, 4, 6, 5, 4, 5]
    participant = make_participant(1, score, handicap_index=14.0, is_locked=True)
    summary = aggregate_competition(competition, [participant])[0]
    assert summary.net_total == summary.gross_total - summary.course_handicap
    assert summary.net_relative_to_par == summary.net_total - 72


def test_full_round_net_agrees_past_the_plus_stroke_cap(make_competition, make_participant):
    competition = make_competition(scoring_mode="net", tee=Tee(id=1, course_rating=60.0, slope_rating=155))
    participant = make_participant(1, [4] * 18, handicap_index=-10.0, is_locked=True)
    summary = aggregate_competition(competition, [participant])[0]
    assert summary.course_handicap == -26
    assert summary.net_total == 98
    assert summary.net_relative_to_par == summary.net_total - 72


def test_net_partial_round_uses_allocated_strokes(make_competition, make_participant):
    competition = make_competition(scoring_mode="net")
    participant = make_participant(1, [5] * 9 + [0] * 9, handicap_index=10.0)
    summary = aggregate_competition(competition, [participant])[0]
    assert summary.course_handicap == 10
    assert summary.holes_played == 9
    assert summary.net_total == 36
    assert summary.net_relative_to_par == 0


def test_unreported_hole_blocks_net_and_finish(make_competition, make_participant):
    competition = make_competition(scoring_mode="net")
    participant = make_participant(1, [4] * 17 + [-1], handicap_index=10.0, is_locked=True)
    summary = aggregate_competition(competition, [participant])[0]
    assert summary.has_unreported_hole
    assert summary.net_total is None
    assert summary.net_relative_to_par is None
    assert not summary.is_finished


def test_gross_competition_has_no_net_values(make_competition, make_participant):
    participant = make_participant(1, [4] * 18, handicap_index=10.0, is_locked=True)
    summary = aggregate_competition(make_competition(), [participant])[0]
    assert summary.course_handicap is None
    assert summary.net_total is None


def test_net_requires_stroke_index(make_competition, make_participant):
    competition = make_competition(scoring_mode="net", course=Course(id=2, pars=[4] * 18))
    with pytest.raises(CourseConfigurationError, match="stroke_index"):
        aggregate_competition(competition, [make_participant(1, [4] * 18)])


def test_gross_scoring_does_not_need_stroke_index(make_competition, make_participant):
    competition = make_competition(course=Course(id=2, pars=[4] * 18))
    summaries = aggregate_competition(competition, [make_participant(1, [4] * 18, is_locked=True)])
    assert summaries[0].relative_to_par == 0


def test_missing_course_is_a_configuration_error(make_competition, make_participant):
    with pytest.raises(CourseConfigurationError):
        aggregate_competition(make_competition(course=None), [make_participant(1)])


def test_category_tee_takes_precedence(make_competition, make_participant):
    competition = make_competition(
        scoring_mode="net",
        tee=Tee(id=1, course_rating=74.0, slope_rating=113),
        category_tees={5: Tee(id=2, course_rating=70.0, slope_rating=113)},
    )
    participant = make_participant(1, [4] * 18, handicap_index=10.0, category_id=5)
    assert aggregate_competition(competition, [participant])[0].course_handicap == 8


def test_no_tee_rates_the_course_at_par(make_competition, make_participant):
    competition = make_competition(scoring_mode="net")
    participant = make_participant(1, [4] * 18, handicap_index=10.0)
    assert aggregate_competition(competition, [participant])[0].course_handicap == 10


def test_enrollment_handicap_used_without_snapshot(make_competition, make_participant):
    competition = make_competition(scoring_mode="net")
    participant = make_participant(7, [4] * 18)
    summary = aggregate_competition(competition, [participant], enrollment_handicaps={7: 10.0})[0]
    assert summary.course_handicap == 10


def test_snapshot_wins_over_enrollment_handicap(make_competition, make_participant):
    competition = make_competition(scoring_mode="net")
    participant = make_participant(7, [4] * 18, handicap_index=4.0)
    summary = aggregate_competition(competition, [participant], enrollment_handicaps={7: 10.0})[0]
    assert summary.course_handicap == 4


def test_manual_score(make_competition, make_participant):
    competition = make_competition(scoring_mode="net")
    participant = make_participant(1, manual_score_total=80, handicap_index=9.4)
    summary = aggregate_competition(competition, [participant])[0]
    assert summary.gross_total == 80
    assert summary.relative_to_par == 8
    assert summary.holes_played == 18
    assert summary.is_finished
    assert summary.course_handicap == 9
    assert summary.net_total == 71
    assert summary.net_relative_to_par == -1


def test_closed_window_marks_short_rounds_dnf(make_competition, make_participant):
    competition = make_competition(start_mode="open", open_end=CLOSED_AT)
    short = make_participant(1, [4] * 9 + [0] * 9)
    full = make_participant(2, [4] * 18)
    first, second = aggregate_competition(competition, [short, full], now=AFTER_CLOSE)
    assert first.is_dnf and not first.is_finished
    assert second.is_finished and not second.is_dnf


def test_open_window_has_no_dnf(make_competition, make_participant):
    competition = make_competition(start_mode="open", open_end=CLOSED_AT)
    summary = aggregate_competition(
        competition,
        [make_participant(1, [4] * 9 + [0] * 9)],
        now=CLOSED_AT - dt.timedelta(hours=1),
    )[0]
    assert not summary.is_dnf


def test_is_window_closed_accepts_naive_datetimes(make_competition):
    competition = make_competition(start_mode="open", open_end=dt.datetime(2025, 6, 1, 18, 0))
    assert is_window_closed(competition, dt.datetime(2025, 6, 1, 19, 0))
    assert not is_window_closed(competition, dt.datetime(2025, 6, 1, 17, 0))
    assert not is_window_closed(make_competition(), AFTER_CLOSE)


def test_record_hole_score_snapshots_handicap_once(make_participant):
    participant = make_participant(1)
    participant = record_hole_score(participant, 1, 5, current_handicap_index=12.3)
    assert participant.score[0] == 5
    assert participant.handicap_index == 12.3

    participant = record_hole_score(participant, 2, 4, current_handicap_index=15.0)
    assert participant.score[:2] == [5, 4]
    assert participant.handicap_index == 12.3


def test_record_hole_score_keeps_existing_snapshot(make_participant):
    participant = record_hole_score(make_participant(1, handicap_index=8.0), 1, 5, current_handicap_index=12.3)
    assert participant.handicap_index == 8.0


def test_record_hole_score_accepts_unreported_marker(make_participant):
    participant = record_hole_score(make_participant(1), 18, -1)
    assert participant.score[17] == -1


@pytest.mark.parametrize("hole, strokes", [(0, 4), (19, 4), (1, 21), (1, -2)])
def test_record_hole_score_rejects_bad_input(make_participant, hole, strokes):
    with pytest.raises(ScoreValidationError):
        record_hole_score(make_participant(1), hole, strokes)


def test_record_hole_score_rejects_locked_card(make_participant):
    with pytest.raises(ScoreValidationError, match="locked"):
        record_hole_score(make_participant(1, is_locked=True), 1, 4)


def test_record_manual_score_from_halves(make_participant):
    participant = record_manual_score(make_participant(1), out=40, in_=42)
    assert participant.manual_score_total == 82
    assert participant.has_manual_score


def test_record_manual_score_rejects_inconsistent_total(make_participant):
    with pytest.raises(ScoreValidationError):
        record_manual_score(make_participant(1), out=40, in_=42, total=80)


def test_record_manual_score_needs_a_total(make_participant):
    with pytest.raises(ScoreValidationError):
        record_manual_score(make_participant(1), out=40)
