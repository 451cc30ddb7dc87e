import datetime as dt

import pytest

from tourscore.models import Competition, Course, Participant, ScoreSummary

PAR_72 = [4] * 18
HOLE_ORDER_INDEX = list(range(1, 19))


@pytest.fixture
def course():
    return Course(id=1, name="Links", pars=PAR_72, stroke_index=HOLE_ORDER_INDEX)


@pytest.fixture
def make_competition(course):
    def _make(**overrides):
        values = {"id": 1, "name": "Monthly Medal", "date": dt.date(2025, 6, 1), "course": course}
        values.update(overrides)
        return Competition(**values)

    return _make


@pytest.fixture
def make_participant():
    def _make(participant_id, score=None, **overrides):
        values = {
            "id": participant_id,
            "player_id": participant_id,
            "name": f"Player {participant_id}",
            "score": score if score is not None else [],
        }
        values.update(overrides)
        return Participant(**values)

    return _make


@pytest.fixture
def make_summary():
    def _make(participant_id, relative, name=None, **overrides):
        values = {
            "participant": Participant(id=participant_id, player_id=participant_id, name=name or f"P{participant_id}"),
            "gross_total": 72 + relative,
            "relative_to_par": relative,
            "holes_played": 18,
            "has_unreported_hole": False,
            "is_finished": True,
            "is_dnf": False,
        }
        values.update(overrides)
        return ScoreSummary(**values)

    return _make
