"""World Handicap System helpers: course handicap and per-hole stroke allocation.

Course Handicap = Handicap Index x Slope Rating / 113 + (Course Rating - Par)
"""

import math
from typing import Sequence

from tourscore.exceptions import CourseConfigurationError
from tourscore.models import Course
from tourscore.settings import HOLES_PER_ROUND, STANDARD_SLOPE_RATING

DEFAULT_STROKE_INDEX = [7, 15, 3, 11, 1, 9, 5, 17, 13, 8, 16, 4, 12, 2, 10, 6, 18, 14]


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def course_handicap(
    handicap_index: float,
    slope_rating: int,
    course_rating: float,
    par: int,
) -> int:
    # Plus handicaps (negative index) go through the same formula.
    raw = handicap_index * slope_rating / STANDARD_SLOPE_RATING + (course_rating - par)
    return round_half_up(raw)


def validate_stroke_index(stroke_index: Sequence[int] | None) -> bool:
    if not stroke_index or len(stroke_index) != HOLES_PER_ROUND:
        return False
    return sorted(stroke_index) == list(range(1, HOLES_PER_ROUND + 1))


def require_stroke_index(course: Course) -> list[int]:
    if not course.stroke_index:
        raise CourseConfigurationError(
            f"Course stroke_index is required but not set on course {course.id}. "
            "Please configure stroke index for this course."
        )
    if not validate_stroke_index(course.stroke_index):
        raise CourseConfigurationError(
            f"Invalid stroke_index on course {course.id}: "
            f"must be a permutation of 1..{HOLES_PER_ROUND}"
        )
    return list(course.stroke_index)


def _spread_in_hole_order(course_handicap: int) -> list[int]:
    base, extra = divmod(abs(course_handicap), HOLES_PER_ROUND)
    return [base + 1 if hole < extra else base for hole in range(HOLES_PER_ROUND)]


def distribute_strokes(
    course_handicap: int,
    stroke_index: Sequence[int] | None = None,
) -> list[int]:
    """
    Return the handicap strokes received on each hole.

    Without a stroke index the strokes are spread in hole order. With one,
    plus players give strokes back from the easiest hole (index 18) upward
    and everyone else receives them from the hardest hole (index 1) downward.
    """
    if not stroke_index:
        return _spread_in_hole_order(course_handicap)
    if not validate_stroke_index(stroke_index):
        raise CourseConfigurationError(
            f"Stroke index must contain each value 1..{HOLES_PER_ROUND} exactly once"
        )

    hole_for_index = {value: hole for hole, value in enumerate(stroke_index)}
    if course_handicap < 0:
        strokes = [0] * HOLES_PER_ROUND
        for offset in range(min(-course_handicap, HOLES_PER_ROUND)):
            strokes[hole_for_index[HOLES_PER_ROUND - offset]] = -1
        return strokes

    base, remainder = divmod(course_handicap, HOLES_PER_ROUND)
    strokes = [base] * HOLES_PER_ROUND
    for priority in range(1, remainder + 1):
        strokes[hole_for_index[priority]] += 1
    return strokes


def net_hole_scores(gross_scores: Sequence[int], strokes: Sequence[int]) -> list[int]:
    if len(gross_scores) != len(strokes):
        raise ValueError("Gross scores and handicap strokes must have the same length")
    return [gross - given if gross > 0 else gross for gross, given in zip(gross_scores, strokes)]


def net_total(gross_total: int, course_handicap: int) -> int:
    return gross_total - course_handicap


def default_stroke_index() -> list[int]:
    return list(DEFAULT_STROKE_INDEX)
