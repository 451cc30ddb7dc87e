import datetime as dt
import json
from typing import Optional, Sequence

import psycopg

from tourscore.models import (
    Competition,
    Course,
    Enrollment,
    Participant,
    PointTemplate,
    ResultRow,
    ScoringType,
    Tee,
    TeeRating,
)


def ensure_schema(database_url: str) -> None:
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                create table if not exists courses (
                    id serial primary key,
                    name text not null,
                    pars jsonb not null,
                    stroke_index jsonb
                );
                """
            )
            cur.execute(
                """
                create table if not exists tees (
                    id serial primary key,
                    course_id integer not null references courses(id) on delete cascade,
                    name text not null,
                    course_rating numeric,
                    slope_rating integer
                );
                """
            )
            cur.execute(
                """
                create table if not exists tee_ratings (
                    id serial primary key,
                    tee_id integer not null references tees(id) on delete cascade,
                    gender text not null default 'men',
                    course_rating numeric not null,
                    slope_rating integer not null default 113
                );
                """
            )
            cur.execute(
                """
                create table if not exists point_templates (
                    id serial primary key,
                    name text not null,
                    points jsonb not null
                );
                """
            )
            cur.execute(
                """
                create table if not exists competitions (
                    id serial primary key,
                    name text not null,
                    date date,
                    course_id integer references courses(id),
                    tee_id integer references tees(id),
                    tour_id integer,
                    points_multiplier numeric not null default 1,
                    start_mode text not null default 'scheduled',
                    open_start timestamptz,
                    open_end timestamptz,
                    scoring_mode text not null default 'gross',
                    point_template_id integer references point_templates(id)
                );
                """
            )
            cur.execute(
                """
                alter table competitions
                add column if not exists is_results_final boolean not null default false;
                """
            )
            cur.execute(
                """
                alter table competitions
                add column if not exists results_finalized_at timestamptz;
                """
            )
            cur.execute(
                """
                create table if not exists competition_category_tees (
                    competition_id integer not null references competitions(id) on delete cascade,
                    category_id integer not null,
                    tee_id integer not null references tees(id),
                    primary key (competition_id, category_id)
                );
                """
            )
            cur.execute(
                """
                create table if not exists participants (
                    id serial primary key,
                    competition_id integer not null references competitions(id) on delete cascade,
                    player_id integer,
                    name text not null default '',
                    team_id integer,
                    team_name text,
                    start_time text,
                    score jsonb not null default '[]',
                    manual_score_out integer,
                    manual_score_in integer,
                    manual_score_total integer,
                    handicap_index numeric,
                    is_locked boolean not null default false,
                    is_dq boolean not null default false,
                    category_id integer
                );
                """
            )
            cur.execute(
                """
                create table if not exists tour_enrollments (
                    id serial primary key,
                    tour_id integer not null,
                    player_id integer not null,
                    player_name text not null default '',
                    category_id integer,
                    handicap_index numeric,
                    status text not null default 'active',
                    unique (tour_id, player_id)
                );
                """
            )
            cur.execute(
                """
                create table if not exists competition_results (
                    id serial primary key,
                    competition_id integer not null references competitions(id) on delete cascade,
                    participant_id integer not null,
                    player_id integer,
                    position integer not null,
                    points integer not null,
                    gross_score integer not null,
                    net_score integer,
                    relative_to_par integer not null,
                    scoring_type text not null default 'gross',
                    unique (competition_id, participant_id, scoring_type)
                );
                """
            )


def _json_value(value):
    # jsonb comes back decoded; text columns on older databases do not
    if isinstance(value, str):
        return json.loads(value)
    return value


def _row_to_result(row: tuple) -> ResultRow:
    return ResultRow(
        competition_id=row[0],
        participant_id=row[1],
        player_id=row[2],
        position=row[3],
        points=row[4],
        gross_score=row[5],
        net_score=row[6],
        relative_to_par=row[7],
        scoring_type=ScoringType(row[8]),
    )


_RESULT_COLUMNS = """
    competition_id,
    participant_id,
    player_id,
    position,
    points,
    gross_score,
    net_score,
    relative_to_par,
    scoring_type
"""


class PostgresResultStore:
    def __init__(self, database_url: str):
        self.database_url = database_url

    def replace_results(
        self,
        competition_id: int,
        rows: Sequence[ResultRow],
        finalized_at: dt.datetime,
    ) -> None:
        # psycopg commits on a clean exit from the connection block and rolls back on error
        with psycopg.connect(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "delete from competition_results where competition_id = %s;",
                    (competition_id,),
                )
                if rows:
                    cur.executemany(
                        f"""
                        insert into competition_results ({_RESULT_COLUMNS})
                        values (%s, %s, %s, %s, %s, %s, %s, %s, %s);
                        """,
                        [
                            (
                                row.competition_id,
                                row.participant_id,
                                row.player_id,
                                row.position,
                                row.points,
                                row.gross_score,
                                row.net_score,
                                row.relative_to_par,
                                row.scoring_type.value,
                            )
                            for row in rows
                        ],
                    )
                cur.execute(
                    """
                    update competitions
                    set is_results_final = true,
                        results_finalized_at = %s
                    where id = %s;
                    """,
                    (finalized_at, competition_id),
                )

    def fetch_results(
        self,
        competition_id: int,
        scoring_type: Optional[ScoringType] = None,
    ) -> list[ResultRow]:
        query = f"""
            select {_RESULT_COLUMNS}
            from competition_results
            where competition_id = %s
        """
        params: tuple = (competition_id,)
        if scoring_type is not None:
            query += "\n            and scoring_type = %s"
            params += (scoring_type.value,)
        query += "\n            order by scoring_type, position, participant_id;"
        with psycopg.connect(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return [_row_to_result(row) for row in cur.fetchall()]

    def is_finalized(self, competition_id: int) -> bool:
        with psycopg.connect(self.database_url) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select is_results_final from competitions where id = %s;",
                    (competition_id,),
                )
                row = cur.fetchone()
                return bool(row and row[0])


def fetch_player_results(database_url: str, player_id: int) -> list[dict]:
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select
                    r.competition_id,
                    c.name,
                    c.date,
                    r.position,
                    r.points,
                    r.gross_score,
                    r.net_score,
                    r.relative_to_par,
                    r.scoring_type
                from competition_results r
                join competitions c on c.id = r.competition_id
                where r.player_id = %s
                order by c.date desc nulls last, r.scoring_type;
                """,
                (player_id,),
            )
            rows = cur.fetchall()
            return [
                {
                    "competition_id": row[0],
                    "competition_name": row[1],
                    "competition_date": row[2],
                    "position": row[3],
                    "points": row[4],
                    "gross_score": row[5],
                    "net_score": row[6],
                    "relative_to_par": row[7],
                    "scoring_type": row[8],
                }
                for row in rows
            ]


def fetch_tour_points(
    database_url: str,
    tour_id: int,
    scoring_type: ScoringType = ScoringType.GROSS,
) -> list[dict]:
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select
                    r.player_id,
                    sum(r.points) as total_points,
                    count(distinct r.competition_id) as competitions_played
                from competition_results r
                join competitions c on c.id = r.competition_id
                where c.tour_id = %s
                  and c.is_results_final
                  and r.scoring_type = %s
                  and r.player_id is not null
                group by r.player_id
                order by total_points desc, competitions_played desc;
                """,
                (tour_id, scoring_type.value),
            )
            rows = cur.fetchall()
            return [
                {
                    "player_id": row[0],
                    "total_points": int(row[1]),
                    "competitions_played": int(row[2]),
                }
                for row in rows
            ]


def fetch_competitions_due(database_url: str, now: dt.datetime) -> list[dict]:
    """Scheduled competitions dated before today and open ones whose window has closed."""
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select id, name, date, start_mode, is_results_final
                from competitions
                where (start_mode = 'scheduled' and date < %s)
                   or (start_mode = 'open' and open_end is not null and open_end < %s)
                order by date, id;
                """,
                (now.date(), now),
            )
            rows = cur.fetchall()
            return [
                {
                    "id": row[0],
                    "name": row[1],
                    "date": row[2],
                    "start_mode": row[3],
                    "is_results_final": bool(row[4]),
                }
                for row in rows
            ]


def _load_tee(cur, tee_id: Optional[int]) -> Optional[Tee]:
    if tee_id is None:
        return None
    cur.execute(
        "select id, name, course_rating, slope_rating from tees where id = %s;",
        (tee_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    cur.execute(
        """
        select gender, course_rating, slope_rating
        from tee_ratings
        where tee_id = %s
        order by id;
        """,
        (tee_id,),
    )
    ratings = [
        TeeRating(gender=rating[0], course_rating=float(rating[1]), slope_rating=rating[2])
        for rating in cur.fetchall()
    ]
    return Tee(
        id=row[0],
        name=row[1],
        course_rating=float(row[2]) if row[2] is not None else None,
        slope_rating=row[3],
        ratings=ratings,
    )


def load_competition(database_url: str, competition_id: int) -> Optional[Competition]:
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select
                    c.id,
                    c.name,
                    c.date,
                    c.tee_id,
                    c.tour_id,
                    c.points_multiplier,
                    c.start_mode,
                    c.open_start,
                    c.open_end,
                    c.scoring_mode,
                    c.is_results_final,
                    c.results_finalized_at,
                    co.id,
                    co.name,
                    co.pars,
                    co.stroke_index,
                    pt.id,
                    pt.name,
                    pt.points
                from competitions c
                left join courses co on co.id = c.course_id
                left join point_templates pt on pt.id = c.point_template_id
                where c.id = %s;
                """,
                (competition_id,),
            )
            row = cur.fetchone()
            if row is None:
                return None

            course = None
            if row[12] is not None:
                course = Course(
                    id=row[12],
                    name=row[13],
                    pars=_json_value(row[14]),
                    stroke_index=_json_value(row[15]),
                )
            template = None
            if row[16] is not None:
                template = PointTemplate(id=row[16], name=row[17], points=_json_value(row[18]))

            tee = _load_tee(cur, row[3])
            cur.execute(
                """
                select category_id, tee_id
                from competition_category_tees
                where competition_id = %s;
                """,
                (competition_id,),
            )
            category_tees = {}
            for category_id, tee_id in cur.fetchall():
                category_tee = _load_tee(cur, tee_id)
                if category_tee is not None:
                    category_tees[category_id] = category_tee

            return Competition(
                id=row[0],
                name=row[1],
                date=row[2],
                course=course,
                tee=tee,
                category_tees=category_tees,
                tour_id=row[4],
                points_multiplier=float(row[5]) if row[5] is not None else None,
                start_mode=row[6],
                open_start=row[7],
                open_end=row[8],
                scoring_mode=row[9],
                point_template=template,
                is_results_final=bool(row[10]),
                results_finalized_at=row[11],
            )


def load_participants(database_url: str, competition_id: int) -> list[Participant]:
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select
                    id,
                    player_id,
                    name,
                    team_id,
                    team_name,
                    start_time,
                    score,
                    manual_score_out,
                    manual_score_in,
                    manual_score_total,
                    handicap_index,
                    is_locked,
                    is_dq,
                    category_id
                from participants
                where competition_id = %s
                order by id;
                """,
                (competition_id,),
            )
            rows = cur.fetchall()
            return [
                Participant(
                    id=row[0],
                    player_id=row[1],
                    name=row[2] or "",
                    team_id=row[3],
                    team_name=row[4],
                    start_time=row[5],
                    score=_json_value(row[6]) or [],
                    manual_score_out=row[7],
                    manual_score_in=row[8],
                    manual_score_total=row[9],
                    handicap_index=float(row[10]) if row[10] is not None else None,
                    is_locked=bool(row[11]),
                    is_dq=bool(row[12]),
                    category_id=row[13],
                )
                for row in rows
            ]


def fetch_enrollments(database_url: str, tour_id: int) -> list[Enrollment]:
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select player_id, player_name, category_id, handicap_index, status
                from tour_enrollments
                where tour_id = %s
                order by player_name;
                """,
                (tour_id,),
            )
            rows = cur.fetchall()
            return [
                Enrollment(
                    player_id=row[0],
                    player_name=row[1] or "",
                    category_id=row[2],
                    handicap_index=float(row[3]) if row[3] is not None else None,
                    status=row[4],
                )
                for row in rows
            ]


def count_active_enrollments(database_url: str, tour_id: int) -> int:
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                select count(*)
                from tour_enrollments
                where tour_id = %s and status = 'active';
                """,
                (tour_id,),
            )
            row = cur.fetchone()
            return int(row[0]) if row else 0
