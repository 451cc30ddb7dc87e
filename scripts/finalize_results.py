#!/usr/bin/env python3
"""Finalize results for competitions that have finished but were never closed out."""

from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys

from tourscore.db import (
    PostgresResultStore,
    count_active_enrollments,
    ensure_schema,
    fetch_competitions_due,
    fetch_enrollments,
    load_competition,
    load_participants,
)
from tourscore.exceptions import ScoringError
from tourscore.results import ResultFinalizer
from tourscore.settings import load_settings

logger = logging.getLogger("finalize_results")


def _finalize_one(database_url: str, competition_id: int, dry_run: bool) -> int:
    competition = load_competition(database_url, competition_id)
    if competition is None:
        raise ScoringError(f"Competition {competition_id} not found")
    participants = load_participants(database_url, competition_id)

    active_enrollments = 0
    handicaps: dict[int, float] = {}
    if competition.tour_id is not None:
        active_enrollments = count_active_enrollments(database_url, competition.tour_id)
        handicaps = {
            enrollment.player_id: enrollment.handicap_index
            for enrollment in fetch_enrollments(database_url, competition.tour_id)
            if enrollment.status == "active" and enrollment.handicap_index is not None
        }

    finalizer = ResultFinalizer(PostgresResultStore(database_url))
    options = {"active_enrollments": active_enrollments, "enrollment_handicaps": handicaps}
    if dry_run:
        rows = finalizer.compute_results(competition, participants, **options)
    else:
        rows = finalizer.finalize(competition, participants, **options)
    return len(rows)


def main(argv: list[str] | None = None) -> int:
    settings = load_settings()
    parser = argparse.ArgumentParser(
        description="Store final positions and points for competitions that have ended."
    )
    parser.add_argument(
        "--competition-id",
        type=int,
        action="append",
        dest="competition_ids",
        help="Finalize only this competition (repeatable).",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Recalculate competitions that are already final.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute results without writing them.",
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="PostgreSQL DSN (defaults to DATABASE_URL).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.dry_run:
        ensure_schema(args.database_url)

    now = dt.datetime.now(dt.timezone.utc)
    if args.competition_ids:
        targets = [{"id": competition_id, "is_results_final": False} for competition_id in args.competition_ids]
    else:
        targets = fetch_competitions_due(args.database_url, now)

    finalized = skipped = failed = 0
    for target in targets:
        competition_id = target["id"]
        if target["is_results_final"] and not args.force:
            logger.info("Competition %s already final, skipping", competition_id)
            skipped += 1
            continue
        try:
            row_count = _finalize_one(args.database_url, competition_id, args.dry_run)
        except ScoringError as exc:
            logger.warning("Competition %s not finalized: %s", competition_id, exc)
            failed += 1
            continue
        logger.info(
            "Competition %s: %d result rows%s",
            competition_id,
            row_count,
            " (dry run)" if args.dry_run else "",
        )
        finalized += 1

    logger.info(
        "Done: %d finalized, %d skipped, %d failed out of %d",
        finalized,
        skipped,
        failed,
        len(targets),
    )
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
