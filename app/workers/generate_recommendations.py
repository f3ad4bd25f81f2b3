"""Recompute every user's recipe recommendations once and exit.

Exit status is 0 whenever the user population could be enumerated, even if
some users failed (those are reported in the log summary). It is non-zero
only when the run cannot start.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from app.core.config import settings
from app.core.errors import StoreUnavailable
from app.core.logging import configure_logging
from app.db.session import SessionLocal, engine
from app.services.recommendation_store import RecommendationStore, SqlRecommendationStore
from app.services.recommendations import BatchOptions, recompute_all_recommendations
from app.services.scoring import ScoringConfig

logger = logging.getLogger("app.workers.generate_recommendations")


def _weights(raw: str) -> dict[str, int]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise argparse.ArgumentTypeError(f"weights must be a JSON object: {exc}") from exc
    if not isinstance(data, dict):
        raise argparse.ArgumentTypeError("weights must be a JSON object")
    out: dict[str, int] = {}
    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise argparse.ArgumentTypeError(f"weight for {key!r} must be an integer")
        out[str(key).strip().lower()] = value
    return out


def _non_negative(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return value


def _positive(raw: str) -> int:
    value = int(raw)
    if value < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Recompute recipe recommendations for all users.")
    parser.add_argument("--top-n", type=_non_negative, default=settings.reco_top_n)
    parser.add_argument("--weights", type=_weights, default=None, help='JSON object, e.g. {"save": 3}')
    parser.add_argument("--positive-only", action=argparse.BooleanOptionalAction, default=settings.reco_positive_only)
    parser.add_argument("--concurrency", type=_positive, default=settings.reco_max_concurrency)
    parser.add_argument("--timeout", type=float, default=settings.reco_user_timeout_seconds)
    parser.add_argument("--max-attempts", type=_positive, default=settings.reco_max_attempts)
    parser.add_argument("--user", dest="users", action="append", default=None, help="Only recompute this user id.")
    return parser


async def run(args: argparse.Namespace, store: RecommendationStore | None = None) -> int:
    scoring = ScoringConfig(
        weights=args.weights if args.weights is not None else settings.reco_score_weights,
        top_n=args.top_n,
        positive_only=args.positive_only,
    )
    options = BatchOptions(
        max_concurrency=args.concurrency,
        user_timeout_seconds=args.timeout if args.timeout and args.timeout > 0 else None,
        max_attempts=args.max_attempts,
        retry_backoff_seconds=settings.reco_retry_backoff_seconds,
    )
    owns_engine = store is None
    if store is None:
        store = SqlRecommendationStore(SessionLocal, page_size=settings.reco_page_size)

    try:
        report = await recompute_all_recommendations(store, scoring, options, user_ids=args.users)
    except StoreUnavailable:
        logger.exception("Cannot enumerate users, aborting recommendation run")
        return 1
    finally:
        if owns_engine:
            await engine.dispose()

    for user_id, reason in sorted(report.failures.items()):
        logger.warning("Failed user %s: %s", user_id, reason)
    logger.info("Recommendation run complete: %s", report.summary())
    return 0


def main(argv: list[str] | None = None, store: RecommendationStore | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args, store))


if __name__ == "__main__":
    sys.exit(main())
