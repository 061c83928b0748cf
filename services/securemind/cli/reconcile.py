"""
Repair drift between role claims and user profiles.

Run via: python -m securemind.cli.reconcile [--dry-run]

Uses the application settings (SECUREMIND_DATABASE_URL) and structlog,
since it runs the same service code as the API server.
"""

import argparse
import asyncio

from securemind.config import settings
from securemind.db.session import async_session_factory, close_db
from securemind.logging_config import configure_logging, get_logger
from securemind.redis.client import close_redis
from securemind.services.claim_propagator import reconcile_roles

logger = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile role claims with user profiles.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report drift without repairing it",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)

    try:
        async with async_session_factory() as db:
            drifts = await reconcile_roles(db, dry_run=args.dry_run)
    finally:
        await close_redis()
        await close_db()

    for drift in drifts:
        logger.info(
            "Role drift",
            uid=drift.uid,
            claim_role=drift.claim_role,
            profile_role=drift.profile_role,
            repaired_to=drift.repaired_to,
        )
    logger.info("Reconcile complete", drifted=len(drifts), dry_run=args.dry_run)
    return len(drifts)


if __name__ == "__main__":
    asyncio.run(main())
