"""
Seed the employee directory from a JSON file.

Run via: python -m securemind.cli.seed_employees employees.json

The file holds a list of objects with employeeId, role and optionally
fullName, email, department, team and isActive. Entries without an id or
with a role outside the seedable set are skipped. Existing records are
updated in place; their account linkage is left alone.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from securemind.db.models import Employee
from securemind.roles import Role

# Use stdlib logging; structlog isn't configured for one-shot scripts
logger = logging.getLogger("securemind.seed_employees")
logging.basicConfig(level=logging.INFO, format="%(message)s")

# Trainer and plain user accounts are never provisioned from the directory
SEEDABLE_ROLES = frozenset(
    {Role.ADMIN, Role.SECURITY, Role.ACCOUNTING, Role.MARKETING, Role.DEVELOPER, Role.DESIGN}
)


async def upsert_employees(session: AsyncSession, entries: list[dict[str, Any]]) -> tuple[int, int]:
    """Upsert valid entries. Returns (upserted, skipped)."""
    upserted = skipped = 0
    for entry in entries:
        employee_id = str(entry.get("employeeId") or "").strip()
        role = str(entry.get("role") or "").strip().lower()
        if not employee_id or role not in SEEDABLE_ROLES:
            logger.warning("Skipping invalid entry: %s", entry)
            skipped += 1
            continue

        employee = await session.get(Employee, employee_id)
        if employee is None:
            employee = Employee(employee_id=employee_id)
            session.add(employee)

        employee.full_name = entry.get("fullName") or None
        employee.email = entry.get("email") or None
        employee.role = role
        employee.department = entry.get("department") or None
        employee.team = entry.get("team") or None
        employee.is_active = True if entry.get("isActive") is None else bool(entry["isActive"])
        logger.info("Upserted: %s -> %s", employee_id, role)
        upserted += 1

    await session.commit()
    return upserted, skipped


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Upsert employee records from a JSON file.")
    parser.add_argument("path", type=Path, help="JSON file containing a list of employees")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    database_url = os.environ.get("DATABASE_URL", "").strip()
    if not database_url:
        logger.error("DATABASE_URL is required")
        sys.exit(1)

    entries = json.loads(args.path.read_text(encoding="utf-8"))
    if not isinstance(entries, list):
        logger.error("%s must contain a JSON list", args.path)
        sys.exit(1)

    engine = create_async_engine(database_url, echo=False)
    async with AsyncSession(engine, expire_on_commit=False) as session:
        upserted, skipped = await upsert_employees(session, entries)
    await engine.dispose()

    logger.info("Done. Upserted %d, skipped %d", upserted, skipped)


if __name__ == "__main__":
    asyncio.run(main())
