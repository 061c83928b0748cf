"""Tests for the one-shot admin scripts."""

import pytest
from sqlalchemy import select

from securemind.cli.bootstrap import ensure_admin
from securemind.cli.seed_employees import upsert_employees
from securemind.db.models import Employee, IdentityAccount, UserProfile


class TestSeedEmployees:
    @pytest.mark.asyncio
    async def test_skips_invalid_entries(self, db_session):
        entries = [
            {"employeeId": "E1", "role": "Security", "fullName": "Sam Sec"},
            {"employeeId": "", "role": "admin"},
            {"employeeId": "E2", "role": "trainer"},
            {"employeeId": "E3", "role": "wizard"},
            {"employeeId": "E4", "role": "design", "isActive": False},
        ]

        upserted, skipped = await upsert_employees(db_session, entries)

        assert (upserted, skipped) == (2, 3)
        e1 = await db_session.get(Employee, "E1")
        assert e1.role == "security"
        assert e1.is_active is True
        assert (await db_session.get(Employee, "E4")).is_active is False
        assert await db_session.get(Employee, "E2") is None

    @pytest.mark.asyncio
    async def test_update_keeps_linkage(self, db_session, make_employee):
        await make_employee("E1", "accounting", linked_uid="U1")

        await upsert_employees(db_session, [{"employeeId": "E1", "role": "marketing"}])

        employee = await db_session.get(Employee, "E1")
        assert employee.role == "marketing"
        assert employee.linked_uid == "U1"


class TestEnsureAdmin:
    @pytest.mark.asyncio
    async def test_creates_admin(self, db_session):
        created = await ensure_admin(db_session, "root@example.com", "bootstrap-pass")
        await db_session.commit()

        assert created is True
        account = await db_session.scalar(
            select(IdentityAccount).where(IdentityAccount.email == "root@example.com")
        )
        assert account.custom_claims == {"role": "admin"}
        profile = await db_session.get(UserProfile, account.uid)
        assert profile.role == "admin"

    @pytest.mark.asyncio
    async def test_repairs_existing_account(self, db_session, make_account):
        await make_account("u1", email="root@example.com", role="user")

        created = await ensure_admin(db_session, "root@example.com", "unused")
        await db_session.commit()

        assert created is False
        account = await db_session.get(IdentityAccount, "u1")
        profile = await db_session.get(UserProfile, "u1")
        assert account.custom_claims == {"role": "admin"}
        assert profile.role == "admin"
