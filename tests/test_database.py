"""Tests for engine setup."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from hr_payroll.database import create_schema, get_engine, make_session_factory
from hr_payroll.models import Grant, GrantItem

pytestmark = pytest.mark.asyncio


class TestSqliteForeignKeys:
    """SQLite engines enforce the declared foreign keys."""

    async def test_pragma_is_on_for_configured_engines(self, tmp_path):
        engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'hr.db'}")
        try:
            async with engine.connect() as conn:
                assert await conn.scalar(text("PRAGMA foreign_keys")) == 1
        finally:
            await engine.dispose()

    async def test_dangling_reference_is_rejected(self, tmp_path):
        engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'hr.db'}")
        await create_schema(engine)
        try:
            async with make_session_factory(engine)() as session:
                grant = Grant(code="GR-9", name="Orphaned", organization="SMRU")
                session.add(grant)
                await session.flush()
                session.add(GrantItem(grant_id=grant.id, grant_position="Nurse"))
                await session.flush()

                with pytest.raises(IntegrityError):
                    await session.execute(
                        text("UPDATE grant_items SET grant_id = :missing"),
                        {"missing": "0" * 32},
                    )
        finally:
            await engine.dispose()

    async def test_deleting_a_grant_removes_its_items(self, session, grant, grant_item):
        await session.execute(text("DELETE FROM grants"))
        assert await session.scalar(text("SELECT count(*) FROM grant_items")) == 0
