"""Pytest fixtures for HR payroll tests."""

from __future__ import annotations

import itertools
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hr_payroll.api.app import create_app
from hr_payroll.api.dependencies import get_session_factory
from hr_payroll.database import enable_sqlite_foreign_keys, make_session_factory
from hr_payroll.models import Base, Employee, Employment, Grant, GrantItem
from hr_payroll.services.allocation_service import AllocationRequest, AllocationService
from hr_payroll.services.employment_service import EmploymentService
from hr_payroll.services.grant_service import GrantService
from hr_payroll.services.permission_service import PermissionService

# In-memory SQLite shared by every session of a test through StaticPool
TEST_DATABASE_URL = "sqlite+aiosqlite://"

ACTOR = "tester@example.org"


@pytest_asyncio.fixture
async def engine():
    """Fresh database per test."""
    engine = enable_sqlite_foreign_keys(
        create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Reference data
# ============================================================================


@pytest.fixture
def make_employee(session: AsyncSession) -> Callable[..., Awaitable[Employee]]:
    counter = itertools.count(1)

    async def _make(**overrides: Any) -> Employee:
        n = next(counter)
        values: dict[str, Any] = {
            "staff_id": f"EMP{n:03d}",
            "organization": "SMRU",
            "first_name_en": f"Staff{n}",
            "last_name_en": "Tester",
            "status": "Local ID",
        }
        values.update(overrides)
        employee = Employee(**values, created_by=ACTOR)
        session.add(employee)
        await session.flush()
        return employee

    return _make


@pytest.fixture
def make_employment(session: AsyncSession) -> Callable[..., Awaitable[Employment]]:
    async def _make(employee: Employee, **overrides: Any) -> Employment:
        values: dict[str, Any] = {
            "employee_id": employee.id,
            "start_date": date(2025, 1, 1),
            "pass_probation_salary": Decimal("30000.00"),
        }
        values.update(overrides)
        return await EmploymentService(session).create_employment(values, ACTOR)

    return _make


@pytest_asyncio.fixture
async def employee(make_employee) -> Employee:
    return await make_employee()


@pytest_asyncio.fixture
async def employment(make_employment, employee) -> Employment:
    return await make_employment(employee)


@pytest_asyncio.fixture
async def grant(session: AsyncSession) -> Grant:
    return await GrantService(session).create_grant(
        {"code": "GR-001", "name": "Malaria Research", "organization": "SMRU"}, ACTOR
    )


@pytest_asyncio.fixture
async def grant_item(session: AsyncSession, grant: Grant) -> GrantItem:
    return await GrantService(session).create_item(
        grant,
        {
            "grant_position": "Research Assistant",
            "grant_salary": Decimal("30000.00"),
            "grant_position_number": 2,
            "budget_line_code": "BL-01",
        },
        ACTOR,
    )


@pytest_asyncio.fixture
async def hub_grant(session: AsyncSession) -> Grant:
    return await GrantService(session).create_grant(
        {"code": "S0031", "name": "SMRU Other Fund", "organization": "SMRU", "is_hub": True},
        ACTOR,
    )


@pytest_asyncio.fixture
async def funded_employment(
    session: AsyncSession, employment: Employment, grant_item: GrantItem, hub_grant: Grant
) -> Employment:
    """Employment split 0.60 on a grant item and 0.40 on the hub grant, committed."""
    await AllocationService(session).allocate(
        employment,
        [
            AllocationRequest(fte=Decimal("0.60"), grant_item_id=grant_item.id),
            AllocationRequest(
                fte=Decimal("0.40"),
                allocation_type="org_funded",
                org_funded_grant_id=hub_grant.id,
            ),
        ],
        ACTOR,
    )
    await session.commit()
    # Later queries must load funding relationships from the database
    session.expunge_all()
    return employment


# ============================================================================
# API
# ============================================================================


@pytest.fixture
def app(session_factory):
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def seeded_permissions(session: AsyncSession) -> None:
    await PermissionService(session).seed_defaults()
    await session.commit()


@pytest.fixture
def make_user(session: AsyncSession, seeded_permissions) -> Callable[..., Awaitable[dict[str, str]]]:
    """Create a committed user and return the headers that identify it."""
    counter = itertools.count(1)

    async def _make(*roles: str) -> dict[str, str]:
        n = next(counter)
        user = await PermissionService(session).create_user(
            f"User {n}", f"user{n}@example.org", list(roles)
        )
        await session.commit()
        return {"X-User-ID": str(user.id)}

    return _make


@pytest_asyncio.fixture
async def admin_headers(make_user) -> dict[str, str]:
    return await make_user("admin")
