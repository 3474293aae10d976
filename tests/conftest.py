"""Pytest fixtures for HRMS tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hrms.api.app import create_app
from hrms.config import Settings
from hrms.database import create_engine, create_schema, create_session_factory
from hrms.models import Employee, PayInfo, Timesheet, TimesheetEntry, utcnow
from hrms.security import hash_password

PASSWORD = "password123"

# A Monday
WEEK_START = date(2024, 1, 8)


@dataclass
class Org:
    """Ids of the seeded employees.

    admin manages dave; manager manages alice, bob and carol.
    """

    admin: int
    manager: int
    alice: int  # hourly 31.25
    bob: int  # salary 120000
    carol: int  # no pay info
    dave: int  # hourly 20.00, reports to admin
    eve: int  # inactive


@pytest.fixture
def week_start() -> date:
    return WEEK_START


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'hrms.db'}",
        jwt_secret="test-secret-" + "x" * 64,
        token_purge_interval_seconds=0,
        bcrypt_rounds=4,
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with all tables."""
    engine = create_engine(settings)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


def _employee(
    username: str,
    role: str,
    number: int,
    is_active: bool = True,
) -> Employee:
    return Employee(
        employee_id=f"EMP{number:03d}",
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(PASSWORD, rounds=4),
        first_name=username.capitalize(),
        last_name="Tester",
        hire_date=date(2023, 1, 2),
        role=role,
        is_active=is_active,
    )


@pytest_asyncio.fixture
async def org(session_factory: async_sessionmaker[AsyncSession]) -> Org:
    """Seed a small organisation with pay info."""
    async with session_factory() as s:
        admin = _employee("admin", "ADMIN", 1)
        manager = _employee("manager", "MANAGER", 2)
        s.add_all([admin, manager])
        await s.flush()
        manager.assign_manager(admin)

        alice = _employee("alice", "EMPLOYEE", 3)
        bob = _employee("bob", "EMPLOYEE", 4)
        carol = _employee("carol", "EMPLOYEE", 5)
        dave = _employee("dave", "EMPLOYEE", 6)
        eve = _employee("eve", "EMPLOYEE", 7, is_active=False)
        s.add_all([alice, bob, carol, dave, eve])
        await s.flush()
        for report in (alice, bob, carol):
            report.assign_manager(manager)
        dave.assign_manager(admin)
        eve.assign_manager(manager)

        s.add_all([
            PayInfo(employee_id=admin.id, hourly_rate=Decimal("50.00")),
            PayInfo(employee_id=manager.id, hourly_rate=Decimal("45.00")),
            PayInfo(employee_id=alice.id, hourly_rate=Decimal("31.25")),
            PayInfo(employee_id=bob.id, salary=Decimal("120000.00")),
            PayInfo(employee_id=dave.id, hourly_rate=Decimal("20.00")),
        ])
        await s.commit()

        return Org(
            admin=admin.id,
            manager=manager.id,
            alice=alice.id,
            bob=bob.id,
            carol=carol.id,
            dave=dave.id,
            eve=eve.id,
        )


TimesheetFactory = Callable[..., Awaitable[int]]


@pytest.fixture
def make_timesheet(session_factory: async_sessionmaker[AsyncSession]) -> TimesheetFactory:
    """Insert a timesheet with ``hours`` spread over consecutive weekdays."""

    async def factory(
        employee_id: int,
        hours: list[str],
        status: str = "APPROVED",
        week_start: date = WEEK_START,
    ) -> int:
        async with session_factory() as s:
            timesheet = Timesheet(
                employee_id=employee_id,
                week_start_date=week_start,
                week_end_date=week_start + timedelta(days=6),
                total_hours=sum((Decimal(h) for h in hours), Decimal("0.00")),
                status=status,
                submitted_at=utcnow() if status != "DRAFT" else None,
            )
            timesheet.entries = [
                TimesheetEntry(
                    work_date=week_start + timedelta(days=i),
                    hours_worked=Decimal(h),
                )
                for i, h in enumerate(hours)
            ]
            s.add(timesheet)
            await s.commit()
            return timesheet.id

    return factory


@pytest_asyncio.fixture
async def client(settings: Settings, engine: AsyncEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app using the test database."""
    app = create_app(settings)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.engine.dispose()


@pytest.fixture
def login(client: AsyncClient) -> Callable[[str], Awaitable[dict]]:
    """Log in and return the auth response body."""

    async def do_login(username: str, password: str = PASSWORD) -> dict:
        response = await client.post(
            "/api/auth/login", json={"username": username, "password": password}
        )
        assert response.status_code == 200, response.text
        return response.json()

    return do_login
