"""Pytest fixtures for compensation engine tests."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from compensation_engine.api.app import create_app
from compensation_engine.audit import Actor
from compensation_engine.config import Settings
from compensation_engine.database import Database
from compensation_engine.models import BasicSalary, Department, Employee, Grade


@dataclass
class Org:
    """Reference data shared by most tests."""

    engineering: Department
    sales: Department
    junior: Grade
    senior: Grade


@dataclass
class Staff:
    """Seeded employees.

    alice: Engineering, junior grade, basic 5000.00
    bob: Sales, senior grade, basic 4000.00
    carol: Engineering, junior grade, Inactive, basic 3000.00
    dave: Sales, senior grade, no basic salary
    """

    alice: Employee
    bob: Employee
    carol: Employee
    dave: Employee


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'compensation.db'}",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        sql_echo=False,
        audit_enabled=True,
    )


@pytest_asyncio.fixture
async def database(test_settings) -> AsyncGenerator[Database, None]:
    """Create a fresh database with all tables for each test."""
    db = Database.from_settings(test_settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with database.session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def actor() -> Actor:
    return Actor(id="hr-7", role="HR")


@pytest_asyncio.fixture
async def org(session) -> Org:
    """Departments and grades."""
    engineering = Department(name="Engineering")
    sales = Department(name="Sales")
    junior = Grade(name="G1", level=1)
    senior = Grade(name="G2", level=2)
    session.add_all([engineering, sales, junior, senior])
    await session.commit()
    return Org(engineering=engineering, sales=sales, junior=junior, senior=senior)


@pytest_asyncio.fixture
async def staff(session, org) -> Staff:
    """Employees with basic salaries."""
    alice = Employee(
        full_name="Alice Martin",
        email="alice@example.com",
        department_id=org.engineering.id,
        grade_id=org.junior.id,
        status="Active",
    )
    bob = Employee(
        full_name="Bob Osei",
        email="bob@example.com",
        department_id=org.sales.id,
        grade_id=org.senior.id,
        status="Active",
    )
    carol = Employee(
        full_name="Carol Ng",
        email="carol@example.com",
        department_id=org.engineering.id,
        grade_id=org.junior.id,
        status="Inactive",
    )
    dave = Employee(
        full_name="Dave Kim",
        email="dave@example.com",
        department_id=org.sales.id,
        grade_id=org.senior.id,
        status="Active",
    )
    session.add_all([alice, bob, carol, dave])
    await session.flush()

    session.add_all(
        [
            BasicSalary(employee_id=alice.id, basic_salary=Decimal("5000.00")),
            BasicSalary(employee_id=bob.id, basic_salary=Decimal("4000.00")),
            BasicSalary(employee_id=carol.id, basic_salary=Decimal("3000.00")),
        ]
    )
    await session.commit()
    return Staff(alice=alice, bob=bob, carol=carol, dave=dave)


@pytest_asyncio.fixture
async def client(database, test_settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app wired to the test database."""
    app = create_app(settings=test_settings, database=database)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def hr_headers() -> dict[str, str]:
    return {"X-Actor-ID": "hr-7", "X-Actor-Role": "HR"}
