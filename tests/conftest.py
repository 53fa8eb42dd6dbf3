"""Pytest fixtures for payroll batch tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator, Awaitable, Callable
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_batch.database import create_schema, make_session_factory
from payroll_batch.models import Employee, Loan, TimeEntry, TimesheetPeriod

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Two consecutive biweekly periods; 2024-01-01 is a Monday
PERIOD_1_START = date(2024, 1, 1)
PERIOD_1_END = date(2024, 1, 14)
PAY_DATE_1 = date(2024, 1, 19)
PERIOD_2_START = date(2024, 1, 15)
PERIOD_2_END = date(2024, 1, 28)
PAY_DATE_2 = date(2024, 2, 2)


def weekdays(start: date, end: date) -> list[date]:
    """Monday-Friday dates in [start, end]."""
    days = []
    current = start
    while current <= end:
        if current.weekday() < 5:
            days.append(current)
        current += timedelta(days=1)
    return days


def make_employee(**overrides: Any) -> Employee:
    """Build an Employee with every column set."""
    values: dict[str, Any] = {
        "employee_id": uuid4(),
        "employee_code": None,
        "first_name": "Test",
        "last_name": "Employee",
        "status": "active",
        "pay_classification": "hourly",
        "hourly_rate": Decimal("20.00"),
        "annual_salary": None,
        "standard_weekly_hours": Decimal("40"),
        "pay_frequency": "biweekly",
        "birth_date": date(1990, 6, 15),
        "social_exempt": False,
        "health_exempt": False,
    }
    values.update(overrides)
    return Employee(**values)


def make_entry(
    period_id: UUID | None,
    work_date: date,
    *,
    code: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    duration: str | None = None,
    time_in: time | None = None,
    time_out: time | None = None,
) -> TimeEntry:
    return TimeEntry(
        time_entry_id=uuid4(),
        period_id=period_id,
        employee_code=code,
        first_name=first_name,
        last_name=last_name,
        work_date=work_date,
        time_in=time_in,
        time_out=time_out,
        duration=duration,
    )


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
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


@pytest.fixture
def add_all(session_factory) -> Callable[..., Awaitable[None]]:
    """Persist objects in their own committed transaction."""

    async def _add_all(*objects: Any) -> None:
        async with session_factory() as s:
            s.add_all(objects)
            await s.commit()

    return _add_all


@dataclass
class SeededPayroll:
    """Identifiers of the standard payroll fixture."""

    period_1_id: UUID
    period_2_id: UUID
    alice: Employee
    bob: Employee
    carol: Employee
    bob_loan_id: UUID


@pytest_asyncio.fixture
async def seeded(add_all) -> SeededPayroll:
    """Two periods, three employees (one per pay classification) and a loan.

    Period 1:
    - Alice (salaried, 52,000/yr): 10 x 8h = 80h
    - Bob (hourly, 20/hr): 9 x 10h = 90h
    - Carol (shift): weekday day 8h, Saturday day 8h, weekday night 8h
    Period 2:
    - Alice: 10 x 8h = 80h
    - Bob: 10 x 8h = 80h
    Bob repays an internal loan of 300 at 200 per period.
    """
    period_1 = TimesheetPeriod(
        period_id=uuid4(),
        title="January A",
        start_date=PERIOD_1_START,
        end_date=PERIOD_1_END,
    )
    period_2 = TimesheetPeriod(
        period_id=uuid4(),
        title="January B",
        start_date=PERIOD_2_START,
        end_date=PERIOD_2_END,
    )

    alice = make_employee(
        employee_code="E001",
        first_name="Alice",
        last_name="Anders",
        pay_classification="salaried",
        hourly_rate=None,
        annual_salary=Decimal("52000.00"),
        birth_date=date(1985, 5, 1),
    )
    bob = make_employee(
        employee_code="E002",
        first_name="Bob",
        last_name="Brown",
        pay_classification="hourly",
        hourly_rate=Decimal("20.00"),
    )
    carol = make_employee(
        employee_code="E003",
        first_name="Carol",
        last_name="Chen",
        pay_classification="shift_differentiated",
        hourly_rate=None,
        birth_date=date(1980, 3, 10),
    )

    entries = [
        make_entry(period_1.period_id, d, code="E001", first_name="Alice", last_name="Anders", duration="8:00")
        for d in weekdays(PERIOD_1_START, PERIOD_1_END)
    ]
    entries += [
        make_entry(period_1.period_id, d, code="E002", first_name="Bob", last_name="Brown", duration="10:00")
        for d in weekdays(PERIOD_1_START, PERIOD_1_END)[:9]
    ]
    entries += [
        make_entry(period_1.period_id, date(2024, 1, 2), code="E003", time_in=time(8, 0), time_out=time(16, 0)),
        make_entry(period_1.period_id, date(2024, 1, 6), code="E003", time_in=time(9, 0), time_out=time(17, 0)),
        make_entry(period_1.period_id, date(2024, 1, 9), code="E003", time_in=time(20, 0), time_out=time(4, 0)),
    ]
    entries += [
        make_entry(period_2.period_id, d, code="E001", duration="8:00")
        for d in weekdays(PERIOD_2_START, PERIOD_2_END)
    ]
    entries += [
        make_entry(period_2.period_id, d, code="E002", duration="8")
        for d in weekdays(PERIOD_2_START, PERIOD_2_END)
    ]

    loan = Loan(
        loan_id=uuid4(),
        employee_id=bob.employee_id,
        principal=Decimal("300.00"),
        interest_rate=Decimal("0"),
        total_amount=Decimal("300.00"),
        installment_amount=Decimal("200.00"),
        remaining_balance=Decimal("300.00"),
        start_date=date(2023, 12, 1),
        status="active",
        loan_class="internal",
        third_party_name=None,
    )

    await add_all(period_1, period_2, alice, bob, carol, *entries, loan)
    return SeededPayroll(
        period_1_id=period_1.period_id,
        period_2_id=period_2.period_id,
        alice=alice,
        bob=bob,
        carol=carol,
        bob_loan_id=loan.loan_id,
    )
