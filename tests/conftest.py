"""
Shared fixtures: a throwaway SQLite database, an ASGI client bound to it,
bearer tokens and small factories for the planning domain.
"""
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="workforce-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-workforce-planning")
os.environ["AUTO_CREATE_TABLES"] = "false"

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app import models  # noqa: F401
from app.database import Base, get_db
from app.main import app
from app.models import (
    ApprovalAssignee,
    ApprovalChainLevel,
    BudgetAllocation,
    Department,
    JobLevel,
    JobRole,
    PlanningCycle,
    Role,
    User,
    UserRole,
    WorkforcePlan,
    WorkforcePlanEntry,
    WorkforcePlanScenario,
)


@pytest.fixture
async def engine():
    engine = create_async_engine(os.environ["DATABASE_URL"], poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class Factory:
    """Creates committed rows so API sessions can see them."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._seq = 0
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def role(self, code: str) -> Role:
        role = await self.db.scalar(select(Role).where(Role.code == code))
        if role is None:
            role = Role(name=code.replace("_", " ").title(), code=code)
            self.db.add(role)
            await self.db.commit()
        return role

    async def user(
        self,
        first_name: str = "User",
        roles: Sequence[str] = (),
        is_active: bool = True,
    ) -> User:
        n = self._next()
        # Strictly increasing creation times keep role lookups predictable
        self._clock += timedelta(minutes=1)
        user = User(
            email=f"{first_name.lower()}{n}@example.com",
            first_name=first_name,
            last_name=f"Tester{n}",
            is_active=is_active,
            created_at=self._clock,
        )
        self.db.add(user)
        await self.db.flush()
        for code in roles:
            role = await self.role(code)
            self.db.add(UserRole(user_id=user.id, role_id=role.id))
        await self.db.commit()
        return user

    async def department(self, name: str = "Engineering", head: Optional[User] = None) -> Department:
        n = self._next()
        department = Department(code=f"D{n:03d}", name=name, head_id=head.id if head else None)
        self.db.add(department)
        await self.db.commit()
        return department

    async def job_role(self, name: str = "Software Engineer") -> JobRole:
        n = self._next()
        job_role = JobRole(code=f"JR{n:03d}", name=name, job_family="Engineering")
        self.db.add(job_role)
        await self.db.commit()
        return job_role

    async def job_level(self, level_code: Optional[str] = None, rank: int = 3) -> JobLevel:
        n = self._next()
        job_level = JobLevel(level_code=level_code or f"L{n}", name=f"Level {n}", rank=rank)
        self.db.add(job_level)
        await self.db.commit()
        return job_level

    async def cycle(
        self,
        chain: Sequence[Sequence[Dict]] = (),
        auto_approve_if_missing: bool = False,
        status: str = "ACTIVE",
    ) -> PlanningCycle:
        """
        chain is one list of assignees per level, e.g.
        [[{"role": "DEPARTMENT_HEAD"}], [{"user": some_user}]]
        """
        cycle = PlanningCycle(
            name=f"FY25 Plan {self._next()}",
            type="ANNUAL",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 12, 31),
            status=status,
            total_budget=Decimal("1000000"),
            auto_approve_if_missing=auto_approve_if_missing,
        )
        for position, assignees in enumerate(chain, start=1):
            level = ApprovalChainLevel(level=position, name=f"Level {position}")
            for assignee in assignees:
                if "user" in assignee:
                    level.assignees.append(ApprovalAssignee(assignee_type="USER", user_id=assignee["user"].id))
                else:
                    level.assignees.append(ApprovalAssignee(assignee_type="ROLE", role_type=assignee["role"]))
            cycle.approval_chain_levels.append(level)
        self.db.add(cycle)
        await self.db.commit()
        return cycle

    async def budget_allocation(
        self,
        cycle: PlanningCycle,
        department: Department,
        new_hiring_budget: Decimal,
    ) -> BudgetAllocation:
        allocation = BudgetAllocation(
            cycle_id=cycle.id,
            department_id=department.id,
            salary_fixed=Decimal("500000"),
            salary_variable=Decimal("100000"),
            benefits=Decimal("50000"),
            new_hiring_budget=new_hiring_budget,
            total_budget=Decimal("650000") + new_hiring_budget,
        )
        self.db.add(allocation)
        await self.db.commit()
        return allocation

    async def plan(
        self,
        cycle: PlanningCycle,
        department: Department,
        entries: List[Dict] = (),
        status: str = "DRAFT",
    ) -> WorkforcePlan:
        """Plan with a Baseline scenario holding the given entry dicts."""
        plan = WorkforcePlan(cycle_id=cycle.id, department_id=department.id, status=status)
        baseline = WorkforcePlanScenario(name="Baseline", is_baseline=True)
        for values in entries:
            entry = WorkforcePlanEntry(
                job_role_id=values["job_role"].id,
                job_level_id=values["job_level"].id,
                current_headcount=values.get("current_headcount", 0),
                q1_hires=values.get("q1_hires", 0),
                q2_hires=values.get("q2_hires", 0),
                q3_hires=values.get("q3_hires", 0),
                q4_hires=values.get("q4_hires", 0),
                planned_exits=values.get("planned_exits", 0),
                avg_compensation=Decimal(values.get("avg_compensation", "0")),
            )
            entry.total_payroll_impact = Decimal(entry.total_hires) * entry.avg_compensation
            baseline.entries.append(entry)
        plan.scenarios.append(baseline)
        self.db.add(plan)
        await self.db.commit()
        return plan


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


@pytest.fixture
async def approval_setup(factory):
    """
    Two-level chain: level 1 is the DEPARTMENT_HEAD role, level 2 a named user.
    The plan has one baseline entry so it can be submitted.
    """
    head = await factory.user("Head")
    finance = await factory.user("Finance")
    owner = await factory.user("Owner")
    department = await factory.department(head=head)
    job_role = await factory.job_role()
    job_level = await factory.job_level()
    cycle = await factory.cycle(chain=[[{"role": "DEPARTMENT_HEAD"}], [{"user": finance}]])
    plan = await factory.plan(
        cycle,
        department,
        entries=[{
            "job_role": job_role,
            "job_level": job_level,
            "current_headcount": 10,
            "q1_hires": 2,
            "q3_hires": 1,
            "planned_exits": 1,
            "avg_compensation": "100000",
        }],
    )
    return {
        "head": head,
        "finance": finance,
        "owner": owner,
        "department": department,
        "job_role": job_role,
        "job_level": job_level,
        "cycle": cycle,
        "plan": plan,
    }
