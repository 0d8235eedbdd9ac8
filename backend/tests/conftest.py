"""
Shared test fixtures — in-memory SQLite async database + FastAPI AsyncClient.

Strategy:
1. Set DATABASE_URL (and cheap bcrypt rounds) before compliancehub loads
2. compliancehub.database builds a StaticPool engine for in-memory SQLite,
   so the app and the `db` fixture share one database
3. Clients authenticate through /api/v1/auth/login and keep the session cookie
"""
import os
import tempfile
from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

# ── 1. Environment ──
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DEBUG"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="compliancehub-uploads-")

# ── 2. Now import the app ──
from compliancehub.database import async_session, engine  # noqa: E402
from compliancehub.main import app as fastapi_app  # noqa: E402
from compliancehub.middleware.auth import hash_password  # noqa: E402
from compliancehub.models import Base  # noqa: E402
from compliancehub.models.compliance import (  # noqa: E402
    ComplianceClause,
    ComplianceComponent,
    ComplianceFramework,
    ComplianceTopic,
)
from compliancehub.models.organization import Organization, OrganizationRole, OrganizationUser  # noqa: E402
from compliancehub.models.user import User  # noqa: E402

PASSWORD = "Secret123!"

ALL_PERMISSIONS = [
    f"{module}:{action}"
    for module in ("frameworks", "controls", "evidence", "tasks")
    for action in ("read", "create", "update", "delete")
] + ["approvals:approve", "reports:export"]

READ_ONLY = ["frameworks:read", "controls:read", "evidence:read", "tasks:read"]


@dataclass
class Seed:
    org_id: int
    other_org_id: int
    admin_id: int
    manager_id: int
    viewer_id: int
    outsider_id: int


# ── Fixtures ──

@pytest_asyncio.fixture(autouse=True)
async def setup_database():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def seed(db: AsyncSession) -> Seed:
    """Two organizations, a super admin, a manager and a viewer in `acme`, and an outsider."""
    org = Organization(name="Acme Corp", slug="acme")
    other = Organization(name="Globex", slug="globex")
    db.add_all([org, other])
    await db.flush()

    db.add_all([
        OrganizationRole(organization_id=org.id, name="Compliance Manager", permissions=ALL_PERMISSIONS),
        OrganizationRole(organization_id=org.id, name="Viewer", permissions=READ_ONLY),
    ])

    pw = hash_password(PASSWORD)
    admin = User(email="admin@example.com", name="Admin", password_hash=pw, platform_role="SUPER_ADMIN")
    manager = User(email="manager@example.com", name="Maria Manager", password_hash=pw)
    viewer = User(email="viewer@example.com", name="Victor Viewer", password_hash=pw)
    outsider = User(email="outsider@example.com", name="Olga Outsider", password_hash=pw)
    db.add_all([admin, manager, viewer, outsider])
    await db.flush()

    db.add_all([
        OrganizationUser(user_id=manager.id, organization_id=org.id, role="Compliance Manager"),
        OrganizationUser(user_id=viewer.id, organization_id=org.id, role="Viewer"),
        OrganizationUser(user_id=outsider.id, organization_id=other.id, role="Compliance Manager"),
    ])
    await db.commit()
    return Seed(
        org_id=org.id, other_org_id=other.id, admin_id=admin.id,
        manager_id=manager.id, viewer_id=viewer.id, outsider_id=outsider.id,
    )


async def _logged_in(email: str) -> AsyncClient:
    ac = AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test")
    r = await ac.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200, r.text
    return ac


@pytest_asyncio.fixture
async def admin_client(seed) -> AsyncGenerator[AsyncClient, None]:
    ac = await _logged_in("admin@example.com")
    yield ac
    await ac.aclose()


@pytest_asyncio.fixture
async def manager_client(seed) -> AsyncGenerator[AsyncClient, None]:
    ac = await _logged_in("manager@example.com")
    yield ac
    await ac.aclose()


@pytest_asyncio.fixture
async def viewer_client(seed) -> AsyncGenerator[AsyncClient, None]:
    ac = await _logged_in("viewer@example.com")
    yield ac
    await ac.aclose()


@pytest_asyncio.fixture
async def outsider_client(seed) -> AsyncGenerator[AsyncClient, None]:
    ac = await _logged_in("outsider@example.com")
    yield ac
    await ac.aclose()


@dataclass
class Catalog:
    framework_id: int
    topic_id: int
    component_id: int
    clause_ids: list[int]
    other_framework_id: int
    other_clause_id: int


@pytest_asyncio.fixture
async def catalog(db: AsyncSession, seed: Seed) -> Catalog:
    """ISO 27001 with one topic, one component and three clauses, plus a second framework."""
    fw = ComplianceFramework(name="ISO 27001", version="2022", certification_body="ISO", industry_tags=["security"])
    other = ComplianceFramework(name="SOC 2", version="2017")
    db.add_all([fw, other])
    await db.flush()

    topic = ComplianceTopic(framework_id=fw.id, name="Organizational controls", order_index=0)
    other_topic = ComplianceTopic(framework_id=other.id, name="Security", order_index=0)
    db.add_all([topic, other_topic])
    await db.flush()

    comp = ComplianceComponent(topic_id=topic.id, name="Policies", order_index=0)
    other_comp = ComplianceComponent(topic_id=other_topic.id, name="Common criteria", order_index=0)
    db.add_all([comp, other_comp])
    await db.flush()

    clauses = [
        ComplianceClause(component_id=comp.id, clause_id="A.5.1", title="Policies for information security",
                         description="Define and approve security policies.", risk_level="HIGH"),
        ComplianceClause(component_id=comp.id, clause_id="A.5.2", title="Information security roles",
                         description="Define and allocate security responsibilities."),
        ComplianceClause(component_id=comp.id, clause_id="A.5.3", title="Segregation of duties",
                         description="Segregate conflicting duties.", risk_level="LOW"),
    ]
    other_clause = ComplianceClause(component_id=other_comp.id, clause_id="CC1.1", title="Integrity and ethics",
                                    description="Demonstrate commitment to integrity.")
    db.add_all([*clauses, other_clause])
    await db.commit()
    return Catalog(
        framework_id=fw.id, topic_id=topic.id, component_id=comp.id,
        clause_ids=[c.id for c in clauses],
        other_framework_id=other.id, other_clause_id=other_clause.id,
    )
