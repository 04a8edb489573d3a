import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import date

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from user_management.auth import create_token
from user_management.config import Settings, get_settings
from user_management.database import Base, get_db
from user_management.dependencies import get_audit_client, get_notification_client, get_organization_client
from user_management.main import app
from user_management.models import Department, Specialty, User
from user_management.schemas.integration import CallResult
from user_management.services.audit_service import AuditClient
from user_management.services.credentials import hash_password
from user_management.services.notification_service import AuthNotificationClient
from user_management.services.organization_service import OrganizationClient

PASSWORD = "Secret123"


class RecordingOrganization(OrganizationClient):
    """Organization client that records requests instead of sending them."""

    def __init__(self):
        super().__init__("http://org.test/api/v1", 1.0)
        self.requests = []
        self.responses = {}
        self.affiliations = []

    async def _request(self, method, path, authorization="", **kwargs):
        self.requests.append({
            "method": method,
            "path": path,
            "authorization": authorization,
            "json": kwargs.get("json"),
            "params": kwargs.get("params"),
        })
        if (method, path) in self.responses:
            return self.responses[(method, path)]
        if method == "GET":
            return CallResult(success=True, status_code=200, data=self.affiliations)
        return CallResult(success=True, status_code=201, data={})

    def calls(self, method, prefix="/affiliations"):
        return [r for r in self.requests if r["method"] == method and r["path"].startswith(prefix)]


class RecordingNotifier(AuthNotificationClient):
    def __init__(self, failing=()):
        super().__init__("http://auth.test", 1.0)
        self.failing = set(failing)
        self.sent = []

    async def _request(self, method, path, authorization="", **kwargs):
        payload = kwargs["json"]
        self.sent.append(payload)
        if payload["email"] in self.failing:
            return CallResult(success=False, status_code=500, detail="mail server down")
        return CallResult(success=True, status_code=200, data={"sent": True})


class RecordingAudit(AuditClient):
    def __init__(self):
        super().__init__("http://audit.test", 1.0)
        self.entries = []

    async def _request(self, method, path, authorization="", **kwargs):
        self.entries.append(kwargs["json"])
        return CallResult(success=True, status_code=201)

    def actions(self):
        return [e["action"] for e in self.entries]


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key="test-secret",
        bcrypt_rounds=4,
        audit_service_url="http://audit.test",
        default_import_password="TempPass123!",
        verification_code_ttl_hours=1,
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def organization():
    return RecordingOrganization()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest_asyncio.fixture
async def client(session_factory, organization, notifier, audit, settings):
    async def override_get_db():
        async with session_factory() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_organization_client] = lambda: organization
    app.dependency_overrides[get_notification_client] = lambda: notifier
    app.dependency_overrides[get_audit_client] = lambda: audit
    app.dependency_overrides[get_settings] = lambda: settings

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def make(role="ADMIN", permissions=None, user_id="admin-1", email="admin@example.com"):
        token = create_token(user_id, email, role, permissions)
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def make_user(session):
    async def make(email, role="PATIENT", status="ACTIVE", password=PASSWORD, **fields):
        user = User(
            email=email,
            fullname=fields.pop("fullname", email.split("@")[0].title()),
            password=hash_password(password, 4),
            role=role,
            status=status,
            date_of_birth=fields.pop("date_of_birth", date(1990, 5, 1)),
            **fields,
        )
        session.add(user)
        await session.commit()
        return user
    return make


@pytest_asyncio.fixture
async def cardiology(session):
    department = Department(name="CARDIOLOGY")
    session.add(department)
    await session.commit()
    specialty = Specialty(name="INTERVENTIONAL CARDIOLOGY", department_id=department.id)
    session.add(specialty)
    await session.commit()
    return department, specialty


@pytest.fixture
def reload(session):
    """Run a select overwriting whatever the session already holds for those rows."""
    async def run(statement):
        result = await session.execute(statement.execution_options(populate_existing=True))
        return result.scalars().all()
    return run
