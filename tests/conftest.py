import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import pytest
from datetime import datetime, timedelta, timezone, UTC
from urllib.parse import parse_qs, urlparse
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from jose import jwt

from trustee_portal.database import get_db
from trustee_portal.dependencies import get_invitation_notifier
from trustee_portal.models.base import Base
from trustee_portal.config import settings
# Import all model classes to ensure they're registered with SQLAlchemy
from trustee_portal.models.user import User
from trustee_portal.models.tenant import Tenant
from trustee_portal.models.tenant_membership import TenantMembership
from trustee_portal.models.invitation import Invitation
from trustee_portal.models.audit_entry import AuditEntry
from trustee_portal.models.role import Role
from trustee_portal.services.membership_service import MembershipService
from trustee_portal.services.notification_service import InvitationMessage, InvitationNotifier
from trustee_portal.services.tenant_service import TenantService
# Import FastAPI app AFTER model imports
from trustee_portal.main import app

# Test database (SQLite in-memory for speed)
# Use StaticPool to ensure all connections share the same in-memory database
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

OWNER_AUTH_ID = "owner-1"
OWNER_EMAIL = "owner@hillside.example.org"


class CapturingNotifier(InvitationNotifier):
    """Keeps delivered messages so tests can read the accept link"""

    def __init__(self):
        self.messages: list[InvitationMessage] = []

    def send_invitation(self, message: InvitationMessage) -> None:
        self.messages.append(message)

    def last_token(self) -> str:
        query = parse_qs(urlparse(self.messages[-1].accept_url).query)
        return query["token"][0]


class FixedClock:
    """Settable clock; call it like ``utcnow``"""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def db_session():
    """Create fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return CapturingNotifier()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture(scope="function")
def client(db_session, notifier):
    """FastAPI test client with test database"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_invitation_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_test_token(
    user_id: str = OWNER_AUTH_ID,
    email: str | None = None,
    is_super_admin: bool = False,
    expired: bool = False,
) -> str:
    """
    Generate valid JWT token for testing.

    Args:
        user_id: User ID to embed in 'sub' claim
        email: Optional 'email' claim
        is_super_admin: Platform administrator flag
        expired: If True, create expired token

    Returns:
        Encoded JWT token
    """
    if expired:
        exp = datetime.now(UTC) - timedelta(minutes=5)
    else:
        exp = datetime.now(UTC) + timedelta(minutes=15)

    payload = {"sub": user_id, "exp": exp, "iat": datetime.now(UTC)}
    if email is not None:
        payload["email"] = email
    if is_super_admin:
        payload["is_super_admin"] = True

    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def bearer(user_id: str, email: str | None = None, is_super_admin: bool = False) -> dict:
    return {"Authorization": f"Bearer {create_test_token(user_id, email, is_super_admin)}"}


@pytest.fixture
def owner_user(db_session):
    user = User(auth_user_id=OWNER_AUTH_ID, email=OWNER_EMAIL)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def tenant(db_session, owner_user):
    """'Hillside Hospice' with owner_user as OWNER"""
    tenant, _ = TenantService(db_session).create_tenant("Hillside Hospice", "hillside-hospice", owner_user)
    return tenant


@pytest.fixture
def owner_membership(db_session, tenant, owner_user):
    return (
        db_session.query(TenantMembership)
        .filter(TenantMembership.tenant_id == tenant.id, TenantMembership.user_id == owner_user.id)
        .one()
    )


@pytest.fixture
def owner_headers(owner_user):
    return bearer(OWNER_AUTH_ID, OWNER_EMAIL)


@pytest.fixture
def add_member(db_session, tenant):
    """Factory: create a user and give them an active membership in ``tenant``"""

    def _add(role: Role, auth_user_id: str | None = None, email: str | None = None, target_tenant: Tenant | None = None):
        auth_user_id = auth_user_id or f"{role.value}-user"
        user = db_session.query(User).filter(User.auth_user_id == auth_user_id).first()
        if user is None:
            user = User(auth_user_id=auth_user_id, email=email or f"{auth_user_id}@example.org")
            db_session.add(user)
            db_session.commit()
        membership = MembershipService(db_session).create((target_tenant or tenant).id, user.id, role)
        db_session.commit()
        db_session.refresh(membership)
        return membership

    return _add
