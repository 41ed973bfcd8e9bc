"""
Shared pytest fixtures for the teams service tests.

Provides:
- Database fixtures (a fresh SQLite file per test, schema from the models)
- Seeding helpers for users, identity links and teams
- API client fixture with the database dependency overridden
- JWT factory for signed-in users
"""

import os

os.environ.setdefault("SQLALCHEMY_DATABASE_URL", "sqlite://")
os.environ["AUDIT_ENABLED"] = "false"
os.environ["TEAM_SYNC_CONSUMER_ENABLED"] = "false"

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import Session

import teams.models  # noqa: F401
from auth import ALGORITHM, SECRET_KEY
from shared.database import Base, create_db_engine, make_session_factory
from shared.dependencies import get_db
from teams.models.team_member import PermissionType
from teams.models.user import User, UserAuth


ORG_ID = 1
LOCK_TIMEOUT = 5


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine(tmp_path):
    """
    Engine bound to a temporary SQLite file with every table created.
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'teams.db'}", lock_timeout=LOCK_TIMEOUT)
    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """
    Session for store-level tests.

    Writes through it hold the SQLite write lock until they commit, so a
    test must not leave a write pending while another session writes.
    """
    session = session_factory()

    yield session

    session.rollback()
    session.close()


# ============================================================================
# Seeding helpers
# ============================================================================

def create_user(db: Session, login: str, email: str | None = None, name: str | None = None) -> User:
    user = User(login=login, email=email or f"{login}@example.com", name=name or login.title())
    db.add(user)
    db.commit()
    return user


def link_identity(db: Session, user_id: int, auth_module: str, created: datetime) -> UserAuth:
    link = UserAuth(user_id=user_id, auth_module=auth_module, auth_id=f"{auth_module}-{user_id}", created=created)
    db.add(link)
    db.commit()
    return link


@pytest.fixture
def users(db) -> dict:
    """Five users keyed by login."""
    created = {login: create_user(db, login) for login in ("ana", "bruno", "carla", "diego", "eva")}
    db.rollback()
    return created


@pytest.fixture
def team(db):
    from services.team_store import create_team

    return create_team(db, ORG_ID, "Backend", "backend@example.com")


ADMIN = PermissionType.ADMIN
MEMBER = PermissionType.MEMBER


# ============================================================================
# API Fixtures
# ============================================================================

def make_token(user_id: int, org_id: int = ORG_ID, org_role: str = "Viewer", login: str | None = None,
               permissions: dict | None = None, is_server_admin: bool = False) -> str:
    claims = {
        "user_id": user_id,
        "login": login or f"user{user_id}",
        "org_id": org_id,
        "org_role": org_role,
        "is_server_admin": is_server_admin,
        "permissions": permissions or {},
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def auth_headers(*args, **kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(*args, **kwargs)}"}


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    """
    Test client whose requests each get their own session on the test database.

    The lifespan is not run, so no RabbitMQ consumer is started.
    """
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    yield TestClient(app)

    app.dependency_overrides.clear()
