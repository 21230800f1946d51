"""Shared fixtures for the kintree test suite."""
import asyncio
import os

# Set env vars BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kintree.client import PersonStoreClient
from kintree.db import get_db
from kintree.models import Base
from kintree.schemas import FamilyMemberCreate, FamilyMemberOut


def member(first, last="Smith", born="1950-01-01", **fields) -> FamilyMemberOut:
    """In-memory member record, as the client holds them."""
    return FamilyMemberOut(first_name=first, last_name=last, date_of_birth=date.fromisoformat(born), **fields)


def new_member(first, last="Smith", born="1980-01-01", **fields) -> FamilyMemberCreate:
    return FamilyMemberCreate(first_name=first, last_name=last, date_of_birth=date.fromisoformat(born), **fields)


# Grandparents (token 1) -> Dad; Dad + Mom (token 2) -> two kids; Aunt is
# Dad's sibling; Cousin has an unregistered parent token.
FAMILY = [
    member("Grandpa", born="1920-03-01", marriage_id=1),
    member("Grandma", born="1922-07-12", marriage_id=1),
    member("Dad", born="1950-05-05", parent_marriage_id=1, marriage_id=2),
    member("Mom", "Jones", born="1952-02-02", marriage_id=2),
    member("Kid1", born="1980-01-01", parent_marriage_id=2),
    member("Kid2", born="1983-01-01", parent_marriage_id=2),
    member("Aunt", born="1955-09-09", parent_marriage_id=1),
    member("Cousin", "Brown", born="1985-04-04", parent_marriage_id=99),
]


# ── Database fixtures ──

@pytest.fixture
def engine():
    """Fresh in-memory SQLite per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


# ── FastAPI app fixtures ──

@pytest.fixture
def client(db_session):
    """TestClient with get_db pointed at the test session."""
    from kintree.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
@pytest.fixture
def store(client):
    """Async PersonStoreClient talking to the app in-process.

    Drive it from a single ``asyncio.run(...)`` per test.
    """
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=client.app), base_url="http://store")
    yield PersonStoreClient(http=http)
    asyncio.run(http.aclose())
