# tests/conftest.py
import os

# Settings are read at import time, so the environment has to be ready first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.roles import Role
from app.db.session import Base
from app.dependencies import get_db
from app.main import app
from app.models.event import Event
from app.models.promotion import Promotion, PROMOTION_AUTOMATIC
from app.models.user import User
from app.utils.clock import utcnow

# In-memory SQLite shared by every session through a single connection
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """A clean database for every test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


# --- Factories ---

@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role: Role = Role.REGULAR, points: int = 0, verified: bool = True,
                   suspicious: bool = False, utorid: str | None = None, name: str | None = None) -> User:
        counter["n"] += 1
        utorid = utorid or f"user{counter['n']:04d}"
        user = User(
            utorid=utorid,
            name=name or f"Test User {counter['n']}",
            email=f"{utorid}@mail.utoronto.ca",
            role=Role(role).value,
            points=points,
            verified=verified,
            suspicious=suspicious,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def regular_user(make_user) -> User:
    return make_user(Role.REGULAR, points=100, utorid="regular1")

@pytest.fixture
def cashier(make_user) -> User:
    return make_user(Role.CASHIER, utorid="cashier1")

@pytest.fixture
def manager(make_user) -> User:
    return make_user(Role.MANAGER, utorid="manager1")

@pytest.fixture
def superuser(make_user) -> User:
    return make_user(Role.SUPERUSER, utorid="super001")


@pytest.fixture
def make_promotion(db_session):
    def _make_promotion(type: str = PROMOTION_AUTOMATIC, name: str = "Promo", starts_in=timedelta(days=-1),
                        ends_in=timedelta(days=7), min_spending=None, rate=None, points=None) -> Promotion:
        now = utcnow()
        promotion = Promotion(
            name=name,
            description=f"{name} description",
            type=type,
            start_time=now + starts_in,
            end_time=now + ends_in,
            min_spending=min_spending,
            rate=rate,
            points=points,
        )
        db_session.add(promotion)
        db_session.commit()
        return promotion

    return _make_promotion


@pytest.fixture
def make_event(db_session):
    def _make_event(points_total: int = 100, points_awarded: int = 0, capacity=None, published: bool = True,
                    starts_in=timedelta(days=1), ends_in=timedelta(days=2), organizers=(), guests=()) -> Event:
        now = utcnow()
        event = Event(
            name="Study Night",
            description="Group study session",
            location="Bahen Centre",
            start_time=now + starts_in,
            end_time=now + ends_in,
            capacity=capacity,
            points_total=points_total,
            points_awarded=points_awarded,
            published=published,
        )
        event.organizers = list(organizers)
        event.guests = list(guests)
        db_session.add(event)
        db_session.commit()
        return event

    return _make_event


# --- HTTP ---

@pytest.fixture
async def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = jwt.encode({"sub": str(user.id)}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
