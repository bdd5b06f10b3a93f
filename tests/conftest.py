"""
Pytest fixtures and configuration for DealDesk tests
"""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.auth import create_access_token
from app.cache import Cache
from app.database import Base, get_db
from app.domain.deals.service import DealService
from app.models import Post, User
from app.services.notification_service import Notifier
from app.shared.clock import FrozenClock

T0 = datetime(2026, 1, 5, 12, 0, 0)


class RecordingNotifier(Notifier):
    """Notifier that persists like the real one and keeps a list of what it sent"""

    def __init__(self, db):
        super().__init__(db)
        self.sent = []

    def notify(self, user_id, type, title, message, data=None, priority="medium"):
        self.sent.append(
            {
                "user_id": user_id,
                "type": type,
                "title": title,
                "message": message,
                "data": data,
                "priority": priority,
            }
        )
        return super().notify(user_id, type, title, message, data=data, priority=priority)

    def of_type(self, type):
        return [n for n in self.sent if n["type"] == type]


@pytest.fixture(autouse=True)
def no_redis():
    """Every cache call runs fail-open without a Redis server"""
    with patch.object(Cache, "_get_client", return_value=None):
        yield


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads for the TestClient"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock(T0)


@pytest.fixture
def notifier(db):
    return RecordingNotifier(db)


@pytest.fixture
def make_user(db):
    """Factory for users; balances default to a comfortable amount"""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "email": f"user{n}@example.com",
            "name": f"User {n}",
            "phone": f"98765432{n:02d}",
            "credits": 10,
            "unlock_credits": 5,
            "create_credits": 1,
        }
        fields.update(overrides)
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_post(db):
    def _make(author, **overrides):
        fields = {
            "author_id": author.id,
            "title": "Bulk steel pipes",
            "requirement": "500 tons of ERW pipes",
            "credit_cost": 1,
            "expires_at": T0 + timedelta(days=7),
        }
        fields.update(overrides)
        post = Post(**fields)
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    return _make


@pytest.fixture
def deal_service(db, notifier, clock):
    return DealService(db, notifier, clock)


@pytest.fixture
def unlocker(make_user):
    return make_user(name="Priya Buyer", email="priya@buyer.com")


@pytest.fixture
def author(make_user):
    return make_user(name="Arjun Supplier", email="arjun@supplier.com")


@pytest.fixture
def post(make_post, author):
    return make_post(author)


@pytest.fixture
def deal(deal_service, post, unlocker, author):
    """A fresh Contacted deal created at T0"""
    return deal_service.create_deal(post.id, unlocker.id, author.id)


@pytest.fixture
def client(db):
    """FastAPI TestClient bound to the test session"""
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
