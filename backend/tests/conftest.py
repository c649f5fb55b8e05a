"""
Pytest configuration and fixtures for backend tests.
"""

from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.models import Base, Follow, Influencer, User
from shared.utils.exceptions import ResolutionError
from ws_gateway.components.connection.registry import SessionRegistry
from ws_gateway.core.notifications.resolver import Publisher


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seed_follows(db_session):
    """
    Influencer 7 (user "alice") followed by users 1, 2 and 3.
    Influencer 8 (user "bob") has no followers.
    """
    db_session.add_all([
        User(id=1, username="carol"),
        User(id=2, username="dave"),
        User(id=3, username="erin"),
        User(id=10, username="alice"),
        User(id=11, username="bob"),
    ])
    db_session.flush()
    db_session.add_all([
        Influencer(id=7, user_id=10),
        Influencer(id=8, user_id=11),
    ])
    db_session.flush()
    db_session.add_all([
        Follow(id=1, influencer_id=7, follower_id=1),
        Follow(id=2, influencer_id=7, follower_id=2),
        Follow(id=3, influencer_id=7, follower_id=3),
    ])
    db_session.commit()
    return db_session


# =============================================================================
# In-memory collaborators
# =============================================================================


class FakeHandle:
    """Stand-in for a live session handle."""

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<FakeHandle {self.name}>"


class FakeTransport:
    """Records every emit; handles can be marked dead or failing."""

    def __init__(self):
        self.sent: list[tuple[Any, str, dict]] = []
        self.dead: set[Any] = set()
        self.failing: dict[Any, Exception] = {}

    def is_live(self, handle: Any) -> bool:
        return handle not in self.dead

    async def emit(self, handle: Any, event: str, payload: dict) -> None:
        if handle in self.failing:
            raise self.failing[handle]
        self.sent.append((handle, event, payload))

    def sent_to(self, handle: Any) -> list[dict]:
        return [payload for h, _event, payload in self.sent if h is handle]


class FakeResolver:
    def __init__(self, followers: dict[int, list[int]] | None = None, error: Exception | None = None):
        self.followers = followers or {}
        self.error = error
        self.calls: list[int] = []

    async def resolve_subscribers(self, publisher_id: int) -> list[int]:
        self.calls.append(publisher_id)
        if self.error is not None:
            raise self.error
        if publisher_id not in self.followers:
            raise ResolutionError(publisher_id, "unknown publisher")
        return list(self.followers[publisher_id])


class FakeStore:
    def __init__(self, result: bool = True, error: Exception | None = None):
        self.result = result
        self.error = error
        self.saved: list[tuple[list[int], int]] = []

    async def save(self, subscriber_ids, content_id: int) -> bool:
        if self.error is not None:
            raise self.error
        self.saved.append((list(subscriber_ids), content_id))
        return self.result


class FakeDirectory:
    def __init__(self, names: dict[int, str] | None = None, error: Exception | None = None):
        self.names = names or {}
        self.error = error

    async def get_publisher(self, publisher_id: int) -> Publisher | None:
        if self.error is not None:
            raise self.error
        name = self.names.get(publisher_id)
        if name is None:
            return None
        return Publisher(publisher_id=publisher_id, display_name=name)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def directory():
    return FakeDirectory({7: "alice"})
