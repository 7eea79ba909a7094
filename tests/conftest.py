"""
Pytest configuration and fixtures for tests.
Provides reusable test fixtures for database, users, friendships, and HTTP clients.
"""
from datetime import timedelta
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import fastapi_app
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.models.base import Base


# In-memory SQLite shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    TestSessionLocal = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


# ============================================================================
# Users & relationships
# ============================================================================

@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating persisted users."""
    from app.models.user import User

    async def _make_user(name: str, email: str | None = None) -> User:
        user = User(name=name, email=email or f"{name.lower()}@example.com")
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
async def alice(make_user):
    return await make_user("Alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("Bob")


@pytest.fixture
async def carol(make_user):
    return await make_user("Carol")


@pytest.fixture
async def dave(make_user):
    return await make_user("Dave")


@pytest.fixture
def make_friends(db_session: AsyncSession):
    """Factory creating a friendship row (ACCEPTED unless told otherwise)."""
    from app.models.friendship import Friendship, FriendshipStatus
    from app.repositories.friendship_repo import normalize_friendship_ids

    async def _make_friends(user_a, user_b, status: FriendshipStatus = FriendshipStatus.ACCEPTED):
        user_id_1, user_id_2 = normalize_friendship_ids(user_a.id, user_b.id)
        friendship = Friendship(
            user_id_1=user_id_1,
            user_id_2=user_id_2,
            status=status,
            requested_by=user_a.id,
        )
        db_session.add(friendship)
        await db_session.commit()
        await db_session.refresh(friendship)
        return friendship

    return _make_friends


@pytest.fixture
def make_session(db_session: AsyncSession):
    """Factory creating a login session for a user."""
    from app.core.security import generate_session_token, session_expiry
    from app.models.user import Session
    from app.utils.datetime_utils import utc_now

    async def _make_session(user, expired: bool = False) -> Session:
        expires_at = utc_now() - timedelta(minutes=1) if expired else session_expiry()
        session = Session(token=generate_session_token(), user_id=user.id, expires_at=expires_at)
        db_session.add(session)
        await db_session.commit()
        await db_session.refresh(session)
        return session

    return _make_session


@pytest.fixture
async def alice_session(make_session, alice):
    return await make_session(alice)


@pytest.fixture
def auth_headers(alice_session):
    """Authorization headers for alice."""
    return {"Authorization": f"Bearer {alice_session.token}"}


@pytest.fixture
async def group_with_members(db_session, alice, bob, carol, make_friends):
    """Group owned by alice with bob and carol as members."""
    from app.services.conversation_service import ConversationService

    await make_friends(alice, bob)
    await make_friends(alice, carol)
    conversation = await ConversationService(db_session).create_group_conversation(
        alice.id, "Book club", [bob.id, carol.id]
    )
    return conversation


# ============================================================================
# HTTP clients
# ============================================================================

@pytest.fixture(scope="function")
async def client(db_session: AsyncSession, auth_headers) -> AsyncGenerator[AsyncClient, None]:
    """Test HTTP client authenticated as alice (real session lookup)."""

    async def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app),
        base_url="http://test",
        headers=auth_headers,
    ) as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def unauth_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Test HTTP client WITHOUT authentication (for testing unauthorized access)."""

    async def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


# ============================================================================
# Global mocks
# ============================================================================

@pytest.fixture(autouse=True)
def disable_rate_limits():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture(autouse=True)
def mock_websocket_manager(mocker):
    """Mock WebSocket connection manager for all tests."""
    mock_manager = mocker.AsyncMock()
    mock_manager.broadcast_new_message = mocker.AsyncMock()
    mock_manager.broadcast_participant_changed = mocker.AsyncMock()

    mocker.patch("app.core.websocket.connection_manager", mock_manager)
    mocker.patch("app.services.message_service.connection_manager", mock_manager)
    mocker.patch("app.services.conversation_service.connection_manager", mock_manager)

    return mock_manager
