import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from helpdesk.main import app
from helpdesk.database import Base, get_db, enable_sqlite_foreign_keys
from helpdesk.api.deps import create_access_token
from helpdesk.models.user import User
from helpdesk.security.rbac import Identity, Role
from helpdesk.services.blob_store import InMemoryBlobStore, get_blob_store
from helpdesk.services.collaboration import CollaborationService

from tests.factories import UserFactory, AdminUserFactory, InactiveUserFactory

# In-memory SQLite shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def test_db():
    """Create a fresh in-memory database with FK enforcement."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine.sync_engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


async def _create_user(db: AsyncSession, **fields) -> User:
    user = User(**fields)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def member(test_db: AsyncSession) -> User:
    """A member who files tickets."""
    return await _create_user(test_db, **UserFactory())


@pytest_asyncio.fixture
async def other_member(test_db: AsyncSession) -> User:
    """A second member with no relation to ``member``'s tickets."""
    return await _create_user(test_db, **UserFactory())


@pytest_asyncio.fixture
async def admin(test_db: AsyncSession) -> User:
    """An administrator."""
    return await _create_user(test_db, **AdminUserFactory())


@pytest_asyncio.fixture
async def inactive_user(test_db: AsyncSession) -> User:
    return await _create_user(test_db, **InactiveUserFactory())


@pytest.fixture
def member_identity(member: User) -> Identity:
    return Identity(user_id=member.id, role=Role.MEMBER)


@pytest.fixture
def other_identity(other_member: User) -> Identity:
    return Identity(user_id=other_member.id, role=Role.MEMBER)


@pytest.fixture
def admin_identity(admin: User) -> Identity:
    return Identity(user_id=admin.id, role=Role.ADMINISTRATOR)


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def service(test_db: AsyncSession, blob_store: InMemoryBlobStore) -> CollaborationService:
    """Collaboration service over the test database and an in-memory blob store."""
    return CollaborationService(test_db, blob_store)


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, blob_store: InMemoryBlobStore):
    """Create test client with overridden database and blob store."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    """Bearer header for a token issued to ``user``."""
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member_headers(member: User) -> dict:
    return auth_headers(member)


@pytest.fixture
def other_headers(other_member: User) -> dict:
    return auth_headers(other_member)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return auth_headers(admin)
