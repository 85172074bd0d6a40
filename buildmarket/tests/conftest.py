"""
Test fixtures - in-memory SQLite database + authenticated HTTP client
"""
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from buildmarket.database import Base, get_db
from buildmarket.main import app
from buildmarket.api.auth import get_password_hash, create_access_token
from buildmarket.models.user import User
from buildmarket.models.project import Project


@pytest_asyncio.fixture()
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture()
async def seed_data(db_session):
    """Insert baseline test data: homeowner, contractor and one project"""
    owner = User(
        email="owner@example.com",
        full_name="Dana Owner",
        hashed_password=get_password_hash("testpass123"),
        role="homeowner",
    )
    contractor = User(
        email="builder@example.com",
        full_name="Sam Builder",
        hashed_password=get_password_hash("buildpass123"),
        role="contractor",
    )
    db_session.add_all([owner, contractor])
    await db_session.commit()
    await db_session.refresh(owner)
    await db_session.refresh(contractor)

    project = Project(
        user_id=owner.id,
        title="Kitchen remodel",
        description="Full gut of a 1970s kitchen, new cabinets, island and tile floor",
        project_type="Kitchen Remodel",
        budget_range="$40,000 - $60,000",
        timeline="3 months",
        location="Austin, TX",
    )
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)

    return {"user": owner, "contractor": contractor, "project": project}


@pytest_asyncio.fixture()
async def client(db_session, seed_data):
    """Authenticated httpx AsyncClient bound to the FastAPI app"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    token = create_access_token(data={"sub": seed_data["user"].email})

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        ac.headers["Authorization"] = f"Bearer {token}"
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unauth_client(db_session):
    """Unauthenticated httpx AsyncClient"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()
