import os

# Tests never touch Postgres; each one gets its own in-memory database below
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from typing import AsyncGenerator
from uuid import uuid4

import questionbank.models  # noqa: F401
from questionbank.main import app
from questionbank.database import get_db, Base
from questionbank.auth.models import User
from questionbank.auth.security import create_access_token
from questionbank.questions.derivation import DerivationEngine
from questionbank.questions.models import Question, QuestionType
from questionbank.questions.publishing import PublishWorkflow


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    TestingSessionLocal = sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with TestingSessionLocal() as session:
        yield session

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints."""
    # Override the get_db dependency to use our test session
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory for committed users."""
    async def _make_user(full_name: str = None, **kwargs) -> User:
        user = User(email=f"user_{uuid4()}@test.edu", full_name=full_name, **kwargs)
        db_session.add(user)
        await db_session.commit()
        return user
    return _make_user


@pytest.fixture
def make_question(db_session: AsyncSession):
    """Factory for drafts created the way the API creates them: creator holds both roles."""
    async def _make_question(
        user: User,
        content: str = "What is 2 + 2?",
        question_type: QuestionType = QuestionType.SIMPLE,
        **kwargs,
    ) -> Question:
        question = Question(question_type=question_type, content=content, **kwargs)
        return await DerivationEngine(db_session).create(question, user)
    return _make_question


@pytest.fixture
def make_published(db_session: AsyncSession, make_question):
    async def _make_published(user: User, **kwargs) -> Question:
        question = await make_question(user, **kwargs)
        assert await PublishWorkflow(db_session).publish(question, user), question.errors
        return question
    return _make_published


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = create_access_token(data={"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest_asyncio.fixture
async def author(make_user) -> User:
    return await make_user(full_name="Ada Author")


@pytest_asyncio.fixture
async def other_user(make_user) -> User:
    return await make_user(full_name="Otto Other")