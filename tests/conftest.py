"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite+aiosqlite://"
os.environ["WEB_APP_URL"] = "voicejournal.test/"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from voicejournal.api.deps import create_access_token
from voicejournal.api.ratelimit import limiter
from voicejournal.config import get_settings
from voicejournal.db.base import Base
from voicejournal.db.models import (
    Assignment,
    AssignmentStatus,
    Journal,
    Person,
    PushPlatform,
    PushToken,
    Question,
    User,
    utcnow,
)
from voicejournal.db.session import get_db
from voicejournal.main import app
from voicejournal.services import get_blob_store, get_dispatcher, get_intake, get_reminder_policy
from voicejournal.services.assignments import create_assignment
from voicejournal.services.dispatcher import NotificationDispatcher
from voicejournal.services.intake import IntakeLimits, RecordingIntake
from voicejournal.services.reminder_policy import ReminderPolicy
from voicejournal.services.senders import SendResult
from voicejournal.services.storage import LocalBlobStore


class FakeSender:
    """Records every message; can be told to fail or to reject push tokens."""

    def __init__(self, name: str):
        self.name = name
        self.sent = []
        self.fail = False
        self.raise_error = False
        self.invalid_tokens: set[str] = set()

    async def send(self, message) -> SendResult:
        self.sent.append(message)
        if self.raise_error:
            raise ConnectionError(f"{self.name} unreachable")
        if getattr(message, "token", None) in self.invalid_tokens:
            return SendResult(success=False, error="unregistered", invalid_token=True)
        if self.fail:
            return SendResult(success=False, error=f"{self.name}:rejected")
        return SendResult(success=True, message_id=f"{self.name}-{len(self.sent)}")


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """In-memory SQLite shared by the test and the app through a single connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def sms() -> FakeSender:
    return FakeSender("sms")


@pytest.fixture
def email() -> FakeSender:
    return FakeSender("email")


@pytest.fixture
def push() -> FakeSender:
    return FakeSender("push")


@pytest.fixture
def dispatcher(sms, email, push, session_factory) -> NotificationDispatcher:
    return NotificationDispatcher(sms=sms, email=email, push=push, session_factory=session_factory)


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "uploads", get_settings().public_base_url)


@pytest.fixture
def policy() -> ReminderPolicy:
    return ReminderPolicy()


@pytest.fixture
def intake(blob_store, dispatcher) -> RecordingIntake:
    return RecordingIntake(blob_store, dispatcher, IntakeLimits.from_settings(get_settings()))


@pytest.fixture
async def client(session_factory, blob_store, dispatcher, policy, intake) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_reminder_policy] = lambda: policy
    app.dependency_overrides[get_intake] = lambda: intake
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def rate_limiting():
    """Turn the limiter on for one test, starting from empty counters."""
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = False
    limiter.reset()


# =============================================================================
# DATA
# =============================================================================


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


class Factory:
    """Row builders bound to the test session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def user(self, name: str = "Olivia", email: str | None = "olivia@example.com") -> User:
        user = User(display_name=name, email=email)
        self.db.add(user)
        await self.db.flush()
        return user

    async def journal(self, owner: User, title: str = "Family Stories") -> Journal:
        journal = Journal(owner_user_id=owner.id, title=title)
        self.db.add(journal)
        await self.db.flush()
        return journal

    async def question(self, journal: Journal, text: str = "What was your first job?", order: int = 0) -> Question:
        question = Question(journal_id=journal.id, question_text=text, display_order=order)
        self.db.add(question)
        await self.db.flush()
        return question

    async def person(
        self,
        owner: User,
        name: str = "Grandma Rose",
        email: str | None = "rose@example.com",
        phone: str | None = "+15555550123",
    ) -> Person:
        person = Person(
            owner_user_id=owner.id,
            name=name,
            relationship_label="grandparent",
            email=email,
            phone_number=phone,
        )
        self.db.add(person)
        await self.db.flush()
        return person

    async def assignment(self, question: Question, person: Person) -> Assignment:
        assignment = await create_assignment(self.db, question, person)
        await self.db.commit()
        return assignment

    async def reload(self, model, id):
        """Fresh copy of a row after the app's session changed it."""
        return await self.db.get(model, id, populate_existing=True)

    def headers(self, user: User) -> dict[str, str]:
        return auth_headers(user)


@dataclass
class World:
    owner: User
    journal: Journal
    question: Question
    person: Person
    assignment: Assignment

    @property
    def headers(self) -> dict[str, str]:
        return auth_headers(self.owner)


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


@pytest.fixture
async def world(db, factory) -> World:
    """Owner with one journal, one question and one person, assigned but not sent."""
    owner = await factory.user()
    journal = await factory.journal(owner)
    question = await factory.question(journal)
    person = await factory.person(owner)
    assignment = await factory.assignment(question, person)
    return World(owner=owner, journal=journal, question=question, person=person, assignment=assignment)


@pytest.fixture
async def sent_world(db, world) -> World:
    world.assignment.status = AssignmentStatus.SENT
    world.assignment.sent_at = utcnow() - timedelta(days=2)
    await db.commit()
    return world


@pytest.fixture
async def owner_device(db, world) -> PushToken:
    token = PushToken(user_id=world.owner.id, token="device-token-owner-iphone-0001", platform=PushPlatform.IOS)
    db.add(token)
    await db.commit()
    return token


@pytest.fixture
def m4a() -> bytes:
    """Enough of an MP4 audio header to look like a real upload."""
    return b"\x00\x00\x00\x20ftypM4A " + b"\x00" * 512
