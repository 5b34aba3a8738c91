import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DB_INIT_ON_STARTUP", "false")

from unittest.mock import AsyncMock, Mock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from tests.factories import BASE_TIME  # noqa: E402
from whatsapp_agent.database import Base  # noqa: E402
from whatsapp_agent.models import User  # noqa: E402
from whatsapp_agent.services.llm.base import LLMResponse, ModerationResponse  # noqa: E402
from whatsapp_agent.services.result import Result  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file so runs can use separate sessions."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db_session):
    def _make_user(phone: str = "+15550001111", name: str | None = None, is_banned: bool = False) -> User:
        user = User(phone=phone, name=name, is_banned=is_banned, created_at=BASE_TIME, updated_at=BASE_TIME)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def provider():
    """LLM provider double: unflagged moderation, fixed reply and transcript."""
    mock = Mock()
    mock.generate = AsyncMock(return_value=LLMResponse(content="AI reply", model="gpt-4o"))
    mock.moderate = AsyncMock(return_value=ModerationResponse(flagged=False, categories={"violence": False}))
    mock.transcribe_audio = AsyncMock(return_value="transcribed voice note")
    return mock


@pytest.fixture
def sender():
    """Outbound messaging double that always succeeds."""
    mock = Mock()
    mock.send_message = AsyncMock(return_value=Result.success("SM123"))
    return mock


@pytest.fixture
def fetcher():
    mock = Mock()
    mock.download_media = AsyncMock(return_value=b"\x89PNG fake image bytes")
    return mock


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
    monkeypatch.setenv("TWILIO_PHONE_NUMBER", "+15559990000")
