import base64
import json
from datetime import datetime, timezone
from typing import Optional

import httpx
import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from finko.core.config import config
from finko.core.db.base import Base
from finko.core.exceptions import GmailNotFoundError, LLMServiceError
from finko.integrations.gmail.dto import GmailMessage, MessageMetadata, WatchResult
from finko.integrations.llm.service import LLMResponse
from finko.intelligence.extraction.extractor import TransactionExtractor
from finko.modules.bancochile.identity import IdentityResolver
from finko.modules.bancochile.parser import CloudEventParser
from finko.modules.bancochile.service import IdentityKeyService
from finko.modules.bank_profiles.models import BankEmailProfile
from finko.modules.bank_profiles.service import BankProfilesService
from finko.modules.gmail.models import BankConnection
from finko.modules.gmail.service import GmailConnectionService
from finko.modules.ledger.service import LedgerService
from finko.modules.users.models import User
from finko.modules.users.service import UsersService
from finko.pipeline.orchestrator import IngestionOrchestrator

# Registers every table on Base.metadata
import finko.modules.ledger.models  # noqa: F401
import finko.modules.bancochile.models  # noqa: F401

TEST_JWT_SECRET = "test-secret"
BANK_SENDER = "Banco de Chile <enviodigital@bancochile.cl>"


def b64(payload: dict) -> str:
    return base64.b64encode(json.dumps(payload).encode()).decode()


def make_token(user_id: int, role: str = "user") -> str:
    return jwt.encode({"userId": user_id, "role": role}, TEST_JWT_SECRET, algorithm="HS256")


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def user(db) -> User:
    user = User(email="ana@example.com", name="Ana")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def admin(db) -> User:
    admin = User(email="root@example.com", name="Root", role="admin")
    db.add(admin)
    await db.commit()
    return admin


@pytest.fixture
async def bank_profile(db) -> BankEmailProfile:
    profile = BankEmailProfile(
        bank_name="Banco de Chile",
        sender_patterns=["bancochile.cl"],
        extraction_instructions="Montos con punto como separador de miles.",
    )
    db.add(profile)
    await db.commit()
    return profile


@pytest.fixture
async def connection(db, user) -> BankConnection:
    connection = BankConnection(
        user_id=user.id,
        gmail_address="ana@gmail.com",
        refresh_token="refresh-token",
        history_id="100",
        watch_expiration=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )
    db.add(connection)
    await db.commit()
    return connection


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(config, "jwt_secret", TEST_JWT_SECRET)
    monkeypatch.setattr(config, "bancochile_user_email", "")


# ============================================================================
# Fakes for remote collaborators
# ============================================================================


class FakeGmailClient:
    """In-memory mailbox. Messages missing from `messages` are 404s."""

    def __init__(self):
        self.history: list[str] = []
        self.history_error: Optional[Exception] = None
        self.messages: dict[str, GmailMessage] = {}
        self.metadata_calls: list[str] = []
        self.full_calls: list[str] = []
        self.history_calls: list[str] = []
        self.watch_error: Optional[Exception] = None
        self.watch_calls: list[tuple[str, str]] = []
        self.stopped: list[str] = []
        self.profile_email = "ana@gmail.com"

    def add_message(self, message_id: str, from_header: str = BANK_SENDER, body: str = "Compra"):
        self.messages[message_id] = GmailMessage(
            id=message_id, from_header=from_header, body=body, date="2024-01-15"
        )
        self.history.append(message_id)

    async def list_history_message_ids(self, refresh_token: str, start_history_id: str):
        self.history_calls.append(start_history_id)
        if self.history_error:
            raise self.history_error
        return list(self.history)

    async def get_message_metadata(self, refresh_token: str, message_id: str):
        self.metadata_calls.append(message_id)
        if message_id not in self.messages:
            raise GmailNotFoundError("message", message_id)
        return MessageMetadata(id=message_id, from_header=self.messages[message_id].from_header)

    async def get_message(self, refresh_token: str, message_id: str):
        self.full_calls.append(message_id)
        if message_id not in self.messages:
            raise GmailNotFoundError("message", message_id)
        return self.messages[message_id]

    async def watch(self, refresh_token: str, topic_name: str):
        self.watch_calls.append((refresh_token, topic_name))
        if self.watch_error:
            raise self.watch_error
        return WatchResult(history_id="500", expiration="1893456000000")

    async def stop_watch(self, refresh_token: str):
        self.stopped.append(refresh_token)

    async def get_profile_email(self, refresh_token: str):
        return self.profile_email


class FakeLLMService:
    """Returns canned completions, or raises when given an exception."""

    def __init__(self, content: str | Exception = '{"transactions": []}'):
        self.content = content
        self.calls: list[dict] = []

    async def generate_with_system_prompt(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.content, Exception):
            raise self.content
        return LLMResponse(content=self.content)


def llm_returning(*transactions: dict) -> FakeLLMService:
    return FakeLLMService(json.dumps({"transactions": list(transactions)}))


def llm_failing() -> FakeLLMService:
    return FakeLLMService(LLMServiceError("timeout"))


@pytest.fixture
def gmail_client() -> FakeGmailClient:
    return FakeGmailClient()


@pytest.fixture
def llm_service() -> FakeLLMService:
    return llm_returning(
        {
            "merchant": "Supermercado Lider",
            "amount": 15500,
            "date": "2024-01-15",
            "category": "Supermercado",
            "type": "expense",
        }
    )


@pytest.fixture
def orchestrator(gmail_client, llm_service) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        parser=CloudEventParser(),
        identity_resolver=IdentityResolver(IdentityKeyService(), UsersService()),
        ledger_service=LedgerService(),
        connection_service=GmailConnectionService(),
        profiles_service=BankProfilesService(),
        gmail_client=gmail_client,
        extractor=TransactionExtractor(llm_service=llm_service),
    )


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
async def client(session_factory, orchestrator, gmail_client):
    from finko.core import dependencies
    from finko.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[dependencies.get_db] = override_get_db
    app.dependency_overrides[dependencies.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[dependencies.get_gmail_client] = lambda: gmail_client

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
