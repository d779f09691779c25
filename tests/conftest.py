"""Pytest configuration and fixtures."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["INTERNAL_API_SECRET"] = ""
os.environ["CHALLONGE_API_KEY"] = "test-key"
os.environ["REWARD_TIMEZONE"] = "Europe/Paris"
os.environ["SETTLEMENT_INTERVAL"] = "0"

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from scrim.errors import ExternalProviderError, NotFound
from scrim.models.base import init_db
from scrim.services.bracket import BracketParticipant, MatchState
from web.api.deps import get_bracket_provider, get_notifier, get_session
from web.api.main import app
from web.auth import ROLE_ADMIN, create_access_token

T0 = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeBracketProvider:
    """In-memory bracket: set match states, flip ``fail`` to simulate an outage."""

    def __init__(self):
        self.participants = [BracketParticipant("p1", "Alpha"), BracketParticipant("p2", "Bravo")]
        self.matches: dict[str, MatchState] = {}
        self.fail = False

    def set_match(self, match_id, state="open", participant_ids=("p1", "p2"), winner=None):
        self.matches[match_id] = MatchState(match_id, state, winner, list(participant_ids))

    def _check(self):
        if self.fail:
            raise ExternalProviderError("Bracket provider unreachable: timeout")

    async def get_matches(self, external_id):
        self._check()
        return list(self.matches.values())

    async def get_match(self, external_id, match_id):
        self._check()
        if match_id not in self.matches:
            raise NotFound(f"Bracket resource not found: {match_id}")
        return self.matches[match_id]

    async def get_participants(self, external_id):
        self._check()
        return list(self.participants)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    async def tournament_sync(self, t):
        self.events.append(("sync", t.id))

    async def mvp_announcement(self, t):
        self.events.append(("mvp", t.id))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite per test so several sessions can race on the same rows."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeBracketProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
async def client(session_factory, provider, notifier):
    """Async HTTP client for the API, wired to the test database and fakes."""

    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_bracket_provider] = lambda: provider
    app.dependency_overrides[get_notifier] = lambda: notifier
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user_id: str, role: str = "player") -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", ROLE_ADMIN)
