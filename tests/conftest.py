"""
Pytest Configuration and Fixtures.

Database tests run against a temporary SQLite file (aiosqlite) with the
same models, indexes and conditional updates used in production.
"""
import os
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")

import pytest
from httpx import ASGITransport, AsyncClient

from tradiehub.core.config import Settings
from tradiehub.core.database import build_engine, build_session_maker, get_db, init_db
from tradiehub.core.models import utc_now
from tradiehub.core.security import create_access_token
from tradiehub.modules.credits.dependencies import get_topup_scheduler
from tradiehub.modules.credits.service import CreditLedger
from tradiehub.modules.marketplace.models import JobType, UrgencyLevel
from tradiehub.modules.marketplace.schemas import JobApplicationCreate, MarketplaceJobCreate
from tradiehub.modules.marketplace.service import MarketplaceService
from tradiehub.modules.notifications.dependencies import get_notifier
from tradiehub.modules.notifications.service import MarketplaceEvent


class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or utc_now().replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[MarketplaceEvent, dict[str, Any]]] = []

    async def notify(self, event_type: MarketplaceEvent, payload: dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def of_type(self, event_type: MarketplaceEvent) -> list[dict[str, Any]]:
        return [payload for event, payload in self.events if event == event_type]


class RecordingScheduler:
    def __init__(self):
        self.scheduled: list[uuid.UUID] = []

    def schedule(self, user_id: uuid.UUID) -> None:
        self.scheduled.append(user_id)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tradiehub_test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def app_settings() -> Settings:
    return Settings(_env_file=None, sentry_dsn="")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def client_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def tradie_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def ledger(db_session, clock, app_settings) -> CreditLedger:
    return CreditLedger(db_session, clock=clock, app_settings=app_settings)


@pytest.fixture
def marketplace(db_session, notifier, scheduler, clock, app_settings) -> MarketplaceService:
    return MarketplaceService(
        db_session,
        notifier=notifier,
        topup_scheduler=scheduler,
        clock=clock,
        app_settings=app_settings,
    )


@pytest.fixture
def job_data(clock):
    """Factory for valid job postings."""

    def _job_data(**overrides: Any) -> MarketplaceJobCreate:
        values = {
            "title": "Replace switchboard",
            "description": "Old ceramic fuse board needs replacing with a modern RCD board.",
            "job_type": JobType.ELECTRICAL,
            "location": "Newtown NSW",
            "estimated_budget": Decimal("1500"),
            "date_required": clock.now + timedelta(days=14),
            "urgency_level": UrgencyLevel.MEDIUM,
        }
        values.update(overrides)
        return MarketplaceJobCreate(**values)

    return _job_data


@pytest.fixture
def funded(ledger, db_session):
    """Give a user credits and commit."""

    async def _funded(user_id: uuid.UUID, amount: str = "20") -> None:
        await ledger.add_credits(user_id, Decimal(amount), description="Test funding")
        await db_session.commit()

    return _funded


@pytest.fixture
def apply(marketplace, funded):
    """Fund a tradie and submit an application for them."""

    async def _apply(job_id: uuid.UUID, tradie: uuid.UUID | None = None, **overrides: Any):
        tradie = tradie or uuid.uuid4()
        await funded(tradie)
        application = await marketplace.submit_application(
            tradie, JobApplicationCreate(marketplace_job_id=job_id, **overrides),
        )
        return application

    return _apply


# === API ===

@pytest.fixture
def auth_headers():
    """Bearer header for a user id and marketplace role."""

    def _auth_headers(user_id: uuid.UUID, role: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(str(user_id), role)}"}

    return _auth_headers


@pytest.fixture
async def api_client(session_maker, notifier, scheduler):
    from tradiehub.main import app

    async def _get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_topup_scheduler] = lambda: scheduler

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    app.dependency_overrides.clear()
