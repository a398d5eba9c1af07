import uuid
from datetime import date

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from notewallet.config import Settings
from notewallet.db import build_sessionmaker
from notewallet.models import Account, AccountStatus, Base
from notewallet.repos.accounts import normalize_email
from notewallet.services import otp as otp_service
from notewallet.services.mailer import Mailer, MailDeliveryError, OutgoingMail
from notewallet.auth.jwt import issue_token

FIXED_OTP = "123456"


class RecordingMailer(Mailer):
    """Keeps every message instead of sending it; `fail=True` simulates a dead transport."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[OutgoingMail] = []
        self.fail = fail

    async def send(self, mail: OutgoingMail) -> None:
        if self.fail:
            raise MailDeliveryError("transport unavailable")
        self.sent.append(mail)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENV="test",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        JWT_SECRET="test-secret",
        REDIS_URL=None,
        RL_ENABLED=False,
        LOG_LEVEL="WARNING",
    )


# In-memory SQLite shared through a StaticPool so every session sees the same tables.
@pytest_asyncio.fixture
async def engine(settings):
    eng = create_async_engine(
        settings.DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def fixed_otp(monkeypatch):
    monkeypatch.setattr(otp_service, "generate_otp", lambda: FIXED_OTP)
    return FIXED_OTP


@pytest_asyncio.fixture
async def client(settings, engine, mailer):
    from notewallet.app_factory import create_app

    app = create_app(settings, engine=engine, mailer=mailer)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# ---------- helpers ----------
async def mk_account(db, email: str, name: str, *, verified: bool = True) -> Account:
    a = Account(
        name=name,
        dob=date(2000, 1, 1),
        email=normalize_email(email),
        status=(AccountStatus.VERIFIED if verified else AccountStatus.PENDING).value,
    )
    db.add(a)
    await db.commit()
    return a


def bearer(account_id: uuid.UUID, settings: Settings) -> dict:
    return {"Authorization": f"Bearer {issue_token(account_id, settings)}"}
