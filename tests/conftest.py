import os
import tempfile
import uuid

# IMPORTANT: configure the environment before anything imports adopsiak.config
_DB_PATH = os.path.join(tempfile.gettempdir(), f"adopsiak-test-{uuid.uuid4().hex}.db")
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["COOKIE_SECURE"] = "false"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token"
os.environ["OTP_HASH_SECRET"] = "test-otp-secret"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("EMAIL_API_KEY", None)

import httpx
import pytest
import pytest_asyncio

from adopsiak.db import engine, SessionLocal
from adopsiak.main import app
from adopsiak.models import Base
from adopsiak.services import background
from adopsiak.services.email_otp import OtpConfig
from adopsiak.services.mailer import get_mailer


class RecordingMailer:
    """Stands in for the HTTP mailer; remembers the last code per recipient."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str, int]] = []

    async def send_otp_email(self, *, to: str, code: str, expire_minutes: int) -> bool:
        if self.fail:
            raise RuntimeError("mail service down")
        self.sent.append((to, code, expire_minutes))
        return True

    def last_code(self, to: str) -> str:
        return [c for (t, c, _) in self.sent if t == to][-1]


class FakeRedis:
    """Just enough of redis.asyncio for fixed-window counters."""

    def __init__(self):
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def ttl(self, key):
        return self.ttls.get(key, -1)


# Fresh schema per test, on the SAME loop as the test function. Dispose the
# engine afterwards so no pooled connection is reused by the next loop.
@pytest_asyncio.fixture(autouse=True, loop_scope="function")
async def _db_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await background.drain(timeout=1.0)
    await engine.dispose()


@pytest_asyncio.fixture
async def db():
    async with SessionLocal() as s:
        yield s


# Router throttles live in Redis; stub them where the router imported them.
@pytest.fixture(autouse=True)
def _stub_ip_throttles(monkeypatch):
    import adopsiak.api.routers.email_otp as otp_router

    async def _noop(*args, **kwargs):
        return None

    monkeypatch.setattr(otp_router, "limit_otp_send", _noop)
    monkeypatch.setattr(otp_router, "limit_otp_check", _noop)
    monkeypatch.setattr(otp_router, "limit_otp_attempts", _noop)
    yield


@pytest.fixture
def otp_config() -> OtpConfig:
    return OtpConfig(namespace="adopsiak", expire_minutes=10, hash_secret="test-otp-secret")


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest_asyncio.fixture
async def client(mailer):
    app.dependency_overrides[get_mailer] = lambda: mailer
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


# ---------- helpers ----------
async def issue_code(client: httpx.AsyncClient, mailer: RecordingMailer, email: str) -> str:
    r = await client.post("/api/v1/email-otp/send", json={"email": email})
    assert r.status_code == 200, r.text
    await background.drain()
    return mailer.last_code(email.strip().lower())
