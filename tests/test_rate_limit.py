import pytest
from httpx import ASGITransport, AsyncClient

from notewallet.app_factory import create_app
from notewallet.services.rate_limit import OtpRateLimiter

pytestmark = pytest.mark.asyncio


class CounterStore:
    """Just enough of the redis client API for fixed-window counters."""

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key: str) -> int:
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        return self.ttls.get(key, -1)

    async def ping(self) -> bool:
        return True


async def _limited_client(settings, engine, mailer, store):
    limited = settings.model_copy(update={"RL_ENABLED": True, "RL_OTP_REQ_PER_IP_10S": 2, "RL_OTP_VERIFY_PER_IP_10S": 3})
    app = create_app(limited, engine=engine, mailer=mailer, redis=store)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


async def test_otp_requests_are_throttled_per_ip(settings, engine, mailer):
    store = CounterStore()
    async with await _limited_client(settings, engine, mailer, store) as c:
        for _ in range(2):
            r = await c.post("/login/send-otp", json={"email": "ghost@x.com"}, headers={"X-Forwarded-For": "1.2.3.4"})
            assert r.status_code == 404

        r = await c.post("/login/send-otp", json={"email": "ghost@x.com"}, headers={"X-Forwarded-For": "1.2.3.4"})
        assert r.status_code == 429
        assert r.headers["Retry-After"] == "10"
        assert r.json()["message"]

        # another client has its own bucket
        r = await c.post("/login/send-otp", json={"email": "ghost@x.com"}, headers={"X-Forwarded-For": "5.6.7.8"})
        assert r.status_code == 404


async def test_verify_bucket_is_separate(settings, engine, mailer):
    store = CounterStore()
    async with await _limited_client(settings, engine, mailer, store) as c:
        for _ in range(3):
            r = await c.post("/login/verify-otp", json={"email": "ghost@x.com", "otp": "1"})
            assert r.status_code == 404
        r = await c.post("/login/verify-otp", json={"email": "ghost@x.com", "otp": "1"})
        assert r.status_code == 429

        r = await c.post("/login/send-otp", json={"email": "ghost@x.com"})
        assert r.status_code == 404


async def test_disabled_limiter_never_throttles(settings):
    limiter = OtpRateLimiter.from_settings(settings, CounterStore())
    assert not limiter.enabled
