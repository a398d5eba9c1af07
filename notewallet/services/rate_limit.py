from __future__ import annotations
from typing import Any, Optional
from fastapi import HTTPException, Request, status
from ..config import Settings

WINDOW_SEC = 10


def _client_ip(req: Request) -> str:
    # prefer X-Forwarded-For (first hop), fallback to uvicorn client
    h = req.headers.get("x-forwarded-for")
    if h:
        return h.split(",")[0].strip()
    return req.client.host if req.client else "unknown"


class OtpRateLimiter:
    """Fixed-window per-IP counters for the OTP endpoints.

    `redis` is any client exposing async incr/expire/ttl; with None every
    check passes.
    """

    def __init__(self, redis: Optional[Any], *, request_limit: int, verify_limit: int) -> None:
        self._redis = redis
        self._request_limit = request_limit
        self._verify_limit = verify_limit

    @classmethod
    def from_settings(cls, settings: Settings, redis: Optional[Any]) -> "OtpRateLimiter":
        return cls(
            redis if settings.RL_ENABLED else None,
            request_limit=settings.RL_OTP_REQ_PER_IP_10S,
            verify_limit=settings.RL_OTP_VERIFY_PER_IP_10S,
        )

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def _hit(self, key: str, limit: int) -> None:
        if self._redis is None:
            return
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, WINDOW_SEC)
        if count > limit:
            ttl = await self._redis.ttl(key)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, try again shortly",
                headers={"Retry-After": str(max(ttl, 1)) if ttl and ttl > 0 else str(WINDOW_SEC)},
            )

    async def limit_otp_request(self, req: Request) -> None:
        await self._hit(f"rl:otp:req:ip:{_client_ip(req)}", self._request_limit)

    async def limit_otp_verify(self, req: Request) -> None:
        await self._hit(f"rl:otp:verify:ip:{_client_ip(req)}", self._verify_limit)


# ---- FastAPI dependencies ----
async def limit_otp_request(request: Request) -> None:
    await request.app.state.rate_limiter.limit_otp_request(request)


async def limit_otp_verify(request: Request) -> None:
    await request.app.state.rate_limiter.limit_otp_verify(request)
