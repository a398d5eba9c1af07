import logging
from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse
from ...db import db_health
from ...redis_client import redis_health

router = APIRouter(tags=["health"])
log = logging.getLogger(__name__)


@router.get("/ping", response_class=PlainTextResponse)
async def ping():
    log.info("ping")
    return "pong"


@router.get("/health")
async def health(request: Request):
    db_ok = await db_health(request.app.state.engine)
    redis_ok = await redis_health(request.app.state.redis)
    status = "ok" if (db_ok and redis_ok is not False) else "degraded"
    return {
        "status": status,
        "dependencies": {
            "database": db_ok,
            "redis": redis_ok,
        },
    }
