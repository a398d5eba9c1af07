from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine
from .config import Settings, get_settings
from .db import build_engine, build_sessionmaker
from .models import Base
from .redis_client import build_redis
from .api.errors import register_exception_handlers
from .api.routers import health as health_router
from .api.routers import auth as auth_router
from .api.routers import notes as notes_router
from .api.routers import metrics as metrics_router
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware
from .services.mailer import Mailer, build_mailer
from .services.rate_limit import OtpRateLimiter


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine: AsyncEngine = app.state.engine
    if engine.url.get_backend_name() == "sqlite":
        # local dev; postgres schemas come from alembic
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    try:
        yield
    finally:
        if app.state.redis is not None:
            await app.state.redis.aclose()
        await engine.dispose()


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[AsyncEngine] = None,
    mailer: Optional[Mailer] = None,
    redis: Optional[Any] = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    # collaborators, built once and shared by every request
    app.state.settings = settings
    app.state.engine = engine or build_engine(settings)
    app.state.sessionmaker = build_sessionmaker(app.state.engine)
    app.state.mailer = mailer or build_mailer(settings)
    app.state.redis = redis if redis is not None else build_redis(settings)
    app.state.rate_limiter = OtpRateLimiter.from_settings(settings, app.state.redis)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[settings.REQUEST_ID_HEADER],
    )

    # then your custom middlewares
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsHTTPMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router.router)
    app.include_router(auth_router.router)
    app.include_router(notes_router.router)
    app.include_router(metrics_router.router)

    return app
