from contextlib import asynccontextmanager
from fastapi import FastAPI
import redis.asyncio as redis

from .config import BOOKING_STORE, BOOKING_GUARD, REDIS_URL, LEASE_TTL_SECONDS
from .guard import InFlightGuard, RedisLeaseGuard
from .lifecycle import BookingLifecycle
from .logger import logger, setup_logging
from .middleware import RequestLoggingMiddleware
from .routes import router
from .store import InMemoryStore


def build_store():
    if BOOKING_STORE == "memory":
        return InMemoryStore()
    if BOOKING_STORE == "sql":
        from .db import build_sessionmaker
        from .sql_store import SqlStore

        engine, session_factory = build_sessionmaker()
        return SqlStore(session_factory, engine)
    raise RuntimeError(f"Unknown BOOKING_STORE: {BOOKING_STORE}")


def build_guard():
    if BOOKING_GUARD == "local":
        return InFlightGuard()
    if BOOKING_GUARD == "redis":
        if not REDIS_URL:
            raise RuntimeError("REDIS_URL environment variable is not set")
        return RedisLeaseGuard(redis.from_url(REDIS_URL, decode_responses=True), LEASE_TTL_SECONDS)
    raise RuntimeError(f"Unknown BOOKING_GUARD: {BOOKING_GUARD}")


def create_app(lifecycle: BookingLifecycle | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        logger.info(f"[booking-service] started (store={BOOKING_STORE}, guard={BOOKING_GUARD})")
        yield
        running = app.state.lifecycle
        if hasattr(running.guard, "close"):
            await running.guard.close()
        await running.store.close()
        logger.info("[booking-service] stopped")

    app = FastAPI(title="Booking Service", lifespan=lifespan)
    app.state.lifecycle = lifecycle or BookingLifecycle(build_store(), build_guard())
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "booking-service"}

    return app


app = create_app()
