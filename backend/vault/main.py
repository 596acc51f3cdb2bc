# vault/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from vault.api import admin, events, messages, users
from vault.core.config import CORS_ORIGINS, DATABASE_URL, SWEEP_INTERVAL_SECONDS
from vault.core.message import MessageService
from vault.core.rate_limit import limiter
from vault.infra.log_store import LogStore
from vault.services.relay_service import EventBroadcaster
from vault.services.subscriber_registry import SubscriberRegistry
from vault.utils.logger import setup_logger

logger = logging.getLogger(__name__)


async def sweep_periodically(service: MessageService, interval: float):
    """Background expiry sweep; the store work runs off the event loop"""
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(service.sweep)
        except Exception:
            logger.exception("Expiry sweep failed")


def create_app(database_url: str = DATABASE_URL, sweep_interval: float = SWEEP_INTERVAL_SECONDS) -> FastAPI:
    store = LogStore(database_url)
    registry = SubscriberRegistry()
    broadcaster = EventBroadcaster(registry)
    service = MessageService(store, broadcaster)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(store.bootstrap)

        sweeper = None
        if sweep_interval > 0:
            sweeper = asyncio.create_task(sweep_periodically(service, sweep_interval))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                try:
                    await sweeper
                except asyncio.CancelledError:
                    pass
            store.dispose()

    app = FastAPI(
        title="Ephemeral Vault",
        version="1.0.0",
        description="Short-lived messages and one-time file shares with live updates",
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.service = service

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Register routers
    app.include_router(messages.router, tags=["Messages"])
    app.include_router(events.router, tags=["Events"])
    app.include_router(users.router, tags=["Users"])
    app.include_router(admin.router, tags=["Admin"])

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


setup_logger()

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("vault.main:app", host="0.0.0.0", port=8000)
