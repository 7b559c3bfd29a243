"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from driftchat.config import Settings, get_settings
from driftchat.logging_config import configure_logging
from driftchat.routers import conversations, links, realtime
from driftchat.services.entity_store import EntityStore
from driftchat.services.garbage_collector import GarbageCollector
from driftchat.services.gateway import SessionGateway
from driftchat.services.relay import RelayEngine
from driftchat.services.store_backend import SqlAlchemyStoreBackend
from driftchat.services.ttl import Clock, TtlPolicy, utc_now

logger = logging.getLogger(__name__)


def _build_store(settings: Settings, clock: Clock) -> EntityStore:
    backend = None
    if settings.database_url:
        backend = SqlAlchemyStoreBackend.from_url(settings.database_url)
    store = EntityStore(
        TtlPolicy.from_settings(settings),
        clock=clock,
        backend=backend,
        max_message_length=settings.max_message_length,
    )
    store.hydrate()
    return store


def create_app(settings: Settings | None = None, *, clock: Clock = utc_now) -> FastAPI:
    """Build the relay application; state is created per app instance."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        store = _build_store(settings, clock)
        relay = RelayEngine(store)
        collector = GarbageCollector(store, relay=relay, interval_seconds=settings.sweep_interval_seconds)
        app.state.store = store
        app.state.relay = relay
        app.state.gateway = SessionGateway(store, relay)
        app.state.collector = collector

        if settings.sweep_on_startup:
            await collector.sweep_safely()
        collector.start()
        logger.info(
            "relay.started persistence=%s link_ttl_s=%s message_ttl_s=%d",
            store.backend is not None,
            settings.link_ttl_seconds,
            settings.message_ttl_seconds,
        )
        try:
            yield
        finally:
            await collector.stop()
            logger.info("relay.stopped")

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(links.router, tags=["links"])
    app.include_router(conversations.router, tags=["conversations"])
    app.include_router(realtime.router, tags=["realtime"])

    @app.get("/api/health")
    def health(request: Request) -> dict[str, Any]:
        """Liveness plus store and room counters."""

        state = request.app.state
        return {
            "status": "ok",
            "persistence": state.store.backend is not None,
            "sweeper_running": state.collector.running,
            "store": state.store.stats(),
            "relay": state.relay.stats(),
        }

    return app


app = create_app()
