"""
FastAPI application entry point for Callboard.

Startup: load config, configure logging, wire the event store, trigger
store, dispatcher and ingestor, start one watcher per event source.
Shutdown: stop watchers, wait for in-flight agent runs.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Iterable

from fastapi import FastAPI

if TYPE_CHECKING:
    from .config import Config
    from .core.executor import AgentExecutor
    from .service.watcher import EventSource

log = logging.getLogger("callboard.server")

SHUTDOWN_DRAIN_TIMEOUT = 5.0


def create_app(
    config: "Config | None" = None,
    executor: "AgentExecutor | None" = None,
    sources: "Iterable[EventSource]" = (),
    configure_logs: bool = True,
) -> FastAPI:
    sources = list(sources)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 1. Config
        from .config import get_config
        cfg = config or get_config()

        # 2. Logging
        if configure_logs:
            from .logging_config import configure_logging
            log_file = configure_logging(cfg)
            log.info("Logging to %s", log_file.name)

        # 3. Stores
        from .core.event_log import EventStore
        from .core.trigger_store import FileTriggerStore
        event_store = EventStore.from_config(cfg)
        triggers = FileTriggerStore(agents_dir=cfg.agents_dir)

        # 4. Dispatch + ingestion
        from .core.agent import list_agents
        from .core.executor import LoggingExecutor
        from .service.dispatcher import TriggerDispatcher
        from .service.ingest import EventIngestor
        dispatcher = TriggerDispatcher(
            list_agents=lambda: list_agents(cfg),
            triggers=triggers,
            executor=executor or LoggingExecutor(),
            loop=asyncio.get_running_loop(),
        )
        ingestor = EventIngestor(store=event_store, dispatcher=dispatcher)

        # 5. Watchers
        from .service.watcher import EventWatcher
        watchers = [
            EventWatcher(
                source=s, ingestor=ingestor,
                poll_interval=cfg.poll_interval, max_backoff=cfg.max_backoff,
            )
            for s in sources
        ]
        for w in watchers:
            w.start()

        app.state.config = cfg
        app.state.event_store = event_store
        app.state.triggers = triggers
        app.state.dispatcher = dispatcher
        app.state.ingestor = ingestor
        app.state.watchers = watchers

        log.info("Started  base_dir=%s sources=%d", cfg.base_dir, len(watchers))

        yield

        # Shutdown
        log.info("Shutting down...")
        for w in watchers:
            await w.stop()
        try:
            await asyncio.wait_for(dispatcher.drain(), timeout=SHUTDOWN_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            log.warning("Agent runs still in flight at shutdown  count=%d", dispatcher.pending)
        log.info("Shutdown complete")

    app = FastAPI(title="Callboard", version="1.0.0", lifespan=lifespan)

    # Health endpoint
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # API routes
    from .api.routes.events import router as events_router
    from .api.routes.triggers import router as triggers_router

    app.include_router(events_router, prefix="/api")
    app.include_router(triggers_router, prefix="/api")

    return app


if __name__ == "__main__":
    import uvicorn
    from .config import get_config

    cfg = get_config()
    uvicorn.run(create_app(cfg), host=cfg.host, port=cfg.port)
