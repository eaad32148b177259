"""Entry point for the Soma transfer FastAPI application."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from soma import __version__
from soma.api import transfers_router
from soma.config import AppConfig, resolve_app_port
from soma.core.source_catalog import SourceCatalogClient
from soma.db import dispose_engine, init_db
from soma.dependencies import get_app_config
from soma.logging import configure_logging, get_logger
from soma.middleware import install_middleware
from soma.schemas import LivenessResponse
from soma.services.credentials import SpotifyCredentialStore
from soma.services.playlist_writer import PlaylistWriter
from soma.services.transfer_store import TransferJobStore
from soma.workers.transfer_worker import TransferWorker

logger = get_logger(__name__)
_APP_LISTEN_HOST = "0.0.0.0"
_LIVE_HEALTH_PATH = "/live"


def build_transfer_worker(config: AppConfig, store: TransferJobStore) -> TransferWorker:
    source_catalog = SourceCatalogClient(
        base_url=config.source_catalog.base_url,
        timeout_ms=config.source_catalog.timeout_ms,
    )
    return TransferWorker(
        store=store,
        source_catalog=source_catalog,
        writer=PlaylistWriter(batch_delay_ms=config.transfer.batch_delay_ms),
        max_concurrency=config.transfer.max_concurrency,
        handle_ttl=timedelta(seconds=config.transfer.handle_ttl_seconds),
        request_timeout_s=config.spotify.request_timeout_s,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = get_app_config()
    configure_logging(config.logging.level)
    init_db()
    logger.info("Database initialised")

    store = TransferJobStore()
    app.state.config_snapshot = config
    app.state.transfer_store = store
    app.state.credential_store = SpotifyCredentialStore()
    app.state.transfer_worker = build_transfer_worker(config, store)

    logger.info(
        "listening on %s:%s path=%s",
        _APP_LISTEN_HOST,
        resolve_app_port(),
        _LIVE_HEALTH_PATH,
        extra={"event": "startup.listening", "path": _LIVE_HEALTH_PATH},
    )
    try:
        yield
    finally:
        worker = getattr(app.state, "transfer_worker", None)
        if isinstance(worker, TransferWorker):
            await worker.shutdown()
        dispose_engine()
        logger.info("Soma application stopped")


app = FastAPI(title="Soma Transfer Service", version=__version__, lifespan=lifespan)
install_middleware(app)
app.include_router(transfers_router)


async def liveness() -> LivenessResponse:
    """Report process liveness independent of other routers."""

    return LivenessResponse(status="ok")


app.add_api_route(
    _LIVE_HEALTH_PATH,
    liveness,
    methods=["GET"],
    response_model=LivenessResponse,
    tags=["System"],
)


def run() -> None:
    import uvicorn

    uvicorn.run("soma.main:app", host=_APP_LISTEN_HOST, port=resolve_app_port())


if __name__ == "__main__":  # pragma: no cover - manual launch
    run()
