"""FastAPI dependency providers."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from soma.config import AppConfig, load_config
from soma.errors import DependencyError
from soma.services.credentials import SpotifyCredentialStore
from soma.services.transfer_store import TransferJobStore
from soma.workers.transfer_worker import TransferWorker


@lru_cache
def get_app_config() -> AppConfig:
    return load_config()


def get_transfer_store(request: Request) -> TransferJobStore:
    store = getattr(request.app.state, "transfer_store", None)
    if isinstance(store, TransferJobStore):
        return store
    store = TransferJobStore()
    request.app.state.transfer_store = store
    return store


def get_credential_store(request: Request) -> SpotifyCredentialStore:
    store = getattr(request.app.state, "credential_store", None)
    if isinstance(store, SpotifyCredentialStore):
        return store
    store = SpotifyCredentialStore()
    request.app.state.credential_store = store
    return store


def get_transfer_worker(request: Request) -> TransferWorker:
    worker = getattr(request.app.state, "transfer_worker", None)
    if not isinstance(worker, TransferWorker):
        raise DependencyError("Transfer worker is not running")
    return worker


__all__ = [
    "get_app_config",
    "get_credential_store",
    "get_transfer_store",
    "get_transfer_worker",
]
