"""Transfer submission and progress endpoints."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from soma.dependencies import get_credential_store, get_transfer_store, get_transfer_worker
from soma.errors import NotFoundError
from soma.logging import get_logger
from soma.schemas import (
    ExistingPlaylistTransferRequest,
    NewPlaylistTransferRequest,
    TransferHistoryResponse,
    TransferProgressResponse,
    TransferSubmissionResponse,
)
from soma.services.credentials import SpotifyCredentialStore
from soma.services.transfer_store import TransferJobStore
from soma.workers.transfer_worker import TransferWorker

router = APIRouter(prefix="/transfers", tags=["Transfers"])

logger = get_logger(__name__)


def _accepted(transfer_id: int) -> JSONResponse:
    response = TransferSubmissionResponse(transfer_id=transfer_id)
    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=response.model_dump(by_alias=True),
    )


@router.post(
    "/new-playlist",
    response_model=TransferSubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_new_playlist_transfer(
    payload: NewPlaylistTransferRequest,
    credentials: SpotifyCredentialStore = Depends(get_credential_store),
    worker: TransferWorker = Depends(get_transfer_worker),
) -> JSONResponse:
    credential = await credentials.resolve(payload.caller_credential_ref)
    transfer_id = await worker.submit_new_playlist(
        credential.owner_ref,
        payload.source_link,
        payload.destination_playlist_name,
        credential.access_token,
    )
    return _accepted(transfer_id)


@router.post(
    "/existing-playlist",
    response_model=TransferSubmissionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def submit_existing_playlist_transfer(
    payload: ExistingPlaylistTransferRequest,
    credentials: SpotifyCredentialStore = Depends(get_credential_store),
    worker: TransferWorker = Depends(get_transfer_worker),
) -> JSONResponse:
    credential = await credentials.resolve(payload.caller_credential_ref)
    transfer_id = await worker.submit_existing_playlist(
        credential.owner_ref,
        payload.source_link,
        payload.destination_playlist_link,
        credential.access_token,
    )
    return _accepted(transfer_id)


@router.get("/{transfer_id}", response_model=TransferProgressResponse)
async def get_transfer_progress(
    transfer_id: int,
    store: TransferJobStore = Depends(get_transfer_store),
) -> JSONResponse:
    record = await asyncio.to_thread(store.get, transfer_id)
    if record is None:
        raise NotFoundError(f"Transfer {transfer_id} not found.")
    response = TransferProgressResponse.from_record(record)
    return JSONResponse(content=response.model_dump(by_alias=True, mode="json"))


@router.get("", response_model=TransferHistoryResponse)
async def list_transfers(
    owner: str = Query(..., min_length=1, description="Caller credential reference."),
    store: TransferJobStore = Depends(get_transfer_store),
) -> JSONResponse:
    records = await asyncio.to_thread(store.list_for_owner, owner)
    response = TransferHistoryResponse(
        items=[TransferProgressResponse.from_record(record) for record in records]
    )
    return JSONResponse(content=response.model_dump(by_alias=True, mode="json"))


__all__ = ["router"]
