"""Pydantic schemas for request and response bodies."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from soma.models import TransferStatus
from soma.services.transfer_store import TransferRecord


class NewPlaylistTransferRequest(BaseModel):
    destination_playlist_name: str = Field(
        alias="destinationPlaylistName", min_length=1, max_length=100
    )
    source_link: str = Field(alias="sourceLink", min_length=1, max_length=1024)
    caller_credential_ref: str = Field(alias="callerCredentialRef", min_length=1)

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "destinationPlaylistName": "Road trip",
                "sourceLink": "https://music.yandex.ru/users/someone/playlists/1001",
                "callerCredentialRef": "user-42",
            }
        },
    }


class ExistingPlaylistTransferRequest(BaseModel):
    source_link: str = Field(alias="sourceLink", min_length=1, max_length=1024)
    destination_playlist_link: str = Field(
        alias="destinationPlaylistLink", min_length=1, max_length=1024
    )
    caller_credential_ref: str = Field(alias="callerCredentialRef", min_length=1)

    model_config = {"populate_by_name": True}


class TransferSubmissionResponse(BaseModel):
    success: bool = True
    transfer_id: int = Field(alias="transferId")

    model_config = {"populate_by_name": True}


class TransferProgressResponse(BaseModel):
    id: int
    source_link: str = Field(alias="sourceLink")
    destination_link: Optional[str] = Field(None, alias="destinationLink")
    status: TransferStatus
    track_count: int = Field(0, alias="trackCount")
    transferred_count: int = Field(0, alias="transferredCount")
    created_at: datetime = Field(alias="createdAt")
    error_message: Optional[str] = Field(None, alias="errorMessage")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_record(cls, record: TransferRecord) -> "TransferProgressResponse":
        return cls(
            id=record.id,
            source_link=record.source_link,
            destination_link=record.destination_link,
            status=record.status,
            track_count=record.track_count,
            transferred_count=record.transferred_count,
            created_at=record.created_at,
            error_message=record.error_message,
        )


class TransferHistoryResponse(BaseModel):
    items: List[TransferProgressResponse] = Field(default_factory=list)


class LivenessResponse(BaseModel):
    status: str = "ok"
