"""Database models for the transfer service."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Column, DateTime, Integer, String, Text

from soma.db import Base


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp for ORM defaults."""

    return datetime.now(UTC)


class TransferStatus(str, Enum):
    """Lifecycle states of a playlist transfer."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PARTIAL = "PARTIAL"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {TransferStatus.COMPLETED, TransferStatus.FAILED, TransferStatus.PARTIAL}
)

ALLOWED_TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset({TransferStatus.IN_PROGRESS, TransferStatus.FAILED}),
    TransferStatus.IN_PROGRESS: frozenset(TERMINAL_STATUSES),
    TransferStatus.COMPLETED: frozenset(),
    TransferStatus.FAILED: frozenset(),
    TransferStatus.PARTIAL: frozenset(),
}


class PlaylistTransfer(Base):
    """Persist the status and progress of one playlist transfer."""

    __tablename__ = "playlist_transfers"

    id = Column(Integer, primary_key=True, index=True)
    owner_ref = Column(String(255), nullable=False, index=True)
    source_link = Column(String(1024), nullable=False)
    destination_link = Column(String(1024), nullable=True)
    status = Column(String(32), nullable=False, default=TransferStatus.PENDING.value, index=True)
    track_count = Column(Integer, nullable=False, default=0)
    transferred_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )
    error_message = Column(String(2048), nullable=True)

    def __repr__(self) -> str:
        return f"<PlaylistTransfer id={self.id} owner={self.owner_ref!r} status={self.status!r}>"


class SpotifyAccount(Base):
    """Linked Spotify credentials for an account, written by the account-linking flow."""

    __tablename__ = "spotify_accounts"

    id = Column(Integer, primary_key=True, index=True)
    owner_ref = Column(String(255), nullable=False, unique=True, index=True)
    spotify_user_id = Column(String(100), nullable=True, unique=True)
    display_name = Column(String(100), nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )
