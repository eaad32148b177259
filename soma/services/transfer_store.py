"""Persistence of transfer jobs and their lifecycle transitions."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from soma.db import session_scope
from soma.logging import get_logger
from soma.logging_events import log_event
from soma.models import ALLOWED_TRANSITIONS, PlaylistTransfer, TransferStatus

logger = get_logger(__name__)

_ERROR_MESSAGE_LIMIT = 2048


class InvalidTransitionError(RuntimeError):
    """Raised when a job mutation would violate its lifecycle invariants."""

    def __init__(self, job_id: int, message: str) -> None:
        super().__init__(f"transfer {job_id}: {message}")
        self.job_id = job_id


class TransferNotFoundError(LookupError):
    """Raised when a transfer id does not exist."""

    def __init__(self, job_id: int) -> None:
        super().__init__(f"transfer {job_id} not found")
        self.job_id = job_id


@dataclass(slots=True, frozen=True)
class TransferRecord:
    """Immutable snapshot of a persisted transfer job."""

    id: int
    owner_ref: str
    source_link: str
    destination_link: Optional[str]
    status: TransferStatus
    track_count: int
    transferred_count: int
    created_at: datetime
    updated_at: datetime
    error_message: Optional[str]

    @classmethod
    def from_model(cls, row: PlaylistTransfer) -> "TransferRecord":
        return cls(
            id=int(row.id),
            owner_ref=row.owner_ref,
            source_link=row.source_link,
            destination_link=row.destination_link,
            status=TransferStatus(row.status),
            track_count=int(row.track_count or 0),
            transferred_count=int(row.transferred_count or 0),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            error_message=row.error_message,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _truncate(message: str) -> str:
    return message[:_ERROR_MESSAGE_LIMIT]


class TransferJobStore:
    """Synchronous job store; every mutation commits before returning.

    Async callers run these methods through ``asyncio.to_thread``.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
    ) -> None:
        self._session_factory = session_factory

    def create(
        self,
        owner_ref: str,
        source_link: str,
        destination_link: Optional[str] = None,
    ) -> TransferRecord:
        with self._session_factory() as session:
            row = PlaylistTransfer(
                owner_ref=owner_ref,
                source_link=source_link,
                destination_link=destination_link,
                status=TransferStatus.PENDING.value,
                track_count=0,
                transferred_count=0,
            )
            session.add(row)
            session.flush()
            record = TransferRecord.from_model(row)
        log_event(
            logger,
            "transfer.status",
            component="transfer_store",
            status=record.status.value,
            entity_id=record.id,
        )
        return record

    def get(self, job_id: int) -> Optional[TransferRecord]:
        with self._session_factory() as session:
            row = session.get(PlaylistTransfer, job_id)
            if row is None:
                return None
            return TransferRecord.from_model(row)

    def list_for_owner(self, owner_ref: str) -> list[TransferRecord]:
        """Return the owner's transfers, newest first."""

        with self._session_factory() as session:
            rows = (
                session.execute(
                    select(PlaylistTransfer)
                    .where(PlaylistTransfer.owner_ref == owner_ref)
                    .order_by(PlaylistTransfer.created_at.desc(), PlaylistTransfer.id.desc())
                )
                .scalars()
                .all()
            )
            return [TransferRecord.from_model(row) for row in rows]

    def start(self, job_id: int) -> TransferRecord:
        return self._transition(job_id, TransferStatus.IN_PROGRESS)

    def set_track_count(self, job_id: int, track_count: int) -> TransferRecord:
        if track_count < 0:
            raise InvalidTransitionError(job_id, "track count must not be negative")

        def _apply(row: PlaylistTransfer) -> None:
            self._require_status(row, TransferStatus.IN_PROGRESS)
            if row.track_count:
                raise InvalidTransitionError(job_id, "track count is already set")
            row.track_count = track_count

        return self._mutate(job_id, _apply)

    def record_batch(self, job_id: int, transferred_count: int) -> TransferRecord:
        def _apply(row: PlaylistTransfer) -> None:
            self._require_status(row, TransferStatus.IN_PROGRESS)
            if transferred_count < row.transferred_count:
                raise InvalidTransitionError(job_id, "transferred count must not decrease")
            if transferred_count > row.track_count:
                raise InvalidTransitionError(job_id, "transferred count exceeds track count")
            row.transferred_count = transferred_count

        record = self._mutate(job_id, _apply)
        log_event(
            logger,
            "transfer.batch",
            component="transfer_store",
            status=record.status.value,
            entity_id=job_id,
            transferred=record.transferred_count,
            total=record.track_count,
        )
        return record

    def set_destination_link(self, job_id: int, destination_link: str) -> TransferRecord:
        def _apply(row: PlaylistTransfer) -> None:
            if TransferStatus(row.status).is_terminal:
                raise InvalidTransitionError(job_id, f"job is already {row.status}")
            row.destination_link = destination_link

        return self._mutate(job_id, _apply)

    def complete(self, job_id: int) -> TransferRecord:
        def _guard(row: PlaylistTransfer) -> None:
            if row.transferred_count != row.track_count:
                raise InvalidTransitionError(
                    job_id, "cannot complete before every matched track is written"
                )

        return self._transition(job_id, TransferStatus.COMPLETED, guard=_guard)

    def fail(self, job_id: int, message: str) -> TransferRecord:
        return self._transition(job_id, TransferStatus.FAILED, error_message=message)

    def mark_partial(self, job_id: int, message: str) -> TransferRecord:
        def _guard(row: PlaylistTransfer) -> None:
            if not row.transferred_count:
                raise InvalidTransitionError(job_id, "partial requires at least one written batch")

        return self._transition(
            job_id, TransferStatus.PARTIAL, error_message=message, guard=_guard
        )

    def _transition(
        self,
        job_id: int,
        target: TransferStatus,
        *,
        error_message: Optional[str] = None,
        guard: Optional[Callable[[PlaylistTransfer], None]] = None,
    ) -> TransferRecord:
        def _apply(row: PlaylistTransfer) -> None:
            current = TransferStatus(row.status)
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    job_id, f"transition {current.value} -> {target.value} is not allowed"
                )
            if guard is not None:
                guard(row)
            row.status = target.value
            if error_message is not None:
                row.error_message = _truncate(error_message)

        record = self._mutate(job_id, _apply)
        log_event(
            logger,
            "transfer.status",
            component="transfer_store",
            status=record.status.value,
            entity_id=job_id,
            transferred=record.transferred_count,
            total=record.track_count,
        )
        return record

    def _mutate(
        self, job_id: int, apply: Callable[[PlaylistTransfer], None]
    ) -> TransferRecord:
        with self._session_factory() as session:
            row = session.get(PlaylistTransfer, job_id)
            if row is None:
                raise TransferNotFoundError(job_id)
            apply(row)
            session.flush()
            return TransferRecord.from_model(row)

    @staticmethod
    def _require_status(row: PlaylistTransfer, expected: TransferStatus) -> None:
        if row.status != expected.value:
            raise InvalidTransitionError(
                int(row.id), f"expected status {expected.value}, found {row.status}"
            )


__all__ = [
    "InvalidTransitionError",
    "TransferJobStore",
    "TransferNotFoundError",
    "TransferRecord",
]
