"""In-memory store of running transfer task handles, scoped by owner."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Optional

__all__ = ["TaskHandle", "TaskHandleStore"]


@dataclass(slots=True)
class TaskHandle:
    job_id: int
    owner_ref: str
    task: asyncio.Task[None]
    created_at: datetime
    finished_at: Optional[datetime] = None

    @property
    def done(self) -> bool:
        return self.task.done()

    def is_expired(self, *, reference: datetime, ttl: timedelta) -> bool:
        if self.finished_at is None:
            return False
        return reference >= self.finished_at + ttl


class TaskHandleStore:
    """Thread-safe registry of transfer tasks with TTL eviction once finished.

    Running handles are never evicted. Lookups by owner only return that
    owner's handles.
    """

    def __init__(
        self,
        *,
        ttl: timedelta,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Task handle TTL must be positive")
        self._ttl = ttl
        self._now = now_fn or (lambda: datetime.now(UTC))
        self._handles: dict[int, TaskHandle] = {}
        self._lock = Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def put(self, owner_ref: str, job_id: int, task: asyncio.Task[None]) -> TaskHandle:
        reference = self._now()
        handle = TaskHandle(job_id=job_id, owner_ref=owner_ref, task=task, created_at=reference)
        with self._lock:
            self._purge_expired(reference=reference)
            self._handles[job_id] = handle
        return handle

    def mark_finished(self, job_id: int) -> None:
        with self._lock:
            handle = self._handles.get(job_id)
            if handle is not None and handle.finished_at is None:
                handle.finished_at = self._now()

    def get(self, job_id: int, *, owner_ref: str | None = None) -> TaskHandle | None:
        with self._lock:
            self._purge_expired(reference=self._now())
            handle = self._handles.get(job_id)
            if handle is None:
                return None
            if owner_ref is not None and handle.owner_ref != owner_ref:
                return None
            return handle

    def for_owner(self, owner_ref: str) -> list[TaskHandle]:
        with self._lock:
            self._purge_expired(reference=self._now())
            return [handle for handle in self._handles.values() if handle.owner_ref == owner_ref]

    def running(self) -> list[TaskHandle]:
        with self._lock:
            return [handle for handle in self._handles.values() if not handle.done]

    def purge_expired(self, *, reference: datetime | None = None) -> int:
        moment = reference or self._now()
        with self._lock:
            return self._purge_expired(reference=moment)

    def _purge_expired(self, *, reference: datetime) -> int:
        expired = [
            job_id
            for job_id, handle in self._handles.items()
            if handle.is_expired(reference=reference, ttl=self._ttl)
        ]
        for job_id in expired:
            self._handles.pop(job_id, None)
        return len(expired)

    def count(self) -> int:
        with self._lock:
            self._purge_expired(reference=self._now())
            return len(self._handles)
