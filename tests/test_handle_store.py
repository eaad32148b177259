import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from soma.services.handle_store import TaskHandleStore


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def test_ttl_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TaskHandleStore(ttl=timedelta(0))


@pytest.mark.asyncio
async def test_finished_handles_expire_after_ttl() -> None:
    clock = _Clock()
    store = TaskHandleStore(ttl=timedelta(seconds=60), now_fn=clock)

    async def _noop() -> None:
        return None

    task = asyncio.create_task(_noop())
    store.put("owner-1", 1, task)
    await task
    store.mark_finished(1)

    clock.advance(59)
    assert store.get(1) is not None
    clock.advance(1)
    assert store.get(1) is None
    assert store.count() == 0


@pytest.mark.asyncio
async def test_running_handles_are_kept_and_scoped_by_owner() -> None:
    clock = _Clock()
    store = TaskHandleStore(ttl=timedelta(seconds=1), now_fn=clock)
    release = asyncio.Event()

    async def _wait() -> None:
        await release.wait()

    first = asyncio.create_task(_wait())
    second = asyncio.create_task(_wait())
    store.put("owner-1", 1, first)
    store.put("owner-2", 2, second)

    clock.advance(3600)
    assert store.count() == 2
    assert [handle.job_id for handle in store.for_owner("owner-1")] == [1]
    assert store.get(2, owner_ref="owner-1") is None
    assert len(store.running()) == 2

    release.set()
    await asyncio.gather(first, second)
    assert store.running() == []
