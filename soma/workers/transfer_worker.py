"""Asynchronous execution of playlist transfers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional, TypeVar

from soma.core.source_catalog import SourceCatalogClient
from soma.core.spotify_client import SpotifyClient
from soma.logging import get_logger
from soma.logging_events import log_event
from soma.services.handle_store import TaskHandleStore
from soma.services.playlist_writer import (
    BatchWriteError,
    DestinationPlaylist,
    InvalidPlaylistLinkError,
    PlaylistWriter,
)
from soma.services.track_matcher import TrackMatcher
from soma.services.transfer_store import TransferJobStore

logger = get_logger(__name__)

T = TypeVar("T")

NO_SOURCE_TRACKS_MESSAGE = "No tracks found in source playlist"
NO_MATCHES_MESSAGE = "No matching tracks found on Spotify"
INVALID_PLAYLIST_LINK_MESSAGE = "Invalid Spotify playlist link"

SpotifyClientFactory = Callable[[str], SpotifyClient]


class EmptyResultError(RuntimeError):
    """Raised when a transfer has nothing to write."""


class PlaylistResolutionError(RuntimeError):
    """Raised when the destination playlist could not be created."""


@dataclass(slots=True, frozen=True)
class _Destination:
    name: Optional[str] = None
    existing: Optional[DestinationPlaylist] = None


@dataclass(slots=True)
class _Progress:
    """Transferred count last persisted for a running job."""

    persisted: int = 0


class TransferWorker:
    """Run each submitted transfer as its own task, bounded by a semaphore."""

    def __init__(
        self,
        *,
        store: TransferJobStore,
        source_catalog: SourceCatalogClient,
        matcher: TrackMatcher | None = None,
        writer: PlaylistWriter | None = None,
        client_factory: SpotifyClientFactory | None = None,
        max_concurrency: int = 4,
        handle_ttl: timedelta = timedelta(hours=1),
        request_timeout_s: int = 10,
    ) -> None:
        self._store = store
        self._source = source_catalog
        self._matcher = matcher or TrackMatcher()
        self._writer = writer or PlaylistWriter()
        self._client_factory = client_factory or (
            lambda token: SpotifyClient(token, request_timeout_s=request_timeout_s)
        )
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._handles = TaskHandleStore(ttl=handle_ttl)

    @property
    def handles(self) -> TaskHandleStore:
        return self._handles

    async def submit_new_playlist(
        self,
        owner_ref: str,
        source_link: str,
        playlist_name: str,
        access_token: str,
    ) -> int:
        record = await self._call(self._store.create, owner_ref, source_link, None)
        self._spawn(
            owner_ref, record.id, source_link, access_token, _Destination(name=playlist_name)
        )
        return record.id

    async def submit_existing_playlist(
        self,
        owner_ref: str,
        source_link: str,
        playlist_link: str,
        access_token: str,
    ) -> int:
        """Submit a transfer into an existing playlist.

        A link without a playlist id is recorded as a failed transfer and raised
        as :class:`InvalidPlaylistLinkError` carrying that transfer's id; no task
        is started for it.
        """

        record = await self._call(self._store.create, owner_ref, source_link, playlist_link)
        try:
            destination = self._writer.resolve_existing(playlist_link)
        except InvalidPlaylistLinkError:
            await self._call(self._store.fail, record.id, INVALID_PLAYLIST_LINK_MESSAGE)
            raise InvalidPlaylistLinkError(playlist_link, transfer_id=record.id) from None
        self._spawn(
            owner_ref, record.id, source_link, access_token, _Destination(existing=destination)
        )
        return record.id

    async def wait(self, job_id: int) -> None:
        handle = self._handles.get(job_id)
        if handle is None:
            return
        await handle.task

    async def shutdown(self) -> None:
        tasks = [handle.task for handle in self._handles.running()]
        if not tasks:
            return
        logger.info("Waiting for %s running transfer(s) to finish", len(tasks))
        await asyncio.gather(*tasks, return_exceptions=True)

    def _spawn(
        self,
        owner_ref: str,
        job_id: int,
        source_link: str,
        access_token: str,
        destination: _Destination,
    ) -> None:
        task = asyncio.create_task(
            self._run_job(job_id, source_link, access_token, destination),
            name=f"transfer-{job_id}",
        )
        self._handles.put(owner_ref, job_id, task)
        task.add_done_callback(lambda _: self._handles.mark_finished(job_id))
        log_event(
            logger,
            "transfer.submitted",
            component="transfer_worker",
            status="accepted",
            entity_id=job_id,
            mode="new" if destination.existing is None else "existing",
        )

    async def _run_job(
        self,
        job_id: int,
        source_link: str,
        access_token: str,
        destination: _Destination,
    ) -> None:
        progress = _Progress()
        async with self._semaphore:
            try:
                await self._call(self._store.start, job_id)
                await self._execute(job_id, source_link, access_token, destination, progress)
            except Exception as exc:
                if isinstance(exc, BatchWriteError):
                    message = f"Failed to add tracks to playlist: {exc}"
                else:
                    message = str(exc) or type(exc).__name__
                # Tracks already persisted stay in the playlist.
                terminal = self._store.mark_partial if progress.persisted else self._store.fail
                await self._finish(terminal, job_id, message)
            else:
                await self._finish(self._store.complete, job_id)

    async def _execute(
        self,
        job_id: int,
        source_link: str,
        access_token: str,
        destination: _Destination,
        progress: _Progress,
    ) -> None:
        listing = await self._source.fetch_listing(source_link)
        if listing.is_empty:
            raise EmptyResultError(NO_SOURCE_TRACKS_MESSAGE)

        client = self._client_factory(access_token)
        matches = await self._matcher.match(client, listing.tracks, job_id=job_id)
        await self._call(self._store.set_track_count, job_id, len(matches))
        if not matches:
            raise EmptyResultError(NO_MATCHES_MESSAGE)

        playlist = destination.existing
        if playlist is None:
            try:
                playlist = await self._writer.create_playlist(client, destination.name or "")
            except Exception as exc:
                raise PlaylistResolutionError(f"Failed to create playlist: {exc}") from exc
            await self._call(self._store.set_destination_link, job_id, playlist.link)

        async def _on_batch(written: int) -> None:
            await self._call(self._store.record_batch, job_id, written)
            progress.persisted = written

        await self._writer.write(client, playlist.id, [match.uri for match in matches], _on_batch)

    async def _finish(self, func: Callable[..., Any], *args: Any) -> None:
        try:
            await self._call(func, *args)
        except Exception:
            logger.exception("Failed to record terminal state for transfer %s", args[0])

    @staticmethod
    async def _call(func: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(func, *args)


__all__ = [
    "EmptyResultError",
    "NO_MATCHES_MESSAGE",
    "NO_SOURCE_TRACKS_MESSAGE",
    "PlaylistResolutionError",
    "TransferWorker",
]
