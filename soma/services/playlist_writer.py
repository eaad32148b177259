"""Create or resolve Spotify playlists and add tracks in rate-limited batches."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from soma.core.source_catalog import chunked
from soma.core.spotify_client import SpotifyClient, SpotifyClientError
from soma.errors import ValidationAppError
from soma.logging import get_logger
from soma.utils.spotify_url import build_playlist_url, parse_playlist_id

logger = get_logger(__name__)

WRITE_BATCH_SIZE = 100

BatchCallback = Callable[[int], Awaitable[None]]


class InvalidPlaylistLinkError(ValidationAppError):
    """Raised when a destination playlist link carries no playlist id."""

    def __init__(self, link: str, *, transfer_id: Optional[int] = None) -> None:
        meta: dict[str, Any] = {"playlistLink": link}
        if transfer_id is not None:
            meta["transferId"] = transfer_id
        super().__init__("Invalid Spotify playlist link", meta=meta)
        self.link = link
        self.transfer_id = transfer_id


class BatchWriteError(RuntimeError):
    """Raised when adding a batch fails; ``written`` counts tracks added before it."""

    def __init__(self, message: str, *, written: int) -> None:
        super().__init__(message)
        self.written = written


@dataclass(slots=True, frozen=True)
class DestinationPlaylist:
    id: str
    link: str


class PlaylistWriter:
    def __init__(
        self,
        *,
        batch_delay_ms: int = 200,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._batch_delay = max(batch_delay_ms, 0) / 1000
        self._sleep = sleep or asyncio.sleep

    async def create_playlist(self, client: SpotifyClient, name: str) -> DestinationPlaylist:
        user_id = await asyncio.to_thread(client.current_user_id)
        payload = await asyncio.to_thread(client.create_playlist, user_id, name)
        playlist_id = str(payload["id"])
        return DestinationPlaylist(id=playlist_id, link=_shareable_link(payload, playlist_id))

    def resolve_existing(self, link: str) -> DestinationPlaylist:
        """Resolve an existing playlist from its share link without any network call."""

        playlist_id = parse_playlist_id(link)
        if playlist_id is None:
            raise InvalidPlaylistLinkError(link)
        return DestinationPlaylist(id=playlist_id, link=link.strip())

    async def write(
        self,
        client: SpotifyClient,
        playlist_id: str,
        uris: Sequence[str],
        on_batch: Optional[BatchCallback] = None,
    ) -> int:
        """Add ``uris`` in batches of at most :data:`WRITE_BATCH_SIZE`.

        ``on_batch`` receives the running total after every successful batch.
        The configured delay is awaited between batches only.
        """

        written = 0
        for index, batch in enumerate(chunked(uris, WRITE_BATCH_SIZE)):
            if index and self._batch_delay:
                await self._sleep(self._batch_delay)
            try:
                await asyncio.to_thread(client.add_tracks_to_playlist, playlist_id, list(batch))
            except SpotifyClientError as exc:
                logger.warning(
                    "Adding batch %s to playlist %s failed after %s tracks",
                    index + 1,
                    playlist_id,
                    written,
                )
                raise BatchWriteError(str(exc), written=written) from exc
            written += len(batch)
            if on_batch is not None:
                await on_batch(written)
        return written


def _shareable_link(payload: Mapping[str, Any], playlist_id: str) -> str:
    external = payload.get("external_urls")
    if isinstance(external, Mapping) and external.get("spotify"):
        return str(external["spotify"])
    return build_playlist_url(playlist_id)


__all__ = [
    "BatchWriteError",
    "DestinationPlaylist",
    "InvalidPlaylistLinkError",
    "PlaylistWriter",
    "WRITE_BATCH_SIZE",
]
