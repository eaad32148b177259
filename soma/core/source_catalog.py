"""Async HTTP client reading public playlist and album listings from Yandex Music."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Any, Final

import httpx

from soma.logging import get_logger
from soma.logging_events import log_event

logger = get_logger(__name__)

LOOKUP_BATCH_SIZE: Final[int] = 100

_SOURCE_LINK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"https://music\.yandex\.(?:ru|com)/(?:playlist|users|album|artist|label)/[^/]+"
    r"(?:/playlists|/albums)?/?[^/]*/?[^/]*"
)
_PLAYLIST_PATTERN: Final[re.Pattern[str]] = re.compile(r"users/([^/]+)/playlists/(\d+)")
_ALBUM_PATTERN: Final[re.Pattern[str]] = re.compile(r"album/(\d+)")


class SourceCatalogError(RuntimeError):
    """Raised when the source catalog could not be fetched or decoded."""


class SourceCatalogHTTPStatusError(SourceCatalogError):
    """Raised when the source catalog responded with a non-success status."""

    def __init__(self, status_code: int, message: str, *, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SourceCatalogInvalidResponseError(SourceCatalogError):
    """Raised when a source catalog payload does not have the expected shape."""


class SourceKind(str, Enum):
    PLAYLIST = "playlist"
    ALBUM = "album"


@dataclass(slots=True, frozen=True)
class SourceLink:
    """A recognised source catalog link."""

    url: str
    kind: SourceKind
    identifier: str
    owner: str | None = None


@dataclass(slots=True, frozen=True)
class SourceTrack:
    artist: str
    title: str
    source_index: int


@dataclass(slots=True)
class SourceListing:
    """Tracks of a source playlist or album in source order."""

    link: str
    kind: SourceKind | None = None
    tracks: list[SourceTrack] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tracks)

    def __iter__(self) -> Iterator[SourceTrack]:
        return iter(self.tracks)

    @property
    def is_empty(self) -> bool:
        return not self.tracks


def parse_source_link(url: str | None) -> SourceLink | None:
    """Recognise a Yandex Music playlist or album link.

    Playlists are addressed as ``/users/<owner>/playlists/<kind>`` and albums as
    ``/album/<id>``. Any other shape, including artist and label pages, yields
    ``None``.
    """

    if not url:
        return None
    candidate = url.strip()
    if not _SOURCE_LINK_PATTERN.fullmatch(candidate):
        return None

    playlist_match = _PLAYLIST_PATTERN.search(candidate)
    if playlist_match:
        return SourceLink(
            url=candidate,
            kind=SourceKind.PLAYLIST,
            identifier=playlist_match.group(2),
            owner=playlist_match.group(1),
        )

    album_match = _ALBUM_PATTERN.search(candidate)
    if album_match:
        return SourceLink(url=candidate, kind=SourceKind.ALBUM, identifier=album_match.group(1))

    return None


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass(slots=True)
class SourceCatalogClient:
    """HTTPX based client for the public Yandex Music web handlers."""

    base_url: str = "https://music.yandex.ru"
    timeout_ms: int = 10_000
    transport: httpx.AsyncBaseTransport | None = None

    async def fetch_listing(self, url: str) -> SourceListing:
        """Return the ordered tracks behind ``url``.

        Unrecognised links produce an empty listing without touching the network.
        Transport and decoding failures raise :class:`SourceCatalogError`.
        """

        link = parse_source_link(url)
        if link is None:
            logger.info("Source link %r is not a supported playlist or album", url)
            return SourceListing(link=url)

        async with self._client() as client:
            track_ids = await self._fetch_track_ids(client, link)
            tracks: list[SourceTrack] = []
            for batch in chunked(track_ids, LOOKUP_BATCH_SIZE):
                entries = await self._lookup_entries(client, batch)
                for entry in entries:
                    tracks.append(_to_source_track(entry, source_index=len(tracks)))

        log_event(
            logger,
            "source.listing",
            component="source_catalog",
            status="ok",
            kind=link.kind.value,
            identifiers=len(track_ids),
            tracks=len(tracks),
        )
        return SourceListing(link=link.url, kind=link.kind, tracks=tracks)

    async def _fetch_track_ids(
        self, client: httpx.AsyncClient, link: SourceLink
    ) -> list[str]:
        if link.kind is SourceKind.PLAYLIST:
            params = {"owner": link.owner, "kinds": link.identifier, "light": "true"}
            payload = await self._request(client, "GET", "/handlers/playlist.jsx", params=params)
            container = payload.get("playlist") if isinstance(payload, Mapping) else None
        else:
            params = {"album": link.identifier, "light": "true"}
            payload = await self._request(client, "GET", "/handlers/album.jsx", params=params)
            container = payload

        if not isinstance(container, Mapping):
            raise SourceCatalogInvalidResponseError("source manifest has no track container")
        raw_ids = container.get("trackIds")
        if not isinstance(raw_ids, list):
            raise SourceCatalogInvalidResponseError("source manifest is missing trackIds")
        return [str(item) for item in raw_ids if item is not None and str(item).strip()]

    async def _lookup_entries(
        self, client: httpx.AsyncClient, track_ids: Sequence[str]
    ) -> list[Mapping[str, Any]]:
        payload = await self._request(
            client,
            "POST",
            "/handlers/track-entries.jsx",
            data={"entries": ",".join(track_ids)},
        )
        if not isinstance(payload, list):
            raise SourceCatalogInvalidResponseError("track lookup did not return a list")
        return [entry for entry in payload if isinstance(entry, Mapping)]

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url.rstrip("/"),
            timeout=self._build_timeout(self.timeout_ms),
            headers={"Accept": "application/json"},
            transport=self.transport,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> Any:
        try:
            response = await client.request(method, path, params=params, data=data)
        except httpx.TimeoutException as exc:
            raise SourceCatalogError(f"source catalog request timed out: {path}") from exc
        except httpx.HTTPError as exc:
            raise SourceCatalogError(f"source catalog request failed: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise SourceCatalogHTTPStatusError(
                response.status_code,
                f"source catalog returned status {response.status_code} for {path}",
                body=response.text[:200],
            )
        return self._decode_json(response)

    @staticmethod
    def _decode_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise SourceCatalogInvalidResponseError("source catalog returned invalid JSON") from exc

    @staticmethod
    def _build_timeout(timeout_ms: int) -> httpx.Timeout:
        timeout_seconds = max(timeout_ms, 100) / 1000
        connect_timeout = min(timeout_seconds, 5.0)
        return httpx.Timeout(
            timeout_seconds,
            connect=connect_timeout,
            read=timeout_seconds,
            write=timeout_seconds,
        )


def _to_source_track(entry: Mapping[str, Any], *, source_index: int) -> SourceTrack:
    title = entry.get("title")
    if not isinstance(title, str):
        raise SourceCatalogInvalidResponseError("track entry is missing a title")
    artists = entry.get("artists")
    names: list[str] = []
    if isinstance(artists, list):
        for artist in artists:
            if isinstance(artist, Mapping) and isinstance(artist.get("name"), str):
                names.append(artist["name"])
    return SourceTrack(artist=", ".join(names), title=title, source_index=source_index)


__all__ = [
    "LOOKUP_BATCH_SIZE",
    "SourceCatalogClient",
    "SourceCatalogError",
    "SourceCatalogHTTPStatusError",
    "SourceCatalogInvalidResponseError",
    "SourceKind",
    "SourceLink",
    "SourceListing",
    "SourceTrack",
    "chunked",
    "parse_source_link",
]
