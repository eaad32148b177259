"""Shared stubs for the Spotify and Yandex Music collaborators."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from urllib.parse import parse_qs

import httpx
from spotipy.exceptions import SpotifyException

from soma.core.source_catalog import SourceCatalogClient
from soma.core.spotify_client import SpotifyClient

PLAYLIST_LINK = "https://music.yandex.ru/users/listener/playlists/1001"
ALBUM_LINK = "https://music.yandex.ru/album/777"
DESTINATION_LINK = "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M?si=abc"


def track_query(index: int) -> str:
    return f"Artist {index} Song {index}"


class StubSpotipy:
    """Records calls the way ``spotipy.Spotify`` would receive them."""

    def __init__(
        self,
        *,
        unmatched: Iterable[str] = (),
        fail_add_on_call: int | None = None,
        fail_search: bool = False,
        failing_queries: Iterable[str] = (),
        fail_create: bool = False,
    ) -> None:
        self.unmatched = set(unmatched)
        self.fail_add_on_call = fail_add_on_call
        self.fail_search = fail_search
        self.failing_queries = set(failing_queries)
        self.fail_create = fail_create
        self.searches: list[str] = []
        self.add_calls: list[tuple[str, list[str]]] = []
        self.created: list[tuple[str, str]] = []

    def search(self, q: str, limit: int = 10, type: str = "track") -> dict[str, Any]:
        assert limit == 1
        assert type == "track"
        self.searches.append(q)
        if self.fail_search:
            raise SpotifyException(503, -1, "search unavailable")
        if q in self.failing_queries:
            raise SpotifyException(429, -1, "rate limited")
        if q in self.unmatched:
            return {"tracks": {"items": []}}
        return {"tracks": {"items": [{"uri": f"spotify:track:{len(self.searches)}"}]}}

    def current_user(self) -> dict[str, Any]:
        return {"id": "spotify-user"}

    def user_playlist_create(self, user: str, name: str) -> dict[str, Any]:
        if self.fail_create:
            raise SpotifyException(403, -1, "insufficient scope")
        self.created.append((user, name))
        return {
            "id": "newPlaylist01",
            "external_urls": {"spotify": "https://open.spotify.com/playlist/newPlaylist01"},
        }

    def playlist_add_items(self, playlist_id: str, items: list[str]) -> dict[str, Any]:
        call_number = len(self.add_calls) + 1
        if self.fail_add_on_call is not None and call_number == self.fail_add_on_call:
            raise SpotifyException(502, -1, "bad gateway")
        self.add_calls.append((playlist_id, list(items)))
        return {"snapshot_id": f"snap-{call_number}"}

    @property
    def batch_sizes(self) -> list[int]:
        return [len(items) for _, items in self.add_calls]

    def client_factory(self, token: str) -> SpotifyClient:
        assert token
        return SpotifyClient(client=self)


class YandexCatalogStub:
    """Serve manifest and track-entry handlers for ``count`` tracks."""

    def __init__(self, count: int, *, fail_lookup: bool = False) -> None:
        self.count = count
        self.fail_lookup = fail_lookup
        self.requests: list[httpx.Request] = []
        self.lookup_sizes: list[int] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        track_ids = [str(index) for index in range(self.count)]
        if request.url.path == "/handlers/playlist.jsx":
            return httpx.Response(200, json={"playlist": {"trackIds": track_ids}})
        if request.url.path == "/handlers/album.jsx":
            return httpx.Response(200, json={"trackIds": track_ids})
        if request.url.path == "/handlers/track-entries.jsx":
            if self.fail_lookup:
                return httpx.Response(500, text="internal error")
            form = parse_qs(request.content.decode())
            entries = form["entries"][0].split(",")
            self.lookup_sizes.append(len(entries))
            return httpx.Response(
                200,
                json=[
                    {"title": f"Song {entry}", "artists": [{"name": f"Artist {entry}"}]}
                    for entry in entries
                ],
            )
        return httpx.Response(404)

    def client(self) -> SourceCatalogClient:
        return SourceCatalogClient(
            base_url="https://music.yandex.ru",
            transport=httpx.MockTransport(self.handler),
        )
