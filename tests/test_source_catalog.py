import httpx
import pytest

from soma.core.source_catalog import (
    LOOKUP_BATCH_SIZE,
    SourceCatalogClient,
    SourceCatalogError,
    SourceKind,
    SourceTrack,
    parse_source_link,
)
from tests.helpers import ALBUM_LINK, PLAYLIST_LINK, YandexCatalogStub


def test_parse_source_link_recognises_playlists_and_albums() -> None:
    playlist = parse_source_link(PLAYLIST_LINK)
    assert playlist is not None
    assert playlist.kind is SourceKind.PLAYLIST
    assert playlist.owner == "listener"
    assert playlist.identifier == "1001"

    album = parse_source_link("https://music.yandex.com/album/777/")
    assert album is not None
    assert album.kind is SourceKind.ALBUM
    assert album.identifier == "777"


@pytest.mark.parametrize(
    "link",
    [
        None,
        "",
        "https://example.com/users/listener/playlists/1001",
        "https://music.yandex.ru/artist/42",
        "https://music.yandex.ru/users/listener/playlists/1001/extra/segments",
        "not a link",
    ],
)
def test_parse_source_link_rejects_other_shapes(link: str | None) -> None:
    assert parse_source_link(link) is None


@pytest.mark.asyncio
async def test_fetch_listing_chunks_lookups_by_hundred() -> None:
    stub = YandexCatalogStub(250)

    listing = await stub.client().fetch_listing(PLAYLIST_LINK)

    assert stub.lookup_sizes == [LOOKUP_BATCH_SIZE, LOOKUP_BATCH_SIZE, 50]
    assert len(listing) == 250
    assert listing.kind is SourceKind.PLAYLIST
    assert [track.source_index for track in listing] == list(range(250))
    assert listing.tracks[7] == SourceTrack(artist="Artist 7", title="Song 7", source_index=7)

    manifest = stub.requests[0]
    assert manifest.method == "GET"
    assert manifest.url.params["owner"] == "listener"
    assert manifest.url.params["kinds"] == "1001"
    assert manifest.url.params["light"] == "true"


@pytest.mark.asyncio
async def test_fetch_listing_reads_album_manifest() -> None:
    stub = YandexCatalogStub(3)

    listing = await stub.client().fetch_listing(ALBUM_LINK)

    assert stub.requests[0].url.path == "/handlers/album.jsx"
    assert stub.requests[0].url.params["album"] == "777"
    assert [track.title for track in listing] == ["Song 0", "Song 1", "Song 2"]


@pytest.mark.asyncio
async def test_unparseable_link_returns_empty_listing_without_requests() -> None:
    stub = YandexCatalogStub(10)

    listing = await stub.client().fetch_listing("https://music.yandex.ru/label/12")

    assert listing.is_empty
    assert stub.requests == []


@pytest.mark.asyncio
async def test_multiple_artists_are_comma_joined() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/handlers/album.jsx":
            return httpx.Response(200, json={"trackIds": ["1"]})
        return httpx.Response(
            200,
            json=[{"title": "Duet", "artists": [{"name": "First"}, {"name": "Second"}]}],
        )

    client = SourceCatalogClient(transport=httpx.MockTransport(_handler))
    listing = await client.fetch_listing(ALBUM_LINK)

    assert listing.tracks == [SourceTrack(artist="First, Second", title="Duet", source_index=0)]


@pytest.mark.asyncio
async def test_lookup_failure_raises_source_catalog_error() -> None:
    stub = YandexCatalogStub(5, fail_lookup=True)

    with pytest.raises(SourceCatalogError):
        await stub.client().fetch_listing(PLAYLIST_LINK)


@pytest.mark.asyncio
async def test_invalid_json_raises_source_catalog_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>captcha</html>")

    client = SourceCatalogClient(transport=httpx.MockTransport(_handler))
    with pytest.raises(SourceCatalogError):
        await client.fetch_listing(PLAYLIST_LINK)


@pytest.mark.asyncio
async def test_transport_error_raises_source_catalog_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = SourceCatalogClient(transport=httpx.MockTransport(_handler))
    with pytest.raises(SourceCatalogError):
        await client.fetch_listing(PLAYLIST_LINK)


@pytest.mark.asyncio
async def test_listing_keeps_source_order_when_artists_repeat() -> None:
    entries = [
        {"title": "one", "artists": [{"name": "B"}]},
        {"title": "two", "artists": [{"name": "A"}]},
        {"title": "three", "artists": [{"name": "B"}]},
    ]

    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/handlers/playlist.jsx":
            return httpx.Response(200, json={"playlist": {"trackIds": ["1", "2", "3"]}})
        return httpx.Response(200, json=entries)

    client = SourceCatalogClient(transport=httpx.MockTransport(_handler))
    listing = await client.fetch_listing(PLAYLIST_LINK)

    assert [(track.artist, track.title) for track in listing] == [
        ("B", "one"),
        ("A", "two"),
        ("B", "three"),
    ]
    assert [track.source_index for track in listing] == [0, 1, 2]
