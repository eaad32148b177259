import pytest

from soma.core.spotify_client import SpotifyClient
from soma.services.playlist_writer import (
    WRITE_BATCH_SIZE,
    BatchWriteError,
    DestinationPlaylist,
    InvalidPlaylistLinkError,
    PlaylistWriter,
)
from tests.helpers import DESTINATION_LINK, StubSpotipy


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _uris(count: int) -> list[str]:
    return [f"spotify:track:{index}" for index in range(count)]


@pytest.mark.asyncio
async def test_write_uses_full_batches_and_reports_progress() -> None:
    stub = StubSpotipy()
    sleep = _RecordingSleep()
    writer = PlaylistWriter(batch_delay_ms=200, sleep=sleep)
    progress: list[int] = []

    async def _on_batch(written: int) -> None:
        progress.append(written)

    written = await writer.write(SpotifyClient(client=stub), "pl1", _uris(230), _on_batch)

    assert written == 230
    assert stub.batch_sizes == [WRITE_BATCH_SIZE, WRITE_BATCH_SIZE, 30]
    assert progress == [100, 200, 230]
    assert sleep.delays == [0.2, 0.2]
    assert [uri for _, batch in stub.add_calls for uri in batch] == _uris(230)


@pytest.mark.asyncio
async def test_exact_multiple_ends_with_full_batch() -> None:
    stub = StubSpotipy()
    writer = PlaylistWriter(batch_delay_ms=0)

    await writer.write(SpotifyClient(client=stub), "pl1", _uris(200))

    assert stub.batch_sizes == [100, 100]


@pytest.mark.asyncio
async def test_failed_batch_reports_written_count() -> None:
    stub = StubSpotipy(fail_add_on_call=3)
    writer = PlaylistWriter(batch_delay_ms=0)
    progress: list[int] = []

    async def _on_batch(written: int) -> None:
        progress.append(written)

    with pytest.raises(BatchWriteError) as excinfo:
        await writer.write(SpotifyClient(client=stub), "pl1", _uris(250), _on_batch)

    assert excinfo.value.written == 200
    assert progress == [100, 200]


@pytest.mark.asyncio
async def test_create_playlist_captures_share_link() -> None:
    stub = StubSpotipy()

    playlist = await PlaylistWriter().create_playlist(SpotifyClient(client=stub), "Road trip")

    assert playlist == DestinationPlaylist(
        id="newPlaylist01", link="https://open.spotify.com/playlist/newPlaylist01"
    )
    assert stub.created == [("spotify-user", "Road trip")]


def test_resolve_existing_extracts_playlist_id() -> None:
    playlist = PlaylistWriter().resolve_existing(DESTINATION_LINK)

    assert playlist.id == "37i9dQZF1DXcBWIGoYBM5M"
    assert playlist.link == DESTINATION_LINK


def test_resolve_existing_rejects_links_without_playlist_segment() -> None:
    with pytest.raises(InvalidPlaylistLinkError) as excinfo:
        PlaylistWriter().resolve_existing("https://open.spotify.com/album/abc")

    assert excinfo.value.http_status == 400
    assert excinfo.value.meta == {"playlistLink": "https://open.spotify.com/album/abc"}
