"""Resolve source tracks to Spotify track URIs by text search."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

from soma.core.source_catalog import SourceTrack
from soma.core.spotify_client import SpotifyClient, SpotifyClientError
from soma.logging import get_logger
from soma.logging_events import log_event

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class TrackMatch:
    source: SourceTrack
    uri: str


def build_search_query(track: SourceTrack) -> str:
    return " ".join(part for part in (track.artist.strip(), track.title.strip()) if part)


class TrackMatcher:
    """Match every source track against the top Spotify search result.

    Tracks without a search result, or whose search failed, are dropped and
    the remaining tracks are still searched. Nothing is retried.
    """

    async def match(
        self,
        client: SpotifyClient,
        tracks: Iterable[SourceTrack],
        *,
        job_id: int | None = None,
    ) -> list[TrackMatch]:
        matches: list[TrackMatch] = []
        searched = 0
        failed = 0
        for track in tracks:
            searched += 1
            query = build_search_query(track)
            try:
                uri = await asyncio.to_thread(client.search_track_uri, query)
            except SpotifyClientError as exc:
                failed += 1
                logger.warning("Spotify search for %r failed: %s", query, exc)
                continue
            if uri is None:
                logger.debug("No Spotify result for %r", query)
                continue
            matches.append(TrackMatch(source=track, uri=uri))

        log_event(
            logger,
            "transfer.match",
            component="track_matcher",
            status="ok" if not failed else "degraded",
            entity_id=job_id,
            searched=searched,
            matched=len(matches),
            dropped=searched - len(matches),
            failed=failed,
        )
        return matches


__all__ = ["TrackMatch", "TrackMatcher", "build_search_query"]
