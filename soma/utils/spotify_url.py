"""Utilities for working with Spotify playlist URLs and URIs."""

from __future__ import annotations

from typing import Final

_PLAYLIST_SEGMENT: Final[str] = "/playlist/"
_PLAYLIST_URI_PREFIX: Final[str] = "spotify:playlist:"
_PLAYLIST_URL_TEMPLATE: Final[str] = "https://open.spotify.com/playlist/{playlist_id}"


def parse_playlist_id(url_or_uri: str | None) -> str | None:
    """Extract a playlist identifier from a Spotify URL or URI.

    The identifier is the component following ``/playlist/`` up to the next
    ``?``, ``#`` or the end of the string. ``spotify:playlist:{id}`` URIs are
    accepted as well. Returns ``None`` when no identifier can be located or
    when it contains anything other than letters and digits.
    """

    if not url_or_uri:
        return None
    candidate = url_or_uri.strip()
    if not candidate:
        return None

    if candidate.lower().startswith(_PLAYLIST_URI_PREFIX):
        playlist_id = candidate[len(_PLAYLIST_URI_PREFIX) :]
        return playlist_id if playlist_id.isalnum() else None

    position = candidate.find(_PLAYLIST_SEGMENT)
    if position < 0:
        return None
    remainder = candidate[position + len(_PLAYLIST_SEGMENT) :]
    playlist_id = remainder.split("?")[0].split("#")[0].rstrip("/")
    return playlist_id if playlist_id.isalnum() else None


def build_playlist_url(playlist_id: str) -> str:
    return _PLAYLIST_URL_TEMPLATE.format(playlist_id=playlist_id)


__all__ = ["build_playlist_url", "parse_playlist_id"]
