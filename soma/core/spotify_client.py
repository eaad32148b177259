"""Spotify client wrapper used by the transfer pipeline."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from soma.logging import get_logger

logger = get_logger(__name__)


class SpotifyClientError(RuntimeError):
    """Raised when a Spotify Web API call failed."""

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SpotifyClient:
    """Thin synchronous client around Spotipy bound to one caller's access token.

    Calls are never retried; a failed request surfaces as :class:`SpotifyClientError`.
    Callers in async code run these methods through ``asyncio.to_thread``.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        request_timeout_s: int = 10,
        client: Optional[spotipy.Spotify] = None,
    ) -> None:
        if client is not None:
            self._client = client
        else:
            if not access_token:
                raise ValueError("Spotify access token is required")
            self._client = spotipy.Spotify(
                auth=access_token,
                requests_timeout=request_timeout_s,
                retries=0,
                status_retries=0,
            )

    def _execute(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SpotifyException as exc:
            status = getattr(exc, "http_status", None)
            logger.error("Spotify API request failed with status %s", status)
            raise SpotifyClientError(str(getattr(exc, "msg", exc)), status=status) from exc
        except requests.RequestException as exc:
            logger.error("Spotify API request failed", exc_info=exc)
            raise SpotifyClientError(str(exc)) from exc

    def search_track_uri(self, query: str) -> Optional[str]:
        """Return the URI of the top ranked track for ``query`` or ``None``."""

        payload = self._execute(self._client.search, q=query, limit=1, type="track")
        items = ((payload or {}).get("tracks") or {}).get("items") or []
        if not items:
            return None
        uri = items[0].get("uri") if isinstance(items[0], dict) else None
        return str(uri) if uri else None

    def get_current_user(self) -> Dict[str, Any]:
        return self._execute(self._client.current_user) or {}

    def current_user_id(self) -> str:
        profile = self.get_current_user()
        user_id = profile.get("id")
        if not user_id:
            raise SpotifyClientError("Spotify profile did not include a user id")
        return str(user_id)

    def create_playlist(self, user_id: str, name: str) -> Dict[str, Any]:
        payload = self._execute(self._client.user_playlist_create, user_id, name)
        if not isinstance(payload, dict) or not payload.get("id"):
            raise SpotifyClientError("Spotify did not return the created playlist")
        return payload

    def add_tracks_to_playlist(self, playlist_id: str, track_uris: List[str]) -> Dict[str, Any]:
        return self._execute(self._client.playlist_add_items, playlist_id, track_uris)


__all__ = ["SpotifyClient", "SpotifyClientError"]
