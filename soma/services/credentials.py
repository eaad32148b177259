"""Lookup of linked Spotify credentials for a caller."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from soma.db import SessionFactory, run_session
from soma.errors import ValidationAppError
from soma.logging import get_logger
from soma.models import SpotifyAccount

logger = get_logger(__name__)


class CredentialNotFoundError(ValidationAppError):
    """Raised when no Spotify access token is linked to the caller."""

    def __init__(self, owner_ref: str) -> None:
        super().__init__(
            "Spotify account is not linked for this caller",
            meta={"callerCredentialRef": owner_ref},
        )
        self.owner_ref = owner_ref


@dataclass(slots=True, frozen=True)
class SpotifyCredential:
    owner_ref: str
    access_token: str
    spotify_user_id: Optional[str] = None


class SpotifyCredentialStore:
    """Read side of the account-linking flow.

    Tokens are written by the linking flow and returned as stored; they are
    not refreshed here.
    """

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory

    async def resolve(self, owner_ref: str) -> SpotifyCredential:
        owner = (owner_ref or "").strip()
        if not owner:
            raise CredentialNotFoundError(owner_ref)

        def _load(session: Session) -> Optional[SpotifyCredential]:
            account = session.execute(
                select(SpotifyAccount).where(SpotifyAccount.owner_ref == owner)
            ).scalar_one_or_none()
            if account is None or not account.access_token:
                return None
            return SpotifyCredential(
                owner_ref=owner,
                access_token=account.access_token,
                spotify_user_id=account.spotify_user_id,
            )

        credential = await run_session(_load, factory=self._session_factory)
        if credential is None:
            logger.info("No linked Spotify credential for caller %s", owner)
            raise CredentialNotFoundError(owner)
        return credential


__all__ = ["CredentialNotFoundError", "SpotifyCredential", "SpotifyCredentialStore"]
