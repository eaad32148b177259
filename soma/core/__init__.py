"""Catalog clients used by the transfer pipeline."""

from .source_catalog import (
    LOOKUP_BATCH_SIZE,
    SourceCatalogClient,
    SourceCatalogError,
    SourceKind,
    SourceListing,
    SourceTrack,
    parse_source_link,
)
from .spotify_client import SpotifyClient, SpotifyClientError

__all__ = [
    "LOOKUP_BATCH_SIZE",
    "SourceCatalogClient",
    "SourceCatalogError",
    "SourceKind",
    "SourceListing",
    "SourceTrack",
    "SpotifyClient",
    "SpotifyClientError",
    "parse_source_link",
]
