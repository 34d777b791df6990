"""Integrations with the remote catalog and the resolver backend."""

from playmirror.infrastructure.integrations.resolver_client import (
    HttpResolverClient,
    extract_video_id,
)
from playmirror.infrastructure.integrations.spotify_client import (
    SpotifyCatalogClient,
    StaticTokenProvider,
)

__all__ = [
    "HttpResolverClient",
    "SpotifyCatalogClient",
    "StaticTokenProvider",
    "extract_video_id",
]
