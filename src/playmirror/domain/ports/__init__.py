"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Callable

from playmirror.domain.dtos import CatalogPage, CollectionDTO, TrackDTO

# Hey future me - every remote catalog operation completes by calling ONE of these exactly once:
# callback(result, None) on success, callback(None, error) on failure. The callback may be
# invoked from any thread and any time later; remote_call.await_callback turns that into a
# plain awaitable. Don't make the coordinator depend on callbacks directly!
type CompletionCallback[T] = Callable[[T | None, Exception | None], None]


class IRemoteCatalogClient(ABC):
    """Callback-style remote catalog provider.

    Each method starts the operation and returns immediately. The outcome is
    delivered through the callback. An empty listing is a successful result,
    not an error.
    """

    @abstractmethod
    def list_collections(
        self,
        token: str,
        cursor: str | None,
        callback: CompletionCallback[CatalogPage[CollectionDTO]],
    ) -> None:
        """List one page of the user's playlists.

        Args:
            token: Access token
            cursor: Page cursor from the previous page, None for the first page
            callback: Receives the page (next_cursor None on the last page)
        """

    @abstractmethod
    def list_saved_albums(
        self,
        token: str,
        cursor: str | None,
        callback: CompletionCallback[CatalogPage[CollectionDTO]],
    ) -> None:
        """List one page of the user's saved albums (raw provider album ids)."""

    @abstractmethod
    def list_tracks(
        self,
        token: str,
        collection_id: str,
        callback: CompletionCallback[CatalogPage[TrackDTO]],
    ) -> None:
        """Fetch the ordered track list of one playlist as a single page.

        The page has no next_cursor. truncated is set if the listing was cut short.
        """

    @abstractmethod
    def list_liked_tracks(
        self,
        token: str,
        callback: CompletionCallback[CatalogPage[TrackDTO]],
    ) -> None:
        """Fetch the ordered list of liked tracks as a single page."""

    @abstractmethod
    def list_album_tracks(
        self,
        token: str,
        album_id: str,
        callback: CompletionCallback[CatalogPage[TrackDTO]],
    ) -> None:
        """Fetch the ordered track list of one album (raw album id) as a single page."""


class IResolverClient(ABC):
    """Resolves a human-readable query to an external playable-stream id.

    Synchronous and may block on network I/O, so async callers must run it
    off the event loop.
    """

    @abstractmethod
    def lookup(self, query: str) -> str | None:
        """Return the single best match, or None when nothing matched."""


class ITokenProvider(ABC):
    """Source of the remote catalog access token.

    Token refresh lives behind this interface, not in the sync core.
    """

    @abstractmethod
    async def get_access_token(self) -> str | None:
        """Return a usable access token, or None if there is none."""


__all__ = [
    "CompletionCallback",
    "IRemoteCatalogClient",
    "IResolverClient",
    "ITokenProvider",
]
