"""PlayMirror - local-first mirror of a remote music catalog.

Keeps playlists, Liked Songs and saved albums in a local store, refreshes them
when they go stale, and lazily resolves each track to a playable stream id.
"""

__version__ = "0.1.0"
