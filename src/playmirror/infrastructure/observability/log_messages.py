"""Structured log message templates.

Hey future me - use these instead of ad-hoc f-strings for anything an operator will grep for
(sync outcomes, resolution misses, timeouts). A failed sync reads like:

    ❌ Playlists Sync Failed
    ├─ Source: Spotify
    ├─ Reason: listCollections did not complete within 10.0s
    └─ 💡 Local data was kept. Next read retries the refresh.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class LogTemplate:
    """A reusable log message template with placeholders."""

    icon: str
    title: str
    fields: dict[str, str]
    hint: str | None = None

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided values.

        Args:
            **kwargs: Values to fill into template placeholders

        Returns:
            Formatted multi-line log message with icon, title, fields, and optional hint
        """
        lines = [f"{self.icon} {self.title}"]

        field_items = list(self.fields.items())
        for i, (key, value_template) in enumerate(field_items):
            prefix = "└─" if i == len(field_items) - 1 and not self.hint else "├─"
            try:
                value = value_template.format(**kwargs)
            except (KeyError, IndexError) as e:
                value = f"<missing: {e}>"
            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            try:
                hint_text = self.hint.format(**kwargs)
            except (KeyError, IndexError) as e:
                hint_text = f"<missing: {e}>"
            lines.append(f"└─ 💡 {hint_text}")

        return "\n".join(lines)


def _literal(value: object) -> str:
    # Field values go through str.format, so braces from remote data must be escaped
    return str(value).replace("{", "{{").replace("}", "}}")


class LogMessages:
    """Collection of standardized log message templates."""

    # === Data Sync ===

    @staticmethod
    def sync_started(entity: str, source: str, count: int | None = None) -> str:
        """Format a sync start message.

        Args:
            entity: What is being synced (e.g., "Playlists", "Liked Songs")
            source: Source service (e.g., "Spotify")
            count: Number of items (if known)
        """
        fields = {"Source": _literal(source)}
        if count is not None:
            fields["Items"] = str(count)
        return LogTemplate(icon="🔄", title=f"Syncing {entity}", fields=fields).format()

    @staticmethod
    def sync_completed(
        entity: str,
        added: int = 0,
        updated: int = 0,
        removed: int = 0,
        errors: int = 0,
    ) -> str:
        """Format a sync completion message."""
        icon = "✅" if errors == 0 else "⚠️"
        fields = {"Added": str(added), "Updated": str(updated), "Removed": str(removed)}
        if errors > 0:
            fields["Errors"] = str(errors)
        return LogTemplate(icon=icon, title=f"{entity} Sync Complete", fields=fields).format()

    @staticmethod
    def sync_failed(entity: str, source: str, error: str, hint: str | None = None) -> str:
        """Format a sync failure message.

        Args:
            entity: What failed to sync
            source: Source service
            error: Error description
            hint: Custom troubleshooting hint
        """
        return LogTemplate(
            icon="❌",
            title=f"{entity} Sync Failed",
            fields={"Source": _literal(source), "Reason": _literal(error)},
            hint=_literal(hint) if hint else "Local data was kept. Next read retries the refresh.",
        ).format()

    # === Remote calls ===

    @staticmethod
    def remote_timeout(operation: str, timeout: float) -> str:
        """Format a message for a callback that never fired in time."""
        return LogTemplate(
            icon="⏱️",
            title=f"{operation} Timed Out",
            fields={"Timeout": f"{timeout}s"},
            hint=(
                "A late result will be ignored. "
                "Raise the SYNC__*_TIMEOUT_SECONDS setting if this repeats"
            ),
        ).format()

    @staticmethod
    def auth_required(service: str) -> str:
        """Format a message for a missing or rejected access token."""
        return LogTemplate(
            icon="🔐",
            title=f"{service} Authentication Required",
            fields={"Status": "No usable access token"},
            hint="Re-authenticate. The sync layer never refreshes credentials itself",
        ).format()

    # === Resolution ===

    @staticmethod
    def resolution_miss(query: str, external_id: str | None) -> str:
        """Format a resolution-cache miss outcome."""
        if external_id:
            return LogTemplate(
                icon="🎯",
                title="Resolved Track",
                fields={"Query": _literal(query), "External ID": _literal(external_id)},
            ).format()
        return LogTemplate(
            icon="⚠️",
            title="No Match For Track",
            fields={"Query": _literal(query)},
            hint="Not cached. The next request retries the lookup",
        ).format()
