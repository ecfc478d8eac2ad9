"""Diagnostics cache fed by engine push notifications."""

from typing import Any, Iterable, Optional

import structlog

from bifrost.lsp.protocol import Diagnostic, NotificationMethod

log = structlog.get_logger()


class DiagnosticsCache:
    """Latest published diagnostics per document URI.

    Each ``textDocument/publishDiagnostics`` push replaces the entry for its
    URI wholesale. The engine never signals that analysis is finished, so a
    missing entry and an empty one mean the same thing to callers.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Diagnostic, ...]] = {}
        self._subscription = None

    def set(self, uri: str, diagnostics: Iterable[Diagnostic]) -> None:
        """Replace the diagnostics recorded for ``uri``."""
        self._entries[uri] = tuple(diagnostics)

    def get(self, uri: str) -> tuple[Diagnostic, ...]:
        """Diagnostics last published for ``uri``; empty if none."""
        return self._entries.get(uri, ())

    def uris(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def attach(self, channel) -> None:
        """Subscribe to the channel's publish-diagnostics notifications."""
        if self._subscription is not None and self._subscription.active:
            raise RuntimeError("Diagnostics cache is already attached to a channel")
        self._subscription = channel.on_notification(
            NotificationMethod.PUBLISH_DIAGNOSTICS.value, self.handle_publish
        )

    @property
    def subscription(self):
        return self._subscription

    def handle_publish(self, params: Optional[dict[str, Any]]) -> None:
        """Apply one ``textDocument/publishDiagnostics`` payload."""
        if not params or "uri" not in params:
            log.warning("diagnostics_without_uri")
            return

        uri = params["uri"]
        diagnostics = [Diagnostic.from_dict(d) for d in params.get("diagnostics") or []]
        self.set(uri, diagnostics)
        log.info(
            "diagnostics_received",
            uri=uri,
            count=len(diagnostics),
            version=params.get("version"),
        )
