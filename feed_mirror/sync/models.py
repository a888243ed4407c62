"""
Result types of a sync pass.

RunSummary is what gets persisted (one row, overwritten every pass);
SyncResult is what the engine returns to its caller. The state store
only deals in plain dicts, so RunSummary converts itself with
to_dict() / from_dict().
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


MODE_LATEST = "latest"
MODE_INCREMENTAL = "incremental"


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


@dataclass(frozen=True)
class RunSummary:
    """
    Persisted outcome of the most recent pass.

    Attributes:
        mode: MODE_LATEST or MODE_INCREMENTAL.
        started_at: Pass start, ms since epoch.
        items_added: Videos actually inserted (duplicates not counted).
        error: Message of the fatal error that aborted the pass, if any.
        finished_at: Pass end, ms since epoch.
    """
    mode: str
    started_at: int
    items_added: int
    error: str | None = None
    finished_at: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "items_added": self.items_added,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunSummary":
        return cls(
            mode=data.get("mode") or MODE_INCREMENTAL,
            started_at=int(data["started_at"]),
            items_added=int(data.get("items_added") or 0),
            error=data.get("error"),
            finished_at=data.get("finished_at"),
        )


@dataclass(frozen=True)
class SyncResult:
    """
    Value returned by SyncEngine.run_latest_only() and run_incremental().

    Attributes:
        success: False if the pass was refused or aborted.
        items_added: Videos inserted before the pass ended.
        error: Failure message when success is False.
        feeds_processed: Feeds fetched and parsed successfully.
        feeds_failed: Feeds skipped because of a fetch or parse error.
        appends_failed: Selected videos whose insert failed.
        duplicates: Selected videos the playlist already contained.
    """
    success: bool
    items_added: int = 0
    error: str | None = None
    feeds_processed: int = 0
    feeds_failed: int = 0
    appends_failed: int = 0
    duplicates: int = 0

    @property
    def summary(self) -> str:
        """
        Human-readable one-line summary.

        Returns:
            e.g. "3 added, 1 feed failed", "No new videos", or the failure message.
        """
        if not self.success:
            return f"Sync failed: {self.error} (added before failure: {self.items_added})"

        parts = []
        if self.items_added > 0:
            parts.append(f"{self.items_added} added")
        if self.duplicates > 0:
            parts.append(f"{self.duplicates} already present")
        if self.appends_failed > 0:
            parts.append(f"{self.appends_failed} failed")
        if self.feeds_failed > 0:
            noun = "feed" if self.feeds_failed == 1 else "feeds"
            parts.append(f"{self.feeds_failed} {noun} failed")

        if not parts:
            return "No new videos"

        return ", ".join(parts)
