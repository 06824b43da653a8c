"""Domain entities."""

from dataclasses import asdict, dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class SyncStatus(str, Enum):
    """Run status of the catalog sync job."""

    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


class SyncMode(str, Enum):
    """Which sync strategy to run."""

    FULL = "full"
    INCREMENTAL = "incremental"


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(UTC).isoformat()


# Hey future me - SyncState is THE checkpoint of the catalog sync! It's stored as one JSON
# blob in app_settings (key "igdb_sync_state"). Two fields drive recovery:
# - last_sync_timestamp: IGDB watermark (epoch SECONDS, not ms!) - bounds incremental syncs
# - last_completed_offset: only meaningful while a FULL sync is running/failed - resume point
# Everything else is progress/diagnostics. The dataclass is frozen: use
# with_changes() to derive the next checkpoint instead of mutating the loaded one.
@dataclass(frozen=True)
class SyncState:
    """Persisted progress of the catalog sync."""

    last_sync_timestamp: int = 0
    last_completed_offset: int = 0
    total_games_processed: int = 0
    status: SyncStatus = SyncStatus.IDLE
    last_run_at: str = ""
    error: str | None = None

    @classmethod
    def initial(cls) -> "SyncState":
        """State used when no sync has ever run."""
        return cls(last_run_at=utc_now_iso())

    def with_changes(self, **changes: Any) -> "SyncState":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        if self.error is None:
            data.pop("error")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncState":
        return cls(
            last_sync_timestamp=int(data.get("last_sync_timestamp", 0)),
            last_completed_offset=int(data.get("last_completed_offset", 0)),
            total_games_processed=int(data.get("total_games_processed", 0)),
            status=SyncStatus(data.get("status", SyncStatus.IDLE.value)),
            last_run_at=str(data.get("last_run_at", "")),
            error=data.get("error"),
        )


__all__ = [
    "SyncMode",
    "SyncState",
    "SyncStatus",
    "utc_now_iso",
]
