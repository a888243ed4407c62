"""
Sync layer for feed-mirror.

    - policy: the two selection rules (latest-only, incremental)
    - engine: SyncEngine running a pass in either mode
    - scheduler: PeriodicTrigger for scheduled passes
    - models: RunSummary and SyncResult
"""

from feed_mirror.sync.engine import SyncEngine
from feed_mirror.sync.models import MODE_INCREMENTAL, MODE_LATEST, RunSummary, SyncResult
from feed_mirror.sync.policy import FeedSelection, IncrementalPolicy, LatestOnlyPolicy, SelectionPolicy
from feed_mirror.sync.scheduler import PeriodicTrigger, setup_schedule

__all__ = [
    "SyncEngine",
    "RunSummary",
    "SyncResult",
    "MODE_LATEST",
    "MODE_INCREMENTAL",
    "SelectionPolicy",
    "LatestOnlyPolicy",
    "IncrementalPolicy",
    "FeedSelection",
    "PeriodicTrigger",
    "setup_schedule",
]
