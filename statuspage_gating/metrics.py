"""
Metrics store.

Holds the latest Snapshot and the latest SourceError of every source.
Writes replace a single entry under one lock, so readers always see a
source either before or after a commit, never in between.

Policy:
  - commit() replaces the label's snapshot and clears its error
  - report_error() records the error and keeps the last good snapshot
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable

from statuspage_gating.models import ResourceStatus, Snapshot, SourceError

logger = logging.getLogger(__name__)


class MetricsStore:
    """Latest per-source snapshots and errors, safe for concurrent use."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshots: Dict[str, Snapshot] = {}
        self._errors: Dict[str, SourceError] = {}

    def commit(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.source_label] = snapshot
            self._errors.pop(snapshot.source_label, None)
        logger.debug(
            "Committed %d resources for source %s", len(snapshot), snapshot.source_label
        )

    def report_error(self, error: SourceError) -> None:
        with self._lock:
            self._errors[error.source_label] = error

    def retain(self, labels: Iterable[str]) -> None:
        """Forget every source whose label is not in ``labels``."""
        keep = set(labels)
        with self._lock:
            for table in (self._snapshots, self._errors):
                for label in [lbl for lbl in table if lbl not in keep]:
                    del table[label]

    def get_snapshots(self) -> Dict[str, Snapshot]:
        with self._lock:
            return dict(self._snapshots)

    def get_errors(self) -> Dict[str, SourceError]:
        with self._lock:
            return dict(self._errors)

    def get_status_of_all_resources(self) -> Dict[str, ResourceStatus]:
        """Flatten every current snapshot into resource ID -> status."""
        with self._lock:
            snapshots = list(self._snapshots.values())
        statuses: Dict[str, ResourceStatus] = {}
        for snapshot in snapshots:
            statuses.update(snapshot.statuses)
        return statuses

    def __str__(self) -> str:
        snapshots = self.get_snapshots()
        if not snapshots:
            return "Metrics: empty"
        lines = ["Metrics:"]
        for label, snapshot in snapshots.items():
            lines.append(f"Source {label}:")
            for rid, resource in snapshot.resources.items():
                lines.append(f"\t{rid}: {resource.status.value}")
        return "\n".join(lines)
