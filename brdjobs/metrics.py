from __future__ import annotations

import time
from collections import deque
from dataclasses import asdict
from threading import Lock
from typing import Deque, Dict, List

from .models import AttemptOutcome, MetricsSnapshot, OutcomeKind


class MetricsCollector:
    """Collector for per-attempt transport outcomes.

    Every AttemptOutcome produced by a transport call is recorded here, and
    aggregated MetricsSnapshot objects are produced over sliding windows."""

    def __init__(self, maxlen: int = 10000) -> None:
        self._lock = Lock()
        self._events: Deque[tuple[float, str, AttemptOutcome]] = deque(maxlen=maxlen)

    def record(self, operation: str, outcome: AttemptOutcome) -> None:
        """Record one attempt outcome for the named operation."""
        with self._lock:
            self._events.append((time.time(), operation, outcome))

    def snapshot(self, window_secs: int) -> MetricsSnapshot:
        """Return aggregated metrics for attempts within the last window_secs seconds."""
        now = time.time()
        cutoff = now - window_secs
        with self._lock:
            events: List[AttemptOutcome] = [o for ts, _, o in self._events if ts >= cutoff]
        total = len(events)
        status_5xx = sum(1 for o in events if o.status_code is not None and o.status_code >= 500)
        avg_latency_ms = (sum(o.latency_ms for o in events) / total) if total else 0.0

        return MetricsSnapshot(
            window_secs=window_secs,
            total_attempts=total,
            success_count=sum(1 for o in events if o.kind is OutcomeKind.SUCCESS),
            network_error_count=sum(1 for o in events if o.kind is OutcomeKind.NETWORK),
            http_429_count=sum(1 for o in events if o.status_code == 429),
            http_5xx_count=status_5xx,
            auth_failure_count=sum(1 for o in events if o.kind is OutcomeKind.AUTHENTICATION),
            validation_failure_count=sum(1 for o in events if o.kind is OutcomeKind.VALIDATION),
            api_failure_count=sum(1 for o in events if o.kind in (OutcomeKind.API, OutcomeKind.PARSE)),
            avg_latency_ms=avg_latency_ms,
            timestamp=now,
        )

    def count(self, operation: str) -> int:
        with self._lock:
            return sum(1 for _, op, _ in self._events if op == operation)

    def export_json(self) -> List[Dict]:
        """Export all recorded attempts as a list of dictionaries (payloads excluded)."""
        with self._lock:
            rows = list(self._events)
        exported = []
        for ts, op, outcome in rows:
            row = asdict(outcome)
            row.pop("data", None)
            row["kind"] = outcome.kind.value
            exported.append({"timestamp": ts, "operation": op, **row})
        return exported
