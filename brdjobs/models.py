from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .errors import BrdError


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    NETWORK = "network"
    RETRYABLE_STATUS = "retryable_status"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    PARSE = "parse"
    API = "api"


class SnapshotStatus(str, Enum):
    RUNNING = "running"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SnapshotStatus":
        """Map a server status string; anything unrecognised is still running."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self is not SnapshotStatus.RUNNING


@dataclass(frozen=True)
class WorkItem:
    value: str
    url: str
    zone: str
    response_format: str = "raw"
    method: str = "GET"
    country: str = ""
    data_format: str = "markdown"
    timeout: Optional[float] = None


@dataclass(frozen=True)
class AttemptOutcome:
    kind: OutcomeKind
    data: Optional[Any] = None
    status_code: Optional[int] = None
    body: Optional[str] = None
    message: str = ""
    latency_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


@dataclass
class RetryState:
    attempt: int = 0
    last: Optional[AttemptOutcome] = None
    next_delay: float = 0.0


@dataclass(frozen=True)
class ScrapeResult:
    index: int
    value: str
    success: bool
    data: Optional[Any]
    error: Optional[BrdError]
    status_code: Optional[int] = None
    attempts: int = 0
    latency_ms: int = 0

    @property
    def error_type(self) -> Optional[str]:
        return self.error.kind.value if self.error is not None else None


@dataclass(frozen=True)
class ZoneRecord:
    name: str
    type: str
    status: Optional[str] = None
    ips: int = 0
    bandwidth: int = 0
    created: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "ZoneRecord":
        return cls(
            name=raw.get("zone") or raw.get("name") or "",
            type=raw.get("zone_type") or raw.get("type") or "",
            status=raw.get("status"),
            ips=raw.get("ips") or 0,
            bandwidth=raw.get("bandwidth") or 0,
            created=raw.get("created_at") or raw.get("created"),
        )


@dataclass
class SnapshotHandle:
    snapshot_id: str
    dataset_id: Optional[str] = None
    status: SnapshotStatus = SnapshotStatus.RUNNING
    polls: int = 0
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class MetricsSnapshot:
    window_secs: int
    total_attempts: int
    success_count: int
    network_error_count: int
    http_429_count: int
    http_5xx_count: int
    auth_failure_count: int
    validation_failure_count: int
    api_failure_count: int
    avg_latency_ms: float
    timestamp: float
