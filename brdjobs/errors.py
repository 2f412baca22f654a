from __future__ import annotations

from enum import Enum
from typing import Optional

from .constants import BODY_SNIPPET_CHARS


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the client."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    ZONE_CONFLICT = "zone_conflict"
    TRANSIENT = "transient"
    API = "api"
    SNAPSHOT_FAILED = "snapshot_failed"
    SNAPSHOT_NOT_READY = "snapshot_not_ready"
    SNAPSHOT_CANCELLED = "snapshot_cancelled"


class BrdError(Exception):
    """Single error type for everything that leaves the package.

    The failure is identified by ``kind``; the remaining fields are filled
    where they apply (HTTP status, truncated response body, attempt count).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        attempts: int = 0,
        exhausted: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.response_text = snippet(response_text)
        self.attempts = attempts
        self.exhausted = exhausted

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.TRANSIENT and not self.exhausted

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "response_text": self.response_text,
            "attempts": self.attempts,
            "exhausted": self.exhausted,
        }

    def __repr__(self) -> str:
        return f"BrdError(kind={self.kind.value!r}, message={self.message!r}, status_code={self.status_code!r})"


def snippet(text: Optional[str], limit: int = BODY_SNIPPET_CHARS) -> Optional[str]:
    if text is None:
        return None
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def validation_error(message: str) -> BrdError:
    return BrdError(ErrorKind.VALIDATION, message)
