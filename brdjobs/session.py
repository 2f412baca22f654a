from __future__ import annotations

import asyncio
import json as _json
import logging
import time
from typing import Any, Dict, Iterable, Optional

from curl_cffi.curl import CurlError
from curl_cffi.requests import AsyncSession
from curl_cffi.requests.exceptions import RequestException

from .constants import API_BASE_URL, DEFAULT_TIMEOUT_SECS, RETRY_STATUSES, USER_AGENT
from .errors import snippet
from .metrics import MetricsCollector
from .models import AttemptOutcome, OutcomeKind

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (RequestException, CurlError, asyncio.TimeoutError)


def auth_headers(api_token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_token}",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }


def mask_token(token: str) -> str:
    return f"{token[:4]}***{token[-4:]}" if len(token) > 8 else "***"


def drop_empty(values: Dict[str, Any]) -> Dict[str, Any]:
    """Remove None and empty-string fields; the remote rejects some of them."""
    return {k: v for k, v in values.items() if v is not None and v != ""}


def classify_response(
    status_code: int,
    text: str,
    parse_json: bool = False,
    latency_ms: int = 0,
    auth_statuses: Iterable[int] = (401,),
) -> AttemptOutcome:
    """Turn an HTTP status and body into an AttemptOutcome."""
    body = snippet(text)
    if status_code < 400:
        data: Any = text
        if parse_json:
            try:
                data = _json.loads(text)
            except ValueError as exc:
                return AttemptOutcome(
                    OutcomeKind.PARSE,
                    status_code=status_code,
                    body=body,
                    message=f"failed to parse JSON response: {exc}",
                    latency_ms=latency_ms,
                )
        return AttemptOutcome(OutcomeKind.SUCCESS, data=data, status_code=status_code, latency_ms=latency_ms)

    if status_code in auth_statuses:
        kind, message = OutcomeKind.AUTHENTICATION, "Invalid API token or insufficient permissions"
    elif status_code == 400:
        kind, message = OutcomeKind.VALIDATION, f"Bad request: {body}"
    elif status_code in RETRY_STATUSES:
        kind, message = OutcomeKind.RETRYABLE_STATUS, f"HTTP {status_code}"
    else:
        kind, message = OutcomeKind.API, f"HTTP {status_code}"
    return AttemptOutcome(kind, status_code=status_code, body=body, message=message, latency_ms=latency_ms)


class ApiSession:
    """Authenticated async HTTP session bound to one API base URL.

    Each ``call`` is a single transport attempt: it never raises for HTTP or
    network failures, it returns a classified AttemptOutcome and records it
    into the metrics collector. Retrying is the caller's business.
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECS,
        metrics: Optional[MetricsCollector] = None,
        session: Optional[Any] = None,
    ) -> None:
        self._headers = auth_headers(api_token)
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._metrics = metrics
        self._session = session

    @property
    def timeout(self) -> float:
        return self._timeout

    def url(self, path: str, **fmt: str) -> str:
        return self._base_url + (path.format(**fmt) if fmt else path)

    def _get_session(self) -> Any:
        if self._session is None:
            self._session = AsyncSession()
        return self._session

    async def call(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        parse_json: bool = False,
        operation: str = "request",
        auth_statuses: Iterable[int] = (401,),
        **fmt: str,
    ) -> AttemptOutcome:
        url = self.url(path, **fmt)
        logger.debug(
            f"{method} {url}",
            extra={"data": {"method": method, "url": url, "body": _json.dumps(json) if json is not None else None}},
        )
        limit = timeout or self._timeout
        start = self._now_ms()
        try:
            response = await asyncio.wait_for(
                self._get_session().request(
                    method,
                    url,
                    json=json,
                    params=drop_empty(params) if params else None,
                    headers=self._headers,
                    timeout=limit,
                ),
                timeout=limit,
            )
        except _TRANSPORT_ERRORS as exc:
            outcome = AttemptOutcome(
                OutcomeKind.NETWORK,
                message=f"{type(exc).__name__}: {exc}",
                latency_ms=self._now_ms() - start,
            )
        else:
            outcome = classify_response(
                int(response.status_code),
                response.text or "",
                parse_json=parse_json,
                latency_ms=self._now_ms() - start,
                auth_statuses=auth_statuses,
            )

        if self._metrics:
            self._metrics.record(operation, outcome)
        return outcome

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
