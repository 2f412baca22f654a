from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from .constants import REQUEST_PATH
from .errors import BrdError
from .models import AttemptOutcome, ScrapeResult, WorkItem
from .retry import RetryPolicy
from .session import ApiSession, drop_empty

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Executes one WorkItem against the request endpoint.

    - ``attempt`` is a single transport call returning an AttemptOutcome.
    - ``execute`` wraps it in the retry policy and raises BrdError on failure.
    - ``dispatch`` does the same but captures failures into a ScrapeResult.
    """

    def __init__(self, session: ApiSession, retry: Optional[RetryPolicy] = None) -> None:
        self._session = session
        self._retry = retry or RetryPolicy()

    @staticmethod
    def build_body(item: WorkItem) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "url": item.url,
            "zone": item.zone,
            "format": item.response_format or "raw",
            "method": item.method.upper() if item.method else None,
            "country": item.country.lower() if item.country else None,
        }
        if item.data_format and item.data_format != "html":
            body["data_format"] = item.data_format
        return drop_empty(body)

    async def attempt(self, item: WorkItem) -> AttemptOutcome:
        return await self._session.call(
            "POST",
            REQUEST_PATH,
            json=self.build_body(item),
            timeout=item.timeout,
            parse_json=item.response_format == "json",
            operation="request",
        )

    async def execute(self, item: WorkItem) -> Any:
        state = await self._retry.run(lambda: self.attempt(item), operation="request")
        return state.last.data

    async def dispatch(self, item: WorkItem, index: int = 0) -> ScrapeResult:
        start_ms = self._now_ms()
        try:
            state = await self._retry.run(lambda: self.attempt(item), operation="request")
        except BrdError as exc:
            logger.error(
                f"failed to process {item.value}",
                extra={"data": {"index": index, "kind": exc.kind.value, "error": exc.message}},
            )
            return ScrapeResult(
                index=index,
                value=item.value,
                success=False,
                data=None,
                error=exc,
                status_code=exc.status_code,
                attempts=exc.attempts,
                latency_ms=self._now_ms() - start_ms,
            )

        logger.debug(f"completed {item.value}", extra={"data": {"index": index, "attempts": state.attempt}})
        return ScrapeResult(
            index=index,
            value=item.value,
            success=True,
            data=state.last.data,
            error=None,
            status_code=state.last.status_code,
            attempts=state.attempt,
            latency_ms=self._now_ms() - start_ms,
        )

    @staticmethod
    def _now_ms() -> int:
        return int(time.time() * 1000)
