from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Sequence

from .constants import DEFAULT_CONCURRENCY
from .errors import BrdError, ErrorKind
from .models import ScrapeResult

logger = logging.getLogger(__name__)


class BatchExecutor:
    """Runs a batch of inputs through one coroutine under a concurrency cap.

    Admission goes through an ``asyncio.Semaphore`` so at most ``limit``
    items are in flight and waiting items start in input order. Results are
    positional: ``results[i]`` always belongs to ``items[i]``.
    """

    def __init__(self, limit: int = DEFAULT_CONCURRENCY) -> None:
        self._limit = max(1, int(limit))
        self._active = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        return self._active

    @property
    def peak_in_flight(self) -> int:
        return self._peak

    async def run(
        self,
        items: Sequence[Any],
        fn: Callable[[Any, int], Awaitable[ScrapeResult]],
        limit: int = 0,
    ) -> List[ScrapeResult]:
        items = list(items)
        if not items:
            return []
        cap = max(1, int(limit)) if limit else self._limit
        gate = asyncio.Semaphore(cap)
        logger.info(f"processing {len(items)} items, concurrency is {cap}")

        async def _admit(index: int, item: Any) -> ScrapeResult:
            async with gate:
                self._active += 1
                self._peak = max(self._peak, self._active)
                try:
                    return await fn(item, index)
                except BrdError as exc:
                    return self._failed_result(index, item, exc)
                finally:
                    self._active -= 1

        tasks = [asyncio.ensure_future(_admit(i, item)) for i, item in enumerate(items)]
        try:
            results = await asyncio.gather(*tasks)
        except Exception as exc:  # noqa: BLE001
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            error = exc if isinstance(exc, BrdError) else BrdError(ErrorKind.API, f"batch operation failed: {exc}")
            logger.error(error.message, extra={"data": {"items": len(items)}})
            return [self._failed_result(i, item, error) for i, item in enumerate(items)]

        failed = sum(1 for r in results if not r.success)
        logger.info(
            f"completed batch operation: {len(results)} results",
            extra={"data": {"succeeded": len(results) - failed, "failed": failed}},
        )
        return list(results)

    @staticmethod
    def _failed_result(index: int, item: Any, error: BrdError) -> ScrapeResult:
        return ScrapeResult(
            index=index,
            value=getattr(item, "value", str(item)),
            success=False,
            data=None,
            error=error,
            status_code=error.status_code,
            attempts=error.attempts,
        )
