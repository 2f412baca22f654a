from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, Optional, Tuple

from .constants import (
    POLL_MAX_SECS,
    POLL_MIN_SECS,
    SNAPSHOT_CANCEL_PATH,
    SNAPSHOT_DOWNLOAD_PATH,
    SNAPSHOT_STATUS_PATH,
)
from .errors import BrdError, ErrorKind
from .models import SnapshotHandle, SnapshotStatus
from .retry import RetryPolicy
from .session import ApiSession
from .validation import SNAPSHOT_FORMATS, validate_choice, validate_snapshot_id

logger = logging.getLogger(__name__)


class SnapshotAPI:
    """Status, download and cancel calls for snapshot jobs."""

    def __init__(self, session: ApiSession, retry: Optional[RetryPolicy] = None) -> None:
        self._session = session
        self._retry = retry or RetryPolicy()

    async def get_status(self, snapshot_id: str) -> SnapshotHandle:
        validate_snapshot_id(snapshot_id)
        handle = SnapshotHandle(snapshot_id=snapshot_id)
        return await self.refresh(handle)

    async def refresh(self, handle: SnapshotHandle) -> SnapshotHandle:
        """Re-query the server status of ``handle`` and update it in place."""
        logger.info(f"fetching snapshot status for id {handle.snapshot_id}")
        state = await self._retry.run(
            lambda: self._session.call(
                "GET",
                SNAPSHOT_STATUS_PATH,
                parse_json=True,
                operation="snapshot_status",
                snapshot_id=handle.snapshot_id,
            ),
            operation="snapshot_status",
        )
        raw = state.last.data if isinstance(state.last.data, dict) else {}
        handle.polls += 1
        handle.dataset_id = raw.get("dataset_id") or handle.dataset_id
        # a cancel issued while the status request was in flight wins
        if handle.status is not SnapshotStatus.CANCELLED:
            handle.status = SnapshotStatus.parse(raw.get("status"))
        return handle

    async def download(self, snapshot_id: str, format: str = "json", compress: bool = False) -> Any:
        """Fetch the snapshot payload; raises SNAPSHOT_NOT_READY on HTTP 202."""
        validate_snapshot_id(snapshot_id)
        validate_choice(format, SNAPSHOT_FORMATS, "snapshot format")
        logger.info(f"fetching snapshot for id {snapshot_id}")
        params = {"format": format}
        if compress:
            params["compress"] = "true"
        state = await self._retry.run(
            lambda: self._session.call(
                "GET",
                SNAPSHOT_DOWNLOAD_PATH,
                params=params,
                operation="snapshot_download",
                snapshot_id=snapshot_id,
            ),
            operation="snapshot_download",
        )
        outcome = state.last
        if outcome.status_code == 202:
            raise BrdError(
                ErrorKind.SNAPSHOT_NOT_READY,
                f"snapshot {snapshot_id} is not ready yet",
                status_code=202,
                response_text=outcome.data,
                attempts=state.attempt,
            )
        if compress:
            return outcome.data
        return parse_payload(outcome.data, format)

    async def cancel(self, handle: SnapshotHandle) -> SnapshotHandle:
        if handle.is_terminal:
            logger.info(f"snapshot {handle.snapshot_id} is already {handle.status.value}, nothing to cancel")
            return handle
        logger.info(f"cancelling snapshot {handle.snapshot_id}")
        previous = handle.status
        handle.status = SnapshotStatus.CANCELLED
        try:
            await self._retry.run(
                lambda: self._session.call(
                    "POST",
                    SNAPSHOT_CANCEL_PATH,
                    operation="snapshot_cancel",
                    snapshot_id=handle.snapshot_id,
                ),
                operation="snapshot_cancel",
            )
        except BrdError:
            # the job is still alive on the server
            handle.status = previous
            raise
        return handle


def parse_payload(text: str, format: str) -> Any:
    if format == "json":
        try:
            return json.loads(text)
        except ValueError as exc:
            raise BrdError(ErrorKind.API, f"failed to parse JSON response: {exc}", response_text=text) from exc
    if format in ("ndjson", "jsonl"):
        try:
            return [json.loads(line) for line in text.splitlines() if line.strip()]
        except ValueError as exc:
            raise BrdError(ErrorKind.API, f"failed to parse {format} response: {exc}", response_text=text) from exc
    return text


class SnapshotPoller:
    """Drives a snapshot from ``running`` to a terminal state.

    running -> running   re-poll after a random delay in [min, max] seconds
    running -> ready     download (HTTP 202 on download resumes polling)
    running -> failed    SNAPSHOT_FAILED, no download
    * -> cancelled       via ``cancel``; the loop stops with SNAPSHOT_CANCELLED
    """

    def __init__(
        self,
        api: SnapshotAPI,
        poll_interval: Tuple[float, float] = (POLL_MIN_SECS, POLL_MAX_SECS),
        status_polling: bool = True,
        max_polls: Optional[int] = None,
    ) -> None:
        low, high = poll_interval
        if low < 0 or high < low:
            raise ValueError(f"invalid poll interval: {poll_interval!r}")
        self._api = api
        self._interval = (low, high)
        self._status_polling = status_polling
        self._max_polls = max_polls

    def next_interval(self) -> float:
        return random.uniform(*self._interval)

    async def cancel(self, handle: SnapshotHandle) -> SnapshotHandle:
        return await self._api.cancel(handle)

    async def wait(self, handle: SnapshotHandle, format: str = "json", compress: bool = False) -> Any:
        if not self._status_polling:
            return await self._api.download(handle.snapshot_id, format=format, compress=compress)

        while True:
            if handle.status is SnapshotStatus.RUNNING:
                await self._api.refresh(handle)

            if handle.status is SnapshotStatus.CANCELLED:
                raise BrdError(ErrorKind.SNAPSHOT_CANCELLED, f"snapshot {handle.snapshot_id} was cancelled")
            if handle.status is SnapshotStatus.FAILED:
                logger.error(f"snapshot {handle.snapshot_id} failed on the server")
                raise BrdError(ErrorKind.SNAPSHOT_FAILED, f"snapshot {handle.snapshot_id} failed")
            if handle.status is SnapshotStatus.READY:
                try:
                    return await self._api.download(handle.snapshot_id, format=format, compress=compress)
                except BrdError as exc:
                    if exc.kind is not ErrorKind.SNAPSHOT_NOT_READY:
                        raise
                    logger.info(f"snapshot {handle.snapshot_id} reported ready but download is pending")
                    handle.status = SnapshotStatus.RUNNING

            if self._max_polls is not None and handle.polls >= self._max_polls:
                raise BrdError(
                    ErrorKind.SNAPSHOT_NOT_READY,
                    f"snapshot {handle.snapshot_id} still running after {handle.polls} polls",
                )

            delay = self.next_interval()
            logger.debug(
                f"snapshot {handle.snapshot_id} is running, next poll in {delay:.1f}s",
                extra={"data": {"snapshot_id": handle.snapshot_id, "polls": handle.polls}},
            )
            await asyncio.sleep(delay)
