from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .constants import DATASET_SCRAPE_PATH, DATASET_TRIGGER_PATH
from .errors import BrdError, ErrorKind, validation_error
from .models import SnapshotHandle, SnapshotStatus
from .retry import RetryPolicy
from .session import ApiSession
from .snapshot import parse_payload
from .validation import SNAPSHOT_FORMATS, validate_choice, validate_url

logger = logging.getLogger(__name__)

DATASET_IDS: Dict[str, str] = {
    "linkedin_profile": "gd_l1viktl72bvl7bjuj0",
    "linkedin_company": "gd_l1vikfnt1wgvvqz95w",
    "linkedin_job": "gd_lpfll7v5hcqtkxl6l",
    "linkedin_post": "gd_lyy3tktm25m4avu764",
    "amazon_product": "gd_l7q7dkf244hwjntr0",
    "amazon_review": "gd_le8e811kzy4ggddlq",
    "amazon_seller": "gd_lhotzucw1etoe5iw1k",
    "amazon_search": "gd_lwdb4vjm1ehb499uxs",
    "instagram_profile": "gd_l1vikfch901nx3by4",
    "instagram_post": "gd_lk5ns7kz21pck8jpis",
    "instagram_reel": "gd_lyclm20il4r5helnj",
    "instagram_comment": "gd_ltppn085pokosxh13",
    "facebook_posts_user": "gd_lkaxegm826bjpoo9m5",
    "facebook_posts_group": "gd_lz11l67o2cb3r0lkj3",
    "facebook_posts": "gd_lyclm1571iy3mv57zw",
    "facebook_comments": "gd_lkay758p1eanlolqw8",
    "facebook_marketplace": "gd_lvt9iwuh6fbcwmx1a",
    "facebook_events": "gd_m14sd0to1jz48ppm51",
    "facebook_reels_user": "gd_lyclm3ey2q6rww027t",
    "facebook_reviews_company": "gd_m0dtqpiu1mbcyc2g86",
    "facebook_profiles_user": "gd_mf0urb782734ik94dz",
    "chatgpt": "gd_m7aof0k82r803d5bjm",
}

DatasetInput = Union[str, Dict[str, Any]]


def normalize_inputs(inputs: Sequence[DatasetInput]) -> List[Dict[str, Any]]:
    """Plain strings are URLs; dicts are passed through as filters."""
    if not inputs:
        raise validation_error("dataset input must contain at least one item")
    records: List[Dict[str, Any]] = []
    for value in inputs:
        if isinstance(value, str):
            validate_url(value)
            records.append({"url": value})
        elif isinstance(value, dict):
            records.append(dict(value))
        else:
            raise validation_error(f"unsupported dataset input: {type(value).__name__}")
    return records


def _query(**values: Any) -> Dict[str, str]:
    query: Dict[str, str] = {}
    for key, value in values.items():
        if value is None or value == "":
            continue
        query[key] = str(value).lower() if isinstance(value, bool) else str(value)
    return query


class DatasetsAPI:
    """Synchronous collection and asynchronous triggering of dataset jobs."""

    def __init__(self, session: ApiSession, retry: Optional[RetryPolicy] = None) -> None:
        self._session = session
        self._retry = retry or RetryPolicy()

    async def collect(
        self,
        dataset_id: str,
        inputs: Sequence[DatasetInput],
        format: str = "json",
        custom_output_fields: Optional[str] = None,
        include_errors: Optional[bool] = None,
        timeout: Optional[float] = None,
    ) -> Union[Any, SnapshotHandle]:
        """Run a dataset synchronously.

        The server may convert a slow request into a snapshot job (HTTP 202);
        a SnapshotHandle is returned in that case instead of the records.
        """
        validate_choice(format, SNAPSHOT_FORMATS, "dataset format")
        records = normalize_inputs(inputs)
        logger.info(f"collecting dataset {dataset_id} for {len(records)} inputs")
        body: Dict[str, Any] = {"input": records}
        if custom_output_fields:
            body["custom_output_fields"] = custom_output_fields
        state = await self._retry.run(
            lambda: self._session.call(
                "POST",
                DATASET_SCRAPE_PATH,
                json=body,
                params=_query(
                    dataset_id=dataset_id,
                    format=format,
                    custom_output_fields=custom_output_fields,
                    include_errors=include_errors,
                ),
                timeout=timeout,
                operation="dataset_scrape",
            ),
            operation="dataset_scrape",
        )
        outcome = state.last
        if outcome.status_code == 202:
            logger.info("request exceeded sync request timeout, converted to async")
            return self._handle_from(parse_payload(outcome.data, "json"), dataset_id)
        return parse_payload(outcome.data, format)

    async def trigger(
        self,
        dataset_id: str,
        inputs: Sequence[DatasetInput],
        format: Optional[str] = None,
        discover_by: Optional[str] = None,
        discover_new: bool = False,
        limit_per_input: Optional[int] = None,
        limit_multiple_results: Optional[int] = None,
        include_errors: Optional[bool] = None,
        custom_output_fields: Optional[str] = None,
        notify: Optional[str] = None,
        endpoint: Optional[str] = None,
        auth_header: Optional[str] = None,
        uncompressed_webhook: Optional[bool] = None,
    ) -> SnapshotHandle:
        """Submit an asynchronous dataset job and return its snapshot handle."""
        if format is not None:
            validate_choice(format, SNAPSHOT_FORMATS, "dataset format")
        records = normalize_inputs(inputs)
        logger.info(f"triggering dataset {dataset_id} for {len(records)} inputs")
        params = _query(
            dataset_id=dataset_id,
            format=format,
            type="discover_new" if discover_new else None,
            discover_by=discover_by,
            limit_per_input=limit_per_input,
            limit_multiple_results=limit_multiple_results,
            include_errors=include_errors,
            custom_output_fields=custom_output_fields,
            notify=notify,
            endpoint=endpoint,
            auth_header=auth_header,
            uncompressed_webhook=uncompressed_webhook,
        )
        state = await self._retry.run(
            lambda: self._session.call(
                "POST",
                DATASET_TRIGGER_PATH,
                json=records,
                params=params,
                parse_json=True,
                operation="dataset_trigger",
            ),
            operation="dataset_trigger",
        )
        return self._handle_from(state.last.data, dataset_id)

    @staticmethod
    def _handle_from(raw: Any, dataset_id: str) -> SnapshotHandle:
        if not isinstance(raw, dict) or not raw.get("snapshot_id"):
            raise BrdError(ErrorKind.API, "response does not contain a snapshot_id")
        status = raw.get("status")
        return SnapshotHandle(
            snapshot_id=str(raw["snapshot_id"]),
            dataset_id=raw.get("dataset_id") or dataset_id,
            status=SnapshotStatus.parse(status) if status else SnapshotStatus.RUNNING,
            meta=raw,
        )
