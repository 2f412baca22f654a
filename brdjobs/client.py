from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence, Union
from urllib.parse import quote_plus

from pydantic import ValidationError as SettingsError

from .config import ClientSettings
from .constants import SEARCH_ENGINE_URLS
from .datasets import DatasetsAPI
from .dispatcher import RequestDispatcher
from .errors import BrdError, ErrorKind
from .executor import BatchExecutor
from .logging_setup import setup_logging
from .metrics import MetricsCollector
from .models import ScrapeResult, SnapshotHandle, WorkItem, ZoneRecord
from .retry import RetryPolicy
from .session import ApiSession, mask_token
from .snapshot import SnapshotAPI, SnapshotPoller
from .validation import (
    DATA_FORMATS,
    HTTP_METHODS,
    RESPONSE_FORMATS,
    validate_api_token,
    validate_batch,
    validate_choice,
    validate_concurrency,
    validate_country,
    validate_query,
    validate_search_engine,
    validate_timeout,
    validate_url,
    validate_zone_name,
)
from .zones import ZonesAPI

logger = logging.getLogger(__name__)

UNLOCKER_ZONE_TYPE = "unblocker"
SERP_ZONE_TYPE = "serp"


def build_search_url(query: str, search_engine: str = "google") -> str:
    template = SEARCH_ENGINE_URLS[search_engine.lower()]
    return template.format(query=quote_plus(query.strip()))


class BrdClient:
    """Async client for the scraping, search, zone and dataset endpoints.

    One instance owns one HTTP session and one zone cache for its lifetime.
    Use it as an async context manager, or call ``close`` when done.

        async with BrdClient(api_token="...") as client:
            html = await client.scrape("https://example.com")
            results = await client.search(["pizza", "coffee"], concurrency=2)
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        *,
        settings: Optional[ClientSettings] = None,
        session: Optional[Any] = None,
        metrics: Optional[MetricsCollector] = None,
        configure_logging: bool = True,
        **overrides: Any,
    ) -> None:
        if settings is None:
            if api_token:
                overrides["api_token"] = api_token
            try:
                settings = ClientSettings(**overrides)
            except SettingsError as exc:
                raise BrdError(ErrorKind.VALIDATION, f"invalid client configuration: {exc}") from exc
        self.settings = settings

        if configure_logging:
            setup_logging(settings.log_level, settings.structured_logging, settings.verbose)
        logger.info("initializing client")

        token = validate_api_token(settings.api_token)
        validate_zone_name(settings.web_unlocker_zone)
        validate_zone_name(settings.serp_zone)
        logger.info(f"API token validated successfully: {mask_token(token)}")

        self.metrics = metrics or MetricsCollector()
        self._session = ApiSession(
            token,
            base_url=settings.base_url,
            timeout=settings.timeout,
            metrics=self.metrics,
            session=session,
        )
        self.retry = RetryPolicy(max_retries=settings.max_retries, backoff_factor=settings.backoff_factor)
        self.zones = ZonesAPI(self._session, self.retry)
        self.dispatcher = RequestDispatcher(self._session, self.retry)
        self.executor = BatchExecutor(settings.concurrency)
        self.snapshots = SnapshotAPI(self._session, self.retry)
        self.datasets = DatasetsAPI(self._session, self.retry)

    async def __aenter__(self) -> "BrdClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._session.close()
        self.zones.cache.invalidate()

    async def scrape(
        self,
        url: Union[str, Sequence[str]],
        zone: Optional[str] = None,
        response_format: str = "raw",
        method: str = "GET",
        country: str = "",
        data_format: str = "markdown",
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
    ) -> Union[Any, List[ScrapeResult]]:
        """Scrape one URL (returns the payload) or a list (returns ScrapeResults)."""
        zone = zone or self.settings.web_unlocker_zone
        self._check_options(zone, response_format, method, country, data_format, timeout, concurrency)

        def build(value: str) -> WorkItem:
            return WorkItem(
                value=value,
                url=value,
                zone=zone,
                response_format=response_format,
                method=method,
                country=country,
                data_format=data_format,
                timeout=timeout or self.settings.timeout,
            )

        if isinstance(url, str):
            validate_url(url)
            logger.info(f"starting scrape for {url}")
            return await self._single(build(url), UNLOCKER_ZONE_TYPE)
        urls = validate_batch(url, validate_url)
        logger.info(f"starting batch scrape for {len(urls)} urls")
        return await self._batch(urls, build, zone, UNLOCKER_ZONE_TYPE, concurrency)

    async def search(
        self,
        query: Union[str, Sequence[str]],
        search_engine: str = "google",
        zone: Optional[str] = None,
        response_format: str = "raw",
        country: str = "",
        data_format: str = "markdown",
        timeout: Optional[float] = None,
        concurrency: Optional[int] = None,
    ) -> Union[Any, List[ScrapeResult]]:
        """Run one search query (returns the payload) or a list (returns ScrapeResults)."""
        zone = zone or self.settings.serp_zone
        validate_search_engine(search_engine)
        self._check_options(zone, response_format, "GET", country, data_format, timeout, concurrency)

        def build(value: str) -> WorkItem:
            return WorkItem(
                value=value,
                url=build_search_url(value, search_engine),
                zone=zone,
                response_format=response_format,
                method="GET",
                country=country,
                data_format=data_format,
                timeout=timeout or self.settings.timeout,
            )

        if isinstance(query, str):
            validate_query(query)
            logger.info(f"starting search for {query}")
            return await self._single(build(query), SERP_ZONE_TYPE)
        queries = validate_batch(query, validate_query)
        logger.info(f"starting batch search for {len(queries)} queries")
        return await self._batch(queries, build, zone, SERP_ZONE_TYPE, concurrency)

    async def list_zones(self) -> List[ZoneRecord]:
        return await self.zones.list_zones()

    async def ensure_zone(self, name: str, zone_type: str) -> ZoneRecord:
        return await self.zones.ensure_zone(name, zone_type)

    async def ensure_required_zones(self) -> List[ZoneRecord]:
        return [
            await self.zones.ensure_zone(self.settings.web_unlocker_zone, UNLOCKER_ZONE_TYPE),
            await self.zones.ensure_zone(self.settings.serp_zone, SERP_ZONE_TYPE),
        ]

    def poller(self, status_polling: bool = True, max_polls: Optional[int] = None) -> SnapshotPoller:
        return SnapshotPoller(
            self.snapshots,
            poll_interval=(self.settings.poll_min_secs, self.settings.poll_max_secs),
            status_polling=status_polling,
            max_polls=max_polls,
        )

    async def wait_for_snapshot(
        self,
        handle: Union[str, SnapshotHandle],
        format: str = "json",
        compress: bool = False,
        status_polling: bool = True,
        max_polls: Optional[int] = None,
    ) -> Any:
        if isinstance(handle, str):
            handle = SnapshotHandle(snapshot_id=handle)
        return await self.poller(status_polling, max_polls).wait(handle, format=format, compress=compress)

    async def _single(self, item: WorkItem, zone_type: str) -> Any:
        if self.settings.auto_create_zones:
            await self.zones.ensure_zone(item.zone, zone_type)
        return await self.dispatcher.execute(item)

    async def _batch(
        self,
        values: List[str],
        build: Callable[[str], WorkItem],
        zone: str,
        zone_type: str,
        concurrency: Optional[int],
    ) -> List[ScrapeResult]:
        items = [build(v) for v in values]
        if self.settings.auto_create_zones:
            try:
                await self.zones.ensure_zone(zone, zone_type)
            except BrdError as exc:
                logger.error(f"batch aborted before dispatch: {exc.message}")
                return [
                    ScrapeResult(index=i, value=item.value, success=False, data=None, error=exc, status_code=exc.status_code)
                    for i, item in enumerate(items)
                ]
        return await self.executor.run(items, self._dispatch_one, limit=concurrency or 0)

    async def _dispatch_one(self, item: WorkItem, index: int) -> ScrapeResult:
        return await self.dispatcher.dispatch(item, index)

    @staticmethod
    def _check_options(
        zone: str,
        response_format: str,
        method: str,
        country: str,
        data_format: str,
        timeout: Optional[float],
        concurrency: Optional[int],
    ) -> None:
        validate_zone_name(zone)
        validate_choice(response_format, RESPONSE_FORMATS, "response format")
        validate_choice((method or "").upper(), HTTP_METHODS, "HTTP method")
        validate_choice(data_format, DATA_FORMATS, "data format")
        validate_country(country)
        validate_timeout(timeout)
        if concurrency is not None:
            validate_concurrency(concurrency)


