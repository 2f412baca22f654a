from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .constants import ZONE_LIST_PATH, ZONE_PATH
from .errors import BrdError, ErrorKind
from .models import ZoneRecord
from .retry import RetryPolicy
from .session import ApiSession
from .validation import validate_zone_name

logger = logging.getLogger(__name__)

_ZONE_AUTH_STATUSES = (401, 403)


class ZoneCache:
    """Memoized mapping of zone name to ZoneRecord.

    The mapping is loaded once through ``loader`` on first ``get`` and kept
    until ``invalidate``. Concurrent first reads share a single load.
    """

    def __init__(self, loader: Callable[[], Awaitable[List[ZoneRecord]]]) -> None:
        self._loader = loader
        self._zones: Optional[Dict[str, ZoneRecord]] = None
        self._load_lock = asyncio.Lock()
        self._loads = 0

    @property
    def loaded(self) -> bool:
        return self._zones is not None

    @property
    def loads(self) -> int:
        return self._loads

    async def get(self, name: str) -> Optional[ZoneRecord]:
        if self._zones is None:
            async with self._load_lock:
                if self._zones is None:
                    zones = await self._loader()
                    self._loads += 1
                    self._zones = {z.name: z for z in zones}
        return self._zones.get(name)

    def invalidate(self) -> None:
        self._zones = None


class ZonesAPI:
    """Zone listing and idempotent create-if-missing.

    ``ensure_zone`` calls for the same name are serialized with a per-name
    lock; a second caller waits for the first to finish and then observes
    the created zone through a fresh list.
    """

    def __init__(self, session: ApiSession, retry: Optional[RetryPolicy] = None) -> None:
        self._session = session
        self._retry = retry or RetryPolicy()
        self._cache = ZoneCache(self.list_zones)
        self._name_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self.created = 0

    @property
    def cache(self) -> ZoneCache:
        return self._cache

    async def list_zones(self) -> List[ZoneRecord]:
        logger.info("fetching list of active zones")
        state = await self._retry.run(
            lambda: self._session.call(
                "GET",
                ZONE_LIST_PATH,
                parse_json=True,
                operation="zone_list",
                auth_statuses=_ZONE_AUTH_STATUSES,
            ),
            operation="zone_list",
        )
        raw = state.last.data or []
        if not isinstance(raw, list):
            raise BrdError(ErrorKind.API, f"unexpected zone list payload: {type(raw).__name__}")
        zones = [ZoneRecord.from_api(z) for z in raw if isinstance(z, dict)]
        logger.info(f"found {len(zones)} active zones")
        return zones

    async def ensure_zone(self, name: str, zone_type: str) -> ZoneRecord:
        validate_zone_name(name)
        lock = self._name_locks.setdefault(name, asyncio.Lock())
        self._lock_users[name] = self._lock_users.get(name, 0) + 1
        try:
            async with lock:
                return await self._ensure_zone(name, zone_type)
        finally:
            # the last holder or waiter for a name drops its lock
            self._lock_users[name] -= 1
            if not self._lock_users[name]:
                del self._lock_users[name]
                del self._name_locks[name]

    async def _ensure_zone(self, name: str, zone_type: str) -> ZoneRecord:
        full_name = f"zone <{name}> ({zone_type})"
        logger.info(f"checking if {full_name} exists")

        existing = await self._cache.get(name)
        if existing is not None:
            if existing.type == zone_type:
                logger.info(f"{full_name} already exists")
                return existing
            raise BrdError(
                ErrorKind.ZONE_CONFLICT,
                f'zone <{name}> already exists, but type is not matching: '
                f'received "{existing.type}", expected: "{zone_type}"',
            )

        logger.info(f"{full_name} is not found")
        await self.create_zone(name, zone_type)
        return ZoneRecord(name=name, type=zone_type, status="active")

    async def create_zone(self, name: str, zone_type: str = "static") -> None:
        logger.info(f"creating zone: {name} (type: {zone_type})")
        body = build_zone_body(name, zone_type)
        try:
            await self._retry.run(
                lambda: self._session.call(
                    "POST",
                    ZONE_PATH,
                    json=body,
                    operation="zone_create",
                    auth_statuses=_ZONE_AUTH_STATUSES,
                ),
                operation="zone_create",
            )
        except BrdError as exc:
            if not _already_exists(exc):
                raise
            logger.info(f"zone {name} already exists, skipping creation")
        else:
            self.created += 1
            logger.info(f"successfully created zone: {name}")
        finally:
            self._cache.invalidate()


def build_zone_body(name: str, zone_type: str) -> dict:
    is_serp = zone_type == "serp"
    wire_type = "unblocker" if is_serp else zone_type
    return {
        "zone": {"name": name, "type": wire_type},
        "plan": {
            "type": wire_type,
            "serp": is_serp,
            "domain_whitelist": "",
            "ips_type": "shared",
            "bandwidth": "bandwidth",
            "ip_alloc_preset": "shared_block",
            "ips": 0,
            "country": "",
            "country_city": "",
            "mobile": False,
            "city": False,
            "asn": False,
            "vip": False,
            "vips_type": "shared",
            "vips": 0,
            "vip_country": "",
            "vip_country_city": "",
            "pool_ip_type": "",
            "ub_premium": False,
            "solve_captcha_disable": True,
        },
    }


def _already_exists(exc: BrdError) -> bool:
    if exc.status_code not in (400, 409):
        return False
    return "already exists" in (exc.response_text or exc.message).lower()
