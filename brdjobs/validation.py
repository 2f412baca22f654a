"""Input checks run before anything touches the network.

Every check raises ``BrdError`` with ``ErrorKind.VALIDATION``.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional
from urllib.parse import urlsplit

from .constants import SEARCH_ENGINE_URLS
from .errors import validation_error

_ZONE_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_COUNTRY_RE = re.compile(r"^[a-zA-Z]{2}$")
_SNAPSHOT_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

RESPONSE_FORMATS = ("raw", "json")
HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")
DATA_FORMATS = ("markdown", "screenshot", "html")
SNAPSHOT_FORMATS = ("json", "ndjson", "jsonl", "csv")


def validate_api_token(token: Optional[str]) -> str:
    if not token:
        raise validation_error(
            "API token is required. Provide it as parameter or set BRIGHTDATA_API_TOKEN environment variable"
        )
    if not isinstance(token, str):
        raise validation_error("API token must be a string")
    if len(token.strip()) < 10:
        raise validation_error("API token appears to be invalid")
    return token.strip()


def validate_url(url: str) -> None:
    if not isinstance(url, str) or not url.strip():
        raise validation_error("URL must be a non-empty string")
    parts = urlsplit(url.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise validation_error(f"Invalid URL format: {url}")


def validate_query(query: str) -> None:
    if not isinstance(query, str) or not query.strip():
        raise validation_error("Query must be a non-empty string")


def validate_batch(values: Iterable[str], check) -> list:
    items = list(values)
    if not items:
        raise validation_error("Batch must contain at least one item")
    for value in items:
        check(value)
    return items


def validate_zone_name(name: Optional[str]) -> None:
    if not name or not isinstance(name, str):
        raise validation_error("Zone name must be a non-empty string")
    if not _ZONE_NAME_RE.match(name):
        raise validation_error(
            f"Invalid zone name: {name}. Only letters, digits, underscores and hyphens are allowed"
        )


def validate_country(country: Optional[str]) -> None:
    if country and not _COUNTRY_RE.match(country):
        raise validation_error(f"Country must be a 2-letter code, got: {country}")


def validate_timeout(timeout: Optional[float]) -> None:
    if timeout is None:
        return
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise validation_error(f"Timeout must be a positive number, got: {timeout!r}")


def validate_choice(value: Optional[str], choices: Iterable[str], name: str) -> None:
    allowed = tuple(choices)
    if value is not None and value not in allowed:
        raise validation_error(f"Invalid {name}: {value}. Must be one of: {', '.join(allowed)}")


def validate_search_engine(engine: str) -> None:
    validate_choice((engine or "").lower(), SEARCH_ENGINE_URLS, "search engine")


def validate_snapshot_id(snapshot_id: str) -> None:
    if not snapshot_id or not isinstance(snapshot_id, str) or not _SNAPSHOT_ID_RE.match(snapshot_id):
        raise validation_error(f"Invalid snapshot id: {snapshot_id!r}")


def validate_concurrency(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise validation_error(f"Concurrency must be a positive integer, got: {limit!r}")
