from __future__ import annotations

PACKAGE_VERSION = "0.1.0"
USER_AGENT = f"brdjobs/{PACKAGE_VERSION}"

API_BASE_URL = "https://api.brightdata.com"

# Paths are joined onto the configured base URL.
REQUEST_PATH = "/request"
ZONE_PATH = "/zone"
ZONE_LIST_PATH = "/zone/get_active_zones"
DATASET_SCRAPE_PATH = "/datasets/v3/scrape"
DATASET_TRIGGER_PATH = "/datasets/v3/trigger"
SNAPSHOT_STATUS_PATH = "/datasets/v3/snapshot/{snapshot_id}/status"
SNAPSHOT_DOWNLOAD_PATH = "/datasets/v3/snapshot/{snapshot_id}/download"
SNAPSHOT_CANCEL_PATH = "/datasets/v3/snapshot/{snapshot_id}/cancel"

DEFAULT_TIMEOUT_SECS = 30.0
DEFAULT_CONCURRENCY = 10
MAX_RETRIES = 3
RETRY_BASE_DELAY_SECS = 1.0
RETRY_BACKOFF_FACTOR = 1.5
RETRY_JITTER_RATIO = 0.1
RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})

POLL_MIN_SECS = 10.0
POLL_MAX_SECS = 30.0

DEFAULT_WEB_UNLOCKER_ZONE = "sdk_unlocker"
DEFAULT_SERP_ZONE = "sdk_serp"

BODY_SNIPPET_CHARS = 200

SEARCH_ENGINE_URLS = {
    "google": "https://www.google.com/search?q={query}",
    "bing": "https://www.bing.com/search?q={query}",
    "yandex": "https://yandex.com/search/?text={query}",
}
