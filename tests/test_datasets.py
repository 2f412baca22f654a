"""Tests for DatasetsAPI."""

import unittest

from brdjobs.datasets import DATASET_IDS, DatasetsAPI, normalize_inputs
from brdjobs.errors import BrdError, ErrorKind
from brdjobs.models import SnapshotHandle, SnapshotStatus
from brdjobs.retry import RetryPolicy
from brdjobs.session import ApiSession

from fakes import FakeResponse, FakeSession

SCRAPE = "/datasets/v3/scrape"
TRIGGER = "/datasets/v3/trigger"


def _api(fake):
    return DatasetsAPI(ApiSession("test_token_1234567890", session=fake), RetryPolicy(base_delay=0))


class TestNormalizeInputs(unittest.TestCase):

    def test_urls_and_filters(self):
        records = normalize_inputs(["https://www.linkedin.com/in/someone", {"keyword": "python"}])
        self.assertEqual(records, [{"url": "https://www.linkedin.com/in/someone"}, {"keyword": "python"}])

    def test_empty_rejected(self):
        with self.assertRaises(BrdError) as ctx:
            normalize_inputs([])
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)

    def test_bad_url_rejected(self):
        with self.assertRaises(BrdError):
            normalize_inputs(["not a url"])


class TestDatasetIds(unittest.TestCase):

    def test_known_platforms(self):
        self.assertEqual(DATASET_IDS["facebook_marketplace"], "gd_lvt9iwuh6fbcwmx1a")
        self.assertEqual(DATASET_IDS["instagram_reel"], "gd_lyclm20il4r5helnj")
        self.assertEqual(DATASET_IDS["instagram_comment"], "gd_ltppn085pokosxh13")
        self.assertEqual(len([k for k in DATASET_IDS if k.startswith("facebook_")]), 9)
        self.assertEqual(len(set(DATASET_IDS.values())), len(DATASET_IDS))


class TestDatasetsAPI(unittest.IsolatedAsyncioTestCase):

    async def test_collect_returns_records(self):
        fake = FakeSession().add("POST", SCRAPE, FakeResponse(200, [{"name": "Someone"}]))
        data = await _api(fake).collect(DATASET_IDS["linkedin_profile"], ["https://www.linkedin.com/in/someone"])
        self.assertEqual(data, [{"name": "Someone"}])
        _, _, kwargs = fake.calls[0]
        self.assertEqual(kwargs["json"], {"input": [{"url": "https://www.linkedin.com/in/someone"}]})
        self.assertEqual(kwargs["params"], {"dataset_id": "gd_l1viktl72bvl7bjuj0", "format": "json"})

    async def test_collect_converted_to_snapshot(self):
        fake = FakeSession().add("POST", SCRAPE, FakeResponse(202, {"snapshot_id": "s_9"}))
        handle = await _api(fake).collect("gd_x", [{"url": "https://example.com"}], include_errors=True)
        self.assertIsInstance(handle, SnapshotHandle)
        self.assertEqual(handle.snapshot_id, "s_9")
        self.assertEqual(handle.dataset_id, "gd_x")
        self.assertEqual(handle.status, SnapshotStatus.RUNNING)
        self.assertEqual(fake.calls[0][2]["params"]["include_errors"], "true")

    async def test_trigger_discover_new(self):
        fake = FakeSession().add("POST", TRIGGER, FakeResponse(200, {"snapshot_id": "s_2"}))
        handle = await _api(fake).trigger(
            "gd_y",
            [{"keyword": "python"}],
            discover_by="keyword",
            discover_new=True,
            limit_per_input=5,
        )
        self.assertEqual(handle.snapshot_id, "s_2")
        _, _, kwargs = fake.calls[0]
        self.assertEqual(kwargs["json"], [{"keyword": "python"}])
        self.assertEqual(
            kwargs["params"],
            {"dataset_id": "gd_y", "type": "discover_new", "discover_by": "keyword", "limit_per_input": "5"},
        )

    async def test_trigger_without_snapshot_id_is_api_error(self):
        fake = FakeSession().add("POST", TRIGGER, FakeResponse(200, {"message": "queued"}))
        with self.assertRaises(BrdError) as ctx:
            await _api(fake).trigger("gd_y", ["https://example.com"])
        self.assertEqual(ctx.exception.kind, ErrorKind.API)

    async def test_invalid_format_rejected_before_network(self):
        fake = FakeSession()
        with self.assertRaises(BrdError):
            await _api(fake).collect("gd_x", ["https://example.com"], format="xml")
        self.assertEqual(fake.calls, [])


if __name__ == "__main__":
    unittest.main()
