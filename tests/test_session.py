"""Tests for ApiSession and response classification."""

import asyncio
import unittest

from curl_cffi.requests.exceptions import RequestException

from brdjobs.metrics import MetricsCollector
from brdjobs.models import OutcomeKind
from brdjobs.session import ApiSession, classify_response, drop_empty, mask_token

from fakes import FakeResponse, FakeSession

TOKEN = "test_token_1234567890"


class TestClassifyResponse(unittest.TestCase):
    """Verify HTTP statuses map to the right outcome kinds."""

    def test_status_table(self):
        cases = {
            200: OutcomeKind.SUCCESS,
            202: OutcomeKind.SUCCESS,
            400: OutcomeKind.VALIDATION,
            401: OutcomeKind.AUTHENTICATION,
            403: OutcomeKind.API,
            404: OutcomeKind.API,
            429: OutcomeKind.RETRYABLE_STATUS,
            500: OutcomeKind.RETRYABLE_STATUS,
            502: OutcomeKind.RETRYABLE_STATUS,
            503: OutcomeKind.RETRYABLE_STATUS,
            504: OutcomeKind.RETRYABLE_STATUS,
            501: OutcomeKind.API,
        }
        for status, kind in cases.items():
            with self.subTest(status=status):
                self.assertEqual(classify_response(status, "body").kind, kind)

    def test_custom_auth_statuses(self):
        outcome = classify_response(403, "forbidden", auth_statuses=(401, 403))
        self.assertEqual(outcome.kind, OutcomeKind.AUTHENTICATION)

    def test_bad_request_message_carries_body(self):
        outcome = classify_response(400, "zone is missing")
        self.assertEqual(outcome.message, "Bad request: zone is missing")

    def test_json_parsed_on_request(self):
        outcome = classify_response(200, '{"a": 1}', parse_json=True)
        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.data, {"a": 1})

    def test_raw_text_kept_without_parsing(self):
        outcome = classify_response(200, '{"a": 1}')
        self.assertEqual(outcome.data, '{"a": 1}')

    def test_invalid_json_is_parse_failure(self):
        outcome = classify_response(200, "<html>", parse_json=True)
        self.assertEqual(outcome.kind, OutcomeKind.PARSE)
        self.assertEqual(outcome.status_code, 200)

    def test_body_is_truncated(self):
        outcome = classify_response(500, "x" * 1000)
        self.assertEqual(len(outcome.body), 203)
        self.assertTrue(outcome.body.endswith("..."))


class TestHelpers(unittest.TestCase):

    def test_drop_empty(self):
        self.assertEqual(drop_empty({"a": 1, "b": None, "c": "", "d": False, "e": 0}), {"a": 1, "d": False, "e": 0})

    def test_mask_token(self):
        self.assertEqual(mask_token(TOKEN), "test***7890")
        self.assertEqual(mask_token("short"), "***")


class TestApiSession(unittest.IsolatedAsyncioTestCase):
    """Verify one transport attempt end to end against a fake session."""

    async def test_sends_auth_headers_and_body(self):
        fake = FakeSession().add("POST", "/request", FakeResponse(200, "ok"))
        session = ApiSession(TOKEN, session=fake)
        outcome = await session.call("POST", "/request", json={"url": "https://example.com"})
        self.assertTrue(outcome.ok)
        method, url, kwargs = fake.calls[0]
        self.assertEqual(url, "https://api.brightdata.com/request")
        self.assertEqual(kwargs["headers"]["Authorization"], f"Bearer {TOKEN}")
        self.assertEqual(kwargs["json"], {"url": "https://example.com"})
        self.assertEqual(kwargs["timeout"], 30.0)

    async def test_path_formatting_and_params(self):
        fake = FakeSession().add("GET", "/snapshot/s1/download", FakeResponse(200, "[]"))
        session = ApiSession(TOKEN, session=fake)
        await session.call(
            "GET",
            "/datasets/v3/snapshot/{snapshot_id}/download",
            params={"format": "json", "compress": None},
            snapshot_id="s1",
        )
        _, url, kwargs = fake.calls[0]
        self.assertTrue(url.endswith("/datasets/v3/snapshot/s1/download"))
        self.assertEqual(kwargs["params"], {"format": "json"})

    async def test_request_exception_is_network_outcome(self):
        fake = FakeSession().add("GET", "/zone/get_active_zones", RequestException("connection reset"))
        session = ApiSession(TOKEN, session=fake)
        outcome = await session.call("GET", "/zone/get_active_zones")
        self.assertEqual(outcome.kind, OutcomeKind.NETWORK)
        self.assertIsNone(outcome.status_code)

    async def test_timeout_is_network_outcome(self):
        async def slow(kwargs):
            await asyncio.sleep(1)
            return FakeResponse(200, "late")

        fake = FakeSession().add("POST", "/request", slow)
        session = ApiSession(TOKEN, timeout=0.01, session=fake)
        outcome = await session.call("POST", "/request", json={})
        self.assertEqual(outcome.kind, OutcomeKind.NETWORK)
        self.assertIn("TimeoutError", outcome.message)

    async def test_every_attempt_is_recorded(self):
        metrics = MetricsCollector()
        fake = FakeSession().add("POST", "/request", FakeResponse(503, "busy"), FakeResponse(200, "ok"))
        session = ApiSession(TOKEN, metrics=metrics, session=fake)
        await session.call("POST", "/request", json={}, operation="request")
        await session.call("POST", "/request", json={}, operation="request")
        snap = metrics.snapshot(window_secs=60)
        self.assertEqual(snap.total_attempts, 2)
        self.assertEqual(snap.http_5xx_count, 1)
        self.assertEqual(snap.success_count, 1)
        self.assertEqual(metrics.count("request"), 2)

    async def test_close_releases_session(self):
        fake = FakeSession()
        session = ApiSession(TOKEN, session=fake)
        await session.close()
        self.assertTrue(fake.closed)


if __name__ == "__main__":
    unittest.main()
