"""Tests for ClientSettings and logging setup."""

import io
import json
import logging
import os
import unittest
from unittest import mock

from pydantic import ValidationError

from brdjobs.config import ClientSettings
from brdjobs.logging_setup import PACKAGE_LOGGER, setup_logging


class TestClientSettings(unittest.TestCase):

    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = ClientSettings(_env_file=None)
        self.assertEqual(settings.web_unlocker_zone, "sdk_unlocker")
        self.assertEqual(settings.serp_zone, "sdk_serp")
        self.assertEqual(settings.max_retries, 3)
        self.assertEqual(settings.concurrency, 10)
        self.assertTrue(settings.auto_create_zones)
        self.assertIsNone(settings.api_token)

    def test_environment(self):
        env = {
            "BRIGHTDATA_API_TOKEN": "env_token_123456",
            "WEB_UNLOCKER_ZONE": "my_unlocker",
            "BRIGHTDATA_SERP_ZONE": "my_serp",
            "BRIGHTDATA_VERBOSE": "true",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            settings = ClientSettings(_env_file=None)
        self.assertEqual(settings.api_token, "env_token_123456")
        self.assertEqual(settings.web_unlocker_zone, "my_unlocker")
        self.assertEqual(settings.serp_zone, "my_serp")
        self.assertTrue(settings.verbose)

    def test_keyword_overrides_environment(self):
        with mock.patch.dict(os.environ, {"BRIGHTDATA_API_TOKEN": "env_token_123456"}, clear=True):
            settings = ClientSettings(_env_file=None, api_token="kwarg_token_123456")
        self.assertEqual(settings.api_token, "kwarg_token_123456")

    def test_log_level_is_upper_cased(self):
        self.assertEqual(ClientSettings(_env_file=None, log_level="debug").log_level, "DEBUG")

    def test_invalid_values(self):
        for kwargs in ({"max_retries": -1}, {"timeout": 0}, {"poll_min_secs": 20, "poll_max_secs": 5}):
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ValidationError):
                    ClientSettings(_env_file=None, **kwargs)


class TestLoggingSetup(unittest.TestCase):

    def tearDown(self):
        logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

    def test_structured_lines_carry_data(self):
        stream = io.StringIO()
        setup_logging("INFO", structured=True, verbose=True, stream=stream)
        logging.getLogger("brdjobs.retry").warning("request attempt failed", extra={"data": {"attempt": 2}})
        record = json.loads(stream.getvalue().strip())
        self.assertEqual(record["level"], "WARNING")
        self.assertEqual(record["message"], "request attempt failed")
        self.assertEqual(record["attempt"], 2)
        self.assertEqual(record["logger"], "brdjobs.retry")

    def test_quiet_without_verbose(self):
        stream = io.StringIO()
        logger = setup_logging("DEBUG", verbose=False, stream=stream)
        self.assertEqual(logger.level, logging.WARNING)
        logging.getLogger("brdjobs.client").info("hidden")
        self.assertEqual(stream.getvalue(), "")

    def test_plain_format(self):
        stream = io.StringIO()
        setup_logging("INFO", structured=False, verbose=True, stream=stream)
        logging.getLogger("brdjobs.zones").info("found zones", extra={"data": {"count": 2}})
        line = stream.getvalue()
        self.assertIn("[INFO] brdjobs.zones: found zones", line)
        self.assertIn('{"count": 2}', line)

    def test_unknown_level(self):
        with self.assertRaises(ValueError):
            setup_logging("LOUD")


if __name__ == "__main__":
    unittest.main()
