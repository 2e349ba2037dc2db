import unittest
from unittest.mock import patch

import structlog

from whistlebox.core.config import Settings
from whistlebox.core.logging import REDACTED, redact_sensitive, setup_logging

from fakes import TEST_ENCRYPTION_KEY


class TestRedactSensitive(unittest.TestCase):

    def test_masks_pin_and_content_keys(self):
        event = redact_sensitive(None, "info", {
            "event": "track_denied",
            "complaint_id": "abc",
            "pin": "123456",
            "Title": "Bribery at office",
        })
        self.assertEqual(event["pin"], REDACTED)
        self.assertEqual(event["Title"], REDACTED)
        self.assertEqual(event["complaint_id"], "abc")
        self.assertEqual(event["event"], "track_denied")

    def test_masks_nested_body(self):
        event = redact_sensitive(None, "info", {
            "event": "request",
            "body": {"complaint_id": "abc", "pin": "123456"},
        })
        self.assertEqual(event["body"], {"complaint_id": "abc", "pin": REDACTED})


class TestSetupLogging(unittest.TestCase):

    def tearDown(self):
        structlog.reset_defaults()

    @patch("whistlebox.core.logging.logging.basicConfig")
    def test_production_renders_json_with_redaction(self, mock_basic):
        settings = Settings(ENCRYPTION_KEY=TEST_ENCRYPTION_KEY, ENVIRONMENT="production", LOG_LEVEL="warning")
        setup_logging(settings)

        processors = structlog.get_config()["processors"]
        self.assertIn(redact_sensitive, processors)
        self.assertIsInstance(processors[-1], structlog.processors.JSONRenderer)
        self.assertEqual(mock_basic.call_args.kwargs["level"], "WARNING")


if __name__ == "__main__":
    unittest.main()
