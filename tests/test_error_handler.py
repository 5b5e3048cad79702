"""
Tests for capture error classification and user-facing error messages.
"""

import os
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).resolve().parent.parent))

from config.settings import ConfigManager
from utils.error_handler import (
    CaptureErrorKind,
    ErrorCategory,
    ErrorHandler,
    classify_capture_error,
)


def make_config():
    with patch.dict(os.environ, {}, clear=True):
        return ConfigManager(env_file=os.devnull, config_file="")


class TestCaptureErrorKind(unittest.TestCase):

    def test_known_codes(self):
        self.assertEqual(CaptureErrorKind.from_code("no-speech"), CaptureErrorKind.NO_SPEECH)
        self.assertEqual(CaptureErrorKind.from_code("network"), CaptureErrorKind.NETWORK)
        self.assertEqual(CaptureErrorKind.from_code("AUDIO_CAPTURE"), CaptureErrorKind.AUDIO_CAPTURE)

    def test_service_not_allowed_maps_to_not_allowed(self):
        self.assertEqual(CaptureErrorKind.from_code("service-not-allowed"), CaptureErrorKind.NOT_ALLOWED)

    def test_unknown_codes(self):
        for code in ("bad-grammar", "", None):
            with self.subTest(code=code):
                self.assertEqual(CaptureErrorKind.from_code(code), CaptureErrorKind.UNKNOWN)

    def test_classification(self):
        self.assertEqual(classify_capture_error("no-speech"), ErrorCategory.BENIGN)
        self.assertEqual(classify_capture_error("aborted"), ErrorCategory.BENIGN)
        self.assertEqual(classify_capture_error("network"), ErrorCategory.TRANSIENT)
        self.assertEqual(classify_capture_error("not-allowed"), ErrorCategory.FATAL)
        self.assertEqual(classify_capture_error("audio-capture"), ErrorCategory.FATAL)
        self.assertEqual(classify_capture_error("something-new"), ErrorCategory.FATAL)


class TestErrorHandler(unittest.TestCase):

    def setUp(self):
        self.handler = ErrorHandler(make_config())

    def test_formatted_messages(self):
        self.assertEqual(
            self.handler.message('NO_RULEBOOK_MESSAGE', game_id='catan-base'),
            "No rulebook found for game: catan-base"
        )
        self.assertEqual(self.handler.retry_message(2, 3), "Connection issue (retry 2/3)...")
        self.assertEqual(
            self.handler.message('START_FAILED_MESSAGE', reason='device busy'),
            "Could not start listening: device busy"
        )

    def test_capture_messages(self):
        self.assertIsNone(self.handler.capture_message("no-speech"))
        self.assertIsNone(self.handler.capture_message("aborted"))
        self.assertIn("Microphone permission denied", self.handler.capture_message("not-allowed"))
        self.assertIn("Firewall", self.handler.capture_message("network"))
        self.assertIn("Microphone not found", self.handler.capture_message("audio-capture"))
        self.assertEqual(
            self.handler.capture_message("weird"),
            "Speech recognition unavailable. Please try again."
        )

    def test_record_capture_error_tracks_statistics(self):
        category = self.handler.record_capture_error("network", details={'state': 'listening'})
        self.handler.record_capture_error("network")
        self.assertEqual(category, ErrorCategory.TRANSIENT)

        stats = self.handler.get_error_statistics()
        self.assertEqual(stats["total_errors"], 2)
        self.assertEqual(stats["counts"]["speech_capture:network"], 2)

    def test_handle_error_returns_message(self):
        with self.assertLogs("error_handler", level="ERROR"):
            message = self.handler.handle_error(ValueError("bad"), component="answer_composer")
        self.assertEqual(message, "I had trouble processing your question. Please try again.")
        self.assertEqual(self.handler.error_history[-1]["exception"], "ValueError")

    def test_history_is_bounded_and_resettable(self):
        handler = ErrorHandler(make_config(), max_error_history=3)
        for _ in range(5):
            handler.record_capture_error("no-speech")
        self.assertEqual(len(handler.error_history), 3)

        handler.reset_error_statistics()
        self.assertEqual(handler.get_error_statistics()["total_errors"], 0)


if __name__ == "__main__":
    unittest.main()
