"""
Tests for the chat-completion API client.
"""

import json
import os
import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).resolve().parent.parent))

from config.settings import ConfigManager
from utils.llm_client import LLMClient, LLMAPIError


def make_config(**api_settings):
    with patch.dict(os.environ, {}, clear=True):
        config = ConfigManager(env_file=os.devnull, config_file="")
    for key, value in api_settings.items():
        config.update_config('API_SETTINGS', key, value)
    return config


def http_response(status_code, body=None):
    response = MagicMock(status_code=status_code, text=json.dumps(body))
    response.json.return_value = body
    return response


MESSAGES = [{"role": "user", "content": "How do I build a road?"}]


class TestLLMClient(unittest.TestCase):

    def setUp(self):
        self.config = make_config(OPENAI_API_KEY="test-key", MAX_RETRY_ATTEMPTS=3, RETRY_DELAY=0.5)
        self.client = LLMClient(self.config)

    @patch('utils.llm_client.requests.post')
    def test_chat_completion_payload(self, mock_post):
        mock_post.return_value = http_response(200, {"choices": [{"message": {"content": "Answer."}}]})

        response = self.client.chat_completion(MESSAGES)

        self.assertEqual(self.client.extract_response_text(response), "Answer.")
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], "https://api.openai.com/v1/chat/completions")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer test-key")
        payload = json.loads(kwargs["data"])
        self.assertEqual(payload["model"], "gpt-4o-mini")
        self.assertEqual(payload["max_tokens"], 150)
        self.assertEqual(payload["temperature"], 0.3)
        self.assertEqual(payload["messages"], MESSAGES)

    @patch('utils.llm_client.requests.post')
    def test_explicit_zero_temperature_is_sent(self, mock_post):
        mock_post.return_value = http_response(200, {"choices": [{"text": "ok"}]})
        self.client.chat_completion(MESSAGES, temperature=0.0, max_tokens=20)
        payload = json.loads(mock_post.call_args[1]["data"])
        self.assertEqual(payload["temperature"], 0.0)
        self.assertEqual(payload["max_tokens"], 20)

    @patch('utils.llm_client.requests.post')
    def test_missing_api_key(self, mock_post):
        client = LLMClient(make_config())
        with self.assertRaises(LLMAPIError):
            client.chat_completion(MESSAGES)
        mock_post.assert_not_called()

    @patch('utils.llm_client.time.sleep')
    @patch('utils.llm_client.requests.post')
    def test_retryable_status_retries_with_backoff(self, mock_post, mock_sleep):
        mock_post.side_effect = [
            http_response(503, {"error": {"message": "overloaded"}}),
            http_response(429, {"error": {"message": "slow down"}}),
            http_response(200, {"choices": [{"message": {"content": "Finally."}}]}),
        ]

        response = self.client.chat_completion(MESSAGES)

        self.assertEqual(self.client.extract_response_text(response), "Finally.")
        self.assertEqual(mock_post.call_count, 3)
        self.assertEqual([c[0][0] for c in mock_sleep.call_args_list], [0.5, 1.0])

    @patch('utils.llm_client.time.sleep')
    @patch('utils.llm_client.requests.post')
    def test_retryable_status_gives_up(self, mock_post, mock_sleep):
        mock_post.return_value = http_response(500, {"error": {"message": "down"}})

        with self.assertRaises(LLMAPIError) as ctx:
            self.client.chat_completion(MESSAGES)

        self.assertEqual(ctx.exception.status_code, 500)
        self.assertIn("down", str(ctx.exception))
        self.assertEqual(mock_post.call_count, 3)

    @patch('utils.llm_client.time.sleep')
    @patch('utils.llm_client.requests.post')
    def test_client_error_is_not_retried(self, mock_post, mock_sleep):
        mock_post.return_value = http_response(401, {"error": {"message": "bad key"}})

        with self.assertRaises(LLMAPIError) as ctx:
            self.client.chat_completion(MESSAGES)

        self.assertEqual(ctx.exception.status_code, 401)
        mock_post.assert_called_once()
        mock_sleep.assert_not_called()

    @patch('utils.llm_client.time.sleep')
    @patch('utils.llm_client.requests.post')
    def test_network_errors_retry_then_fail(self, mock_post, mock_sleep):
        mock_post.side_effect = requests.exceptions.ConnectionError("unreachable")

        with self.assertRaises(LLMAPIError) as ctx:
            self.client.chat_completion(MESSAGES)

        self.assertIn("Network error", str(ctx.exception))
        self.assertEqual(mock_post.call_count, 3)

    @patch('utils.llm_client.requests.post')
    def test_invalid_json_body(self, mock_post):
        response = http_response(200)
        response.json.side_effect = ValueError("no json")
        mock_post.return_value = response

        with self.assertRaises(LLMAPIError):
            self.client.chat_completion(MESSAGES)

    def test_extract_response_text_malformed(self):
        for response in ({}, {"choices": []}, {"choices": [{"message": {}}]}, None,
                         {"choices": [{"message": {"content": None}}]}):
            with self.subTest(response=response):
                with self.assertRaises(LLMAPIError):
                    self.client.extract_response_text(response)


if __name__ == "__main__":
    unittest.main()
