"""
Tests for the configuration manager.
"""

import json
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.append(str(Path(__file__).resolve().parent.parent))

from config.settings import ConfigManager, ConfigValidationError


class TestConfigManager(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.temp_dir.cleanup()

    def _load(self, env=None, file_config=None):
        config_file = ""
        if file_config is not None:
            config_file = os.path.join(self.temp_dir.name, "config.json")
            with open(config_file, "w") as f:
                json.dump(file_config, f)
        with patch.dict(os.environ, env or {}, clear=True):
            return ConfigManager(env_file=os.devnull, config_file=config_file)

    def test_defaults(self):
        config = self._load()
        self.assertIsNone(config.get('API_SETTINGS', 'OPENAI_API_KEY'))
        self.assertEqual(config.get('API_SETTINGS', 'OPENAI_MODEL'), 'gpt-4o-mini')
        self.assertEqual(config.get('API_SETTINGS', 'MAX_TOKENS'), 150)
        self.assertEqual(config.get('RAG_SETTINGS', 'TOP_K'), 5)
        self.assertEqual(config.get('RAG_SETTINGS', 'DEFAULT_GAME_ID'), 'catan-base')
        self.assertEqual(config.get('SESSION_SETTINGS', 'MAX_RETRIES'), 3)
        self.assertEqual(config.get('SESSION_SETTINGS', 'RESTART_DELAY'), 0.1)
        self.assertEqual(config.get('SESSION_SETTINGS', 'RETRY_DELAY'), 0.5)
        self.assertEqual(config.get('SPEECH_SETTINGS', 'SPEECH_RATE'), 0.9)
        self.assertEqual(config.get('PROMPT_TEMPLATES', 'EXCERPT_SEPARATOR'), "\n\n---\n\n")

    def test_missing_key_returns_default(self):
        config = self._load()
        self.assertEqual(config.get('RAG_SETTINGS', 'NOT_A_KEY', 'fallback'), 'fallback')
        self.assertEqual(config.get('NOT_A_SECTION', 'KEY', 1), 1)

    def test_environment_overrides(self):
        config = self._load(env={
            'OPENAI_API_KEY': 'env-key',
            'TOP_K': '3',
            'RESTART_DELAY': '0.25',
            'SPEECH_LANGUAGE': 'en-GB',
            'DEBUG_MODE': 'true',
        })
        self.assertEqual(config.get('API_SETTINGS', 'OPENAI_API_KEY'), 'env-key')
        self.assertEqual(config.get('RAG_SETTINGS', 'TOP_K'), 3)
        self.assertEqual(config.get('SESSION_SETTINGS', 'RESTART_DELAY'), 0.25)
        self.assertEqual(config.get('SPEECH_SETTINGS', 'LANGUAGE'), 'en-GB')
        self.assertTrue(config.get('APP_SETTINGS', 'DEBUG_MODE'))

    def test_file_overrides_defaults_and_env_overrides_file(self):
        config = self._load(
            env={'OPENAI_MODEL': 'env-model'},
            file_config={
                'API_SETTINGS': {'OPENAI_MODEL': 'file-model', 'MAX_TOKENS': 99},
                'RAG_SETTINGS': {'DEFAULT_GAME_ID': 'carcassonne'},
            },
        )
        self.assertEqual(config.get('API_SETTINGS', 'OPENAI_MODEL'), 'env-model')
        self.assertEqual(config.get('API_SETTINGS', 'MAX_TOKENS'), 99)
        self.assertEqual(config.get('RAG_SETTINGS', 'DEFAULT_GAME_ID'), 'carcassonne')
        self.assertEqual(config.get('RAG_SETTINGS', 'TOP_K'), 5)

    def test_invalid_values_fail_validation(self):
        with self.assertRaises(ConfigValidationError) as ctx:
            self._load(file_config={'RAG_SETTINGS': {'TOP_K': 0}})
        self.assertIn("TOP_K", str(ctx.exception))

        with self.assertRaises(ConfigValidationError):
            self._load(file_config={'SESSION_SETTINGS': {'RETRY_DELAY': -1}})

    def test_update_and_section(self):
        config = self._load()
        config.update_config('SESSION_SETTINGS', 'MAX_RETRIES', 5)
        config.update_config('NEW_SECTION', 'KEY', 'value')
        self.assertEqual(config.get_config_section('SESSION_SETTINGS')['MAX_RETRIES'], 5)
        self.assertEqual(config.get('NEW_SECTION', 'KEY'), 'value')
        self.assertTrue(config.validate_config())

    def test_generate_sample_env(self):
        config = self._load()
        output = os.path.join(self.temp_dir.name, "example.env")
        config.generate_sample_env(output)
        with open(output) as f:
            content = f.read()
        self.assertIn("OPENAI_API_KEY=", content)
        self.assertIn("RESTART_DELAY=0.1", content)


if __name__ == "__main__":
    unittest.main()
