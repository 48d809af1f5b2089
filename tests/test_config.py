"""
Unit tests for config.py.
"""

import unittest
import sys
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path so we can import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import config


class TestConfig(unittest.TestCase):
    """Test cases for Config class."""

    def test_config_attributes(self):
        """Test that Config has all expected attributes."""
        cfg = config.Config()

        # Pipeline settings
        self.assertIsInstance(cfg.hook_count, int)
        self.assertIsInstance(cfg.min_fidelity_score, int)
        self.assertIsInstance(cfg.auto_revise, bool)
        self.assertIsInstance(cfg.max_revision_attempts, int)
        self.assertIsInstance(cfg.corpus_limit, int)
        self.assertIsInstance(cfg.enable_shareability_scoring, bool)
        self.assertIsInstance(cfg.retry_failed_stages, bool)

        # Stage tuning
        self.assertIsInstance(cfg.hook_temperature, float)
        self.assertIsInstance(cfg.voice_batch_size, int)

    def test_config_default_values(self):
        """Test that Config has expected default values."""
        cfg = config.Config()

        self.assertEqual(cfg.hook_count, 30)
        self.assertEqual(cfg.target_duration, "medium")
        self.assertEqual(cfg.min_fidelity_score, 80)
        self.assertTrue(cfg.auto_revise)
        self.assertEqual(cfg.max_revision_attempts, 2)
        self.assertEqual(cfg.corpus_limit, 15)
        self.assertEqual(cfg.variations_per_concept, 1)
        self.assertEqual(cfg.cta_style, "auto")
        self.assertTrue(cfg.enable_pcm_tracking)
        self.assertFalse(cfg.retry_failed_stages)
        self.assertEqual(cfg.max_retries, 2)

        self.assertEqual(cfg.hook_temperature, 0.9)
        self.assertEqual(cfg.voice_batch_size, 5)
        self.assertEqual(cfg.voice_temperature, 0.7)
        self.assertEqual(cfg.revision_temperature, 0.5)
        self.assertEqual(cfg.words_per_second, 2.5)

    def test_multiple_instances(self):
        """Test that multiple Config instances are independent."""
        cfg1 = config.Config()
        cfg2 = config.Config()

        cfg1.hook_count = 5
        cfg2.hook_count = 7

        self.assertEqual(cfg1.hook_count, 5)
        self.assertEqual(cfg2.hook_count, 7)


class TestValidateEnvironment(unittest.TestCase):

    @patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test"}, clear=True)
    def test_openai_only_complete(self):
        with patch.object(config, "TEXT_PROVIDER", "openai"):
            self.assertEqual(config.validate_environment(), [])

    @patch.dict("os.environ", {}, clear=True)
    def test_missing_openai_key_reported(self):
        with patch.object(config, "TEXT_PROVIDER", "openai"):
            self.assertEqual(config.validate_environment(), ["OPENAI_API_KEY"])

    @patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test", "GEMINI_API_KEY": "g-test"}, clear=True)
    def test_gemini_key_counts_for_google(self):
        with patch.object(config, "TEXT_PROVIDER", "google"):
            self.assertEqual(config.validate_environment(), [])

    @patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test"}, clear=True)
    def test_google_provider_needs_google_key(self):
        with patch.object(config, "TEXT_PROVIDER", "google"):
            self.assertEqual(config.validate_environment(), ["GOOGLE_API_KEY"])


if __name__ == "__main__":
    unittest.main()
