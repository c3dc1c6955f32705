import unittest
from pathlib import Path

from gwacalc.config import DEFAULT_MODEL, load_settings
from gwacalc.errors import ConfigError
from gwacalc.model import MergeStrategy


class TestConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        s = load_settings({})
        self.assertIsNone(s.api_key)
        self.assertEqual(s.model, DEFAULT_MODEL)
        self.assertIsNone(s.data_path)
        self.assertEqual(s.strategy, MergeStrategy.SKIP_DUPLICATES)
        self.assertEqual(s.timeout, 60.0)

    def test_values_from_env(self) -> None:
        s = load_settings(
            {
                "GEMINI_API_KEY": " key ",
                "GWACALC_MODEL": "gemini-1.5-pro",
                "GWACALC_DATA": "/tmp/courses.json",
                "GWACALC_STRATEGY": "UPDATE_DUPLICATES",
                "GWACALC_TIMEOUT": "15",
            }
        )
        self.assertEqual(s.require_api_key(), "key")
        self.assertEqual(s.model, "gemini-1.5-pro")
        self.assertEqual(s.data_path, Path("/tmp/courses.json"))
        self.assertEqual(s.strategy, MergeStrategy.UPDATE_DUPLICATES)
        self.assertEqual(s.timeout, 15.0)

    def test_missing_api_key(self) -> None:
        with self.assertRaises(ConfigError):
            load_settings({}).require_api_key()

    def test_invalid_values(self) -> None:
        with self.assertRaises(ConfigError):
            load_settings({"GWACALC_STRATEGY": "ask_user"})
        with self.assertRaises(ConfigError):
            load_settings({"GWACALC_TIMEOUT": "soon"})
        with self.assertRaises(ConfigError):
            load_settings({"GWACALC_TIMEOUT": "0"})


if __name__ == "__main__":
    unittest.main()
