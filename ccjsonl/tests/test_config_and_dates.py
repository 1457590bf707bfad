import json
import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from ccjsonl import config
from ccjsonl.date_utils import epoch_to_iso, normalize_iso_date, parse_timestamp


class SettingsFileTests(unittest.TestCase):
    def _path(self) -> Path:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        return Path(tmpdir.name) / "cc-jsonl" / "settings.json"

    def test_missing_file_is_empty(self) -> None:
        self.assertEqual(config.load_settings(self._path()), {})

    def test_round_trip_through_save(self) -> None:
        path = self._path()
        config.save_settings({"watchTargetDir": "/logs"}, path)
        self.assertEqual(config.load_settings(path), {"watchTargetDir": "/logs"})

    def test_broken_file_is_logged_and_ignored(self) -> None:
        path = self._path()
        path.parent.mkdir(parents=True)
        path.write_text("{nope", encoding="utf-8")
        with self.assertLogs("ccjsonl", level="ERROR"):
            self.assertEqual(config.load_settings(path), {})

    def test_non_object_settings_are_ignored(self) -> None:
        path = self._path()
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps(["a"]), encoding="utf-8")
        self.assertEqual(config.load_settings(path), {})

    def test_env_helpers(self) -> None:
        with patch.dict(os.environ, {"CCJSONL_TEST_FLAG": "yes", "CCJSONL_TEST_INT": "x"}):
            self.assertTrue(config._env_bool("CCJSONL_TEST_FLAG"))
            self.assertEqual(config._env_int("CCJSONL_TEST_INT", 7), 7)

    def test_default_target_dir_honours_xdg(self) -> None:
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": "/xdg"}):
            self.assertEqual(config.default_target_dir(), Path("/xdg/claude/projects"))


class DateUtilsTests(unittest.TestCase):
    def test_normalize_variants(self) -> None:
        self.assertEqual(normalize_iso_date("2025-01-01T00:00:00Z"), "2025-01-01T00:00:00.000Z")
        self.assertEqual(normalize_iso_date("2025-01-01T02:00:00+02:00"), "2025-01-01T00:00:00.000Z")
        self.assertEqual(normalize_iso_date(datetime(2025, 1, 1, tzinfo=timezone.utc)), "2025-01-01T00:00:00.000Z")
        self.assertEqual(normalize_iso_date("not a date"), "")
        self.assertEqual(normalize_iso_date(None), "")

    def test_epoch_and_parse(self) -> None:
        self.assertEqual(epoch_to_iso(0), "1970-01-01T00:00:00.000Z")
        self.assertEqual(parse_timestamp("1970-01-01T00:00:10Z").timestamp(), 10)
        with self.assertRaises(ValueError):
            parse_timestamp("")


if __name__ == "__main__":
    unittest.main()
