"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from streakforge.__main__ import main
from streakforge.config import StreakforgeConfig, load_config
from streakforge.engine.dates import get_default_timezone, today_ymd


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_full_config(self, tmp_path):
        path = _write(tmp_path, 'app_name: "Gym"\ntimezone: "UTC"\nsweep_enabled: false\n')
        cfg = load_config(path)
        assert cfg == StreakforgeConfig(app_name="Gym", timezone="UTC", sweep_enabled=False)

    def test_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, "app_name: Gym\n"))
        assert cfg.timezone == "Europe/Belgrade"
        assert cfg.sweep_enabled is True

    def test_missing_file_has_hint(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_app_name(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "timezone: UTC\n"))

    def test_unknown_timezone(self, tmp_path):
        with pytest.raises(ValueError, match="Mars/Olympus"):
            load_config(_write(tmp_path, "app_name: Gym\ntimezone: Mars/Olympus\n"))

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(_write(tmp_path, "app_name: Gym\n"))
        with pytest.raises(AttributeError):
            cfg.app_name = "Other"  # type: ignore[misc]


class TestMain:
    """``python -m streakforge`` wiring, with the database layer mocked out."""

    def _run(self, path, summary):
        with (
            patch("streakforge.__main__.load_dotenv"),
            patch("streakforge.__main__.create_db_engine") as mock_engine,
            patch("streakforge.__main__.init_db"),
            patch("streakforge.__main__.run_nightly_sweep", return_value=summary) as mock_sweep,
        ):
            code = main(["--config", str(path)])
        return code, mock_engine, mock_sweep

    def test_configured_zone_applies_process_wide(self, tmp_path, configured_timezone):
        path = _write(tmp_path, "app_name: Gym\ntimezone: Pacific/Kiritimati\n")
        code, _, mock_sweep = self._run(path, {"errors": []})

        assert code == 0
        assert get_default_timezone() == "Pacific/Kiritimati"
        assert mock_sweep.call_args.kwargs["today"] == today_ymd("Pacific/Kiritimati")

    def test_user_errors_exit_nonzero(self, tmp_path, configured_timezone):
        path = _write(tmp_path, "app_name: Gym\n")
        code, _, _ = self._run(path, {"errors": [{"user_id": 1, "error": "boom"}]})
        assert code == 1

    def test_disabled_sweep_skips_database(self, tmp_path, configured_timezone):
        path = _write(tmp_path, "app_name: Gym\nsweep_enabled: false\n")
        code, mock_engine, mock_sweep = self._run(path, {})
        assert code == 0
        mock_engine.assert_not_called()
        mock_sweep.assert_not_called()
