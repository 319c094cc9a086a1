"""
Settings tests — ini defaults, overrides and validation.
"""

from pathlib import Path

import pytest

from settings import DEFAULTS, ensure_config, load_settings


class TestLoadSettings:

    def test_defaults_without_file(self, tmp_path):
        s = load_settings(tmp_path / "missing.ini")
        assert s.settle_delay_sec == 1.0
        assert s.max_messages == 1000
        assert s.builtin_prefixes == ("EPiServer.", "Optimizely.")
        assert s.scheduler_enabled is True
        assert s.catalog_path == Path("data") / "jobs.xlsx"

    def test_values_from_file(self, tmp_path):
        path = tmp_path / "jobs_monitor.ini"
        path.write_text(
            "[monitor]\n"
            "data_dir = /srv/jobs\n"
            "settle_delay_sec = 2.5\n"
            "builtin_prefixes = Contoso. , Fabrikam.\n"
            "scheduler_enabled = no\n",
            encoding="utf-8",
        )
        s = load_settings(path)
        assert s.data_dir == Path("/srv/jobs")
        assert s.log_path == Path("/srv/jobs") / "job_log.json"
        assert s.settle_delay_sec == 2.5
        assert s.builtin_prefixes == ("Contoso.", "Fabrikam.")
        assert s.scheduler_enabled is False

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "other.ini"
        path.write_text("[monitor]\nmax_messages = 50\n", encoding="utf-8")
        monkeypatch.setenv("JOBS_MONITOR_CONFIG", str(path))
        assert load_settings().max_messages == 50

    @pytest.mark.parametrize("line", ["settle_delay_sec = soon", "max_messages = 0", "settle_delay_sec = -1"])
    def test_invalid_values(self, tmp_path, line):
        path = tmp_path / "bad.ini"
        path.write_text(f"[monitor]\n{line}\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(path)


class TestEnsureConfig:

    def test_fills_missing_keys_only(self, tmp_path):
        path = tmp_path / "jobs_monitor.ini"
        path.write_text("[monitor]\nsettle_delay_sec = 3\n", encoding="utf-8")

        ensure_config(path)

        text = path.read_text(encoding="utf-8")
        assert "settle_delay_sec = 3" in text
        for key in DEFAULTS:
            assert key in text
        assert load_settings(path).settle_delay_sec == 3.0
