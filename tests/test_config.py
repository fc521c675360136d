"""
tests/test_config.py — YAML configuration loader
=================================================
"""

from __future__ import annotations

import logging

import pytest

from hazardnet.config import HazardNetConfig, load_config


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="hazardnet.config"):
            cfg = load_config(tmp_path / "absent.yaml")
        assert cfg == HazardNetConfig()
        assert "Configuration file not found" in caplog.text

    def test_reads_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "app_name: River Watch\nfanout_batch_size: 250\nleaderboard_limit: 10\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.app_name == "River Watch"
        assert cfg.fanout_batch_size == 250
        assert cfg.leaderboard_limit == 10
        assert cfg.api_port == 8000

    def test_empty_file_is_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == HazardNetConfig()

    @pytest.mark.parametrize("line", ["api_port: zero", "fanout_batch_size: 0", "retention_interval_minutes: -5"])
    def test_rejects_bad_numbers(self, tmp_path, line):
        path = tmp_path / "config.yaml"
        path.write_text(line + "\n", encoding="utf-8")
        with pytest.raises(ValueError, match="config key"):
            load_config(path)

    def test_config_is_frozen(self):
        cfg = HazardNetConfig()
        with pytest.raises(AttributeError):
            cfg.api_port = 1  # type: ignore[misc]
