"""Tests for configuration loading and mode presets."""
from __future__ import annotations

import pytest

from bgm_scout.config import (
    ADMISSION_PRESETS,
    COLLECTION_MODES,
    get_admission_config,
    get_collection_config,
    get_keyword_config,
    get_quota_config,
    get_tracking_config,
    get_youtube_config,
    load_config,
)
from bgm_scout.discovery.admission import AdmissionConfig


class TestLoadConfig:
    def test_returns_dict(self):
        assert isinstance(load_config(), dict)

    def test_has_db_path(self):
        config = load_config()
        assert config["db_path"].endswith(".db")

    def test_has_log_level(self):
        assert "log_level" in load_config()

    def test_db_path_env_override(self, monkeypatch, tmp_path):
        target = str(tmp_path / "override.db")
        monkeypatch.setenv("BGM_SCOUT_DB_PATH", target)
        assert load_config()["db_path"] == target


class TestSectionDefaults:
    def test_youtube_defaults(self):
        cfg = get_youtube_config({})
        assert cfg["timeout"] == 10
        assert cfg["max_retries"] == 2
        assert cfg["region_code"] == "JP"
        assert cfg["first_video_max_pages"] == 10
        assert cfg["api_key"] is None

    def test_youtube_overrides(self):
        cfg = get_youtube_config({"youtube": {"timeout": 30, "region_code": "US"}})
        assert cfg["timeout"] == 30
        assert cfg["region_code"] == "US"
        # Non-overridden defaults remain
        assert cfg["relevance_language"] == "ja"

    def test_quota_defaults(self):
        assert get_quota_config({}) == {"daily_limit": 10000, "warn_ratio": 0.9}

    def test_tracking_defaults(self):
        cfg = get_tracking_config({"tracking": None})
        assert cfg["delay"] == 0.5
        assert cfg["history_days"] == 30

    def test_keyword_defaults(self):
        assert get_keyword_config({}) == {"override": [], "override_url": None}


class TestCollectionConfig:
    @pytest.mark.parametrize("mode", COLLECTION_MODES)
    def test_every_mode_has_run_shape(self, mode):
        cfg = get_collection_config({}, mode)
        assert cfg["mode"] == mode
        for key in ("keyword_count", "videos_per_keyword", "max_channels_per_run",
                    "search_delay", "channel_delay", "keyword_strategy"):
            assert key in cfg

    def test_yaml_values_layer_on_preset(self):
        cfg = get_collection_config({"collection": {"standard": {"keyword_count": 4}}})
        assert cfg["keyword_count"] == 4
        assert cfg["videos_per_keyword"] == 50

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            get_collection_config({}, "turbo")

    def test_preset_dict_not_mutated(self):
        get_collection_config({"collection": {"smart": {"keyword_count": 1}}}, "smart")
        assert get_collection_config({}, "smart")["keyword_count"] == 15


class TestAdmissionConfig:
    def test_standard_preset(self):
        cfg = get_admission_config({}, "standard")
        assert cfg == AdmissionConfig(
            months_threshold=3,
            min_subscribers=1000,
            max_subscribers=500000,
            min_videos=5,
            min_growth_rate=10,
        )

    @pytest.mark.parametrize("mode", COLLECTION_MODES)
    def test_presets_match_table(self, mode):
        assert get_admission_config({}, mode).as_dict() == ADMISSION_PRESETS[mode]

    def test_layering(self):
        config = {"admission": {"enhanced": {"min_subscribers": 100, "min_videos": 3}}}
        cfg = get_admission_config(config, "enhanced", {"min_videos": 7, "min_growth_rate": None})
        assert cfg.min_subscribers == 100
        assert cfg.min_videos == 7
        assert cfg.min_growth_rate == ADMISSION_PRESETS["enhanced"]["min_growth_rate"]

    def test_frozen(self):
        cfg = get_admission_config({}, "smart")
        with pytest.raises(AttributeError):
            cfg.min_videos = 0
