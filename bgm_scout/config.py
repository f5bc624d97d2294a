import os
import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .discovery.admission import AdmissionConfig

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent

COLLECTION_MODES = ("standard", "smart", "enhanced")

# Run shape per collection mode. "smart" sizes itself from the quota tracker
# at run time, so its counts here are only upper bounds.
COLLECTION_PRESETS = {
    "standard": {
        "keyword_count": 10,
        "videos_per_keyword": 50,
        "max_channels_per_run": 200,
        "search_window_months": 3,
        "search_delay": 1.0,
        "channel_delay": 0.5,
        "keyword_strategy": "random",
    },
    "smart": {
        "keyword_count": 15,
        "videos_per_keyword": 30,
        "max_channels_per_run": 300,
        "search_window_months": 6,
        "search_delay": 1.0,
        "channel_delay": 0.3,
        "keyword_strategy": "priority_rotating",
    },
    "enhanced": {
        "keyword_count": 30,
        "videos_per_keyword": 50,
        "max_channels_per_run": 1000,
        "search_window_months": 12,
        "search_delay": 1.0,
        "channel_delay": 0.3,
        "keyword_strategy": "priority",
    },
}

ADMISSION_PRESETS = {
    "standard": {
        "months_threshold": 3,
        "min_subscribers": 1000,
        "max_subscribers": 500000,
        "min_videos": 5,
        "min_growth_rate": 10,
    },
    "smart": {
        "months_threshold": 3,
        "min_subscribers": 500,
        "max_subscribers": 1000,
        "min_videos": 2,
        "min_growth_rate": 3,
    },
    "enhanced": {
        "months_threshold": 12,
        "min_subscribers": 50,
        "max_subscribers": 2000000,
        "min_videos": 1,
        "min_growth_rate": 1,
    },
}


def load_config() -> dict:
    """Load configuration from .env and config.yaml. Env vars take precedence."""
    load_dotenv(PROJECT_ROOT / ".env")

    config_path = PROJECT_ROOT / "config.yaml"
    if config_path.exists():
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    else:
        config = {}

    # Resolve database path relative to project root
    db_override = os.environ.get("BGM_SCOUT_DB_PATH")
    if db_override:
        config["db_path"] = db_override
    else:
        db_rel = (config.get("database") or {}).get("path", "data/bgm_scout.db")
        config["db_path"] = str(PROJECT_ROOT / db_rel)

    # Resolve log file path
    log_rel = (config.get("logging") or {}).get("file")
    if log_rel:
        config["log_file"] = str(PROJECT_ROOT / log_rel)
    else:
        config["log_file"] = None

    config["log_level"] = (config.get("logging") or {}).get("level", "INFO")

    return config


def get_youtube_config(config: dict) -> dict:
    """Extract YouTube Data API client settings with defaults."""
    yt = config.get("youtube") or {}
    return {
        "api_key": yt.get("api_key"),
        "timeout": yt.get("timeout", 10),
        "max_retries": yt.get("max_retries", 2),
        "retry_base_delay": yt.get("retry_base_delay", 2.0),
        "region_code": yt.get("region_code", "JP"),
        "relevance_language": yt.get("relevance_language", "ja"),
        "first_video_max_pages": yt.get("first_video_max_pages", 10),
    }


def get_quota_config(config: dict) -> dict:
    """Extract quota budget settings with defaults."""
    quota = config.get("quota") or {}
    return {
        "daily_limit": quota.get("daily_limit", 10000),
        "warn_ratio": quota.get("warn_ratio", 0.9),
    }


def get_tracking_config(config: dict) -> dict:
    tracking = config.get("tracking") or {}
    return {
        "delay": tracking.get("delay", 0.5),
        "history_days": tracking.get("history_days", 30),
        "surge_threshold": tracking.get("surge_threshold", 50),
    }


def get_keyword_config(config: dict) -> dict:
    kw = config.get("keywords") or {}
    return {
        "override": kw.get("override") or [],
        "override_url": kw.get("override_url"),
    }


def get_collection_config(config: dict, mode: str = "standard") -> dict:
    """Run-shape parameters for a collection mode, config.yaml values on top."""
    if mode not in COLLECTION_PRESETS:
        raise ValueError(f"Unknown collection mode: {mode}")
    merged = dict(COLLECTION_PRESETS[mode])
    merged.update((config.get("collection") or {}).get(mode) or {})
    merged["mode"] = mode
    return merged


def get_admission_config(
    config: dict, mode: str = "standard", overrides: dict = None
) -> AdmissionConfig:
    """Build the AdmissionConfig for a mode.

    Layering, lowest first: built-in preset, ``admission.<mode>`` in
    config.yaml, then explicit overrides (CLI flags). ``None`` overrides are
    ignored so unset flags fall through.
    """
    if mode not in ADMISSION_PRESETS:
        raise ValueError(f"Unknown collection mode: {mode}")
    values = dict(ADMISSION_PRESETS[mode])
    values.update((config.get("admission") or {}).get(mode) or {})
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value
    return AdmissionConfig(**values)
