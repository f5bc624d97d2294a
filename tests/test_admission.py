"""Tests for the admission gates."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest

from bgm_scout.database.models import ChannelCandidate, PlaylistVideo
from bgm_scout.discovery.admission import AdmissionConfig, admit, evaluate

from conftest import NOW, make_candidate

CONFIG = AdmissionConfig(
    months_threshold=3,
    min_subscribers=1000,
    max_subscribers=500000,
    min_videos=5,
    min_growth_rate=1,
)


class TestAdmit:
    def test_admits_young_bgm_channel(self):
        record = admit(make_candidate(), None, CONFIG, NOW)
        assert record is not None
        assert record.channel_id == "UC_A"
        assert record.growth_rate == 750
        assert record.keywords == ["lofi"]
        assert record.first_video_date == NOW - timedelta(days=20)

    def test_rejects_gaming_channel(self):
        channel = make_candidate("UC_B", "Channel B", "gaming lofi highlights")
        assert admit(channel, None, CONFIG, NOW) is None

    def test_idempotent(self):
        channel = make_candidate()
        assert admit(channel, None, CONFIG, NOW) == admit(channel, None, CONFIG, NOW)

    def test_subscriber_gate_short_circuits_growth(self):
        channel = make_candidate(subscriber_count=10)
        with patch("bgm_scout.discovery.admission.growth_score") as spy:
            assert admit(channel, None, CONFIG, NOW) is None
        spy.assert_not_called()

    def test_logs_rejection_reason(self, caplog):
        with caplog.at_level("INFO", logger="bgm_scout"):
            admit(make_candidate(video_count=1), None, CONFIG, NOW)
        assert "video_count" in caplog.text


class TestEvaluate:
    @pytest.mark.parametrize("kwargs,reason", [
        ({"description": "gaming lofi"}, "not_bgm"),
        ({"subscriber_count": 999}, "subscribers"),
        ({"subscriber_count": 500001}, "subscribers"),
        ({"video_count": 4}, "video_count"),
        ({"age_days": 91}, "too_old"),
        ({"age_days": None}, "too_old"),
    ])
    def test_rejection_reasons(self, kwargs, reason):
        assert evaluate(make_candidate(**kwargs), None, CONFIG, NOW).reason == reason

    def test_missing_channel_id(self):
        channel = ChannelCandidate(channel_id="", title="lofi", description="lofi")
        result = evaluate(channel, None, CONFIG, NOW)
        assert not result.admitted
        assert result.reason == "missing_channel_id"

    def test_subscriber_bounds_inclusive(self):
        assert evaluate(make_candidate(subscriber_count=1000), None, CONFIG, NOW).admitted
        assert evaluate(make_candidate(subscriber_count=500000), None, CONFIG, NOW).admitted

    def test_low_growth(self):
        strict = AdmissionConfig(3, 1000, 500000, 5, min_growth_rate=800)
        assert evaluate(make_candidate(), None, strict, NOW).reason == "low_growth"

    def test_first_video_is_growth_basis(self):
        first = PlaylistVideo("v0", "first upload", NOW - timedelta(days=300))
        result = evaluate(make_candidate(), first, CONFIG, NOW)
        # 5000 / 10 months
        assert result.record.growth_rate == 50
        assert result.record.first_video_date == first.published_at

    def test_recency_uses_channel_date_not_first_video(self):
        # A new channel re-uploading an old catalogue still passes the age gate
        first = PlaylistVideo("v0", "old upload", NOW - timedelta(days=900))
        result = evaluate(make_candidate(age_days=20), first, CONFIG, NOW)
        assert result.admitted

    def test_old_channel_with_recent_first_video_is_too_old(self):
        first = PlaylistVideo("v0", "recent upload", NOW - timedelta(days=5))
        result = evaluate(make_candidate(age_days=200), first, CONFIG, NOW)
        assert result.reason == "too_old"

    def test_first_video_without_date_falls_back(self):
        first = PlaylistVideo("v0", "no date", None)
        result = evaluate(make_candidate(), first, CONFIG, NOW)
        assert result.record.first_video_date == NOW - timedelta(days=20)
