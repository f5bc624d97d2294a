"""Tests for the keyword taxonomy and selection strategies."""
from __future__ import annotations

import random
from datetime import date

import pytest

from bgm_scout.discovery import keywords as kw
from bgm_scout.discovery.keywords import (
    BGM_KEYWORDS,
    HIGH_PRIORITY_KEYWORDS,
    KeywordSource,
    get_all_keywords,
    get_high_priority_keywords,
    get_random_keywords,
    get_rotating_keywords,
    load_override_keywords,
    rotate,
    shard_keywords,
)


class TestTaxonomy:
    def test_all_keywords_concatenates_categories(self):
        all_kw = get_all_keywords()
        assert len(all_kw) == sum(len(v) for v in BGM_KEYWORDS.values())
        assert all_kw[0] == BGM_KEYWORDS["genres"][0]
        assert all_kw[-1] == BGM_KEYWORDS["niche"][-1]

    def test_includes_localized_terms(self):
        assert "作業用BGM" in get_all_keywords()

    def test_random_keywords_are_unique(self):
        picked = get_random_keywords(10, rng=random.Random(7))
        assert len(picked) == len(set(picked)) == 10

    def test_random_keywords_capped_by_pool(self):
        assert len(get_random_keywords(500)) == len(get_all_keywords())

    def test_high_priority_prefix(self):
        assert get_high_priority_keywords(3) == HIGH_PRIORITY_KEYWORDS[:3]


class TestRotation:
    def test_same_day_same_sequence(self):
        assert get_rotating_keywords(8, day=100) == get_rotating_keywords(8, day=100)

    def test_different_days_differ(self):
        assert get_rotating_keywords(8, day=100) != get_rotating_keywords(8, day=103)

    def test_start_index(self):
        all_kw = get_all_keywords()
        start = (100 * 3) % len(all_kw)
        assert get_rotating_keywords(2, day=100) == [all_kw[start], all_kw[start + 1]]

    def test_wraps_around(self):
        assert rotate(["a", "b", "c"], 4, 2) == ["c", "a", "b", "c"]

    def test_accepts_dates(self):
        d = date(2024, 4, 9)  # day 100 of a leap year
        assert get_rotating_keywords(5, day=d) == get_rotating_keywords(5, day=100)

    def test_empty_pool(self):
        assert get_rotating_keywords(5, day=1, keywords=[]) == []


class TestSharding:
    def test_single_shard_is_identity(self):
        assert shard_keywords(["a", "b"], 0, 1) == ["a", "b"]

    def test_shards_partition_keywords(self):
        words = list("abcdefg")
        shards = [shard_keywords(words, i, 3) for i in range(3)]
        assert sorted(sum(shards, [])) == words

    def test_invalid_index(self):
        with pytest.raises(ValueError):
            shard_keywords(["a"], 3, 3)


class TestKeywordSource:
    def test_default_rotating(self):
        assert KeywordSource().select_keywords(8, day=100) == get_rotating_keywords(8, day=100)

    def test_returns_requested_count(self):
        assert len(KeywordSource().select_keywords(8, day=42, strategy="random")) == 8

    @pytest.mark.parametrize("strategy", ["rotating", "random"])
    def test_count_beyond_taxonomy_has_no_repeats(self, strategy):
        total = len(get_all_keywords())
        picked = KeywordSource().select_keywords(total + 25, day=200, strategy=strategy)
        assert len(picked) == total
        assert len(set(picked)) == total

    def test_priority_strategy(self):
        assert KeywordSource().select_keywords(5, strategy="priority") == HIGH_PRIORITY_KEYWORDS[:5]

    def test_priority_rotating_walks_ranked_list(self):
        start = (10 * 2) % len(HIGH_PRIORITY_KEYWORDS)
        picked = KeywordSource().select_keywords(3, day=10, strategy="priority_rotating")
        assert picked == HIGH_PRIORITY_KEYWORDS[start:start + 3]

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            KeywordSource().select_keywords(3, strategy="alphabetical")

    def test_override_replaces_taxonomy(self):
        source = KeywordSource(override_provider=lambda: ["city pop", "vaporwave"])
        picked = source.select_keywords(8, day=1)
        assert set(picked) <= {"city pop", "vaporwave"}
        assert len(picked) == 2

    def test_override_rotates_over_override_list(self):
        override = ["a", "b", "c", "d", "e"]
        source = KeywordSource(override_provider=lambda: override)
        assert source.select_keywords(2, day=1) == ["d", "e"]

    def test_empty_override_uses_taxonomy(self):
        source = KeywordSource(override_provider=lambda: [])
        assert source.all_keywords() == get_all_keywords()

    def test_failing_provider_falls_back(self):
        def broken():
            raise ConnectionError("keyword service down")

        source = KeywordSource(override_provider=broken)
        assert source.select_keywords(8, day=100) == get_rotating_keywords(8, day=100)


class TestOverrideLoading:
    def test_inline_list(self):
        assert load_override_keywords({"override": ["lofi", "  "], "override_url": None}) == ["lofi"]

    def test_nothing_configured(self):
        assert load_override_keywords({"override": [], "override_url": None}) == []

    def test_remote_list(self, monkeypatch):
        class FakeResponse:
            def raise_for_status(self):
                pass

            def json(self):
                return {"keywords": ["rain jazz", " night lofi "]}

        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return FakeResponse()

        monkeypatch.setattr(kw.requests, "get", fake_get)
        result = load_override_keywords(
            {"override": [], "override_url": "https://example.com/kw.json"}
        )
        assert result == ["rain jazz", "night lofi"]
        assert calls == [("https://example.com/kw.json", 10)]
