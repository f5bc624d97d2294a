"""Search keyword taxonomy and the selection strategies built on it."""

from __future__ import annotations

import logging
import random
from datetime import date, datetime
from typing import Callable, Optional, Union

import requests

from ..utils.time_utils import day_of_year

logger = logging.getLogger(__name__)

BGM_KEYWORDS = {
    "genres": [
        "lofi",
        "lo-fi",
        "chill music",
        "jazz BGM",
        "ambient music",
        "piano BGM",
        "classical BGM",
        "acoustic BGM",
        "instrumental music",
        "chillhop",
        "downtempo",
        "meditation music",
    ],
    "scenes": [
        "study music",
        "work music",
        "focus music",
        "sleep music",
        "relaxing BGM",
        "coffee shop music",
        "reading music",
        "concentration music",
        "background music",
        "calm music",
        "peaceful music",
        "zen music",
    ],
    "japanese": [
        "BGM",
        "作業用BGM",
        "勉強用BGM",
        "リラックス BGM",
        "睡眠用BGM",
        "カフェ BGM",
        "集中BGM",
        "ピアノBGM",
        "ジャズBGM",
        "ヒーリングミュージック",
    ],
    "trending": [
        "lofi hip hop",
        "city pop BGM",
        "synthwave",
        "rainy day jazz",
        "night drive music",
        "cafe jazz",
        "bossa nova BGM",
    ],
    "niche": [
        "rain sounds",
        "nature sounds",
        "asmr ambience",
        "fantasy ambience",
        "healing music",
        "music box BGM",
        "solfeggio frequency",
    ],
}

# Hand-ranked: the terms that historically surface the most new BGM channels.
HIGH_PRIORITY_KEYWORDS = [
    "作業用BGM",
    "勉強用BGM",
    "lofi",
    "睡眠用BGM",
    "カフェ BGM",
    "study music",
    "relaxing BGM",
    "chill music",
    "piano BGM",
    "jazz BGM",
    "ヒーリングミュージック",
    "lofi hip hop",
    "sleep music",
    "ambient music",
    "focus music",
    "集中BGM",
    "ピアノBGM",
    "ジャズBGM",
    "cafe jazz",
    "rainy day jazz",
    "background music",
    "meditation music",
    "chillhop",
    "coffee shop music",
    "city pop BGM",
    "bossa nova BGM",
    "instrumental music",
    "healing music",
    "work music",
    "rain sounds",
]

KEYWORD_STRATEGIES = ("random", "rotating", "priority", "priority_rotating")


def get_all_keywords() -> list[str]:
    """Every taxonomy keyword, categories concatenated in a stable order."""
    keywords = []
    for category in ("genres", "scenes", "japanese", "trending", "niche"):
        keywords.extend(BGM_KEYWORDS[category])
    return keywords


def get_random_keywords(count: int = 5, rng: random.Random = None,
                        keywords: list[str] = None) -> list[str]:
    pool = list(keywords if keywords is not None else get_all_keywords())
    rng = rng or random
    return rng.sample(pool, min(count, len(pool)))


def rotate(keywords: list[str], count: int, start: int) -> list[str]:
    """``count`` items from ``start``, wrapping around the list."""
    if not keywords or count <= 0:
        return []
    n = len(keywords)
    return [keywords[(start + i) % n] for i in range(count)]


def get_rotating_keywords(count: int = 8, day: Union[int, date, datetime, None] = None,
                          keywords: list[str] = None) -> list[str]:
    """Deterministic daily window over the taxonomy.

    The window starts at ``(day_of_year * 3) % len(keywords)``, so runs on the
    same day agree and consecutive days cover different slices.
    """
    pool = keywords if keywords is not None else get_all_keywords()
    if not pool:
        return []
    doy = day if isinstance(day, int) else day_of_year(day)
    return rotate(pool, count, (doy * 3) % len(pool))


def get_high_priority_keywords(count: int = 10) -> list[str]:
    return HIGH_PRIORITY_KEYWORDS[:count]


def shard_keywords(keywords: list[str], shard_index: int, shard_count: int) -> list[str]:
    """Every ``shard_count``-th keyword starting at ``shard_index``."""
    if shard_count <= 1:
        return list(keywords)
    if not 0 <= shard_index < shard_count:
        raise ValueError(f"shard_index must be in [0, {shard_count}), got {shard_index}")
    return keywords[shard_index::shard_count]


def load_override_keywords(keyword_config: dict, timeout: float = 10) -> list[str]:
    """Operator keyword list: inline config first, then a remote JSON list."""
    inline = [k for k in keyword_config.get("override") or [] if isinstance(k, str) and k.strip()]
    if inline:
        return inline

    url = keyword_config.get("override_url")
    if not url:
        return []

    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    data = resp.json()
    if isinstance(data, dict):
        data = data.get("keywords", [])
    if not isinstance(data, list):
        raise ValueError(f"Keyword list at {url} is not a JSON list")
    return [k.strip() for k in data if isinstance(k, str) and k.strip()]


class KeywordSource:
    """Picks the keywords for one collection run.

    An override provider (operator-configured list) replaces the built-in
    taxonomy when it returns a non-empty list. Provider failures fall back to
    the taxonomy and are never raised.
    """

    def __init__(self, override_provider: Optional[Callable[[], list[str]]] = None,
                 rng: random.Random = None):
        self.override_provider = override_provider
        self.rng = rng or random.Random()

    def _override_list(self) -> list[str]:
        if self.override_provider is None:
            return []
        try:
            keywords = self.override_provider() or []
        except Exception as e:
            logger.warning(f"Keyword override unavailable, using built-in taxonomy: {e}")
            return []
        return [k for k in keywords if isinstance(k, str) and k.strip()]

    def all_keywords(self) -> list[str]:
        return self._override_list() or get_all_keywords()

    def select_keywords(
        self,
        count: int,
        day: Union[int, date, datetime, None] = None,
        strategy: str = "rotating",
    ) -> list[str]:
        """Return up to ``count`` keywords (fewer only if the pool is shorter)."""
        if strategy not in KEYWORD_STRATEGIES:
            raise ValueError(f"Unknown keyword strategy: {strategy}")
        if count <= 0:
            return []

        override = self._override_list()
        if override:
            count = min(count, len(override))
            if strategy == "random":
                return get_random_keywords(count, self.rng, keywords=override)
            if strategy == "priority":
                return override[:count]
            return get_rotating_keywords(count, day, keywords=override)

        # A window wider than the pool would repeat searches
        count = min(count, len(get_all_keywords()))
        if strategy == "random":
            return get_random_keywords(count, self.rng)
        if strategy == "rotating":
            return get_rotating_keywords(count, day)
        if strategy == "priority":
            return get_high_priority_keywords(count)

        # priority_rotating: slow daily walk over the ranked list
        doy = day if isinstance(day, int) else day_of_year(day)
        priority = HIGH_PRIORITY_KEYWORDS
        count = min(count, len(priority))
        return rotate(priority, count, (doy * 2) % len(priority))
