"""Decides whether a channel is a BGM channel from its title and description."""

from __future__ import annotations

from .keywords import get_all_keywords

# Any of these marks a channel as relevant, unless an exclusion also matches
BGM_INDICATORS = [
    "bgm", "music", "lofi", "lo-fi", "chill", "relax", "study", "work", "sleep",
    "piano", "jazz", "ambient", "instrumental", "meditation", "healing",
    "カフェ", "作業用", "勉強用", "睡眠", "リラックス", "ヒーリング", "インスト",
    "瞑想", "アンビエント",
]

# Exclusion dominates inclusion: a "relaxing" gaming vlog is still a vlog
EXCLUDE_KEYWORDS = [
    # Other content categories
    "game", "gaming", "gameplay", "review", "tutorial", "vlog",
    "comedy", "entertainment", "news", "sports", "cooking",
    # Vocal and spoken-word content
    "lyrics", "vocal", "singing", "talk", "podcast",
    # Japanese equivalents
    "ゲーム", "実況", "レビュー", "チュートリアル", "ニュース", "スポーツ", "料理",
    "歌詞", "ボーカル", "歌ってみた", "歌い手", "トーク", "ラップ",
]

HIGH_VALUE_TERMS = ["bgm", "instrumental", "ambient", "lo-fi", "lofi"]
MEDIUM_VALUE_TERMS = ["chill", "relaxing", "study music", "meditation"]


def _text(title: str, description: str) -> str:
    return f"{title or ''} {description or ''}".lower()


def exclusion_hits(title: str = "", description: str = "") -> list[str]:
    text = _text(title, description)
    return [term for term in EXCLUDE_KEYWORDS if term in text]


def is_bgm_relevant(title: str = "", description: str = "") -> bool:
    text = _text(title, description)

    # Substring match: "PCgaming" and "videogame" are still gaming channels
    if any(term in text for term in EXCLUDE_KEYWORDS):
        return False

    return any(indicator in text for indicator in BGM_INDICATORS)


def matching_keywords(title: str = "", description: str = "") -> list[str]:
    """Taxonomy keywords found in the channel text, for tagging only."""
    text = _text(title, description)
    return sorted({kw for kw in get_all_keywords() if kw.lower() in text})


def bgm_relevance_score(title: str = "", description: str = "") -> int:
    """Display score 0-100: +20 per high-value term, +10 per medium one."""
    text = _text(title, description)
    score = sum(20 for term in HIGH_VALUE_TERMS if term in text)
    score += sum(10 for term in MEDIUM_VALUE_TERMS if term in text)
    return min(score, 100)
