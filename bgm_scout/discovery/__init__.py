from __future__ import annotations

from .admission import AdmissionConfig, AdmissionResult, admit, evaluate
from .classifier import is_bgm_relevant, matching_keywords
from .growth import growth_score, trailing_growth_rate
from .keywords import KeywordSource
from .quota import QuotaTracker

__all__ = [
    "AdmissionConfig",
    "AdmissionResult",
    "admit",
    "evaluate",
    "is_bgm_relevant",
    "matching_keywords",
    "growth_score",
    "trailing_growth_rate",
    "KeywordSource",
    "QuotaTracker",
]
