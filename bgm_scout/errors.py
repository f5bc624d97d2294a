"""Exceptions raised across the collection and tracking flows."""

from __future__ import annotations


class BgmScoutError(Exception):
    """Base class for all bgm_scout errors."""


class ConfigurationError(BgmScoutError):
    """Missing credentials or unusable settings. Fatal for a run."""


class TransientApiError(BgmScoutError):
    """Network, timeout, rate-limit or server error from the YouTube API.

    Callers skip the current keyword or channel and continue.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class QuotaExceededError(BgmScoutError):
    """The YouTube API reported that the daily quota is spent."""
