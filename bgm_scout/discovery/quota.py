"""In-memory YouTube Data API quota accounting for a single run."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_DAILY_LIMIT = 10000

API_COSTS = {
    "search": 100,         # search.list
    "channels": 1,         # channels.list
    "playlistItems": 1,    # playlistItems.list
    "videos": 1,           # videos.list
}

# Details + up to two playlist pages (first and latest video)
UNITS_PER_CHANNEL = API_COSTS["channels"] + 2 * API_COSTS["playlistItems"]

# The daily quota resets at midnight Pacific time
QUOTA_RESET_TZ = ZoneInfo("America/Los_Angeles")

# (minimum remaining units, keyword count, videos per keyword, channel cap, mode)
COLLECTION_BANDS = [
    (5000, 15, 30, 300, "full"),
    (2000, 8, 20, 150, "standard"),
    (500, 3, 10, 50, "conservative"),
    (0, 0, 0, 0, "none"),
]


class QuotaTracker:
    """Counts API units spent against a daily budget.

    One instance per collection or tracking run; nothing is persisted, so a
    fresh process starts from zero.
    """

    def __init__(self, daily_limit: int = DEFAULT_DAILY_LIMIT, warn_ratio: float = 0.9,
                 used: int = 0):
        self.daily_limit = daily_limit
        self.warn_ratio = warn_ratio
        self.used = used
        self.calls: dict[str, int] = {}

    @property
    def remaining(self) -> int:
        return max(0, self.daily_limit - self.used)

    @staticmethod
    def cost_of(api_kind: str, count: int = 1) -> int:
        return API_COSTS.get(api_kind, 1) * count

    def record_usage(self, api_kind: str, count: int = 1) -> int:
        """Add the cost of ``count`` calls of ``api_kind``. Returns the new total."""
        cost = self.cost_of(api_kind, count)
        self.used += cost
        self.calls[api_kind] = self.calls.get(api_kind, 0) + count
        logger.debug(f"API usage: {api_kind} (+{cost} units) | total {self.used}/{self.daily_limit}")
        if self.used > self.daily_limit * self.warn_ratio:
            logger.warning(f"Approaching quota limit ({self.used}/{self.daily_limit})")
        return self.used

    def has_capacity(self, required_units: int) -> bool:
        if self.remaining < required_units:
            logger.info(f"Insufficient quota: need {required_units}, available {self.remaining}")
            return False
        return True

    def recommended_params(self, remaining: Optional[int] = None) -> dict:
        """Run shape for the remaining budget.

        Each band keeps ``keyword_count * 100 + max_channels_per_run * 3``
        under the budget that selects it.
        """
        remaining = self.remaining if remaining is None else remaining
        for floor, keywords, videos, channels, mode in COLLECTION_BANDS:
            if remaining >= floor:
                break
        estimated = keywords * API_COSTS["search"] + channels * UNITS_PER_CHANNEL
        return {
            "keyword_count": keywords,
            "videos_per_keyword": videos,
            "max_channels_per_run": channels,
            "mode": mode,
            "estimated_cost": estimated,
            "remaining_after": remaining - estimated,
        }

    def reset_info(self, now: Optional[datetime] = None) -> dict:
        """When the quota next resets. Informational; callers decide whether to skip."""
        now = now or utcnow()
        local = now.astimezone(QUOTA_RESET_TZ)
        next_midnight = datetime.combine(
            local.date() + timedelta(days=1), time(0, 0), tzinfo=QUOTA_RESET_TZ
        )
        seconds = (next_midnight - local).total_seconds()
        hours_until_reset = seconds / 3600
        return {
            "reset_time": next_midnight.isoformat(),
            "hours_until_reset": round(hours_until_reset, 2),
            "can_run_today": hours_until_reset > 1,
        }

    def status(self, now: Optional[datetime] = None) -> dict:
        reset = self.reset_info(now)
        return {
            "used": self.used,
            "daily_limit": self.daily_limit,
            "remaining": self.remaining,
            "usage_percent": round(self.used / self.daily_limit * 100, 1) if self.daily_limit else 0.0,
            "calls": dict(self.calls),
            **reset,
        }
