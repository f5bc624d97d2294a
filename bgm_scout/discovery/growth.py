"""Growth metrics: the admission-time velocity score and the trailing
week-over-week rate computed from tracking snapshots."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..database.models import TrackingSnapshot
from ..utils.time_utils import MONTH

MAX_GROWTH_SCORE = 999
# 1000 new subscribers per month since the start date scores 100
SUBSCRIBERS_PER_MONTH_AT_100 = 1000


def months_between(start: datetime, end: datetime) -> float:
    return (end - start) / MONTH


def growth_score(subscriber_count: int, effective_start: Optional[datetime],
                 now: datetime) -> int:
    """Average subscriber velocity since ``effective_start`` as a 0-999 score.

    Future or same-instant start dates score 0. A channel that grew early and
    then stalled scores the same as one growing steadily; this is an average,
    not a recent-trend measure.
    """
    if effective_start is None:
        return 0
    age_in_months = months_between(effective_start, now)
    if age_in_months <= 0:
        return 0
    monthly = max(0, subscriber_count or 0) / age_in_months
    rate = monthly / SUBSCRIBERS_PER_MONTH_AT_100 * 100
    return int(round(min(MAX_GROWTH_SCORE, rate)))


def trailing_growth_rate(snapshots: Sequence[TrackingSnapshot],
                         min_days: float = 6, max_days: float = 8) -> float:
    """Percent subscriber change between the latest snapshot and one ~7 days earlier.

    ``snapshots`` must be in recorded order. Returns 0.0 when there is no
    comparison point in the [min_days, max_days] window or its count is zero.
    """
    if len(snapshots) < 2:
        return 0.0
    latest = snapshots[-1]
    baseline = None
    for snap in snapshots[:-1]:
        days = (latest.recorded_at - snap.recorded_at).total_seconds() / 86400
        if min_days <= days <= max_days:
            baseline = snap
            break
    if baseline is None or not baseline.subscriber_count:
        return 0.0
    change = latest.subscriber_count - baseline.subscriber_count
    return round(change / baseline.subscriber_count * 100, 2)
