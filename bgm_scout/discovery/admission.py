"""Numeric and temporal admission gates for discovered channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..database.models import ChannelCandidate, ChannelRecord, PlaylistVideo
from ..utils.time_utils import months_ago
from .classifier import is_bgm_relevant, matching_keywords
from .growth import growth_score, months_between

logger = logging.getLogger(__name__)

REJECTION_REASONS = (
    "missing_channel_id",
    "not_bgm",
    "subscribers",
    "video_count",
    "too_old",
    "low_growth",
)


@dataclass(frozen=True)
class AdmissionConfig:
    months_threshold: float
    min_subscribers: int
    max_subscribers: int
    min_videos: int
    min_growth_rate: int

    def as_dict(self) -> dict:
        return {
            "months_threshold": self.months_threshold,
            "min_subscribers": self.min_subscribers,
            "max_subscribers": self.max_subscribers,
            "min_videos": self.min_videos,
            "min_growth_rate": self.min_growth_rate,
        }


@dataclass(frozen=True)
class AdmissionResult:
    record: Optional[ChannelRecord] = None
    reason: Optional[str] = None
    detail: str = ""

    @property
    def admitted(self) -> bool:
        return self.record is not None


def evaluate(
    channel: ChannelCandidate,
    first_video: Optional[PlaylistVideo],
    config: AdmissionConfig,
    now: datetime,
) -> AdmissionResult:
    """Run the gates in order and stop at the first failure.

    The recency gate looks at the channel's own creation date while the
    growth score is measured from the first upload when one is known.
    """
    if channel is None or not channel.channel_id:
        return AdmissionResult(reason="missing_channel_id")

    title = channel.title

    if not is_bgm_relevant(channel.title, channel.description):
        return AdmissionResult(reason="not_bgm", detail=title)

    subs = channel.subscriber_count or 0
    if not config.min_subscribers <= subs <= config.max_subscribers:
        return AdmissionResult(reason="subscribers", detail=f"{subs} subscribers")

    videos = channel.video_count or 0
    if videos < config.min_videos:
        return AdmissionResult(reason="video_count", detail=f"{videos} videos")

    if channel.published_at is None or channel.published_at < months_ago(now, config.months_threshold):
        age = months_between(channel.published_at, now) if channel.published_at else None
        detail = f"{age:.1f} months old" if age is not None else "no creation date"
        return AdmissionResult(reason="too_old", detail=detail)

    effective_start = (
        first_video.published_at
        if first_video is not None and first_video.published_at is not None
        else channel.published_at
    )
    rate = growth_score(subs, effective_start, now)
    if rate < config.min_growth_rate:
        return AdmissionResult(reason="low_growth", detail=f"{rate}% growth")

    record = ChannelRecord(
        channel_id=channel.channel_id,
        title=channel.title,
        description=channel.description or "",
        subscriber_count=subs,
        video_count=videos,
        total_views=channel.total_views or 0,
        published_at=channel.published_at,
        uploads_playlist_id=channel.uploads_playlist_id,
        first_video_date=effective_start,
        growth_rate=rate,
        keywords=matching_keywords(channel.title, channel.description),
        thumbnail_url=channel.thumbnail_url,
    )
    return AdmissionResult(record=record)


def admit(
    channel: ChannelCandidate,
    first_video: Optional[PlaylistVideo],
    config: AdmissionConfig,
    now: datetime,
) -> Optional[ChannelRecord]:
    """Admitted ChannelRecord, or None. The rejection reason is only logged."""
    result = evaluate(channel, first_video, config, now)
    if not result.admitted:
        name = getattr(channel, "title", None) or getattr(channel, "channel_id", None)
        logger.info(f"Filtered out ({result.reason}{': ' + result.detail if result.detail else ''}): {name}")
    return result.record
