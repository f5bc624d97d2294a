"""Periodic re-sampling of channels under tracking."""

from __future__ import annotations

import time
import logging
from datetime import datetime
from typing import Optional

from ..database.models import ChannelCandidate, TrackingSnapshot
from ..database.repository import Repository
from ..discovery.growth import trailing_growth_rate
from ..discovery.quota import API_COSTS, QuotaTracker
from ..errors import QuotaExceededError
from ..utils.rate_limiter import RateLimiter
from ..utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class TrackingUpdater:
    def __init__(
        self,
        client,
        repo: Repository,
        quota: Optional[QuotaTracker] = None,
        sleep=time.sleep,
        clock=utcnow,
        delay: float = 0.5,
    ):
        self.client = client
        self.repo = repo
        self.quota = quota
        if client is not None and quota is not None:
            client.on_attempt = quota.record_usage
        self.clock = clock
        self.limiter = RateLimiter(delay, sleep=sleep)

    def record_snapshot(
        self, channel_id: str, candidate: Optional[ChannelCandidate] = None
    ) -> Optional[TrackingSnapshot]:
        """Store today's snapshot for a channel, fetching details when not supplied.

        Returns the snapshot (also when today's row already existed), or None
        if the channel no longer resolves.
        """
        if candidate is None:
            candidate = self.client.get_channel(channel_id)
            if candidate is None:
                logger.warning(f"Tracked channel no longer exists: {channel_id}")
                return None

        snapshot = TrackingSnapshot(
            channel_id=channel_id,
            subscriber_count=candidate.subscriber_count,
            video_count=candidate.video_count,
            total_views=candidate.total_views,
            recorded_at=self.clock(),
            title=candidate.title,
        )
        if self.repo.append_snapshot(snapshot):
            logger.info(f"Recorded tracking data for: {candidate.title}")
        else:
            logger.debug(f"Snapshot {snapshot.snapshot_key} already recorded")
        return snapshot

    def update_all(self):
        """Snapshot every channel with status "tracking". Yields progress event dicts.

        Events:
            {"event": "start", "total": int}
            {"event": "snapshot_recorded", "channel_id": str, "title": str, "subscribers": int}
            {"event": "failed", "channel_id": str, "error": str}
            {"event": "quota_exhausted", "remaining": int}
            {"event": "complete", "results": dict}
        """
        tracked = self.repo.query_by_status("tracking")
        results = {"total": len(tracked), "successful": 0, "failed": 0}
        yield {"event": "start", "total": len(tracked)}

        for i, channel in enumerate(tracked):
            channel_id = channel["channel_id"]
            if self.quota is not None and not self.quota.has_capacity(API_COSTS["channels"]):
                results["failed"] += len(tracked) - i
                yield {"event": "quota_exhausted", "remaining": self.quota.remaining}
                break

            self.limiter.wait_if_needed()
            try:
                snapshot = self.record_snapshot(channel_id)
            except QuotaExceededError as e:
                logger.warning(f"Tracking update stopped: {e}")
                results["failed"] += len(tracked) - i
                yield {"event": "quota_exhausted", "remaining": 0}
                break
            except Exception as e:
                logger.warning(f"Failed to update tracking data for {channel_id}: {e}")
                results["failed"] += 1
                yield {"event": "failed", "channel_id": channel_id, "error": str(e)}
                continue

            if snapshot is None:
                results["failed"] += 1
                yield {"event": "failed", "channel_id": channel_id, "error": "channel not found"}
                continue

            results["successful"] += 1
            yield {
                "event": "snapshot_recorded",
                "channel_id": channel_id,
                "title": snapshot.title,
                "subscribers": snapshot.subscriber_count,
            }

        logger.info(
            f"Tracking update completed: {results['successful']} successful, "
            f"{results['failed']} failed"
        )
        yield {"event": "complete", "results": results}

    def update(self) -> dict:
        """Run ``update_all`` to completion and return {total, successful, failed}."""
        results = {"total": 0, "successful": 0, "failed": 0}
        for event in self.update_all():
            if event["event"] == "complete":
                results = event["results"]
        return results

    def enroll(self, channel_id: str, updated_by: str = "user") -> bool:
        """Move a stored channel into tracking and take its first snapshot."""
        if not self.repo.update_status(channel_id, "tracking", updated_by=updated_by):
            logger.warning(f"Cannot track unknown channel: {channel_id}")
            return False
        if self.record_snapshot(channel_id) is None:
            return False
        return True

    def growth_report(
        self, channel_id: str, days: int = 30, now: Optional[datetime] = None
    ) -> Optional[dict]:
        channel = self.repo.get_channel(channel_id)
        if channel is None:
            return None
        snapshots = self.repo.get_snapshots(channel_id, days=days, now=now or self.clock())
        latest = snapshots[-1] if snapshots else None
        return {
            "channel_id": channel_id,
            "title": channel["title"],
            "status": channel["status"],
            "days": days,
            "snapshots": [s.to_dict() for s in snapshots],
            "latest_subscribers": latest.subscriber_count if latest else channel["subscriber_count"],
            "trailing_growth_rate": trailing_growth_rate(snapshots),
        }

    def detect_surging(self, threshold: float = 50, days: int = 14) -> list[dict]:
        """Tracked channels whose week-over-week growth is at least ``threshold`` percent."""
        now = self.clock()
        surging = []
        for channel in self.repo.query_by_status("tracking"):
            snapshots = self.repo.get_snapshots(channel["channel_id"], days=days, now=now)
            rate = trailing_growth_rate(snapshots)
            if snapshots and rate >= threshold:
                surging.append({
                    "channel_id": channel["channel_id"],
                    "title": channel["title"],
                    "subscriber_count": snapshots[-1].subscriber_count,
                    "trailing_growth_rate": rate,
                })
        surging.sort(key=lambda c: c["trailing_growth_rate"], reverse=True)
        return surging
