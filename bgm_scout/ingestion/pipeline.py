from __future__ import annotations

import time
import logging
from datetime import datetime
from typing import Union

from ..database.models import ChannelCandidate
from ..database.repository import Repository
from ..discovery.admission import AdmissionConfig, evaluate
from ..discovery.keywords import KeywordSource, shard_keywords
from ..discovery.quota import API_COSTS, UNITS_PER_CHANNEL, QuotaTracker
from ..errors import QuotaExceededError, TransientApiError
from ..utils.rate_limiter import RateLimiter
from ..utils.time_utils import months_ago, utcnow

logger = logging.getLogger(__name__)

# Gates that run before growth scoring do not depend on the first upload,
# so a rejection on any of them is final without scanning the playlist.
_FIRST_VIDEO_INDEPENDENT = {"missing_channel_id", "not_bgm", "subscribers", "video_count", "too_old"}


class _QuotaStop(Exception):
    """Internal signal: no further API calls for the rest of the run."""


class CollectionPipeline:
    """One discovery run: keywords -> search -> dedup -> channel details -> admission -> store.

    Calls are sequential with fixed delays between them. Every keyword and
    channel is budget-gated against the run's own QuotaTracker; running out
    ends the run early with whatever was collected so far.
    """

    def __init__(
        self,
        client,
        repo: Repository,
        quota: QuotaTracker,
        keyword_source: KeywordSource,
        admission_config: AdmissionConfig,
        run_config: dict,
        sleep=time.sleep,
        clock=utcnow,
        first_video_max_pages: int = 10,
    ):
        self.client = client
        self.repo = repo
        self.quota = quota
        # Charge every physical request, retries included, to this run's budget
        client.on_attempt = quota.record_usage
        self.keyword_source = keyword_source
        self.admission_config = admission_config
        self.run_config = run_config
        self.clock = clock
        self.first_video_max_pages = first_video_max_pages
        self.search_limiter = RateLimiter(run_config.get("search_delay", 1.0), sleep=sleep)
        self.channel_limiter = RateLimiter(run_config.get("channel_delay", 0.5), sleep=sleep)

    def select_keywords(self, day: Union[int, datetime, None] = None) -> list[str]:
        keywords = self.keyword_source.select_keywords(
            self.run_config["keyword_count"],
            day=day,
            strategy=self.run_config.get("keyword_strategy", "rotating"),
        )
        return shard_keywords(
            keywords,
            self.run_config.get("shard_index", 0),
            self.run_config.get("shard_count", 1),
        )

    def run(self, day: Union[int, datetime, None] = None):
        """Execute one collection run. Yields progress event dicts for the CLI.

        Events:
            {"event": "start", "keywords": list, "mode": str}
            {"event": "keyword_searched", "keyword": str, "videos": int, "new_channels": int}
            {"event": "keyword_failed", "keyword": str, "error": str}
            {"event": "quota_exhausted", "stage": str, "remaining": int}
            {"event": "deduplicated", "found": int, "known": int, "queued": int}
            {"event": "channel_admitted", "channel_id": str, "title": str, "growth_rate": int}
            {"event": "channel_rejected", "channel_id": str, "title": str, "reason": str}
            {"event": "channel_skipped", "channel_id": str, "reason": str}
            {"event": "channel_failed", "channel_id": str, "error": str}
            {"event": "complete", "report": dict}
        """
        now = self.clock()
        starting_usage = self.quota.used
        report = {
            "found": 0,
            "processed": 0,
            "filtered": 0,
            "saved": 0,
            "skipped": 0,
            "errors": 0,
            "searches": 0,
            "quota_used": 0,
            "stopped_early": False,
        }

        keywords = self.select_keywords(day if day is not None else now)
        yield {"event": "start", "keywords": keywords, "mode": self.run_config.get("mode")}

        # Persisted IDs are read once; the per-run set grows as searches return
        known_ids = self.repo.list_channel_ids()
        found: dict[str, None] = {}
        halted = False

        # --- Search phase ---
        published_after = months_ago(now, self.run_config.get("search_window_months", 3))
        for keyword in keywords:
            if not self.quota.has_capacity(API_COSTS["search"]):
                report["stopped_early"] = True
                yield {"event": "quota_exhausted", "stage": "search", "remaining": self.quota.remaining}
                break

            self.search_limiter.wait_if_needed()
            report["searches"] += 1
            try:
                videos = self.client.search_videos(
                    keyword,
                    max_results=self.run_config["videos_per_keyword"],
                    published_after=published_after,
                )
            except QuotaExceededError as e:
                logger.warning(f"Search stopped: {e}")
                report["stopped_early"] = True
                halted = True
                yield {"event": "quota_exhausted", "stage": "search", "remaining": self.quota.remaining}
                break
            except TransientApiError as e:
                logger.warning(f"Search failed for '{keyword}': {e}")
                report["errors"] += 1
                yield {"event": "keyword_failed", "keyword": keyword, "error": str(e)}
                continue

            before = len(found)
            for video in videos:
                if video.channel_id:
                    found.setdefault(video.channel_id)
            yield {
                "event": "keyword_searched",
                "keyword": keyword,
                "videos": len(videos),
                "new_channels": len(found) - before,
            }

        # --- Dedup ---
        report["found"] = len(found)
        queue = [cid for cid in found if cid not in known_ids]
        known = len(found) - len(queue)
        report["skipped"] += known
        cap = self.run_config.get("max_channels_per_run")
        if cap is not None and len(queue) > cap:
            report["deferred"] = len(queue) - cap
            queue = queue[:cap]
        yield {
            "event": "deduplicated",
            "found": len(found),
            "known": known,
            "queued": 0 if halted else len(queue),
        }

        # --- Channel phase ---
        if not halted:
            for channel_id in queue:
                if not self.quota.has_capacity(UNITS_PER_CHANNEL):
                    report["stopped_early"] = True
                    yield {"event": "quota_exhausted", "stage": "channels", "remaining": self.quota.remaining}
                    break

                self.channel_limiter.wait_if_needed()
                try:
                    yield self._process_channel(channel_id, now, report)
                except _QuotaStop:
                    report["stopped_early"] = True
                    yield {"event": "quota_exhausted", "stage": "channels", "remaining": self.quota.remaining}
                    break

        report["quota_used"] = self.quota.used - starting_usage
        logger.info(
            f"Collection complete: found {report['found']}, saved {report['saved']}, "
            f"filtered {report['filtered']}, skipped {report['skipped']}, errors {report['errors']}"
        )
        yield {"event": "complete", "report": report}

    def collect(self, day: Union[int, datetime, None] = None) -> dict:
        """Drain ``run`` and return the final report."""
        report = {}
        for event in self.run(day):
            if event["event"] == "complete":
                report = event["report"]
        return report

    def _process_channel(self, channel_id: str, now: datetime, report: dict) -> dict:
        """Fetch, admit and store a single channel. Returns the outcome event."""
        try:
            channel = self.client.get_channel(channel_id)
            if channel is None:
                report["skipped"] += 1
                logger.info(f"Channel no longer exists: {channel_id}")
                return {"event": "channel_skipped", "channel_id": channel_id, "reason": "not_found"}
            report["processed"] += 1

            result = evaluate(channel, None, self.admission_config, now)
            if result.admitted or result.reason not in _FIRST_VIDEO_INDEPENDENT:
                first_video = self._scan(channel, "oldest")
                result = evaluate(channel, first_video, self.admission_config, now)

            if not result.admitted:
                report["filtered"] += 1
                logger.info(f"Filtered out ({result.reason}): {channel.title}")
                return {
                    "event": "channel_rejected",
                    "channel_id": channel_id,
                    "title": channel.title,
                    "reason": result.reason,
                    "detail": result.detail,
                }

            record = result.record
            if self.quota.has_capacity(API_COSTS["playlistItems"]):
                record.latest_video = self._scan(channel, "newest")

            if not self.repo.insert_if_absent(record):
                report["skipped"] += 1
                return {"event": "channel_skipped", "channel_id": channel_id, "reason": "exists"}

            report["saved"] += 1
            return {
                "event": "channel_admitted",
                "channel_id": channel_id,
                "title": record.title,
                "growth_rate": record.growth_rate,
                "subscribers": record.subscriber_count,
            }
        except QuotaExceededError as e:
            logger.warning(f"Channel processing stopped: {e}")
            raise _QuotaStop() from e
        except Exception as e:
            report["errors"] += 1
            logger.warning(f"Failed to process channel {channel_id}: {e}")
            return {"event": "channel_failed", "channel_id": channel_id, "error": str(e)}

    def _scan(self, channel: ChannelCandidate, direction: str):
        if not channel.uploads_playlist_id:
            return None
        # Keep one unit back for the latest-video read
        budget = self.quota.remaining - (API_COSTS["playlistItems"] if direction == "oldest" else 0)
        pages = max(1, min(self.first_video_max_pages, budget))
        return self.client.scan_playlist(
            channel.uploads_playlist_id,
            direction=direction,
            max_pages=pages,
        )
