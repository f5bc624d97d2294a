"""YouTube Data API v3 client: video search, channel details, uploads scanning."""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime
from typing import Callable, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..database.models import ChannelCandidate, PlaylistVideo, VideoRecord
from ..errors import QuotaExceededError, TransientApiError
from ..utils.retry import retry_with_backoff
from ..utils.time_utils import format_rfc3339, parse_timestamp

logger = logging.getLogger(__name__)

SEARCH_ORDERS = ("relevance", "date", "viewCount")
MAX_PAGE_SIZE = 50


def _is_quota_error(err: HttpError) -> bool:
    content = err.content or b""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return "quotaExceeded" in content or "dailyLimitExceeded" in content


def _to_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class YouTubeClient:
    """Thin wrapper over the discovery client returning typed records.

    Not-found resources come back as ``None``. Transport failures surface as
    ``TransientApiError`` once the bounded retry gives up, and a spent daily
    quota as ``QuotaExceededError``.
    """

    def __init__(
        self,
        api_key: str = None,
        service=None,
        timeout: float = 10,
        max_retries: int = 2,
        retry_base_delay: float = 2.0,
        region_code: Optional[str] = "JP",
        relevance_language: Optional[str] = "ja",
        rng: random.Random = None,
        sleep=time.sleep,
        on_attempt: Optional[Callable[[str], None]] = None,
    ):
        if service is None:
            if not api_key:
                raise ValueError("API key is required")
            service = build(
                "youtube",
                "v3",
                developerKey=api_key,
                http=httplib2.Http(timeout=timeout),
                cache_discovery=False,
            )
        self._youtube = service
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.region_code = region_code
        self.relevance_language = relevance_language
        self._rng = rng or random.Random()
        self._sleep = sleep
        # Called with the API kind before every physical request, retries included
        self.on_attempt = on_attempt

    @classmethod
    def from_config(cls, api_key: str, youtube_config: dict) -> "YouTubeClient":
        return cls(
            api_key=api_key,
            timeout=youtube_config["timeout"],
            max_retries=youtube_config["max_retries"],
            retry_base_delay=youtube_config["retry_base_delay"],
            region_code=youtube_config["region_code"],
            relevance_language=youtube_config["relevance_language"],
        )

    def _execute(self, request, label: str, kind: str):
        @retry_with_backoff(
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            sleep=self._sleep,
        )
        def call():
            if self.on_attempt is not None:
                self.on_attempt(kind)
            return request.execute(num_retries=0)

        try:
            return call()
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            if _is_quota_error(e):
                raise QuotaExceededError(f"YouTube quota exceeded during {label}") from e
            if status == 404:
                return None
            raise TransientApiError(f"YouTube API error during {label}: {e}", status) from e
        except (OSError, httplib2.HttpLib2Error) as e:
            raise TransientApiError(f"YouTube API {label} failed: {e}") from e

    # ------------------------------------------------------------------
    # search.list
    # ------------------------------------------------------------------

    def search_videos(
        self,
        keyword: str,
        max_results: int = 50,
        published_after: Optional[datetime] = None,
        order: Optional[str] = None,
    ) -> list[VideoRecord]:
        """One search.list page of videos for ``keyword``.

        The order is picked at random when not given, to vary which channels
        a repeated keyword surfaces.
        """
        params = {
            "part": "snippet",
            "q": keyword,
            "type": "video",
            "maxResults": max(1, min(max_results, MAX_PAGE_SIZE)),
            "order": order or self._rng.choice(SEARCH_ORDERS),
        }
        if published_after is not None:
            params["publishedAfter"] = format_rfc3339(published_after)
        if self.region_code:
            params["regionCode"] = self.region_code
        if self.relevance_language:
            params["relevanceLanguage"] = self.relevance_language

        response = self._execute(
            self._youtube.search().list(**params), f"search '{keyword}'", "search"
        )
        videos = []
        for item in (response or {}).get("items", []):
            snippet = item.get("snippet", {})
            channel_id = snippet.get("channelId")
            if not channel_id:
                continue
            videos.append(VideoRecord(
                video_id=(item.get("id") or {}).get("videoId", ""),
                channel_id=channel_id,
                title=snippet.get("title", ""),
                published_at=parse_timestamp(snippet.get("publishedAt")),
            ))
        logger.debug(f"Found {len(videos)} videos for keyword '{keyword}'")
        return videos

    # ------------------------------------------------------------------
    # channels.list
    # ------------------------------------------------------------------

    def get_channel(self, channel_id: str) -> Optional[ChannelCandidate]:
        response = self._execute(
            self._youtube.channels().list(
                part="snippet,statistics,contentDetails",
                id=channel_id,
            ),
            f"channel details {channel_id}",
            "channels",
        )
        items = (response or {}).get("items") or []
        if not items:
            return None

        item = items[0]
        snippet = item.get("snippet", {})
        statistics = item.get("statistics", {})
        thumbnails = snippet.get("thumbnails", {})
        thumb = thumbnails.get("default") or thumbnails.get("medium") or {}
        return ChannelCandidate(
            channel_id=item.get("id", channel_id),
            title=snippet.get("title", ""),
            description=snippet.get("description", "") or "",
            subscriber_count=_to_int(statistics.get("subscriberCount")),
            video_count=_to_int(statistics.get("videoCount")),
            total_views=_to_int(statistics.get("viewCount")),
            published_at=parse_timestamp(snippet.get("publishedAt")),
            uploads_playlist_id=(
                item.get("contentDetails", {}).get("relatedPlaylists", {}).get("uploads")
            ),
            thumbnail_url=thumb.get("url"),
        )

    # ------------------------------------------------------------------
    # playlistItems.list
    # ------------------------------------------------------------------

    def scan_playlist(
        self,
        playlist_id: str,
        direction: str = "oldest",
        max_pages: int = 10,
    ) -> Optional[PlaylistVideo]:
        """Oldest or newest upload in a playlist.

        "newest" reads one item. "oldest" walks up to ``max_pages`` pages of
        50 keeping the earliest publish date seen, so channels with more than
        ``max_pages * 50`` uploads report the oldest of that window.
        """
        if direction not in ("oldest", "newest"):
            raise ValueError(f"direction must be 'oldest' or 'newest', got {direction!r}")
        if not playlist_id:
            return None

        page_size = 1 if direction == "newest" else MAX_PAGE_SIZE
        pages = 1 if direction == "newest" else max(1, max_pages)

        found: Optional[PlaylistVideo] = None
        page_token = None
        for _ in range(pages):
            params = {"part": "snippet", "playlistId": playlist_id, "maxResults": page_size}
            if page_token:
                params["pageToken"] = page_token
            response = self._execute(
                self._youtube.playlistItems().list(**params),
                f"playlist {playlist_id}",
                "playlistItems",
            )
            if not response:
                break

            for item in response.get("items", []):
                video = self._playlist_video(item)
                if direction == "newest":
                    return video
                if video.published_at is None:
                    continue
                if found is None or video.published_at < found.published_at:
                    found = video

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        return found

    @staticmethod
    def _playlist_video(item: dict) -> PlaylistVideo:
        snippet = item.get("snippet", {})
        return PlaylistVideo(
            video_id=snippet.get("resourceId", {}).get("videoId", ""),
            title=snippet.get("title", ""),
            published_at=parse_timestamp(snippet.get("publishedAt")),
        )
