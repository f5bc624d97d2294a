from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional

from ..utils.time_utils import date_key, parse_timestamp

CHANNEL_STATUSES = ("unset", "tracking", "non-tracking", "rejected")


@dataclass
class VideoRecord:
    video_id: str
    channel_id: str
    title: str
    published_at: Optional[datetime] = None


@dataclass
class PlaylistVideo:
    video_id: str
    title: str
    published_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "video_id": self.video_id,
            "title": self.title,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["PlaylistVideo"]:
        if not data:
            return None
        return cls(
            video_id=data.get("video_id", ""),
            title=data.get("title", ""),
            published_at=parse_timestamp(data.get("published_at")),
        )


@dataclass
class ChannelCandidate:
    channel_id: str
    title: str
    description: str = ""
    subscriber_count: int = 0
    video_count: int = 0
    total_views: int = 0
    published_at: Optional[datetime] = None
    uploads_playlist_id: Optional[str] = None
    thumbnail_url: Optional[str] = None

    @property
    def channel_url(self) -> str:
        return f"https://www.youtube.com/channel/{self.channel_id}"


@dataclass
class ChannelRecord:
    channel_id: str
    title: str
    description: str
    subscriber_count: int
    video_count: int
    total_views: int
    published_at: Optional[datetime]
    uploads_playlist_id: Optional[str]
    first_video_date: Optional[datetime]
    growth_rate: int
    keywords: list[str] = field(default_factory=list)
    thumbnail_url: Optional[str] = None
    latest_video: Optional[PlaylistVideo] = None
    status: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def channel_url(self) -> str:
        return f"https://www.youtube.com/channel/{self.channel_id}"

    def to_row(self) -> dict:
        """Flatten into the column mapping the repository writes."""
        return {
            "channel_id": self.channel_id,
            "title": self.title,
            "description": self.description or "",
            "channel_url": self.channel_url,
            "thumbnail_url": self.thumbnail_url or "",
            "subscriber_count": int(self.subscriber_count or 0),
            "video_count": int(self.video_count or 0),
            "total_views": int(self.total_views or 0),
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "uploads_playlist_id": self.uploads_playlist_id,
            "first_video_date": (
                self.first_video_date.isoformat() if self.first_video_date else None
            ),
            "growth_rate": int(self.growth_rate or 0),
            "keywords": list(self.keywords),
            "latest_video": self.latest_video.to_dict() if self.latest_video else None,
            "status": self.status,
            "rejection_reason": self.rejection_reason,
        }


@dataclass
class TrackingSnapshot:
    channel_id: str
    subscriber_count: int
    video_count: int
    total_views: int
    recorded_at: datetime
    title: Optional[str] = None

    @property
    def snapshot_key(self) -> str:
        return f"{self.channel_id}_{date_key(self.recorded_at)}"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["recorded_at"] = self.recorded_at.isoformat()
        data["snapshot_key"] = self.snapshot_key
        return data
