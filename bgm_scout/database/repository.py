from __future__ import annotations

import json
import sqlite3
import logging
from datetime import datetime, timedelta
from typing import Optional

from ..utils.time_utils import date_key, parse_timestamp, utcnow
from .connection import init_database
from .models import CHANNEL_STATUSES, ChannelRecord, PlaylistVideo, TrackingSnapshot

logger = logging.getLogger(__name__)

ORDERABLE_COLUMNS = {
    "created_at", "subscriber_count", "growth_rate", "video_count",
    "total_views", "published_at", "title",
}


class Repository:
    """Channel store: admitted channels, triage status and tracking snapshots."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = init_database(self.db_path)
        return self._conn

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    def insert_if_absent(self, record: ChannelRecord) -> bool:
        """Insert a channel keyed by channel_id. Returns False if it already exists."""
        row = record.to_row()
        row["keywords"] = json.dumps(row["keywords"], ensure_ascii=False)
        row["latest_video"] = (
            json.dumps(row["latest_video"], ensure_ascii=False)
            if row["latest_video"] else None
        )
        cur = self.conn.execute(
            """INSERT OR IGNORE INTO channels
                   (channel_id, title, description, channel_url, thumbnail_url,
                    subscriber_count, video_count, total_views, published_at,
                    uploads_playlist_id, first_video_date, growth_rate, keywords,
                    latest_video, status, rejection_reason)
               VALUES (:channel_id, :title, :description, :channel_url, :thumbnail_url,
                       :subscriber_count, :video_count, :total_views, :published_at,
                       :uploads_playlist_id, :first_video_date, :growth_rate, :keywords,
                       :latest_video, :status, :rejection_reason)""",
            row,
        )
        self.conn.commit()
        inserted = cur.rowcount == 1
        if inserted:
            logger.info(
                f"Saved channel: {record.title} ({record.subscriber_count} subscribers)"
            )
        else:
            logger.debug(f"Channel already exists: {record.channel_id}")
        return inserted

    def get_channel(self, channel_id: str) -> Optional[dict]:
        row = self.conn.execute(
            "SELECT * FROM channels WHERE channel_id = ?", (channel_id,)
        ).fetchone()
        return self._channel_row(row) if row else None

    def get_channel_record(self, channel_id: str) -> Optional[ChannelRecord]:
        data = self.get_channel(channel_id)
        if data is None:
            return None
        return ChannelRecord(
            channel_id=data["channel_id"],
            title=data["title"],
            description=data["description"],
            subscriber_count=data["subscriber_count"],
            video_count=data["video_count"],
            total_views=data["total_views"],
            published_at=parse_timestamp(data["published_at"]),
            uploads_playlist_id=data["uploads_playlist_id"],
            first_video_date=parse_timestamp(data["first_video_date"]),
            growth_rate=data["growth_rate"],
            keywords=data["keywords"],
            thumbnail_url=data["thumbnail_url"],
            latest_video=PlaylistVideo.from_dict(data["latest_video"]),
            status=data["status"],
            rejection_reason=data["rejection_reason"],
            created_at=parse_timestamp(data["created_at"]),
        )

    def list_channel_ids(self) -> set[str]:
        rows = self.conn.execute("SELECT channel_id FROM channels").fetchall()
        return {r["channel_id"] for r in rows}

    def get_channels(
        self,
        limit: Optional[int] = 100,
        order_by: str = "created_at",
        descending: bool = True,
        status: Optional[str] = None,
        min_subscribers: Optional[int] = None,
        max_subscribers: Optional[int] = None,
        min_growth_rate: Optional[int] = None,
    ) -> list[dict]:
        """Browse channels with simple predicate filters."""
        if order_by not in ORDERABLE_COLUMNS:
            raise ValueError(f"Cannot order by {order_by!r}")

        sql = "SELECT * FROM channels WHERE 1 = 1"
        params: list = []
        if status == "unset":
            sql += " AND (status IS NULL OR status = 'unset')"
        elif status and status != "all":
            sql += " AND status = ?"
            params.append(status)
        if min_subscribers is not None:
            sql += " AND subscriber_count >= ?"
            params.append(min_subscribers)
        if max_subscribers is not None:
            sql += " AND subscriber_count <= ?"
            params.append(max_subscribers)
        if min_growth_rate is not None:
            sql += " AND growth_rate >= ?"
            params.append(min_growth_rate)
        sql += f" ORDER BY {order_by} {'DESC' if descending else 'ASC'}"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        rows = self.conn.execute(sql, params).fetchall()
        return [self._channel_row(r) for r in rows]

    def query_by_status(self, status: str) -> list[dict]:
        """All channels with the given triage status, oldest first."""
        return self.get_channels(
            limit=None, order_by="created_at", descending=False, status=status
        )

    def update_status(
        self,
        channel_id: str,
        status: str,
        reason: Optional[str] = None,
        updated_by: str = "system",
    ) -> bool:
        """Set a channel's triage status. Returns False if the channel is unknown."""
        if status not in CHANNEL_STATUSES:
            raise ValueError(f"Invalid status {status!r}; expected one of {CHANNEL_STATUSES}")
        # A rejection reason only makes sense on rejected channels
        reason = reason if status == "rejected" else None
        cur = self.conn.execute(
            """UPDATE channels
               SET status = ?, rejection_reason = ?,
                   status_updated_at = ?, status_updated_by = ?
               WHERE channel_id = ?""",
            (status, reason, utcnow().isoformat(), updated_by, channel_id),
        )
        self.conn.commit()
        if cur.rowcount:
            logger.info(f"Updated channel status: {channel_id} -> {status}")
        return cur.rowcount > 0

    def bulk_update_status(
        self, channel_ids: list[str], status: str, reason: Optional[str] = None
    ) -> dict:
        success = 0
        failed = 0
        for channel_id in channel_ids:
            if self.update_status(channel_id, status, reason):
                success += 1
            else:
                failed += 1
        return {"success": success, "failed": failed}

    # ------------------------------------------------------------------
    # Tracking snapshots
    # ------------------------------------------------------------------

    def append_snapshot(self, snapshot: TrackingSnapshot) -> bool:
        """Store one snapshot per channel per day. Returns False on a same-day repeat."""
        cur = self.conn.execute(
            """INSERT OR IGNORE INTO tracking_snapshots
                   (snapshot_key, channel_id, snapshot_date, title, subscriber_count,
                    video_count, total_views, recorded_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                snapshot.snapshot_key,
                snapshot.channel_id,
                date_key(snapshot.recorded_at),
                snapshot.title,
                int(snapshot.subscriber_count or 0),
                int(snapshot.video_count or 0),
                int(snapshot.total_views or 0),
                parse_timestamp(snapshot.recorded_at).isoformat(),
            ),
        )
        self.conn.commit()
        return cur.rowcount == 1

    def get_snapshots(
        self,
        channel_id: str,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[TrackingSnapshot]:
        """Snapshot history for a channel in recorded order."""
        sql = "SELECT * FROM tracking_snapshots WHERE channel_id = ?"
        params: list = [channel_id]
        if days is not None:
            cutoff = (now or utcnow()) - timedelta(days=days)
            sql += " AND recorded_at >= ?"
            params.append(cutoff.isoformat())
        sql += " ORDER BY recorded_at ASC"
        rows = self.conn.execute(sql, params).fetchall()
        return [
            TrackingSnapshot(
                channel_id=r["channel_id"],
                subscriber_count=r["subscriber_count"],
                video_count=r["video_count"],
                total_views=r["total_views"],
                recorded_at=parse_timestamp(r["recorded_at"]),
                title=r["title"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_channel_stats(self) -> dict:
        row = self.conn.execute(
            """SELECT COUNT(*) as cnt,
                      COALESCE(AVG(subscriber_count), 0) as avg_subs,
                      COALESCE(AVG(growth_rate), 0) as avg_growth
               FROM channels"""
        ).fetchone()
        top = self.conn.execute(
            "SELECT * FROM channels ORDER BY subscriber_count DESC LIMIT 1"
        ).fetchone()
        return {
            "total_channels": row["cnt"],
            "average_subscribers": round(row["avg_subs"]),
            "average_growth_rate": round(row["avg_growth"]),
            "top_channel": self._channel_row(top) if top else None,
        }

    def get_status_statistics(self) -> dict:
        stats = {"total": 0, "unset": 0, "tracking": 0, "non-tracking": 0, "rejected": 0}
        rows = self.conn.execute(
            "SELECT COALESCE(status, 'unset') as st, COUNT(*) as cnt FROM channels GROUP BY st"
        ).fetchall()
        for r in rows:
            stats[r["st"]] = stats.get(r["st"], 0) + r["cnt"]
            stats["total"] += r["cnt"]
        return stats

    # ------------------------------------------------------------------
    # Run history
    # ------------------------------------------------------------------

    def record_run(
        self,
        run_type: str,
        report: dict,
        started_at: datetime,
        mode: Optional[str] = None,
        quota_used: int = 0,
    ) -> int:
        cur = self.conn.execute(
            """INSERT INTO collection_runs (run_type, mode, report, quota_used, started_at)
               VALUES (?, ?, ?, ?, ?)""",
            (run_type, mode, json.dumps(report), quota_used, started_at.isoformat()),
        )
        self.conn.commit()
        return cur.lastrowid

    def get_recent_runs(self, limit: int = 10) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM collection_runs ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
        runs = []
        for r in rows:
            run = dict(r)
            run["report"] = json.loads(run["report"] or "{}")
            runs.append(run)
        return runs

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _channel_row(row: sqlite3.Row) -> dict:
        data = dict(row)
        data["keywords"] = json.loads(data.get("keywords") or "[]")
        latest = data.get("latest_video")
        data["latest_video"] = json.loads(latest) if latest else None
        return data
