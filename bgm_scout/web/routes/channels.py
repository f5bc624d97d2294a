"""Channel browsing, triage and tracking history routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, current_app, request

from ...database.models import CHANNEL_STATUSES
from ...discovery.classifier import bgm_relevance_score
from ...discovery.growth import trailing_growth_rate
from ..app import get_repo

logger = logging.getLogger(__name__)

channels_bp = Blueprint("channels", __name__)


def _with_score(channel: dict) -> dict:
    channel["relevance_score"] = bgm_relevance_score(channel["title"], channel["description"])
    return channel


@channels_bp.route("/channels", methods=["GET"])
def list_channels():
    """List channels, optionally filtered by status and thresholds."""
    repo = get_repo(current_app)
    channels = repo.get_channels(
        limit=request.args.get("limit", 100, type=int),
        order_by=request.args.get("order_by", "created_at"),
        descending=request.args.get("order", "desc") != "asc",
        status=request.args.get("status"),
        min_subscribers=request.args.get("min_subscribers", type=int),
        max_subscribers=request.args.get("max_subscribers", type=int),
        min_growth_rate=request.args.get("min_growth_rate", type=int),
    )
    return jsonify({"channels": [_with_score(c) for c in channels], "count": len(channels)})


@channels_bp.route("/channels/<channel_id>", methods=["GET"])
def get_channel(channel_id):
    repo = get_repo(current_app)
    channel = repo.get_channel(channel_id)
    if channel is None:
        return jsonify({"error": "Channel not found"}), 404
    return jsonify(_with_score(channel))


@channels_bp.route("/channels/<channel_id>/status", methods=["POST"])
def set_status(channel_id):
    """Triage a channel: body {"status": ..., "reason": ...}."""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if status not in CHANNEL_STATUSES:
        return jsonify({"error": f"status must be one of {list(CHANNEL_STATUSES)}"}), 400

    repo = get_repo(current_app)
    if not repo.update_status(channel_id, status, data.get("reason"), updated_by="user_web"):
        return jsonify({"error": "Channel not found"}), 404
    return jsonify({"channel_id": channel_id, "status": status})


@channels_bp.route("/channels/status", methods=["POST"])
def bulk_set_status():
    """Triage several channels at once: body {"channel_ids": [...], "status": ...}."""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    channel_ids = data.get("channel_ids") or []
    if status not in CHANNEL_STATUSES or not isinstance(channel_ids, list):
        return jsonify({"error": "channel_ids list and a valid status are required"}), 400

    repo = get_repo(current_app)
    return jsonify(repo.bulk_update_status(channel_ids, status, data.get("reason")))


@channels_bp.route("/channels/<channel_id>/history", methods=["GET"])
def channel_history(channel_id):
    """Snapshot history with the trailing week-over-week growth rate."""
    repo = get_repo(current_app)
    if repo.get_channel(channel_id) is None:
        return jsonify({"error": "Channel not found"}), 404

    days = request.args.get("days", current_app.config["HISTORY_DAYS"], type=int)
    snapshots = repo.get_snapshots(channel_id, days=days)
    return jsonify({
        "channel_id": channel_id,
        "days": days,
        "snapshots": [s.to_dict() for s in snapshots],
        "trailing_growth_rate": trailing_growth_rate(snapshots),
    })
