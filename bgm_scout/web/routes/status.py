"""Statistics and quota status routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, current_app, request

from ...discovery.quota import QuotaTracker
from ...ingestion.tracking import TrackingUpdater
from ..app import get_repo

status_bp = Blueprint("status", __name__)


@status_bp.route("/stats", methods=["GET"])
def get_stats():
    repo = get_repo(current_app)
    return jsonify({
        "channels": repo.get_channel_stats(),
        "statuses": repo.get_status_statistics(),
        "recent_runs": repo.get_recent_runs(request.args.get("runs", 5, type=int)),
    })


@status_bp.route("/quota", methods=["GET"])
def get_quota():
    """Reset timing and the run shape a fresh daily budget would allow."""
    quota = QuotaTracker(daily_limit=current_app.config["DAILY_QUOTA"])
    return jsonify({
        **quota.status(),
        "recommended": quota.recommended_params(),
    })


@status_bp.route("/surging", methods=["GET"])
def get_surging():
    """Tracked channels growing at least ``threshold`` percent week over week."""
    repo = get_repo(current_app)
    threshold = request.args.get("threshold", current_app.config["SURGE_THRESHOLD"], type=float)
    # Reads stored snapshots only; no API client needed
    surging = TrackingUpdater(client=None, repo=repo).detect_surging(threshold)
    return jsonify({"threshold": threshold, "channels": surging})
