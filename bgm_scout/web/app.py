"""Flask application factory for the channel triage JSON API."""

from __future__ import annotations

import logging

from flask import Flask, jsonify

from ..config import load_config, get_quota_config, get_tracking_config
from ..database.repository import Repository

logger = logging.getLogger(__name__)


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask application."""
    if config is None:
        config = load_config()

    app = Flask(__name__)
    app.config["DB_PATH"] = config["db_path"]
    app.config["DAILY_QUOTA"] = get_quota_config(config)["daily_limit"]

    tracking_cfg = get_tracking_config(config)
    app.config["HISTORY_DAYS"] = tracking_cfg["history_days"]
    app.config["SURGE_THRESHOLD"] = tracking_cfg["surge_threshold"]

    from .routes.channels import channels_bp
    from .routes.status import status_bp

    app.register_blueprint(channels_bp, url_prefix="/api")
    app.register_blueprint(status_bp, url_prefix="/api")

    @app.errorhandler(ValueError)
    def bad_request(e):
        return jsonify({"error": str(e)}), 400

    return app


def get_repo(app: Flask) -> Repository:
    """Get or create Repository instance for the app."""
    if not hasattr(app, "_repo") or app._repo is None:
        app._repo = Repository(app.config["DB_PATH"])
    return app._repo
