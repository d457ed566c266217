"""Liveness heartbeat for uptime monitors."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("heartbeat_api", __name__, url_prefix="/api")


@bp.get("/heartbeat")
def heartbeat():
    return jsonify(current_app.config["HEARTBEAT"].beat().to_dict())


__all__ = ["bp"]
