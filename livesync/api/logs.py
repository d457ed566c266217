"""Per-run log lookup."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("logs_api", __name__, url_prefix="/api/logs")


@bp.get("/<run_id>")
def run_logs(run_id: str):
    run_id = (run_id or "").strip()
    if not run_id:
        return jsonify({"error": "missing_run_id"}), 400
    entries = current_app.config["RUN_LOGGER"].read(run_id)
    if not entries:
        return jsonify({"error": "logs_not_found", "run_id": run_id}), 404
    return jsonify([entry.to_dict() for entry in entries])


__all__ = ["bp"]
