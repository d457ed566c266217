"""Sync trigger endpoints wiring the orchestrator into Flask."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

bp = Blueprint("sync_api", __name__, url_prefix="/api")


def _get_orchestrator():
    return current_app.config.get("SYNC_ORCHESTRATOR")


def _force_requested() -> bool:
    raw = request.args.get("force")
    if raw is None:
        payload = request.get_json(silent=True) or {}
        raw = payload.get("force") if isinstance(payload, dict) else None
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in {"1", "true", "yes", "on"}


def _trigger():
    orchestrator = _get_orchestrator()
    if orchestrator is None:
        return jsonify({"error": "sync_unavailable"}), 503

    summary = orchestrator.run(force=_force_requested())
    if not summary.ok:
        return jsonify({"error": summary.error, "run_id": summary.run_id}), 500
    return jsonify(summary.to_dict())


@bp.post("/sync")
def trigger_sync():
    return _trigger()


@bp.get("/cron")
def cron_sync():
    """Scheduler-friendly alias of ``POST /api/sync``."""

    return _trigger()


__all__ = ["bp"]
