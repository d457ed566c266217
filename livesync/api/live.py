"""Read-side endpoints over the persisted live links."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, redirect

bp = Blueprint("live_api", __name__, url_prefix="/api/live")


def _get_store():
    return current_app.config["LINK_STORE"]


@bp.get("/list")
def list_links():
    return jsonify([record.to_dict() for record in _get_store().list_links()])


@bp.get("/json/<path:live_name>")
def link_detail(live_name: str):
    record = _get_store().get_link(live_name)
    if record is None:
        return jsonify({"error": "live_not_found", "name": live_name}), 404
    return jsonify(record.to_dict())


@bp.get("/<path:live_name>")
def link_redirect(live_name: str):
    url = _get_store().active_url(live_name)
    if not url:
        return jsonify({"error": "link_not_found", "name": live_name}), 404
    return redirect(url, code=302)


__all__ = ["bp"]
