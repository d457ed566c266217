"""Per-request trace ids, tied to sync run ids where a response carries one."""

from __future__ import annotations

import time
import uuid

from flask import g, request

from livesync.logging_setup import get_request_logger


_REQUEST_LOGGER = get_request_logger()
_TRACE_HEADERS = ("X-Correlation-Id", "X-Trace-Id", "X-Request-Id")


def new_request_id() -> str:
    return "req_" + uuid.uuid4().hex[:10]


def _response_run_id(response) -> str | None:  # type: ignore[no-untyped-def]
    if not response.is_json:
        return None
    payload = response.get_json(silent=True)
    if isinstance(payload, dict) and isinstance(payload.get("run_id"), str):
        return payload["run_id"]
    return None


def before_request() -> None:
    """Reuse an inbound trace header or mint a request id on ``flask.g``."""

    inbound = next((request.headers[name] for name in _TRACE_HEADERS if request.headers.get(name)), None)
    g.trace_id = g.correlation_id = inbound or new_request_id()
    g.request_started = time.perf_counter()


def after_request(response):  # type: ignore[no-untyped-def]
    started = getattr(g, "request_started", None)
    duration_ms = int((time.perf_counter() - started) * 1000) if started is not None else -1
    trace_id = getattr(g, "trace_id", None)
    run_id = _response_run_id(response)

    meta = {
        "method": request.method,
        "path": request.path,
        "status": response.status_code,
        "duration_ms": duration_ms,
    }
    if run_id:
        meta["run_id"] = run_id
    _REQUEST_LOGGER.info(
        "%s %s -> %s in %sms%s",
        request.method,
        request.path,
        response.status_code,
        duration_ms,
        f" (run {run_id})" if run_id else "",
        extra={"correlation_id": trace_id, "meta": meta},
    )

    if trace_id:
        response.headers.setdefault("X-Request-Id", trace_id)
        response.headers.setdefault("X-Correlation-Id", trace_id)
    if run_id:
        response.headers.setdefault("X-Sync-Run-Id", run_id)
    return response


__all__ = ["after_request", "before_request", "new_request_id"]
