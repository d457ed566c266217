"""Flask application factory."""

from __future__ import annotations

import logging

from flask import Flask
from flask_cors import CORS

from .logging_setup import setup_logging
from .version import __version__

LOGGER = logging.getLogger(__name__)


def create_app(config=None, *, orchestrator=None) -> Flask:
    """Build the HTTP layer around a sync orchestrator.

    ``config`` defaults to :meth:`SyncConfig.from_env`; passing a prebuilt
    ``orchestrator`` skips wiring and reuses its store.
    """

    setup_logging()
    from .api import heartbeat as heartbeat_api
    from .api import live as live_api
    from .api import logs as logs_api
    from .api import sync as sync_api
    from .config import SyncConfig
    from .jobs.sync_run import build_orchestrator
    from .middleware import request_id as request_id_middleware
    from .services.heartbeat import Heartbeat

    if orchestrator is None:
        config = config or SyncConfig.from_env()
        orchestrator = build_orchestrator(config)
    else:
        orchestrator.store.ensure_schema()

    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": "*"}})
    app.config.update(
        SYNC_CONFIG=config,
        SYNC_ORCHESTRATOR=orchestrator,
        LINK_STORE=orchestrator.store,
        RUN_LOGGER=orchestrator.run_logger,
        HEARTBEAT=Heartbeat(),
        JSON_SORT_KEYS=False,
    )

    app.before_request(request_id_middleware.before_request)
    app.after_request(request_id_middleware.after_request)

    for blueprint in (sync_api.bp, live_api.bp, logs_api.bp, heartbeat_api.bp):
        app.register_blueprint(blueprint)

    LOGGER.info("livesync %s ready (store=%s)", __version__, getattr(orchestrator.store, "path", None))
    return app


__all__ = ["create_app", "__version__"]
