"""Runtime configuration resolved from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from .errors import ConfigError
from .version import __version__

LOGGER = logging.getLogger(__name__)


REPO_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_CONCURRENCY = 8
MAX_CONCURRENCY = 32
DEFAULT_MIN_INTERVAL_HOURS = 6.0
DEFAULT_TIME_BUDGET_SECONDS = 30.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _resolve_path(value: str | os.PathLike[str] | None, base: Path) -> Path:
    """Resolve ``value`` relative to ``base`` when not absolute."""

    if value is None:
        return base
    candidate = Path(value).expanduser()
    if candidate.is_absolute():
        return candidate
    return (base / candidate).resolve()


def _guard_directory(path: Path, *, label: str) -> Path:
    """Ensure ``path`` does not resolve to an unsafe location."""

    resolved = path.resolve()
    if resolved == REPO_ROOT.resolve():
        raise ConfigError(f"{label} may not be the repository root ({resolved})")
    if resolved == Path(resolved.anchor):
        raise ConfigError(f"{label} may not be the filesystem root ({resolved})")
    return path


def _number(name: str, raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from None


@dataclass(slots=True)
class SyncConfig:
    """Settings for one sync deployment."""

    feed_url: str
    db_path: Path
    concurrency: int = DEFAULT_CONCURRENCY
    min_interval: timedelta = timedelta(hours=DEFAULT_MIN_INTERVAL_HOURS)
    time_budget: float = DEFAULT_TIME_BUDGET_SECONDS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    user_agent: str = f"livesync/{__version__}"

    def __post_init__(self) -> None:
        if not self.feed_url:
            raise ConfigError("feed URL is not configured (set LIVESYNC_FEED_URL)")
        if not str(self.db_path):
            raise ConfigError("store path is not configured (set LIVESYNC_DB_PATH)")
        self.concurrency = min(MAX_CONCURRENCY, max(1, int(self.concurrency)))
        if self.time_budget <= 0:
            raise ConfigError("SYNC_TIME_BUDGET_SECONDS must be positive")
        if self.http_timeout <= 0:
            raise ConfigError("HTTP_TIMEOUT_SECONDS must be positive")

    @classmethod
    def from_env(cls) -> "SyncConfig":
        feed_url = _first_env("LIVESYNC_FEED_URL", "CHANNELS_JSON_URL")
        if not feed_url:
            raise ConfigError("LIVESYNC_FEED_URL (or CHANNELS_JSON_URL) must be set")

        data_dir = _resolve_path(os.getenv("DATA_DIR"), REPO_ROOT / "data")
        data_dir = _guard_directory(data_dir, label="DATA_DIR")
        db_path = _resolve_path(
            _first_env("LIVESYNC_DB_PATH", "DATABASE_PATH"), data_dir / "livesync.sqlite3"
        )
        _guard_directory(db_path.parent, label="LIVESYNC_DB_PATH parent")

        concurrency = int(
            _number("SYNC_CONCURRENCY", _first_env("SYNC_CONCURRENCY", "CONCURRENCY"), DEFAULT_CONCURRENCY)
        )
        interval_hours = _number(
            "SYNC_MIN_INTERVAL_HOURS", os.getenv("SYNC_MIN_INTERVAL_HOURS"), DEFAULT_MIN_INTERVAL_HOURS
        )
        time_budget = _number(
            "SYNC_TIME_BUDGET_SECONDS", os.getenv("SYNC_TIME_BUDGET_SECONDS"), DEFAULT_TIME_BUDGET_SECONDS
        )
        http_timeout = _number(
            "HTTP_TIMEOUT_SECONDS", os.getenv("HTTP_TIMEOUT_SECONDS"), DEFAULT_HTTP_TIMEOUT_SECONDS
        )
        user_agent = os.getenv("LIVESYNC_USER_AGENT", f"livesync/{__version__}")

        config = cls(
            feed_url=feed_url,
            db_path=db_path,
            concurrency=concurrency,
            min_interval=timedelta(hours=max(0.0, interval_hours)),
            time_budget=time_budget,
            http_timeout=http_timeout,
            user_agent=user_agent,
        )
        LOGGER.debug(
            "Loaded sync config db=%s concurrency=%s budget=%.1fs",
            config.db_path,
            config.concurrency,
            config.time_budget,
        )
        return config


__all__ = ["SyncConfig", "REPO_ROOT"]
