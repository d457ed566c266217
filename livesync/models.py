"""Value types shared by the sync pipeline components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ExtractorKind(str, Enum):
    PLATFORM_API = "platform-api"
    PROBE = "probe"
    NONE = "none"


class FailureReason(str, Enum):
    MISSING_URL = "missing-url"
    NO_MANIFEST_FOUND = "no-manifest-found"
    TIMEOUT = "timeout"
    ERROR = "error"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"

    @property
    def icon(self) -> str:
        return _SEVERITY_ICONS[self]


_SEVERITY_ICONS = {
    Severity.INFO: "ℹ",
    Severity.SUCCESS: "✓",
    Severity.ERROR: "✗",
    Severity.WARNING: "⚠",
}


class SyncState(str, Enum):
    GATE_CHECK = "gate_check"
    LOADING = "loading"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    DONE = "done"
    SKIPPED = "skipped"
    ERROR = "error"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime) -> str:
    """Render ``value`` as an ISO-8601 UTC string with millisecond precision."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware datetime; ``None`` when invalid."""

    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class ChannelDescriptor:
    name: str
    source_url: str


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Outcome of resolving a single channel during one run."""

    name: str
    source_url: str
    resolved_url: Optional[str] = None
    extractor_kind: ExtractorKind = ExtractorKind.NONE
    quality: Optional[str] = None
    failure_reason: Optional[FailureReason] = None

    @property
    def ok(self) -> bool:
        return self.failure_reason is None and bool(self.resolved_url)

    @classmethod
    def success(
        cls,
        channel: ChannelDescriptor,
        resolved_url: str,
        kind: ExtractorKind,
        quality: Optional[str] = None,
    ) -> "ExtractionResult":
        return cls(
            name=channel.name,
            source_url=channel.source_url,
            resolved_url=resolved_url,
            extractor_kind=kind,
            quality=quality,
        )

    @classmethod
    def failure(cls, channel: ChannelDescriptor, reason: FailureReason) -> "ExtractionResult":
        return cls(name=channel.name, source_url=channel.source_url, failure_reason=reason)


@dataclass(frozen=True, slots=True)
class LiveLinkRecord:
    name: str
    url: str
    extractor_kind: str
    quality: Optional[str]
    last_updated: Optional[str]
    status: str = "active"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "extractor": self.extractor_kind,
            "quality": self.quality,
            "last_updated": self.last_updated,
            "status": self.status,
        }


@dataclass(frozen=True, slots=True)
class SyncLogEntry:
    run_id: str
    timestamp: str
    severity: Severity
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "icon": self.severity.icon,
            "type": self.severity.value,
            "message": self.message,
        }


@dataclass(slots=True)
class SyncRun:
    run_id: str
    started_at: datetime
    state: SyncState = SyncState.GATE_CHECK
    entries: list[SyncLogEntry] = field(default_factory=list)


@dataclass(slots=True)
class RunSummary:
    """Outcome of one orchestrator invocation, as returned to callers."""

    run_id: Optional[str]
    state: SyncState
    skipped: bool = False
    reason: Optional[str] = None
    last_run: Optional[datetime] = None
    elapsed_ms: Optional[int] = None
    duration_ms: Optional[int] = None
    processed: Optional[int] = None
    updated: Optional[int] = None
    failed: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is not SyncState.ERROR

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"skipped": self.skipped, "state": self.state.value}
        if self.run_id is not None:
            payload["run_id"] = self.run_id
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.last_run is not None:
            payload["last_run"] = isoformat(self.last_run)
        if self.elapsed_ms is not None:
            payload["elapsed_ms"] = self.elapsed_ms
        if self.duration_ms is not None:
            payload["duration_ms"] = self.duration_ms
        for key in ("processed", "updated", "failed"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        if self.error is not None:
            payload["error"] = self.error
        return payload


__all__ = [
    "ChannelDescriptor",
    "ExtractionResult",
    "ExtractorKind",
    "FailureReason",
    "LiveLinkRecord",
    "RunSummary",
    "Severity",
    "SyncLogEntry",
    "SyncRun",
    "SyncState",
    "isoformat",
    "parse_timestamp",
    "utcnow",
]
