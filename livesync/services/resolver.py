"""Resolve a channel's source URL into a playable HLS manifest URL.

Resolution is two-tiered. Recognized video-platform URLs are first turned
into a canonical watch URL whose format list is inspected for an HLS entry.
Anything that does not resolve that way is probed directly: a URL whose path
already ends in ``.m3u8`` is accepted as is, otherwise a HEAD request decides
based on the declared content type.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence
from urllib.parse import urlparse

import requests
from yt_dlp import YoutubeDL

from ..models import ChannelDescriptor, ExtractionResult, ExtractorKind, FailureReason

LOGGER = logging.getLogger(__name__)

FormatFetcher = Callable[[str], Sequence[Mapping[str, Any]]]

WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={}"

_VIDEO_ID = r"([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"
_VIDEO_ID_PATTERNS = (
    re.compile(r"watch\?(?:[^\"'\s]*?&(?:amp;)?)?v=" + _VIDEO_ID),
    re.compile(r"youtu\.be/" + _VIDEO_ID),
    re.compile(r"/live/" + _VIDEO_ID),
    re.compile(r"\"videoId\"\s*:\s*\"" + _VIDEO_ID + "\""),
)
_PLATFORM_HOSTS = ("youtube.com", "youtu.be")
_MANIFEST_EXTENSION = ".m3u8"


def find_video_id(payload: str | bytes | None) -> Optional[str]:
    """Return the first canonical video identifier found in ``payload``."""

    if not payload:
        return None
    text = payload.decode("utf-8", "ignore") if isinstance(payload, (bytes, bytearray)) else str(payload)
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def is_platform_url(url: str) -> bool:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if any(host == candidate or host.endswith("." + candidate) for candidate in _PLATFORM_HOSTS):
        return True
    return "/@" in (parsed.path or "")


def is_manifest_content_type(content_type: str | None) -> bool:
    return "mpegurl" in (content_type or "").lower()


def has_manifest_extension(url: str) -> bool:
    return (urlparse(url).path or "").lower().endswith(_MANIFEST_EXTENSION)


def _is_hls_format(fmt: Mapping[str, Any]) -> bool:
    if not fmt.get("url"):
        return False
    protocol = str(fmt.get("protocol") or "").lower()
    if protocol.startswith("m3u8"):
        return True
    mime = str(fmt.get("mimeType") or fmt.get("mime_type") or "")
    if is_manifest_content_type(mime):
        return True
    return has_manifest_extension(str(fmt["url"]))


def _height(fmt: Mapping[str, Any]) -> int:
    height = fmt.get("height")
    return height if isinstance(height, int) else 0


def select_hls_format(formats: Iterable[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Pick the tallest HLS-capable format; earlier entries win ties."""

    best: Optional[Mapping[str, Any]] = None
    for fmt in formats or ():
        if not isinstance(fmt, Mapping) or not _is_hls_format(fmt):
            continue
        if best is None or _height(fmt) > _height(best):
            best = fmt
    return best


def quality_label(fmt: Mapping[str, Any]) -> Optional[str]:
    for key in ("format_note", "qualityLabel", "quality_label"):
        value = fmt.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    height = _height(fmt)
    return f"{height}p" if height else None


def fetch_platform_formats(
    watch_url: str,
    *,
    timeout: float = 10.0,
    user_agent: str | None = None,
) -> list[Mapping[str, Any]]:
    """Return the adaptive format list for ``watch_url`` via yt-dlp."""

    opts: dict[str, Any] = {
        "quiet": True,
        "no_warnings": True,
        "skip_download": True,
        "noplaylist": True,
        "socket_timeout": timeout,
    }
    if user_agent:
        opts["http_headers"] = {"User-Agent": user_agent}
    with YoutubeDL(opts) as ydl:
        info = ydl.extract_info(watch_url, download=False) or {}
    return list(info.get("formats") or [])


class LinkResolver:
    """Turn one channel descriptor into exactly one extraction result."""

    def __init__(
        self,
        session: requests.Session,
        *,
        timeout: float = 10.0,
        format_fetcher: FormatFetcher | None = None,
        user_agent: str | None = None,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._format_fetcher = format_fetcher or (
            lambda url: fetch_platform_formats(url, timeout=timeout, user_agent=user_agent)
        )

    def __call__(self, channel: ChannelDescriptor) -> ExtractionResult:
        return self.resolve(channel)

    def resolve(self, channel: ChannelDescriptor) -> ExtractionResult:
        source_url = (channel.source_url or "").strip()
        if not source_url:
            return ExtractionResult.failure(channel, FailureReason.MISSING_URL)

        if is_platform_url(source_url):
            try:
                platform = self._resolve_platform(channel, source_url)
            except Exception as exc:  # noqa: BLE001 - fall through to the probe tier
                LOGGER.debug("platform resolution failed for %s: %s", channel.name, exc)
                platform = None
            if platform is not None:
                return platform

        try:
            if self._probe(source_url):
                return ExtractionResult.success(channel, source_url, ExtractorKind.PROBE)
        except Exception as exc:  # noqa: BLE001 - probe errors mean "not a manifest"
            LOGGER.debug("probe failed for %s: %s", channel.name, exc)
        return ExtractionResult.failure(channel, FailureReason.NO_MANIFEST_FOUND)

    # -- platform tier ----------------------------------------------------------

    def canonical_watch_url(self, source_url: str) -> Optional[str]:
        """Find the canonical watch URL for a channel or live page."""

        video_id = find_video_id(source_url)
        if video_id is None:
            try:
                response = self._session.get(source_url, timeout=self._timeout, allow_redirects=True)
            except requests.RequestException as exc:
                LOGGER.debug("could not follow %s: %s", source_url, exc)
                return None
            video_id = find_video_id(getattr(response, "url", None)) or find_video_id(
                getattr(response, "text", None)
            )
        if video_id is None:
            return None
        return WATCH_URL_TEMPLATE.format(video_id)

    def _resolve_platform(self, channel: ChannelDescriptor, source_url: str) -> Optional[ExtractionResult]:
        watch_url = self.canonical_watch_url(source_url)
        if watch_url is None:
            LOGGER.debug("no canonical watch URL for %s", channel.name)
            return None
        fmt = select_hls_format(self._format_fetcher(watch_url))
        if fmt is None:
            LOGGER.debug("no HLS format for %s at %s", channel.name, watch_url)
            return None
        return ExtractionResult.success(
            channel,
            str(fmt["url"]),
            ExtractorKind.PLATFORM_API,
            quality_label(fmt),
        )

    # -- probe tier -------------------------------------------------------------

    def _probe(self, url: str) -> bool:
        if has_manifest_extension(url):
            return True
        try:
            response = self._session.head(url, timeout=self._timeout, allow_redirects=True)
        except requests.RequestException as exc:
            LOGGER.debug("HEAD %s failed: %s", url, exc)
            return False
        status = int(getattr(response, "status_code", 0) or 0)
        if not 200 <= status < 400:
            return False
        headers = getattr(response, "headers", None) or {}
        return is_manifest_content_type(headers.get("content-type") or headers.get("Content-Type"))


__all__ = [
    "LinkResolver",
    "fetch_platform_formats",
    "find_video_id",
    "has_manifest_extension",
    "is_manifest_content_type",
    "is_platform_url",
    "quality_label",
    "select_hls_format",
]
