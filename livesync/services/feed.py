"""Fetch and normalize the channel feed."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ..errors import EmptyFeedError, FeedFetchError, FeedParseError
from ..models import ChannelDescriptor

LOGGER = logging.getLogger(__name__)

_NAME_KEYS = ("name", "title", "id")
_URL_KEYS = ("url", "watchUrl", "link")


@dataclass(frozen=True, slots=True)
class FeedLoadResult:
    channels: list[ChannelDescriptor]
    invalid: int = 0


def _first_text(entry: dict[str, Any], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = entry.get(key)
        if value is None or isinstance(value, (dict, list, bool)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def normalize_channels(payload: Any) -> FeedLoadResult:
    """Turn a decoded feed document into channel descriptors.

    Accepts a bare list of channel objects or an object carrying a
    ``channels`` list. Entries without a URL are dropped and counted as
    invalid; entries without a name get a positional placeholder so reruns
    stay stable.
    """

    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict) and isinstance(payload.get("channels"), list):
        entries = payload["channels"]
    else:
        raise FeedParseError("feed must be a list of channels or an object with a 'channels' list")

    channels: list[ChannelDescriptor] = []
    invalid = 0
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            invalid += 1
            continue
        url = _first_text(entry, _URL_KEYS)
        if not url:
            invalid += 1
            continue
        name = _first_text(entry, _NAME_KEYS) or f"channel_{position}"
        channels.append(ChannelDescriptor(name=name, source_url=url))

    if not channels:
        raise EmptyFeedError(f"feed contains no usable channels ({invalid} invalid)")
    return FeedLoadResult(channels=channels, invalid=invalid)


class FeedLoader:
    """Download the channel feed over HTTP; no retries."""

    def __init__(self, session: requests.Session, *, timeout: float = 10.0) -> None:
        self._session = session
        self._timeout = timeout

    def load(self, url: str) -> FeedLoadResult:
        LOGGER.debug("Fetching channel feed from %s", url)
        try:
            response = self._session.get(
                url,
                timeout=self._timeout,
                allow_redirects=True,
                headers={"Cache-Control": "no-cache"},
            )
        except requests.RequestException as exc:
            raise FeedFetchError(f"failed to fetch channel feed: {exc}") from exc

        status = int(getattr(response, "status_code", 0) or 0)
        if not 200 <= status < 300:
            raise FeedFetchError(f"failed to fetch channel feed: HTTP {status}", status_code=status)

        try:
            payload = json.loads(response.text)
        except (TypeError, ValueError) as exc:
            raise FeedParseError(f"channel feed is not valid JSON: {exc}") from exc

        result = normalize_channels(payload)
        if result.invalid:
            LOGGER.info("Dropped %d feed entries without a usable URL", result.invalid)
        return result


__all__ = ["FeedLoadResult", "FeedLoader", "normalize_channels"]
