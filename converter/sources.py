"""
Source classification for URL submissions.

Decides once, at submission time, whether a URL is fetched with a plain HTTP
transfer or handed whole to the external downloader.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from .errors import InvalidInput

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

# Canonical, mobile and shortlink hosts
PROVIDER_HOST_MARKERS = ("youtube.com", "youtu.be", "www.youtube.com", "m.youtube.com")
# Watch pages, shortlinks and shorts
PROVIDER_URL_MARKERS = ("youtube.com/watch", "youtu.be/", "youtube.com/shorts/")


class SourceKind(str, Enum):
    direct_http = "direct_http"
    provider_delegated = "provider_delegated"


@dataclass(frozen=True)
class UrlSource:
    url: str
    scheme: str
    host: Optional[str]
    path: str
    kind: SourceKind

    @property
    def provider_delegated(self) -> bool:
        return self.kind is SourceKind.provider_delegated


def is_provider_url(host: Optional[str], url: str) -> bool:
    if host is None:
        logger.warning("⚠️ Host is null for URL: %s", url)
        return False
    lower_host = host.lower()
    lower_url = url.lower()
    matched = any(marker in lower_host for marker in PROVIDER_HOST_MARKERS) or any(
        marker in lower_url for marker in PROVIDER_URL_MARKERS
    )
    logger.debug("🔍 Provider detection: host=%r url=%r -> %s", lower_host, lower_url, matched)
    return matched


def classify_url(url: str) -> UrlSource:
    """
    Validate a submitted URL and pick its acquisition variant.

    Raises:
        InvalidInput: scheme is missing or not http/https
    """
    parsed = urlparse((url or "").strip())
    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InvalidInput("Only http/https URLs are supported")

    host = parsed.hostname
    kind = SourceKind.provider_delegated if is_provider_url(host, url) else SourceKind.direct_http
    return UrlSource(url=url.strip(), scheme=scheme, host=host, path=parsed.path, kind=kind)
