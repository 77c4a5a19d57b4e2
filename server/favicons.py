"""Favicon discovery for newtab.

Fetches a site's home page and looks for a ``<link rel="...icon...">`` tag
in its ``<head>``. Best effort: network and parse failures are never raised
to the caller, they only turn into a miss.
"""

from __future__ import annotations

import re
import time
from typing import Dict, Iterator, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from .config import DEFAULT_FALLBACK_ICON, DEFAULT_USER_AGENT, FaviconConfig
from .logging_config import get_logger

logger = get_logger(__name__)

SCHEMES = ("https", "http")
ACCEPT_HTML = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
MAX_BODY_BYTES = 512 * 1024
MAX_REDIRECTS = 3

# Tags are cut out with str.find and their attributes tokenized in a single
# left-to-right pass, so scanning stays linear in the document size.
# Accepted forms include:
#   <link rel="icon" href="/favicon.svg">
#   <link href=/favicon.svg rel=icon>
#   <link rel='shortcut icon' href='...'>
#   <link rel=apple-touch-icon href=/icon.png>
LINK_OPEN_RE = re.compile(r"<link\b", re.IGNORECASE)
ATTR_RE = re.compile(
    r"""([^\s"'<>/=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+)))?"""
)


def domain_from_url(url: str) -> str:
    """Return the host[:port] part of *url*, or "" when it has none."""
    try:
        return urlsplit(url.strip()).netloc
    except ValueError:
        return ""


def head_section(document: str) -> str:
    """Cut *document* before the first ``</head>`` (case-insensitive)."""
    idx = document.lower().find("</head>")
    if idx > 0:
        return document[:idx]
    return document


def resolve_href(href: str, page_url: str) -> Optional[str]:
    """Make *href* absolute. Returns None when it cannot be parsed."""
    if href.startswith("//"):
        return "https:" + href
    try:
        parts = urlsplit(href)
    except ValueError:
        return None
    if parts.scheme:
        return href
    return urljoin(page_url, href)


def iter_link_tags(document: str) -> Iterator[Dict[str, str]]:
    """Yield the attributes of each ``<link>`` tag in document order.

    Names are lowercased; the first occurrence of a repeated attribute wins.
    A tag that is never closed ends the scan.
    """
    pos = 0
    while True:
        match = LINK_OPEN_RE.search(document, pos)
        if match is None:
            return
        end = document.find(">", match.end())
        if end < 0:
            return
        attrs: Dict[str, str] = {}
        for attr in ATTR_RE.finditer(document, match.end(), end):
            name = attr.group(1).lower()
            if name not in attrs:
                attrs[name] = next((v for v in attr.groups()[1:] if v is not None), "")
        yield attrs
        pos = end + 1


def find_icon_href(document: str, page_url: str) -> Optional[str]:
    """Return the absolute URL of the first usable icon link in *document*."""
    for attrs in iter_link_tags(head_section(document)):
        if "icon" not in attrs.get("rel", "").lower():
            continue
        href = attrs.get("href", "").strip()
        if not href:
            continue
        resolved = resolve_href(href, page_url)
        if resolved:
            return resolved
    return None


class FaviconResolver:
    """Discovers icon URLs for domains over HTTP(S).

    `transport` is handed to the httpx client; tests pass an
    `httpx.MockTransport` here.
    """

    def __init__(
        self,
        timeout: float = 1.5,
        max_bytes: int = MAX_BODY_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
        fallback: str = DEFAULT_FALLBACK_ICON,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.user_agent = user_agent
        self.fallback = fallback
        self.transport = transport

    @classmethod
    def from_config(cls, config: FaviconConfig) -> "FaviconResolver":
        return cls(
            timeout=config.timeout,
            max_bytes=config.max_bytes,
            user_agent=config.user_agent,
            fallback=config.fallback,
        )

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            headers={"User-Agent": self.user_agent, "Accept": ACCEPT_HTML},
            transport=self.transport,
        )

    def _read_capped(self, response: httpx.Response, deadline: float) -> bytes:
        """Read up to max_bytes, stopping early once *deadline* has passed.

        What arrived before the deadline is kept and scanned like a full body.
        """
        body = bytearray()
        for chunk in response.iter_bytes():
            body.extend(chunk)
            if len(body) >= self.max_bytes:
                break
            if time.monotonic() >= deadline:
                logger.debug(f"Favicon fetch of {response.url} cut at {len(body)} bytes")
                break
        return bytes(body[: self.max_bytes])

    def fetch_page(self, client: httpx.Client, page_url: str) -> Optional[str]:
        """GET *page_url* and return at most max_bytes of it as text.

        The body read stops at `timeout` seconds after the request started;
        the wait for a single chunk is bounded by the client's read timeout.
        """
        deadline = time.monotonic() + self.timeout
        try:
            with client.stream("GET", page_url) as response:
                body = self._read_capped(response, deadline)
                encoding = response.encoding or "utf-8"
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug(f"Favicon fetch failed for {page_url}: {exc}")
            return None
        if not body:
            return None
        return body.decode(encoding, errors="replace")

    def discover(self, domain: str) -> Optional[str]:
        """Return the icon URL advertised by *domain*'s home page, or None."""
        domain = (domain or "").strip()
        if not domain:
            return None

        with self._client() as client:
            for scheme in SCHEMES:
                page_url = f"{scheme}://{domain}/"
                document = self.fetch_page(client, page_url)
                if document is None:
                    continue
                icon = find_icon_href(document, page_url)
                if icon:
                    logger.debug(f"Found favicon for {domain}: {icon}")
                    return icon
        return None

    def resolve(self, domain: str) -> str:
        """Like discover(), but a miss yields the local fallback icon."""
        return self.discover(domain) or self.fallback
