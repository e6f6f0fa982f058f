"""site_audit.analyzers.links: HTTP status check of every link on a page.

Status codes below 100 are network failures:

* ``-1`` – timeout
* ``-2`` – DNS resolution failed
* ``-3`` – connection refused
* ``0``  – any other network error
"""
from __future__ import annotations

import asyncio
import socket
from typing import Any, Dict, List, Optional

from aiohttp import ClientConnectorError, ClientError, ClientSession, ClientTimeout
from bs4 import BeautifulSoup

from site_audit.logger import logger
from site_audit.models import PageRecord
from site_audit.utils import resolve_url

STATUS_TIMEOUT = -1
STATUS_DNS_ERROR = -2
STATUS_CONNECTION_REFUSED = -3
STATUS_NETWORK_ERROR = 0

CHECK_TIMEOUT = 15.0
MAX_CONCURRENT_CHECKS = 10
BOT_USER_AGENT = "Mozilla/5.0 (compatible; SiteAudit-Bot/1.0)"

FALLBACK: Dict[str, Any] = {
    "total_links": 0,
    "links": [],
    "broken_links": [],
    "redirects": [],
    "summary": {
        "total": 0,
        "working": 0,
        "redirects": 0,
        "broken": 0,
        "network_errors": 0,
        "timeouts": 0,
        "dns_errors": 0,
        "connection_errors": 0,
        "unknown": 0,
        "working_percentage": 0,
    },
}


def classify_error(exc: BaseException) -> int:
    """Map a request exception to one of the negative/zero status codes."""
    if isinstance(exc, asyncio.TimeoutError):
        return STATUS_TIMEOUT
    if isinstance(exc, ClientConnectorError):
        os_error = getattr(exc, "os_error", None)
        if isinstance(os_error, socket.gaierror):
            return STATUS_DNS_ERROR
        if isinstance(os_error, ConnectionRefusedError):
            return STATUS_CONNECTION_REFUSED
    return STATUS_NETWORK_ERROR


def summarize(links: List[Dict[str, Any]]) -> Dict[str, Any]:
    statuses = [link["status"] for link in links]
    total = len(statuses)
    working = sum(1 for s in statuses if 200 <= s < 300)
    summary = {
        "total": total,
        "working": working,
        "redirects": sum(1 for s in statuses if 300 <= s < 400),
        "broken": sum(1 for s in statuses if s >= 400),
        "network_errors": statuses.count(STATUS_NETWORK_ERROR),
        "timeouts": statuses.count(STATUS_TIMEOUT),
        "dns_errors": statuses.count(STATUS_DNS_ERROR),
        "connection_errors": statuses.count(STATUS_CONNECTION_REFUSED),
        "unknown": sum(1 for s in statuses if s < STATUS_CONNECTION_REFUSED),
        "working_percentage": round(working / total * 100) if total else 0,
    }
    return summary


class LinkAnalyzer:
    """Checks link targets with HEAD (falling back to GET); statuses cached per URL for the run."""

    def __init__(
        self,
        session: Optional[ClientSession] = None,
        timeout: float = CHECK_TIMEOUT,
        concurrency: int = MAX_CONCURRENT_CHECKS,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=timeout)
        self._semaphore = asyncio.Semaphore(concurrency)
        self._cache: Dict[str, asyncio.Future[int]] = {}

    async def __aenter__(self) -> LinkAnalyzer:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(headers={"User-Agent": BOT_USER_AGENT})
            self._owns_session = True
        return self._session

    async def analyze(self, page: PageRecord) -> Dict[str, Any]:
        soup = BeautifulSoup(page.html, "html.parser")
        base_url = page.final_url or page.url
        links: List[Dict[str, Any]] = []
        for tag in soup.select("a[href]"):
            href = tag.get("href")
            if not isinstance(href, str):
                continue
            absolute = resolve_url(href, base_url)
            if absolute is None:
                continue
            links.append(
                {
                    "href": absolute,
                    "original_href": href,
                    "text": tag.get_text(strip=True),
                    "aria_label": tag.get("aria-label"),
                    "title": tag.get("title"),
                }
            )

        statuses = await asyncio.gather(*(self.check_status(link["href"]) for link in links))
        for link, status in zip(links, statuses):
            link["status"] = status

        return {
            "total_links": len(links),
            "links": links,
            "broken_links": [link for link in links if link["status"] >= 400],
            "redirects": [link for link in links if 300 <= link["status"] < 400],
            "summary": summarize(links),
        }

    async def check_status(self, url: str) -> int:
        """Status code of *url*, or a network error code; each URL is requested once."""
        future = self._cache.get(url)
        if future is None:
            future = asyncio.ensure_future(self._request_status(url))
            self._cache[url] = future
        return await asyncio.shield(future)

    async def _request_status(self, url: str) -> int:
        session = self._get_session()
        async with self._semaphore:
            try:
                return await self._request(session, "HEAD", url)
            except (ClientError, asyncio.TimeoutError, OSError) as exc:
                logger.debug("HEAD %s failed (%s), retrying with GET", url, exc)
            try:
                return await self._request(session, "GET", url)
            except (ClientError, asyncio.TimeoutError, OSError) as exc:
                status = classify_error(exc)
                logger.debug("GET %s failed: %s -> %d", url, exc, status)
                return status

    async def _request(self, session: ClientSession, method: str, url: str) -> int:
        async with session.request(method, url, allow_redirects=False, timeout=self._timeout) as resp:
            return resp.status


__all__ = [
    "LinkAnalyzer",
    "FALLBACK",
    "classify_error",
    "summarize",
    "STATUS_TIMEOUT",
    "STATUS_DNS_ERROR",
    "STATUS_CONNECTION_REFUSED",
    "STATUS_NETWORK_ERROR",
]
