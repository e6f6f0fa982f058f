"""
Fetcher module: loads one URL in a browser tab and turns it into a PageRecord.

Navigation is retried with linear backoff; screenshots and HTML archives are
best-effort side effects that never fail the fetch.
"""
from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from site_audit.config import AuditOptions
from site_audit.errors import FetchError
from site_audit.logger import logger
from site_audit.models import PageRecord
from site_audit.resilience import with_retry
from site_audit.utils import normalize_url, sanitize_filename

VIEWPORT: Dict[str, int] = {"width": 1920, "height": 1080}
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
STRIPPED_TAGS = ("script", "style", "noscript")


def page_options(options: AuditOptions) -> Dict[str, Any]:
    """Keyword arguments for ``browser.new_page`` shared by every tab of a run."""
    kwargs: Dict[str, Any] = {"viewport": dict(VIEWPORT), "user_agent": USER_AGENT}
    if options.credentials:
        kwargs["http_credentials"] = options.credentials
    return kwargs


def extract_text(html: str) -> str:
    """Visible text of *html* with script/style/noscript removed."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(list(STRIPPED_TAGS)):
        tag.decompose()
    root = soup.body or soup
    lines = (line.strip() for line in root.get_text("\n").splitlines())
    return "\n".join(line for line in lines if line)


def extract_metadata(html: str) -> Dict[str, Any]:
    """Meta name/property -> content, plus ``structured_data`` (parsed JSON-LD blocks)."""
    soup = BeautifulSoup(html, "html.parser")
    meta: Dict[str, Any] = {}
    for tag in soup.find_all("meta"):
        name = tag.get("name") or tag.get("property")
        content = tag.get("content")
        if name and content:
            meta[name] = content

    structured: List[Any] = []
    for script in soup.select('script[type="application/ld+json"]'):
        raw = script.string or script.get_text()
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            # one bad block must not hide the others
            logger.debug("Dropping malformed JSON-LD block")
            continue
        if data:
            structured.append(data)
    meta["structured_data"] = structured
    return meta


def snapshot_name(url: str) -> str:
    """Readable path-based stem plus a short digest of the full URL, unique per page."""
    parsed = urlparse(url)
    stem = parsed.path.strip("/")
    if parsed.query:
        stem = f"{stem}_{parsed.query}"
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:8]
    return f"{sanitize_filename(stem or 'index')}_{digest}"


class PageFetcher:
    """Fetches pages through a shared browser session (Playwright ``Browser``-compatible)."""

    def __init__(self, browser: Any, options: AuditOptions) -> None:
        self.browser = browser
        self.options = options

    async def fetch(self, url: str, depth: int) -> PageRecord:
        """Load *url* in a fresh tab and return its PageRecord; raise ``FetchError`` on failure."""
        page = await self.browser.new_page(**page_options(self.options))
        try:
            page.set_default_timeout(self.options.operation_timeout * 1000)
            page.set_default_navigation_timeout(self.options.navigation_timeout * 1000)

            response = await self._navigate(page, url)
            if response is None:
                raise FetchError(url, "No response received")
            if not response.ok:
                raise FetchError(
                    url, f"HTTP {response.status}: {response.status_text}", status=response.status
                )

            html = await page.content()
            title = await page.title()
            final_url = page.url or url
            canonical = normalize_url(final_url)

            return PageRecord(
                url=canonical,
                final_url=final_url,
                title=title,
                html=html,
                text_content=extract_text(html),
                metadata=extract_metadata(html),
                status_code=response.status,
                depth=depth,
                screenshot_path=await self._screenshot(page, canonical),
                archive_path=self._archive(canonical, html),
            )
        finally:
            await page.close()

    async def _navigate(self, page: Any, url: str) -> Any:
        attempts = self.options.retry_attempts

        async def goto() -> Any:
            return await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.options.navigation_timeout * 1000,
            )

        retrying = with_retry(
            goto,
            attempts=attempts,
            base_delay=self.options.retry_base_delay,
            label=f"navigation to {url}",
        )
        try:
            return await retrying()
        except Exception as exc:
            raise FetchError(url, f"Failed after {attempts} attempts: {exc}") from exc

    async def _screenshot(self, page: Any, url: str) -> Optional[str]:
        if not self.options.take_screenshots:
            return None
        path = self.options.screenshots_dir / f"{snapshot_name(url)}.jpg"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True, type="jpeg", quality=80)
        except Exception as exc:
            logger.warning("Screenshot of %s failed: %s", url, exc)
            return None
        return str(path)

    def _archive(self, url: str, html: str) -> Optional[str]:
        if not self.options.create_archive:
            return None
        path: Path = self.options.archive_dir / f"{snapshot_name(url)}.html"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
        except OSError as exc:
            logger.warning("Archiving %s failed: %s", url, exc)
            return None
        return str(path)


__all__ = ["PageFetcher", "page_options", "extract_text", "extract_metadata", "USER_AGENT", "VIEWPORT"]
