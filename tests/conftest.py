# File: tests/conftest.py
"""Shared fixtures: a fake browser session driven by a ``{url: html}`` site map, and a fake AI provider."""
from __future__ import annotations

import json
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest

from site_audit.ai.providers import AIProvider
from site_audit.config import AuditOptions
from site_audit.crawler.fetcher import extract_metadata, extract_text
from site_audit.models import PageRecord

ROOT = "http://site.test/"

TIMING = {
    "load_time": 12,
    "dom_content_loaded": 4,
    "first_paint": 40.0,
    "first_contentful_paint": 55.0,
    "transfer_size": 2048,
    "encoded_body_size": 1024,
}


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


def html_page(title: str = "Page", links: Iterable[str] = (), body: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in links)
    return (
        f'<html lang="en"><head><title>{title}</title></head>'
        f"<body><main><h1>{title}</h1>{body}{anchors}</main></body></html>"
    )


def make_record(url: str = ROOT, html: str = "", depth: int = 0, title: Optional[str] = None) -> PageRecord:
    """PageRecord built the way the fetcher builds one."""
    if title is None:
        match = re.search(r"<title>(.*?)</title>", html, re.S)
        title = match.group(1).strip() if match else ""
    return PageRecord(
        url=url,
        final_url=url,
        title=title,
        html=html,
        text_content=extract_text(html),
        metadata=extract_metadata(html),
        status_code=200,
        depth=depth,
    )


# --------------------------------------------------------------------------- #
#                              Fake browser session                           #
# --------------------------------------------------------------------------- #


class FakeResponse:
    def __init__(self, status: int) -> None:
        self.status = status
        self.status_text = "OK" if status < 400 else "Not Found"

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class FakePage:
    def __init__(self, browser: FakeBrowser, options: Dict[str, Any]) -> None:
        self.browser = browser
        self.options = options
        self.url = "about:blank"
        self.default_timeout: Optional[float] = None
        self.navigation_timeout: Optional[float] = None
        self.closed = False
        self._html = ""

    def set_default_timeout(self, ms: float) -> None:
        self.default_timeout = ms

    def set_default_navigation_timeout(self, ms: float) -> None:
        self.navigation_timeout = ms

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None) -> FakeResponse:
        self.browser.goto_calls.append(url)
        if url in self.browser.failing:
            raise TimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        url = self.browser.redirects.get(url, url)
        self.url = url
        if url not in self.browser.site:
            self._html = "<html><body>Not found</body></html>"
            return FakeResponse(404)
        self._html = self.browser.site[url]
        return FakeResponse(200)

    async def content(self) -> str:
        return self._html

    async def title(self) -> str:
        match = re.search(r"<title>(.*?)</title>", self._html, re.S)
        return match.group(1).strip() if match else ""

    async def screenshot(self, path: str, **kwargs: Any) -> bytes:
        if self.browser.screenshot_error:
            raise RuntimeError("screenshot failed")
        Path(path).write_bytes(b"\xff\xd8fake-jpeg")
        return b""

    async def evaluate(self, script: str) -> Dict[str, Any]:
        return dict(TIMING)

    async def set_content(self, html: str, **kwargs: Any) -> None:
        self._html = html

    async def pdf(self, path: str, **kwargs: Any) -> bytes:
        Path(path).write_bytes(b"%PDF-1.4 fake")
        return b""

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Playwright ``Browser`` stand-in serving pages from *site*; *redirects* maps source to target URL."""

    def __init__(
        self,
        site: Dict[str, str],
        failing: Iterable[str] = (),
        screenshot_error: bool = False,
        redirects: Optional[Dict[str, str]] = None,
    ) -> None:
        self.site = dict(site)
        self.failing = set(failing)
        self.screenshot_error = screenshot_error
        self.redirects = dict(redirects or {})
        self.pages: List[FakePage] = []
        self.goto_calls: List[str] = []
        self.closed = False

    async def new_page(self, **options: Any) -> FakePage:
        page = FakePage(self, options)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True

    @property
    def open_pages(self) -> int:
        return sum(1 for p in self.pages if not p.closed)


def browser_factory(browser: FakeBrowser) -> Callable[[], Any]:
    @asynccontextmanager
    async def factory():
        try:
            yield browser
        finally:
            await browser.close()

    return factory


# --------------------------------------------------------------------------- #
#                                 Fake provider                               #
# --------------------------------------------------------------------------- #


CONTENT_ANSWER = json.dumps(
    {
        "main_topics": ["testing", "audits"],
        "tone": "Professional",
        "target_audience": "Developers",
        "quality_score": 7,
        "recommendations": ["Add examples"],
    }
)


class FakeProvider(AIProvider):
    name = "fake"

    def __init__(self, answer: str = CONTENT_ANSWER, error: Optional[Exception] = None) -> None:
        self.answer = answer
        self.error = error
        self.prompts: List[str] = []
        self.initialized = False
        self.closed = False

    async def initialize(self) -> None:
        self.initialized = True

    async def query(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer

    async def close(self) -> None:
        self.closed = True


# --------------------------------------------------------------------------- #
#                                  Fixtures                                   #
# --------------------------------------------------------------------------- #


@pytest.fixture()
def make_options(tmp_path) -> Callable[..., AuditOptions]:
    """Build AuditOptions with instant retries/delays and no side-effect files."""

    def _make(**overrides: Any) -> AuditOptions:
        values: Dict[str, Any] = dict(
            url=ROOT,
            output_dir=tmp_path / "out",
            request_delay=0,
            retry_base_delay=0,
            take_screenshots=False,
            create_archive=False,
            generate_pdf=False,
        )
        values.update(overrides)
        return AuditOptions(**values)

    return _make


@pytest.fixture()
def fake_provider() -> FakeProvider:
    return FakeProvider()
