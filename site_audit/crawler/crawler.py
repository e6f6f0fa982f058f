"""site_audit.crawler.crawler: breadth-first, depth-batched site crawl."""
from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, List

from site_audit.config import AuditOptions
from site_audit.crawler.fetcher import PageFetcher
from site_audit.crawler.frontier import CrawlFrontier
from site_audit.crawler.link_extractor import extract_links
from site_audit.logger import logger
from site_audit.models import PageRecord

__all__ = ("SiteCrawler",)


class SiteCrawler:
    """
    Serial crawler over one shared browser session.

    All URLs of depth *d* are fetched before any URL of depth *d+1*. Three caps
    apply independently: ``max_depth``, ``max_pages`` and the start URL's
    scheme/host.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        options: AuditOptions,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.options = options
        self.frontier = CrawlFrontier(options.url)
        self.pages: List[PageRecord] = []
        self._sleep = sleep

    def _should_continue(self) -> bool:
        return (
            self.frontier.has_pending()
            and len(self.pages) < self.options.max_pages
            and self.frontier.current_depth <= self.options.max_depth
        )

    async def crawl(self) -> List[PageRecord]:
        """Fetch pages until the frontier is empty or a cap is hit; returns them in fetch order."""
        logger.info("Crawl started: %s", self.options.url)
        start = time.monotonic()
        frontier = self.frontier

        while self._should_continue():
            batch = frontier.take_batch()
            logger.debug("Depth %d: %d URL(s) queued", frontier.current_depth, len(batch))
            for url in batch:
                if frontier.is_visited(url) or len(self.pages) >= self.options.max_pages:
                    continue
                frontier.mark_visited(url)
                await self._crawl_one(url, frontier.current_depth)
                await self._sleep(self.options.request_delay)
            frontier.advance()

        duration = time.monotonic() - start
        logger.info("Crawl finished: %d page(s) in %.2f s", len(self.pages), duration)
        return self.pages

    async def _crawl_one(self, url: str, depth: int) -> None:
        try:
            page = await self.fetcher.fetch(url, depth)
        except Exception as exc:
            logger.warning("Failed to crawl %s: %s", url, exc)
            return
        if page.url != url:
            # redirected: the landing page may already be crawled
            if self.frontier.is_visited(page.url):
                logger.info("Skipping %s: redirects to already crawled %s", url, page.url)
                return
            self.frontier.mark_visited(page.url)
        self.pages.append(page)
        logger.info("Crawled [%d/%d] depth=%d %s", len(self.pages), self.options.max_pages, depth, url)

        if depth < self.options.max_depth:
            links = extract_links(page.html, page.final_url or url, self.options.url, self.options.exclude_patterns)
            added = self.frontier.enqueue(links)
            logger.debug("%s: %d link(s), %d new", url, len(links), added)
